# grievance_portal/otp.py
"""
OTP ledger: issues and checks short-lived 6-digit codes bound to an email.

Only the newest record for an email is ever consulted, so issuing a new code
supersedes older ones without deleting them. Expiry is a logical TTL checked on
read; nothing evicts expired rows.
"""

import datetime
import re
import secrets
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from grievance_portal import monitoring
from grievance_portal import templates
from grievance_portal.config import Settings
from grievance_portal.db import Database
from grievance_portal.errors import (
    ValidationError, NotFoundError, AuthorizationError, DependencyError,
    E_INVALID_EMAIL_DOMAIN, E_OTP_NOT_FOUND, E_OTP_CONSUMED, E_OTP_EXPIRED, E_OTP_MISMATCH,
)
from grievance_portal.models import OtpRecord

OTP_MIN = 100000
OTP_MAX = 999999

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

Clock = Callable[[], datetime.datetime]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def generate_code() -> str:
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


class OtpLedger:
    def __init__(self, db: Database, notifier, settings: Settings,
                 clock: Optional[Clock] = None):
        self.db = db
        self.notifier = notifier
        self.settings = settings
        self.clock = clock or datetime.datetime.utcnow

    @property
    def ttl(self) -> datetime.timedelta:
        return datetime.timedelta(minutes=self.settings.otp_expiry_minutes)

    def _latest(self, session, email: str) -> Optional[OtpRecord]:
        return (
            session.query(OtpRecord)
            .filter(OtpRecord.email == email)
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .first()
        )

    def check_issuable(self, email: str):
        """Raise ValidationError unless the address may be sent a code."""
        if not email:
            raise ValidationError("Email is required", fields=["email"])
        if not EMAIL_RE.match(email):
            raise ValidationError("Invalid email format", fields=["email"])
        if not email.endswith(tuple(d.lower() for d in self.settings.institutional_domains)):
            domains = " or ".join(self.settings.institutional_domains)
            raise ValidationError(f"Email must be from {domains} domain", error_code=E_INVALID_EMAIL_DOMAIN,
                                  fields=["email"])

    async def issue(self, email: str) -> str:
        """Store a fresh code for the email and mail it. Returns the code."""
        email = normalize_email(email)
        self.check_issuable(email)

        code = generate_code()
        now = self.clock()
        try:
            with self.db.session() as session:
                session.add(OtpRecord(email=email, code=code, created_at=now,
                                      expires_at=now + self.ttl, verified=False))
                session.commit()
        except SQLAlchemyError as e:
            monitoring.inc_otp_issued("store_error")
            monitoring.logger.error("OTP store write failed", extra={"error": str(e)})
            raise DependencyError("Server error while issuing OTP") from e

        html = templates.otp_email(code, self.settings.otp_expiry_minutes)
        result = await self.notifier.send(email, "Your OTP for Grievance Portal", html)
        if not result.get("success"):
            monitoring.inc_otp_issued("delivery_failed")
            monitoring.inc_notification("otp", "failed")
            monitoring.logger.error("Send OTP mailer error", extra={"error": result.get("error") or "Unknown error"})
            raise DependencyError("Failed to send OTP email")

        monitoring.inc_otp_issued("sent")
        monitoring.inc_notification("otp", "sent")
        return code

    def verify(self, email: str, code) -> None:
        """Mark the newest code for this email as verified, or raise."""
        email = normalize_email(email)
        if not email or code is None or str(code) == "":
            raise ValidationError("Email and OTP are required", fields=["email", "otp"])

        try:
            with self.db.session() as session:
                record = self._latest(session, email)
                if record is None:
                    monitoring.inc_otp_verification("not_found")
                    raise NotFoundError("No OTP found for this email", error_code=E_OTP_NOT_FOUND)
                if record.verified:
                    monitoring.inc_otp_verification("consumed")
                    raise AuthorizationError("OTP already used", error_code=E_OTP_CONSUMED)
                if self.clock() > record.expires_at:
                    monitoring.inc_otp_verification("expired")
                    raise AuthorizationError("OTP has expired", error_code=E_OTP_EXPIRED)
                if str(code) != record.code:
                    monitoring.inc_otp_verification("mismatch")
                    raise AuthorizationError("Invalid OTP", error_code=E_OTP_MISMATCH)

                record.verified = True
                session.commit()
        except SQLAlchemyError as e:
            monitoring.logger.error("OTP store access failed", extra={"error": str(e)})
            raise DependencyError("Server error while verifying OTP") from e

        monitoring.inc_otp_verification("verified")

    def is_verified(self, email: str) -> bool:
        """True when the newest code issued for this email has been verified."""
        email = normalize_email(email)
        try:
            with self.db.session() as session:
                record = self._latest(session, email)
                return bool(record is not None and record.verified)
        except SQLAlchemyError as e:
            monitoring.logger.error("OTP store read failed", extra={"error": str(e)})
            raise DependencyError("Server error while checking email verification") from e
