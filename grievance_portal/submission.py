# grievance_portal/submission.py
"""
Submission workflow: validate -> OTP gate -> encrypt -> persist -> notify.

A verified OTP for the submitter's email is the only authorization; there are no
end-user accounts. Once the record is persisted the submission has succeeded,
whatever happens to the confirmation email.
"""

import time
from typing import Dict, Any

from grievance_portal import monitoring
from grievance_portal import templates
from grievance_portal import validation
from grievance_portal.config import Settings
from grievance_portal.errors import AuthorizationError, PortalError, E_EMAIL_NOT_VERIFIED
from grievance_portal.lifecycle import PENDING
from grievance_portal.otp import OtpLedger
from grievance_portal.secret_store import SecretStore
from grievance_portal.store import GrievanceStore


class SubmissionWorkflow:
    def __init__(self, ledger: OtpLedger, store: GrievanceStore, secrets: SecretStore,
                 notifier, settings: Settings):
        self.ledger = ledger
        self.store = store
        self.secrets = secrets
        self.notifier = notifier
        self.settings = settings

    def validate(self, payload: Dict[str, Any]):
        validation.check_required(payload)
        validation.check_email_domain(payload["email"], payload["role"], self.settings)
        validation.check_external_id(payload["external_id"], payload["role"])

    async def submit(self, payload: Dict[str, Any]) -> int:
        """Persist a grievance and return its tracking ID."""
        start = time.time()
        try:
            self.validate(payload)

            if not self.ledger.is_verified(payload["email"]):
                raise AuthorizationError("Email not verified. Please verify OTP first.",
                                         error_code=E_EMAIL_NOT_VERIFIED)

            record = {
                "name": payload["name"].strip(),
                "role": payload["role"],
                "external_id": payload["external_id"].strip(),
                "department": payload["department"],
                # year only applies to students
                "year": payload.get("year") if payload["role"] == validation.ROLE_STUDENT else None,
                "email": payload["email"].strip(),
                "mobile": payload["mobile"].strip(),
                "grievance_type_ciphertext": self.secrets.encrypt(payload["grievance_type"]),
                "grievance_body_ciphertext": self.secrets.encrypt(payload["grievance"]),
                "status": PENDING,
                "email_verified": True,
            }
            tracking_id = self.store.create(record)
        except PortalError as e:
            monitoring.inc_submission(e.error_code.lower())
            raise

        monitoring.inc_submission("created")
        monitoring.logger.info("Grievance submitted",
                               extra={"tracking_id": tracking_id, "role": record["role"],
                                      "elapsed_ms": int((time.time() - start) * 1000)})

        await self._send_confirmation(tracking_id, record["email"], record["name"], payload["grievance_type"])
        return tracking_id

    async def _send_confirmation(self, tracking_id: int, email: str, name: str, grievance_type: str):
        html = templates.tracking_email(tracking_id, name, grievance_type, self.settings.frontend_url)
        subject = f"Grievance Submitted - Tracking ID: {tracking_id}"
        try:
            result = await self.notifier.send(email, subject, html)
        except Exception:
            # a misbehaving notifier must not undo a persisted submission
            monitoring.inc_notification("tracking", "failed")
            monitoring.logger.exception("Failed to send tracking email", extra={"tracking_id": tracking_id})
            return
        if result.get("success"):
            monitoring.inc_notification("tracking", "sent")
            monitoring.logger.info("Tracking email sent", extra={"tracking_id": tracking_id})
        else:
            monitoring.inc_notification("tracking", "failed")
            monitoring.logger.error("Failed to send tracking email",
                                    extra={"tracking_id": tracking_id, "error": result.get("error")})
