# grievance_portal/notifier.py
"""
Outgoing mail. Every notifier exposes the same coroutine:

    result = await notifier.send(to_address, subject, html_body)
    result -> {"success": bool, "message_id": str | None, "error": str | None}

send() reports failure in the result instead of raising; callers decide whether
a failed delivery is fatal (OTP) or not (confirmation).
"""

import uuid
from collections import deque
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Deque, Dict, Any, Optional

import aiosmtplib

from grievance_portal import monitoring
from grievance_portal.config import Settings


class SmtpNotifier:
    """Async SMTP delivery."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.secure = settings.smtp_secure
        self.user = settings.smtp_user
        self.password = settings.smtp_pass
        self.from_name = settings.smtp_from_name
        self.from_email = settings.smtp_from_email

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    async def send(self, to_address: str, subject: str, html_body: str) -> Dict[str, Any]:
        if not self.is_configured:
            monitoring.logger.warning("SMTP_HOST not configured, cannot send email")
            return {"success": False, "message_id": None, "error": "SMTP not configured"}

        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_address
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(html_body, "html"))

        try:
            # port 465 style implicit TLS when SMTP_SECURE=true, STARTTLS otherwise
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.user,
                password=self.password,
                use_tls=self.secure,
                start_tls=not self.secure,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            monitoring.logger.error("Email send error", extra={"to": to_address, "error": str(e)})
            return {"success": False, "message_id": None, "error": str(e)}

        monitoring.logger.info("Email sent", extra={"message_id": message["Message-ID"]})
        return {"success": True, "message_id": message["Message-ID"], "error": None}


# oldest messages are dropped past this
OUTBOX_MAX_MESSAGES = 200


class OutboxNotifier:
    """Keeps mail in memory (MOCK_EMAIL=true, and tests)."""

    def __init__(self, fail: bool = False, max_messages: int = OUTBOX_MAX_MESSAGES):
        self.outbox: Deque[Dict[str, str]] = deque(maxlen=max_messages)
        self.fail = fail

    async def send(self, to_address: str, subject: str, html_body: str) -> Dict[str, Any]:
        if self.fail:
            return {"success": False, "message_id": None, "error": "outbox configured to fail"}
        message_id = f"<{uuid.uuid4()}@outbox>"
        self.outbox.append({"to": to_address, "subject": subject, "html": html_body,
                            "message_id": message_id})
        monitoring.logger.info("Email queued in outbox", extra={"to": to_address, "subject": subject})
        return {"success": True, "message_id": message_id, "error": None}

    def last_to(self, to_address: str) -> Optional[Dict[str, str]]:
        for msg in reversed(self.outbox):
            if msg["to"] == to_address:
                return msg
        return None

    def reset(self):
        self.outbox.clear()


def build_notifier(settings: Settings):
    if settings.mock_email:
        return OutboxNotifier()
    return SmtpNotifier(settings)
