# grievance_portal/config.py
"""
Runtime settings, read once from the environment and passed explicitly to every
component (no module-level singletons for the DB handle or the secret key).

Env vars:
- DATABASE_URL (default: sqlite:///./grievance_portal.db)
- ENCRYPTION_KEY: passphrase for at-rest encryption of grievance text
- OTP_EXPIRY_MINUTES (default: 5)
- OTP_RATE_LIMIT_PER_MINUTE (default: 5): per email on /api/send-otp
- REDIS_URL: optional, shares the OTP rate limiter across workers
- JWT_SECRET, JWT_ALGORITHM (default: HS256), JWT_EXPIRY_MINUTES (default: 1440)
- BCRYPT_ROUNDS (default: 12)
- STUDENT_EMAIL_DOMAIN (default: @sves.org.in)
- FACULTY_EMAIL_DOMAIN (default: @srivasaviengg.ac.in)
- MOCK_EMAIL (default: false): keep mail in an in-memory outbox instead of SMTP
- SMTP_HOST, SMTP_PORT, SMTP_SECURE, SMTP_USER, SMTP_PASS, SMTP_FROM_NAME, SMTP_FROM_EMAIL
- FRONTEND_URL (default: http://localhost:5173)
- ADMIN_BOOTSTRAP_USERNAME, ADMIN_BOOTSTRAP_PASSWORD, ADMIN_BOOTSTRAP_EMAIL
"""

import os
from typing import Optional

from pydantic import BaseModel

# Used only when ENCRYPTION_KEY is unset. Anything encrypted with it is readable
# by whoever has this source file.
INSECURE_DEFAULT_ENCRYPTION_KEY = "your-secret-encryption-key-change-this-in-production"
INSECURE_DEFAULT_JWT_SECRET = "change-me-jwt-secret"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings(BaseModel):
    database_url: str = "sqlite:///./grievance_portal.db"

    encryption_key: Optional[str] = None

    otp_expiry_minutes: int = 5
    otp_rate_limit_per_minute: int = 5
    redis_url: Optional[str] = None

    jwt_secret: str = INSECURE_DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 24 * 60
    bcrypt_rounds: int = 12

    student_email_domain: str = "@sves.org.in"
    faculty_email_domain: str = "@srivasaviengg.ac.in"

    mock_email: bool = False
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_from_name: str = "Grievance Portal"
    smtp_from_email: str = "no-reply@srivasaviengg.ac.in"
    frontend_url: str = "http://localhost:5173"

    admin_bootstrap_username: Optional[str] = None
    admin_bootstrap_password: Optional[str] = None
    admin_bootstrap_email: Optional[str] = None

    @property
    def institutional_domains(self):
        return (self.student_email_domain, self.faculty_email_domain)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from os.environ (call load_dotenv() first if needed)."""
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./grievance_portal.db"),
            encryption_key=os.getenv("ENCRYPTION_KEY") or None,
            otp_expiry_minutes=_env_int("OTP_EXPIRY_MINUTES", 5),
            otp_rate_limit_per_minute=_env_int("OTP_RATE_LIMIT_PER_MINUTE", 5),
            redis_url=os.getenv("REDIS_URL") or None,
            jwt_secret=os.getenv("JWT_SECRET") or INSECURE_DEFAULT_JWT_SECRET,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            jwt_expiry_minutes=_env_int("JWT_EXPIRY_MINUTES", 24 * 60),
            bcrypt_rounds=_env_int("BCRYPT_ROUNDS", 12),
            student_email_domain=os.getenv("STUDENT_EMAIL_DOMAIN", "@sves.org.in"),
            faculty_email_domain=os.getenv("FACULTY_EMAIL_DOMAIN", "@srivasaviengg.ac.in"),
            mock_email=_env_bool("MOCK_EMAIL", "false"),
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_secure=_env_bool("SMTP_SECURE", "false"),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_pass=os.getenv("SMTP_PASS") or None,
            smtp_from_name=os.getenv("SMTP_FROM_NAME", "Grievance Portal"),
            smtp_from_email=os.getenv("SMTP_FROM_EMAIL", "no-reply@srivasaviengg.ac.in"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
            admin_bootstrap_username=os.getenv("ADMIN_BOOTSTRAP_USERNAME") or None,
            admin_bootstrap_password=os.getenv("ADMIN_BOOTSTRAP_PASSWORD") or None,
            admin_bootstrap_email=os.getenv("ADMIN_BOOTSTRAP_EMAIL") or None,
        )
