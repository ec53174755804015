# grievance_portal/validation.py
"""
Submission checks that do not touch storage: required fields, role-based email
domain and role-based staff ID format.
"""

import re
from typing import Dict, Any, List

from grievance_portal.config import Settings
from grievance_portal.errors import ValidationError, E_INVALID_EMAIL_DOMAIN, E_INVALID_ID_FORMAT

ROLE_STUDENT = "student"
ROLE_TEACHING = "teaching"
ROLE_NON_TEACHING = "non-teaching"
ROLES = (ROLE_STUDENT, ROLE_TEACHING, ROLE_NON_TEACHING)

# T-AB-1, T-ABC-12, T-ABCD-123
TEACHING_ID_RE = re.compile(r"^[A-Z]-[A-Z]{2,4}-\d{1,3}$")
# NT-ABC-1, NT-ABCD-12, ST-ABCD-123
NON_TEACHING_ID_RE = re.compile(r"^[A-Z]{2}-[A-Z]{3,4}-\d{1,3}$")

REQUIRED_FIELDS = (
    "name", "role", "external_id", "department", "email", "mobile",
    "grievance_type", "grievance",
)


def missing_fields(payload: Dict[str, Any]) -> List[str]:
    missing = []
    for field in REQUIRED_FIELDS:
        value = payload.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing


def check_required(payload: Dict[str, Any]):
    missing = missing_fields(payload)
    if missing:
        raise ValidationError("Missing required fields: " + ", ".join(missing), fields=missing)
    if payload["role"] not in ROLES:
        raise ValidationError("Invalid role. Must be one of: " + ", ".join(ROLES), fields=["role"])


def expected_domain(role: str, settings: Settings) -> str:
    return settings.student_email_domain if role == ROLE_STUDENT else settings.faculty_email_domain


def check_email_domain(email: str, role: str, settings: Settings):
    domain = expected_domain(role, settings)
    if not email.strip().lower().endswith(domain.lower()):
        who = "Students" if role == ROLE_STUDENT else "Faculty"
        raise ValidationError(
            f"Invalid email domain. {who} must use {domain} email.",
            error_code=E_INVALID_EMAIL_DOMAIN,
            fields=["email"],
        )


def is_valid_teaching_id(value: str) -> bool:
    return bool(TEACHING_ID_RE.match(value.strip().upper()))


def is_valid_non_teaching_id(value: str) -> bool:
    return bool(NON_TEACHING_ID_RE.match(value.strip().upper()))


def check_external_id(external_id: str, role: str):
    # student roll numbers are free-form
    if role == ROLE_TEACHING and not is_valid_teaching_id(external_id):
        raise ValidationError(
            "Invalid Faculty ID format. Use format: T-AB-1, T-ABC-12, or T-ABCD-123",
            error_code=E_INVALID_ID_FORMAT,
            fields=["external_id"],
        )
    if role == ROLE_NON_TEACHING and not is_valid_non_teaching_id(external_id):
        raise ValidationError(
            "Invalid Staff ID format. Use format: NT-ABC-1, NT-ABCD-12, or ST-ABCD-123",
            error_code=E_INVALID_ID_FORMAT,
            fields=["external_id"],
        )
