# grievance_portal/errors.py
"""
Error taxonomy shared by the services and the HTTP layer.

Every error carries a human-readable message and a machine-readable error_code.
The HTTP layer maps the class to a status code; services never build responses.
"""

from typing import List, Optional

E_VALIDATION = "E_VALIDATION"
E_INVALID_EMAIL_DOMAIN = "E_INVALID_EMAIL_DOMAIN"
E_INVALID_ID_FORMAT = "E_INVALID_ID_FORMAT"
E_EMAIL_NOT_VERIFIED = "E_EMAIL_NOT_VERIFIED"
E_OTP_NOT_FOUND = "E_OTP_NOT_FOUND"
E_OTP_CONSUMED = "E_OTP_CONSUMED"
E_OTP_EXPIRED = "E_OTP_EXPIRED"
E_OTP_MISMATCH = "E_OTP_MISMATCH"
E_NOT_FOUND = "E_NOT_FOUND"
E_INVALID_STATUS = "E_INVALID_STATUS"
E_IMMUTABLE = "E_IMMUTABLE"
E_DEPENDENCY = "E_DEPENDENCY"
E_UNAUTHORIZED = "E_UNAUTHORIZED"
E_RATE_LIMIT = "E_RATE_LIMIT"
E_INTERNAL = "E_INTERNAL"


class PortalError(Exception):
    """Base class; subclasses pick the taxonomy bucket."""

    default_code = E_INTERNAL

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code


class ValidationError(PortalError):
    default_code = E_VALIDATION

    def __init__(self, message: str, error_code: Optional[str] = None,
                 fields: Optional[List[str]] = None):
        super().__init__(message, error_code)
        self.fields = fields or []


class AuthorizationError(PortalError):
    default_code = E_UNAUTHORIZED


class NotFoundError(PortalError):
    default_code = E_NOT_FOUND


class StateError(PortalError):
    default_code = E_IMMUTABLE


class DependencyError(PortalError):
    default_code = E_DEPENDENCY


class RateLimitError(PortalError):
    default_code = E_RATE_LIMIT
