# grievance_portal/schemas.py
# Request bodies. Fields are optional here on purpose: presence is checked by the
# services so every missing field is reported in one structured error.
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class SendOtpRequest(_Body):
    email: Optional[str] = None


class VerifyOtpRequest(_Body):
    email: Optional[str] = None
    otp: Optional[str] = None


class GrievanceSubmission(_Body):
    name: Optional[str] = None
    role: Optional[str] = None
    external_id: Optional[str] = Field(default=None, alias="id")
    department: Optional[str] = None
    year: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    grievance_type: Optional[str] = Field(default=None, alias="grievanceType")
    grievance: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=False)


class StatusUpdate(_Body):
    status: Optional[str] = None


class LoginRequest(_Body):
    username: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(_Body):
    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")
