import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models.otp_code import ContactType


# ─── Request Schemas ──────────────────────────────────────────────────────────
class SendOTPRequest(BaseModel):
    contactValue: str = Field(..., min_length=1, max_length=254)
    contactType:  ContactType

    @field_validator("contactValue")
    @classmethod
    def contact_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Contact value is required")
        return v.strip()


class VerifyOTPRequest(BaseModel):
    userId: str
    code:   str = Field(..., min_length=6, max_length=6)
    type:   ContactType

    @field_validator("userId")
    @classmethod
    def user_id_is_uuid(cls, v: str) -> str:
        try:
            return str(uuid.UUID(v))
        except ValueError:
            raise ValueError("Invalid user ID")

    @field_validator("code")
    @classmethod
    def code_is_numeric(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError("OTP code must be 6 digits")
        return v


class RefreshTokenRequest(BaseModel):
    refreshToken: Optional[str] = None


# ─── Response Schemas ─────────────────────────────────────────────────────────
class UserOut(BaseModel):
    id:         str
    email:      Optional[str] = None
    phone:      Optional[str] = None
    isVerified: bool
    lastLogin:  Optional[str] = None


class SendOTPResponse(BaseModel):
    success:      bool = True
    message:      str
    userId:       str
    expiresAt:    str
    contactValue: str
    contactType:  ContactType
    remaining:    Optional[int] = None


class VerifyOTPResponse(BaseModel):
    success:     bool = True
    message:     str
    user:        UserOut
    accessToken: str


class RefreshResponse(BaseModel):
    success:     bool = True
    message:     str
    accessToken: str
    user:        UserOut


class SessionValidationResponse(BaseModel):
    success: bool = True
    message: str
    valid:   bool
    claims:  dict


class UserResponse(BaseModel):
    success: bool = True
    message: str
    user:    UserOut
