from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models.otp_code import ContactType


class BlacklistAddRequest(BaseModel):
    contactValue: str = Field(..., min_length=1, max_length=254)
    contactType:  ContactType
    note:         Optional[str] = Field(None, max_length=255)

    @field_validator("contactValue")
    @classmethod
    def contact_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Contact value is required")
        return v.strip()


class CleanupRequest(BaseModel):
    otpRetentionDays:       Optional[int] = Field(None, ge=1)
    blacklistRetentionDays: Optional[int] = Field(None, ge=1)
