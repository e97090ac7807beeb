"""
Import all models here so that:
1. Alembic can auto-detect them when generating migrations
2. Relationships between models resolve correctly

Order matters: import parent tables before child tables.
"""

from app.models.user import User
from app.models.otp_code import OtpCode, ContactType
from app.models.otp_blacklist import OtpBlacklist, BlacklistReason
from app.models.otp_send_counter import OtpSendCounter
from app.models.refresh_token import RefreshToken
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "OtpCode",
    "ContactType",
    "OtpBlacklist",
    "BlacklistReason",
    "OtpSendCounter",
    "RefreshToken",
    "AuditLog",
]
