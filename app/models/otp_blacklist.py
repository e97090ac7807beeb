import enum
from sqlalchemy import Column, Integer, String, TIMESTAMP, Enum, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base
from app.models.otp_code import ContactType


class BlacklistReason(str, enum.Enum):
    MAX_ATTEMPTS = "max_attempts"
    MAX_RESENDS  = "max_resends"
    MANUAL       = "manual"


class OtpBlacklist(Base):
    __tablename__ = "otp_blacklist"
    __table_args__ = (
        UniqueConstraint("contactValue", "contactType", name="uq_otp_blacklist_contact"),
    )

    id            = Column(Integer, primary_key=True, index=True)
    contactValue  = Column(String(254), nullable=False)
    contactType   = Column(Enum(ContactType), nullable=False)
    reason        = Column(Enum(BlacklistReason), nullable=False)
    note          = Column(String(255), nullable=True)
    blacklistedAt = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    expiresAt     = Column(TIMESTAMP(timezone=True), nullable=True)   # NULL = until removed

    def __repr__(self):
        return f"<OtpBlacklist id={self.id} type={self.contactType} reason={self.reason}>"
