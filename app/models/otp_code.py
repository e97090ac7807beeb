import enum
from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, Enum, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base


class ContactType(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"


class OtpCode(Base):
    """
    The single outstanding (or most recent) code for one contact.
    Rows are upserted on every send, never appended.
    """
    __tablename__ = "otp_codes"
    __table_args__ = (
        UniqueConstraint("contactValue", "contactType", name="uq_otp_codes_contact"),
    )

    id            = Column(Integer, primary_key=True, index=True)
    contactValue  = Column(String(254), nullable=False)
    contactType   = Column(Enum(ContactType), nullable=False)
    code          = Column(String(6), nullable=False)
    createdAt     = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    expiresAt     = Column(TIMESTAMP(timezone=True), nullable=False, index=True)
    isUsed        = Column(Boolean, default=False, nullable=False)
    usedAt        = Column(TIMESTAMP(timezone=True), nullable=True)
    attemptCount  = Column(Integer, default=0, nullable=False)
    lastAttemptAt = Column(TIMESTAMP(timezone=True), nullable=True)
    resendCount   = Column(Integer, default=0, nullable=False)
    lastResendAt  = Column(TIMESTAMP(timezone=True), nullable=True)

    def __repr__(self):
        return (f"<OtpCode id={self.id} type={self.contactType} isUsed={self.isUsed} "
                f"attempts={self.attemptCount} resends={self.resendCount}>")
