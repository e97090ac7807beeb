from sqlalchemy import Column, Integer, String, BigInteger, Enum
from app.database import Base
from app.models.otp_code import ContactType


class OtpSendCounter(Base):
    """Fixed-window send counter, one row per contact per window."""
    __tablename__ = "otp_send_counters"

    contactValue = Column(String(254), primary_key=True)
    contactType  = Column(Enum(ContactType), primary_key=True)
    windowStart  = Column(BigInteger, primary_key=True)     # epoch seconds
    count        = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<OtpSendCounter type={self.contactType} window={self.windowStart} count={self.count}>"
