import uuid

from sqlalchemy import Column, String, Boolean, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id         = Column(String(36), primary_key=True, default=_new_user_id)
    email      = Column(String(254), unique=True, nullable=True, index=True)
    phone      = Column(String(16), unique=True, nullable=True, index=True)
    isVerified = Column(Boolean, default=False, nullable=False)
    lastLogin  = Column(TIMESTAMP(timezone=True), nullable=True)
    createdAt  = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt  = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                        onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")
    audit_logs     = relationship("AuditLog", back_populates="user")

    def __repr__(self):
        return f"<User id={self.id} email={self.email} phone={self.phone}>"
