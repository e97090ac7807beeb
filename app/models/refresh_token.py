from sqlalchemy import Column, String, Boolean, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship
from app.database import Base


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id         = Column(String(64), primary_key=True)          # token id (jti)
    userId     = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tokenHash  = Column(String(64), nullable=False, unique=True)
    deviceInfo = Column(String(512), nullable=True)
    issuedAt   = Column(TIMESTAMP(timezone=True), nullable=False)
    expiresAt  = Column(TIMESTAMP(timezone=True), nullable=False)
    revoked    = Column(Boolean, default=False, nullable=False)
    revokedAt  = Column(TIMESTAMP(timezone=True), nullable=True)

    # ─── Relationships ─────────────────────────────────────────────────────────
    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken id={self.id[:8]} userId={self.userId} revoked={self.revoked}>"
