import hmac
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.user import User
from app.models.refresh_token import RefreshToken
from app.utils import clock
from app.utils.exceptions import TokenInvalidException, TokenExpiredException, TokenRevokedException
from app.utils.security import (
    create_access_token, create_refresh_token,
    decode_access_token, decode_refresh_token,
    generate_token_id, hash_token,
)

logger = logging.getLogger(__name__)


@dataclass
class IssuedRefreshToken:
    token:     str
    tokenId:   str
    expiresAt: datetime


def build_claims(user: User) -> dict:
    """Identity claims embedded in every access token."""
    return {
        "userId":     user.id,
        "email":      user.email,
        "phone":      user.phone,
        "isVerified": bool(user.isVerified),
    }


class TokenService:

    # ─── Access tokens (stateless) ────────────────────────────────────────────
    def issue_access_token(self, claims: dict) -> str:
        token, _ = create_access_token(claims, clock.utcnow())
        return token

    def verify_access_token(self, token: str) -> dict:
        """Signature + expiry only; never touches storage."""
        return decode_access_token(token)

    # ─── Refresh tokens (persisted) ───────────────────────────────────────────
    def issue_refresh_token(self, db: Session, user_id: str, device_info: str | None = None) -> IssuedRefreshToken:
        """Persist a new refresh token record. Caller commits."""
        now = clock.utcnow()
        token_id = generate_token_id()
        token, expires_at = create_refresh_token(user_id, token_id, now)

        db.add(RefreshToken(
            id=token_id,
            userId=user_id,
            tokenHash=hash_token(token),
            deviceInfo=(device_info or "Unknown")[:512],
            issuedAt=now,
            expiresAt=expires_at,
            revoked=False,
        ))
        return IssuedRefreshToken(token=token, tokenId=token_id, expiresAt=expires_at)

    def verify_refresh_token(self, db: Session, token: str) -> RefreshToken:
        payload = decode_refresh_token(token)

        stored = (db.query(RefreshToken).populate_existing()
                  .filter(RefreshToken.id == payload["jti"]).first())
        if not stored or not hmac.compare_digest(stored.tokenHash, hash_token(token)):
            raise TokenInvalidException("Refresh token not recognised")
        if stored.userId != payload["sub"]:
            raise TokenInvalidException("Refresh token not recognised")
        if stored.revoked:
            logger.warning(f"Revoked refresh token presented for user {stored.userId}")
            raise TokenRevokedException()

        if clock.as_utc(stored.expiresAt) <= clock.utcnow():
            stored.revoked = True
            stored.revokedAt = clock.utcnow()
            db.commit()
            raise TokenExpiredException("Refresh token has expired, please login again")

        return stored

    def find_refresh_token(self, db: Session, token: str) -> RefreshToken | None:
        return db.query(RefreshToken).filter(RefreshToken.tokenHash == hash_token(token)).first()

    def refresh(self, db: Session, token: str) -> tuple[str, User]:
        """New access token for the refresh token's user. The refresh token itself is not rotated."""
        stored = self.verify_refresh_token(db, token)
        user = db.query(User).filter(User.id == stored.userId).first()
        if not user:
            raise TokenInvalidException("Refresh token not recognised")
        return self.issue_access_token(build_claims(user)), user

    # ─── Revocation ───────────────────────────────────────────────────────────
    def revoke(self, db: Session, user_id: str | None, refresh_token: str | None = None) -> int:
        """
        Revoke one refresh token (by value) or, without a token, every live
        token of `user_id`. Returns the number of records revoked. Commits.
        """
        q = db.query(RefreshToken).filter(RefreshToken.revoked.is_(False))
        if refresh_token:
            q = q.filter(RefreshToken.tokenHash == hash_token(refresh_token))
            if user_id:
                q = q.filter(RefreshToken.userId == user_id)
        elif user_id:
            q = q.filter(RefreshToken.userId == user_id)
        else:
            raise ValueError("revoke() needs a user id or a refresh token")

        count = q.update({"revoked": True, "revokedAt": clock.utcnow()})
        db.commit()
        logger.info(f"Revoked {count} refresh token(s) (user={user_id or 'by-token'})")
        return count


token_service = TokenService()
