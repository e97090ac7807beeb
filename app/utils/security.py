import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from jose import JWTError, ExpiredSignatureError, jwt

from app.config import settings
from app.utils import clock
from app.utils.exceptions import TokenExpiredException, TokenInvalidException


# ─── OTP ──────────────────────────────────────────────────────────────────────
OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp() -> str:
    """Uniform 6-digit code in [100000, 999999] from the OS CSPRNG."""
    return f"{secrets.randbelow(OTP_MAX - OTP_MIN + 1) + OTP_MIN:06d}"


def otp_expiry(now: datetime | None = None) -> datetime:
    """Return OTP expiry timestamp (UTC)."""
    return (now or clock.utcnow()) + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)


def codes_match(submitted: str, stored: str) -> bool:
    """Constant-time comparison of two codes."""
    return hmac.compare_digest(submitted.encode(), stored.encode())


# ─── Opaque values ────────────────────────────────────────────────────────────
def generate_token_id() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; refresh tokens are only stored in this form."""
    return hashlib.sha256(token.encode()).hexdigest()


# ─── JWT ──────────────────────────────────────────────────────────────────────
def create_access_token(claims: dict, now: datetime | None = None) -> tuple[str, datetime]:
    """
    Create a short-lived JWT access token.
    Payload: sub (user id), caller claims, type, iat, exp, iss, aud
    """
    issued_at = now or clock.utcnow()
    expire = issued_at + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        **claims,
        "sub": str(claims["userId"]),
        "type": "access",
        "iat": issued_at,
        "exp": expire,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM), expire


def create_refresh_token(user_id: str, token_id: str, now: datetime | None = None) -> tuple[str, datetime]:
    """
    Create a long-lived JWT refresh token signed with the refresh secret.
    Returns (token_string, expiry_datetime).
    """
    issued_at = now or clock.utcnow()
    expire = issued_at + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {
        "sub": str(user_id),
        "jti": token_id,
        "type": "refresh",
        "iat": issued_at,
        "exp": expire,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    token = jwt.encode(payload, settings.refresh_secret_key, algorithm=settings.ALGORITHM)
    return token, expire


def _decode(token: str, key: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(
            token, key,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError:
        raise TokenExpiredException()
    except JWTError:
        raise TokenInvalidException("Invalid or malformed token")

    if payload.get("type") != expected_type:
        raise TokenInvalidException("Invalid token type")
    if not payload.get("sub"):
        raise TokenInvalidException("Invalid token payload")
    return payload


def decode_access_token(token: str) -> dict:
    """
    Decode and validate a JWT access token (signature + expiry only).
    Raises 401 TOKEN_INVALID, or TOKEN_EXPIRED once past exp.
    """
    return _decode(token, settings.SECRET_KEY, "access")


def decode_refresh_token(token: str) -> dict:
    """Decode a JWT refresh token. Storage checks happen in TokenService."""
    payload = _decode(token, settings.refresh_secret_key, "refresh")
    if not payload.get("jti"):
        raise TokenInvalidException("Invalid token payload")
    return payload
