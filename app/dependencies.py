import hmac

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.services.token_service import token_service
from app.utils.exceptions import UnauthorizedException, TokenInvalidException

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)


# ─── Access Token ─────────────────────────────────────────────────────────────
def get_access_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Bearer header first, then the access-token cookie. Raises 401 if neither."""
    if credentials and credentials.credentials:
        return credentials.credentials
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if token:
        return token
    raise UnauthorizedException("No authentication token provided")


def get_refresh_token_cookie(request: Request) -> str | None:
    return request.cookies.get(settings.REFRESH_TOKEN_COOKIE) or None


# ─── Get Current Principal ────────────────────────────────────────────────────
def get_current_claims(token: str = Depends(get_access_token)) -> dict:
    """
    Validate the access token and return its claims.
    Stateless: signature and expiry only, no database lookup.
    """
    return token_service.verify_access_token(token)


def get_current_user(
    claims: dict = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the access token's subject to a User row.
    Raises 401 if the user no longer exists.
    """
    user = db.query(User).filter(User.id == claims["sub"]).first()
    if not user:
        raise TokenInvalidException("Token subject no longer exists")
    return user


# ─── Admin Guard ──────────────────────────────────────────────────────────────
def require_admin(x_admin_key: str | None = Header(None, alias="X-Admin-Key")) -> None:
    """
    Admin routes are guarded by a shared API key (X-Admin-Key header).
    With ADMIN_API_KEY unset every admin call is refused.
    """
    expected = settings.ADMIN_API_KEY
    if not expected or not x_admin_key:
        raise UnauthorizedException("Admin API key required")
    if not hmac.compare_digest(x_admin_key.encode(), expected.encode()):
        raise UnauthorizedException("Invalid admin API key")
