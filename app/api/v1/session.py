import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_claims, get_current_user, get_refresh_token_cookie
from app.models.user import User
from app.schemas.auth import RefreshTokenRequest, RefreshResponse, SessionValidationResponse, UserResponse
from app.schemas.common import ErrorResponse, MessageResponse, success_response
from app.services.auth_service import auth_service, serialize_user
from app.utils.cookies import set_access_cookie, clear_auth_cookies
from app.utils.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session")


def _pick_refresh_token(cookie_token: str | None, data: RefreshTokenRequest | None) -> str | None:
    if cookie_token:
        return cookie_token
    if data and data.refreshToken:
        return data.refreshToken
    return None


# ─── POST /session/refresh ────────────────────────────────────────────────────
@router.post(
    "/refresh",
    status_code=status.HTTP_200_OK,
    summary="Get a new access token using the refresh token",
    response_model=RefreshResponse,
    responses={401: {"model": ErrorResponse}},
)
def refresh_session(
    response: Response,
    data: RefreshTokenRequest | None = None,
    cookie_token: str | None = Depends(get_refresh_token_cookie),
    db: Session = Depends(get_db),
):
    """
    Reads the refresh-token cookie (or `refreshToken` in the body).
    The refresh token is not rotated; only the access token is re-issued.
    """
    token = _pick_refresh_token(cookie_token, data)
    if not token:
        raise UnauthorizedException("No refresh token provided")

    result = auth_service.refresh(db, token)
    set_access_cookie(response, result["accessToken"])
    return success_response("Token refreshed", **result)


# ─── POST /session/logout ─────────────────────────────────────────────────────
@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    summary="Revoke the refresh token and clear credential cookies",
    response_model=MessageResponse,
)
def logout(
    response: Response,
    data: RefreshTokenRequest | None = None,
    cookie_token: str | None = Depends(get_refresh_token_cookie),
    db: Session = Depends(get_db),
):
    """Always answers 200 and clears both cookies, even if revocation fails."""
    token = _pick_refresh_token(cookie_token, data)
    if token:
        try:
            auth_service.logout(db, token)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Refresh token revocation failed during logout")

    clear_auth_cookies(response)
    return success_response("Logged out successfully")


# ─── POST /session/logout-all ─────────────────────────────────────────────────
@router.post(
    "/logout-all",
    status_code=status.HTTP_200_OK,
    summary="Revoke every refresh token of the current user",
    responses={401: {"model": ErrorResponse}},
)
def logout_all(
    response: Response,
    claims: dict = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    count = auth_service.logout_all(db, claims["sub"])
    clear_auth_cookies(response)
    return success_response("Logged out from all devices", revokedSessions=count)


# ─── GET /session/me ──────────────────────────────────────────────────────────
@router.get(
    "/me",
    summary="Get the current user",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse}},
)
def me(current_user: User = Depends(get_current_user)):
    return success_response("User retrieved", user=serialize_user(current_user))


# ─── GET /session/validate ────────────────────────────────────────────────────
@router.get(
    "/validate",
    summary="Check the access token without touching the database",
    response_model=SessionValidationResponse,
    responses={401: {"model": ErrorResponse}},
)
def validate(claims: dict = Depends(get_current_claims)):
    return success_response("Token is valid", valid=True, claims=claims)
