from fastapi import Response

from app.config import settings


def _set(response: Response, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


def set_access_cookie(response: Response, token: str) -> None:
    _set(response, settings.ACCESS_TOKEN_COOKIE, token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)


def set_refresh_cookie(response: Response, token: str) -> None:
    _set(response, settings.REFRESH_TOKEN_COOKIE, token, settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60)


def clear_auth_cookies(response: Response) -> None:
    """Expire both credential cookies (max-age 0)."""
    _set(response, settings.ACCESS_TOKEN_COOKIE, "", 0)
    _set(response, settings.REFRESH_TOKEN_COOKIE, "", 0)
