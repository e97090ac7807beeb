import logging
import traceback
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from app.utils.exceptions import AppException, ErrorCode

logger = logging.getLogger(__name__)


def _error_content(message: str, code: str, details: list | None = None, field: str | None = None) -> dict:
    return {
        "success": False,
        "message": message,
        "error": {"code": code, "details": details, "field": field},
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Every AppException subclass lands here. `extra` (retryAfter, remaining,
    reason, expiresAt) sits beside `message`; headers such as Retry-After
    are passed through.
    """
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    error = exc.detail.get("error", {})
    content = _error_content(
        exc.message,
        error.get("code", ErrorCode.INTERNAL_SERVER_ERROR),
        error.get("details"),
        error.get("field"),
    )
    content.update(exc.extra)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Pydantic body/query errors become 400 VALIDATION_ERROR with per-field details."""
    details = []
    for error in exc.errors():
        # loc is a tuple like ("body", "contactValue")
        loc = error.get("loc", [])
        details.append({
            "field": ".".join(str(l) for l in loc if l != "body") or "body",
            "message": error.get("msg", "Invalid value"),
        })

    field = details[0]["field"] if len(details) == 1 else None
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_content("Validation error. Please check your input.",
                               ErrorCode.VALIDATION_ERROR, details, field),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique/FK violations that escaped a service; raw DB text never reaches the client."""
    logger.warning(f"IntegrityError on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_content("A record with this data already exists.", ErrorCode.DUPLICATE_ENTRY),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: full traceback in the log, a safe 500 for the client."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}\n"
        f"{''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_content("An unexpected error occurred. Please try again later.",
                               ErrorCode.INTERNAL_SERVER_ERROR),
    )
