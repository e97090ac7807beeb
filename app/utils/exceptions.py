from datetime import datetime

from fastapi import HTTPException, status


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES: Machine-readable constants for frontend switch/case
# ═══════════════════════════════════════════════════════════════════════════════
class ErrorCode:
    VALIDATION_ERROR        = "VALIDATION_ERROR"
    UNAUTHORIZED            = "UNAUTHORIZED"
    TOKEN_INVALID           = "TOKEN_INVALID"
    TOKEN_EXPIRED           = "TOKEN_EXPIRED"
    TOKEN_REVOKED           = "TOKEN_REVOKED"
    NOT_FOUND               = "NOT_FOUND"
    DUPLICATE_ENTRY         = "DUPLICATE_ENTRY"
    RATE_LIMITED            = "RATE_LIMITED"
    BLACKLISTED             = "BLACKLISTED"
    OTP_INVALID             = "OTP_INVALID"
    DELIVERY_FAILED         = "DELIVERY_FAILED"
    INTERNAL_SERVER_ERROR   = "INTERNAL_SERVER_ERROR"


# Verification failures share one public message so a client cannot tell
# a wrong code from a missing, used or expired one.
OTP_FAILURE_MESSAGE = "Invalid or expired verification code"


# ═══════════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════════
class AppException(HTTPException):
    """
    Base exception for all application-level errors.
    Carries a machine-readable error_code for frontend handling.
    `extra` keys are copied to the top level of the JSON error body.
    """
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str,
        details: list | None = None,
        field: str | None = None,
        extra: dict | None = None,
        headers: dict | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.extra = extra or {}
        super().__init__(status_code=status_code, headers=headers, detail={
            "message": message,
            "error": {
                "code": error_code,
                "details": details,
                "field": field,
            }
        })


# ═══════════════════════════════════════════════════════════════════════════════
# CONCRETE EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class ValidationException(AppException):
    def __init__(self, message: str = "Invalid request data", field: str | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.VALIDATION_ERROR, field=field)


class NotFoundException(AppException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found", ErrorCode.NOT_FOUND)


class UnauthorizedException(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.UNAUTHORIZED)


# ─── Send gates ───────────────────────────────────────────────────────────────
class RateLimitedException(AppException):
    def __init__(self, retry_after: int, remaining: int = 0):
        self.retry_after = retry_after
        self.remaining = remaining
        super().__init__(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Too many verification codes requested. Please try again later.",
            ErrorCode.RATE_LIMITED,
            extra={"retryAfter": retry_after, "remaining": remaining},
            headers={"Retry-After": str(retry_after)},
        )


class BlacklistedException(AppException):
    def __init__(self, reason: str, expires_at: datetime | None = None, retry_after: int | None = None):
        self.reason = reason
        self.expires_at = expires_at
        extra = {
            "reason": reason,
            "expiresAt": expires_at.isoformat() if expires_at else None,
        }
        headers = None
        if retry_after is not None:
            extra["retryAfter"] = retry_after
            headers = {"Retry-After": str(retry_after)}
        super().__init__(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "This contact is temporarily blocked due to too many attempts",
            ErrorCode.BLACKLISTED,
            extra=extra,
            headers=headers,
        )


# ─── Verification ─────────────────────────────────────────────────────────────
class OTPVerificationException(AppException):
    """Common parent; subclasses exist for logging and tests only."""
    def __init__(self):
        super().__init__(status.HTTP_400_BAD_REQUEST, OTP_FAILURE_MESSAGE, ErrorCode.OTP_INVALID)


class OTPNotFoundException(OTPVerificationException):
    pass


class OTPExpiredException(OTPVerificationException):
    pass


class OTPAlreadyUsedException(OTPVerificationException):
    pass


class OTPInvalidException(OTPVerificationException):
    pass


# ─── Delivery ─────────────────────────────────────────────────────────────────
class DeliveryFailureException(AppException):
    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"Failed to send verification code via {channel}. Please request a new code.",
            ErrorCode.DELIVERY_FAILED,
        )


# ─── Session tokens ───────────────────────────────────────────────────────────
class TokenInvalidException(AppException):
    def __init__(self, message: str = "Token is invalid"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.TOKEN_INVALID)


class TokenExpiredException(AppException):
    def __init__(self, message: str = "Token has expired"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.TOKEN_EXPIRED)


class TokenRevokedException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Refresh token has been revoked", ErrorCode.TOKEN_REVOKED)
