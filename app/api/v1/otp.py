from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.auth import SendOTPRequest, SendOTPResponse, VerifyOTPRequest, VerifyOTPResponse
from app.schemas.common import ErrorResponse, success_response
from app.services.auth_service import auth_service
from app.utils.cookies import set_access_cookie, set_refresh_cookie

router = APIRouter(prefix="/otp")


# ─── POST /otp/send ───────────────────────────────────────────────────────────
@router.post(
    "/send",
    status_code=status.HTTP_200_OK,
    summary="Send a one-time login code to an email address or phone number",
    response_model=SendOTPResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def send_otp(data: SendOTPRequest, db: Session = Depends(get_db)):
    """
    Issue a 6-digit code valid for 10 minutes.
    - The contact is normalized first (phones to +E.164).
    - Blacklisted or rate-limited contacts get 429 with retry hints.
    - The first code sent to a new contact creates its account.
    """
    result = auth_service.request_otp(db, data.contactValue, data.contactType)
    return success_response("Verification code sent", **result)


# ─── POST /otp/verify ─────────────────────────────────────────────────────────
@router.post(
    "/verify",
    status_code=status.HTTP_200_OK,
    summary="Verify a login code and start a session",
    response_model=VerifyOTPResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
def verify_otp(
    data: VerifyOTPRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Consume the code sent to the user's contact of the given type.
    Sets the access-token (15 min) and refresh-token (7 days) cookies.
    """
    result = auth_service.verify_otp(
        db, data.userId, data.code, data.type,
        device_info=request.headers.get("user-agent"),
    )
    set_access_cookie(response, result["accessToken"])
    set_refresh_cookie(response, result["refreshToken"])
    return success_response(
        "Verification successful",
        user=result["user"],
        accessToken=result["accessToken"],
    )
