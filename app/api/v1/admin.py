from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.database import get_db
from app.dependencies import require_admin
from app.models.otp_blacklist import BlacklistReason
from app.models.otp_code import ContactType
from app.models.user import User
from app.schemas.admin import BlacklistAddRequest, CleanupRequest
from app.schemas.common import data_response, paginated_response, success_response
from app.services.auth_service import auth_service
from app.services.blacklist_service import blacklist_service
from app.services.cleanup_service import cleanup_service
from app.services.otp_service import otp_service
from app.utils.contact import Contact, normalize_contact
from app.utils.exceptions import NotFoundException, ValidationException

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def _contact_or_400(value: str, kind: ContactType) -> Contact:
    contact = normalize_contact(value, kind)
    if contact is None:
        raise ValidationException(f"Invalid {kind.value} format", field="contactValue")
    return contact


# GET /admin/blacklist: active entries (paginated)
@router.get("/blacklist", status_code=status.HTTP_200_OK, summary="List active blacklist entries")
def list_blacklist(
    page:        int                       = Query(1,    ge=1),
    limit:       int                       = Query(20,   ge=1, le=100),
    search:      Optional[str]             = Query(None, description="Substring of the contact value"),
    contactType: Optional[ContactType]     = Query(None),
    reason:      Optional[BlacklistReason] = Query(None),
    db:          Session                   = Depends(get_db),
):
    data, total = blacklist_service.list_active(db, page, limit, search, contactType, reason)
    return paginated_response("Blacklist retrieved successfully", data, total, page, limit)


# GET /admin/blacklist/stats
@router.get("/blacklist/stats", status_code=status.HTTP_200_OK, summary="Active blacklist counts")
def blacklist_stats(db: Session = Depends(get_db)):
    return data_response("Blacklist statistics retrieved", blacklist_service.stats(db))


# GET /admin/blacklist/recent
@router.get("/blacklist/recent", status_code=status.HTTP_200_OK, summary="Entries created recently")
def blacklist_recent(
    hours: int     = Query(24, ge=1, le=24 * 30),
    limit: int     = Query(50, ge=1, le=200),
    db:    Session = Depends(get_db),
):
    return data_response("Recent blacklist activity retrieved",
                         blacklist_service.recent_activity(db, hours, limit))


# POST /admin/blacklist: manual, indefinite ban
@router.post("/blacklist", status_code=status.HTTP_201_CREATED, summary="Blacklist a contact until removed")
def add_to_blacklist(data: BlacklistAddRequest, db: Session = Depends(get_db)):
    contact = _contact_or_400(data.contactValue, data.contactType)
    blacklist_service.add(db, contact, BlacklistReason.MANUAL, note=data.note)
    return success_response(
        "Contact blacklisted",
        contactValue=contact.value,
        contactType=contact.kind.value,
        reason=BlacklistReason.MANUAL.value,
    )


# DELETE /admin/blacklist?contactValue=...&contactType=...
@router.delete("/blacklist", status_code=status.HTTP_200_OK, summary="Remove a contact from the blacklist")
def remove_from_blacklist(
    contactValue: str         = Query(..., min_length=1),
    contactType:  ContactType = Query(...),
    db:           Session     = Depends(get_db),
):
    contact = _contact_or_400(contactValue, contactType)
    if not blacklist_service.remove(db, contact):
        raise NotFoundException("Blacklist entry")
    return success_response("Contact removed from blacklist",
                            contactValue=contact.value, contactType=contact.kind.value)


# GET /admin/otp/state?contactValue=...&contactType=...
@router.get("/otp/state", status_code=status.HTTP_200_OK, summary="Where a contact stands in the code lifecycle")
def otp_state(
    contactValue: str         = Query(..., min_length=1),
    contactType:  ContactType = Query(...),
    db:           Session     = Depends(get_db),
):
    contact = _contact_or_400(contactValue, contactType)
    return data_response("OTP state retrieved", {
        "contactValue": contact.value,
        "contactType":  contact.kind.value,
        "state":        otp_service.get_state(db, contact).value,
    })


# POST /admin/users/{id}/revoke-sessions
@router.post("/users/{user_id}/revoke-sessions", status_code=status.HTTP_200_OK,
             summary="Revoke every refresh token of a user")
def revoke_user_sessions(user_id: str, db: Session = Depends(get_db)):
    if not db.query(User).filter(User.id == user_id).first():
        raise NotFoundException("User")
    count = auth_service.logout_all(db, user_id, by_admin=True)
    return success_response("Sessions revoked", userId=user_id, revokedSessions=count)


# POST /admin/cleanup: purge records that can no longer matter
@router.post("/cleanup", status_code=status.HTTP_200_OK, summary="Delete expired codes, bans and tokens")
def run_cleanup(data: CleanupRequest | None = None, db: Session = Depends(get_db)):
    data = data or CleanupRequest()
    summary = cleanup_service.run(db, data.otpRetentionDays, data.blacklistRetentionDays)
    return data_response("Cleanup completed", summary)
