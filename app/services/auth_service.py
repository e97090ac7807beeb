import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.user import User
from app.models.otp_code import ContactType
from app.services.otp_service import OtpService, otp_service
from app.services.token_service import TokenService, token_service, build_claims
from app.utils import clock
from app.utils.audit import AuditAction, log_action
from app.utils.contact import Contact, normalize_contact
from app.utils.exceptions import NotFoundException, ValidationException

logger = logging.getLogger(__name__)


def serialize_user(user: User) -> dict:
    last_login = clock.as_utc(user.lastLogin)
    return {
        "id":         user.id,
        "email":      user.email,
        "phone":      user.phone,
        "isVerified": bool(user.isVerified),
        "lastLogin":  last_login.isoformat() if last_login else None,
    }


class AuthService:
    """Passwordless login: contact → code → tokens."""

    def __init__(self, otp: OtpService | None = None, tokens: TokenService | None = None):
        self.otp = otp or otp_service
        self.tokens = tokens or token_service

    # ─── Send OTP ─────────────────────────────────────────────────────────────
    def request_otp(self, db: Session, contact_value: str, contact_type: ContactType) -> dict:
        contact = normalize_contact(contact_value, contact_type)
        if contact is None:
            raise ValidationException(f"Invalid {contact_type.value} format", field="contactValue")

        result = self.otp.send(db, contact)
        user = self._find_or_create_user(db, contact)

        return {
            "userId":       user.id,
            "contactValue": contact.value,
            "contactType":  contact.kind.value,
            "expiresAt":    result.expiresAt.isoformat(),
            "remaining":    result.remaining,
        }

    def _find_or_create_user(self, db: Session, contact: Contact) -> User:
        column = User.email if contact.kind == ContactType.EMAIL else User.phone
        user = db.query(User).filter(column == contact.value).first()
        if user:
            return user

        # Passwordless sign-up: the first code sent to a contact creates its account
        if contact.kind == ContactType.EMAIL:
            user = User(email=contact.value, isVerified=False)
        else:
            user = User(phone=contact.value, isVerified=False)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request created it first
            db.rollback()
            user = db.query(User).filter(column == contact.value).first()
            if user is None:
                raise
            return user

        logger.info(f"Created user {user.id} for {contact.kind.value} {contact.masked}")
        return user

    # ─── Verify OTP ───────────────────────────────────────────────────────────
    def verify_otp(
        self, db: Session, user_id: str, code: str, contact_type: ContactType,
        device_info: str | None = None,
    ) -> dict:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundException("User")

        value = user.email if contact_type == ContactType.EMAIL else user.phone
        if not value:
            raise ValidationException(f"User has no {contact_type.value} on file", field="type")
        contact = Contact(value=value, kind=contact_type)

        self.otp.verify(db, contact, code)

        user.isVerified = True
        user.lastLogin = clock.utcnow()
        access_token = self.tokens.issue_access_token(build_claims(user))
        refresh = self.tokens.issue_refresh_token(db, user.id, device_info)

        log_action(db, user.id, AuditAction.LOGIN, "User", user.id,
                   f"Logged in via {contact_type.value} OTP")
        db.commit()

        logger.info(f"User {user.id} logged in via {contact_type.value}")
        return {
            "user":         serialize_user(user),
            "accessToken":  access_token,
            "refreshToken": refresh.token,
        }

    # ─── Refresh ──────────────────────────────────────────────────────────────
    def refresh(self, db: Session, refresh_token: str) -> dict:
        access_token, user = self.tokens.refresh(db, refresh_token)
        return {"accessToken": access_token, "user": serialize_user(user)}

    # ─── Logout ───────────────────────────────────────────────────────────────
    def logout(self, db: Session, refresh_token: str) -> bool:
        stored = self.tokens.find_refresh_token(db, refresh_token)
        revoked = self.tokens.revoke(db, None, refresh_token) > 0
        if revoked and stored:
            log_action(db, stored.userId, AuditAction.LOGOUT, "User", stored.userId, "User logged out")
            db.commit()
        return revoked

    def logout_all(self, db: Session, user_id: str, by_admin: bool = False) -> int:
        count = self.tokens.revoke(db, user_id)
        if by_admin:
            log_action(db, None, AuditAction.REVOKE_SESSIONS, "User", user_id, f"{count} session(s) revoked by admin")
        else:
            log_action(db, user_id, AuditAction.LOGOUT_ALL, "User", user_id, f"{count} session(s) revoked")
        db.commit()
        return count


auth_service = AuthService()
