from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog


class AuditAction:
    LOGIN           = "LOGIN"
    LOGOUT          = "LOGOUT"
    LOGOUT_ALL      = "LOGOUT_ALL"
    REVOKE_SESSIONS = "REVOKE_SESSIONS"
    BLACKLIST       = "BLACKLIST"
    UNBLACKLIST     = "UNBLACKLIST"


def log_action(
    db: Session,
    user_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    description: str | None = None,
) -> AuditLog:
    """
    Stage an audit entry in the caller's transaction (no flush, no commit).

    `user_id` is the acting user, None for admin/system actions.
    Sessions are recorded against entity "User" (entity_id = user id);
    bans against entity "Contact" with the masked contact as entity_id,
    so raw emails and phone numbers never land in the audit table.
    """
    entry = AuditLog(
        userId=user_id,
        action=action,
        entityType=entity_type,
        entityId=entity_id,
        description=description,
    )
    db.add(entry)
    return entry
