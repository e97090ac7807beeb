"""initial auth schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

# Enum labels are the Python member names (SQLAlchemy's default for Enum(cls))
contact_type = postgresql.ENUM("EMAIL", "PHONE", name="contacttype", create_type=False)
blacklist_reason = postgresql.ENUM("MAX_ATTEMPTS", "MAX_RESENDS", "MANUAL",
                                   name="blacklistreason", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        # contacttype is shared by three tables; create it once up front
        contact_type.create(bind, checkfirst=True)
        blacklist_reason.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(254), nullable=True),
        sa.Column("phone", sa.String(16), nullable=True),
        sa.Column("isVerified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lastLogin", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("createdAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updatedAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_phone", "users", ["phone"], unique=True)

    op.create_table(
        "otp_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contactValue", sa.String(254), nullable=False),
        sa.Column("contactType", contact_type, nullable=False),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("createdAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expiresAt", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("isUsed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("usedAt", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("attemptCount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lastAttemptAt", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("resendCount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lastResendAt", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("contactValue", "contactType", name="uq_otp_codes_contact"),
    )
    op.create_index("ix_otp_codes_id", "otp_codes", ["id"])
    op.create_index("ix_otp_codes_expiresAt", "otp_codes", ["expiresAt"])

    op.create_table(
        "otp_blacklist",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contactValue", sa.String(254), nullable=False),
        sa.Column("contactType", contact_type, nullable=False),
        sa.Column("reason", blacklist_reason, nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("blacklistedAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expiresAt", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("contactValue", "contactType", name="uq_otp_blacklist_contact"),
    )
    op.create_index("ix_otp_blacklist_id", "otp_blacklist", ["id"])

    op.create_table(
        "otp_send_counters",
        sa.Column("contactValue", sa.String(254), primary_key=True),
        sa.Column("contactType", contact_type, primary_key=True),
        sa.Column("windowStart", sa.BigInteger(), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("userId", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tokenHash", sa.String(64), nullable=False, unique=True),
        sa.Column("deviceInfo", sa.String(512), nullable=True),
        sa.Column("issuedAt", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("expiresAt", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("revokedAt", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_refresh_tokens_userId", "refresh_tokens", ["userId"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("userId", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entityType", sa.String(100), nullable=False),
        sa.Column("entityId", sa.String(254), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("createdAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("refresh_tokens")
    op.drop_table("otp_send_counters")
    op.drop_table("otp_blacklist")
    op.drop_table("otp_codes")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        blacklist_reason.drop(bind, checkfirst=True)
        contact_type.drop(bind, checkfirst=True)
