"""initial schema

Revision ID: 5a1c9e2f7b3d
Revises:
Create Date: 2026-03-02 09:14:22.410218

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "5a1c9e2f7b3d"
down_revision = None
branch_labels = None
depends_on = None


actor_kind = postgresql.ENUM(
    "citizen", "anonymous", "agent", "staff", name="actorkind", create_type=False
)
staff_role = postgresql.ENUM(
    "admin", "supervisor", "moderator", "analyst", name="staffrole", create_type=False
)
complaint_status = postgresql.ENUM(
    "pending",
    "under_review",
    "assigned",
    "in_progress",
    "resolved",
    "closed",
    "rejected",
    name="complaintstatus",
    create_type=False,
)
complaint_priority = postgresql.ENUM(
    "low", "medium", "high", "critical", name="complaintpriority", create_type=False
)
submission_type = postgresql.ENUM(
    "standard", "anonymous", "external", name="submissiontype", create_type=False
)
response_author_type = postgresql.ENUM(
    "standard",
    "anonymous",
    "agent",
    "staff",
    "system",
    name="responseauthortype",
    create_type=False,
)
notification_type = postgresql.ENUM(
    "complaint_update",
    "response_received",
    "system",
    "agency_update",
    name="notificationtype",
    create_type=False,
)
notification_priority = postgresql.ENUM(
    "low", "normal", "high", name="notificationpriority", create_type=False
)
related_entity = postgresql.ENUM(
    "complaint", "response", "agency", name="relatedentity", create_type=False
)

_ENUMS = (
    actor_kind,
    staff_role,
    complaint_status,
    complaint_priority,
    submission_type,
    response_author_type,
    notification_type,
    notification_priority,
    related_entity,
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _password_actor_columns():
    return [
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in _ENUMS:
        enum_type.create(bind, checkfirst=True)

    # Directory
    op.create_table(
        "agencies",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("short_name", sa.String(length=10), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("contact_phone", sa.String(length=40), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "categories",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("default_agency_id", sa.UUID(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["default_agency_id"], ["agencies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(
        "ix_categories_default_agency_id", "categories", ["default_agency_id"]
    )

    # Actors
    op.create_table(
        "citizens",
        *_password_actor_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "staff",
        *_password_actor_columns(),
        sa.Column("role", staff_role, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "agents",
        *_password_actor_columns(),
        sa.Column("agency_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.String(length=100), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(["agency_id"], ["agencies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_agents_agency_id", "agents", ["agency_id"])
    op.create_table(
        "anonymous_identities",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("code_hash", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_staff_id", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["created_by_staff_id"], ["staff.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code_hash"),
    )
    op.create_index(
        "ix_anonymous_identities_expires_at", "anonymous_identities", ["expires_at"]
    )
    op.create_index(
        "ix_anonymous_identities_code_active",
        "anonymous_identities",
        ["code_hash", "is_active"],
    )
    op.create_table(
        "recovery_codes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("code_hash", sa.String(length=64), nullable=False),
        sa.Column("actor_kind", actor_kind, nullable=False),
        sa.Column("actor_id", sa.UUID(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(
        "ix_recovery_codes_actor", "recovery_codes", ["actor_kind", "actor_id"]
    )
    op.create_index("ix_recovery_codes_expires_at", "recovery_codes", ["expires_at"])

    # Complaints
    op.create_table(
        "complaints",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tracking_id", sa.String(length=20), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("submission_type", submission_type, nullable=False),
        sa.Column("citizen_id", sa.UUID(), nullable=True),
        sa.Column("anonymous_id", sa.UUID(), nullable=True),
        sa.Column("category_id", sa.UUID(), nullable=False),
        sa.Column("agency_id", sa.UUID(), nullable=True),
        sa.Column("status", complaint_status, nullable=False),
        sa.Column("priority", complaint_priority, nullable=False),
        sa.Column("assigned_agent_id", sa.UUID(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("location", sa.JSON(), nullable=True),
        sa.Column("contact_info", sa.JSON(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(submission_type = 'standard' AND citizen_id IS NOT NULL "
            "AND anonymous_id IS NULL) OR "
            "(submission_type = 'anonymous' AND anonymous_id IS NOT NULL "
            "AND citizen_id IS NULL) OR "
            "(submission_type = 'external' AND citizen_id IS NULL "
            "AND anonymous_id IS NULL)",
            name="ck_complaints_submitter_matches_type",
        ),
        sa.ForeignKeyConstraint(["citizen_id"], ["citizens.id"]),
        sa.ForeignKeyConstraint(["anonymous_id"], ["anonymous_identities.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["agency_id"], ["agencies.id"]),
        sa.ForeignKeyConstraint(["assigned_agent_id"], ["agents.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tracking_id"),
    )
    op.create_index(
        "ix_complaints_status_created", "complaints", ["status", "created_at"]
    )
    op.create_index("ix_complaints_agency_status", "complaints", ["agency_id", "status"])
    op.create_index("ix_complaints_citizen_id", "complaints", ["citizen_id"])
    op.create_index("ix_complaints_anonymous_id", "complaints", ["anonymous_id"])
    op.create_index(
        "ix_complaints_assigned_agent_id", "complaints", ["assigned_agent_id"]
    )

    op.create_table(
        "complaint_responses",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("complaint_id", sa.UUID(), nullable=False),
        sa.Column("author_type", response_author_type, nullable=False),
        sa.Column("citizen_id", sa.UUID(), nullable=True),
        sa.Column("anonymous_id", sa.UUID(), nullable=True),
        sa.Column("agent_id", sa.UUID(), nullable=True),
        sa.Column("staff_id", sa.UUID(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False),
        sa.Column("old_status", complaint_status, nullable=True),
        sa.Column("new_status", complaint_status, nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "author_type != 'standard' OR citizen_id IS NOT NULL",
            name="ck_complaint_responses_standard_author",
        ),
        sa.CheckConstraint(
            "author_type != 'anonymous' OR anonymous_id IS NOT NULL",
            name="ck_complaint_responses_anonymous_author",
        ),
        sa.CheckConstraint(
            "author_type != 'agent' OR agent_id IS NOT NULL",
            name="ck_complaint_responses_agent_author",
        ),
        sa.CheckConstraint(
            "author_type != 'staff' OR staff_id IS NOT NULL",
            name="ck_complaint_responses_staff_author",
        ),
        sa.ForeignKeyConstraint(["complaint_id"], ["complaints.id"]),
        sa.ForeignKeyConstraint(["citizen_id"], ["citizens.id"]),
        sa.ForeignKeyConstraint(["anonymous_id"], ["anonymous_identities.id"]),
        sa.ForeignKeyConstraint(["agent_id"], ["agents.id"]),
        sa.ForeignKeyConstraint(["staff_id"], ["staff.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_complaint_responses_complaint_created",
        "complaint_responses",
        ["complaint_id", "created_at"],
    )
    op.create_index(
        "ix_complaint_responses_complaint_internal",
        "complaint_responses",
        ["complaint_id", "is_internal"],
    )

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("recipient_kind", actor_kind, nullable=False),
        sa.Column("recipient_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", notification_type, nullable=False),
        sa.Column("priority", notification_priority, nullable=False),
        sa.Column("entity_type", related_entity, nullable=True),
        sa.Column("entity_id", sa.UUID(), nullable=True),
        sa.Column("actions", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notifications_recipient_read",
        "notifications",
        ["recipient_kind", "recipient_id", "is_read"],
    )
    op.create_index("ix_notifications_expires_at", "notifications", ["expires_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("complaint_responses")
    op.drop_table("complaints")
    op.drop_table("recovery_codes")
    op.drop_table("anonymous_identities")
    op.drop_table("agents")
    op.drop_table("staff")
    op.drop_table("citizens")
    op.drop_table("categories")
    op.drop_table("agencies")
    bind = op.get_bind()
    for enum_type in reversed(_ENUMS):
        enum_type.drop(bind, checkfirst=True)
