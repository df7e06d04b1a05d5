"""add feedback

Revision ID: 8d4b2f6a1c07
Revises: 5a1c9e2f7b3d
Create Date: 2026-04-14 16:02:51.337904

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "8d4b2f6a1c07"
down_revision = "5a1c9e2f7b3d"
branch_labels = None
depends_on = None


submission_type = postgresql.ENUM(
    "standard", "anonymous", "external", name="submissiontype", create_type=False
)

_RATING_COLUMNS = (
    "response_time_rating",
    "staff_professionalism_rating",
    "resolution_satisfaction_rating",
    "communication_rating",
)


def upgrade() -> None:
    op.create_table(
        "feedback",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("complaint_id", sa.UUID(), nullable=False),
        sa.Column("submission_type", submission_type, nullable=False),
        sa.Column("citizen_id", sa.UUID(), nullable=True),
        sa.Column("anonymous_id", sa.UUID(), nullable=True),
        sa.Column("satisfaction_level", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        *(sa.Column(name, sa.Integer(), nullable=True) for name in _RATING_COLUMNS),
        sa.Column("would_recommend", sa.Boolean(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("agency_response", sa.Text(), nullable=True),
        sa.Column("agency_responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_by_agent_id", sa.UUID(), nullable=True),
        sa.Column("responded_by_staff_id", sa.UUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(submission_type = 'standard' AND citizen_id IS NOT NULL "
            "AND anonymous_id IS NULL) OR "
            "(submission_type = 'anonymous' AND anonymous_id IS NOT NULL "
            "AND citizen_id IS NULL)",
            name="ck_feedback_submitter_matches_type",
        ),
        sa.CheckConstraint(
            "satisfaction_level >= 1 AND satisfaction_level <= 5",
            name="ck_feedback_satisfaction_level_range",
        ),
        *(
            sa.CheckConstraint(
                f"{name} IS NULL OR ({name} >= 1 AND {name} <= 5)",
                name=f"ck_feedback_{name}_range",
            )
            for name in _RATING_COLUMNS
        ),
        sa.ForeignKeyConstraint(["complaint_id"], ["complaints.id"]),
        sa.ForeignKeyConstraint(["citizen_id"], ["citizens.id"]),
        sa.ForeignKeyConstraint(["anonymous_id"], ["anonymous_identities.id"]),
        sa.ForeignKeyConstraint(["responded_by_agent_id"], ["agents.id"]),
        sa.ForeignKeyConstraint(["responded_by_staff_id"], ["staff.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("complaint_id"),
    )
    op.create_index(
        "ix_feedback_satisfaction_created",
        "feedback",
        ["satisfaction_level", "created_at"],
    )
    op.create_index("ix_feedback_created_at", "feedback", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_feedback_created_at", table_name="feedback")
    op.drop_index("ix_feedback_satisfaction_created", table_name="feedback")
    op.drop_table("feedback")
