import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.actor import ActorKind, ActorRef
from app.models.complaint import SubmissionType

RATING_FIELDS = (
    "response_time_rating",
    "staff_professionalism_rating",
    "resolution_satisfaction_rating",
    "communication_rating",
)


def _rating_check(column: str) -> CheckConstraint:
    return CheckConstraint(
        f"{column} IS NULL OR ({column} >= 1 AND {column} <= 5)",
        name=f"ck_feedback_{column}_range",
    )


class Feedback(Base):
    """A submitter's rating of how their complaint was handled."""

    __tablename__ = "feedback"
    __table_args__ = (
        CheckConstraint(
            "(submission_type = 'standard' AND citizen_id IS NOT NULL "
            "AND anonymous_id IS NULL) OR "
            "(submission_type = 'anonymous' AND anonymous_id IS NOT NULL "
            "AND citizen_id IS NULL)",
            name="ck_feedback_submitter_matches_type",
        ),
        CheckConstraint(
            "satisfaction_level >= 1 AND satisfaction_level <= 5",
            name="ck_feedback_satisfaction_level_range",
        ),
        *(_rating_check(column) for column in RATING_FIELDS),
        Index("ix_feedback_satisfaction_created", "satisfaction_level", "created_at"),
        Index("ix_feedback_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    complaint_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("complaints.id"), nullable=False, unique=True
    )
    submission_type: Mapped[SubmissionType] = mapped_column(
        Enum(SubmissionType), nullable=False
    )
    citizen_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("citizens.id")
    )
    anonymous_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("anonymous_identities.id")
    )
    satisfaction_level: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    response_time_rating: Mapped[int | None] = mapped_column(Integer)
    staff_professionalism_rating: Mapped[int | None] = mapped_column(Integer)
    resolution_satisfaction_rating: Mapped[int | None] = mapped_column(Integer)
    communication_rating: Mapped[int | None] = mapped_column(Integer)
    would_recommend: Mapped[bool | None] = mapped_column(Boolean)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    tags: Mapped[list | None] = mapped_column(JSON, default=list)

    agency_response: Mapped[str | None] = mapped_column(Text)
    agency_responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    responded_by_agent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("agents.id")
    )
    responded_by_staff_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff.id")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    complaint = relationship("Complaint")

    @property
    def submitter(self) -> ActorRef:
        if self.submission_type == SubmissionType.anonymous:
            return ActorRef(ActorKind.anonymous, self.anonymous_id)
        return ActorRef(ActorKind.citizen, self.citizen_id)

    @property
    def average_rating(self) -> float:
        """Mean of the sub-ratings given, or the overall level when none were."""
        ratings = [
            getattr(self, column)
            for column in RATING_FIELDS
            if getattr(self, column) is not None
        ]
        if not ratings:
            return float(self.satisfaction_level)
        return sum(ratings) / len(ratings)
