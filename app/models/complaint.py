import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    JSON,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.actor import ActorKind, ActorRef


class ComplaintStatus(enum.Enum):
    pending = "pending"
    under_review = "under_review"
    assigned = "assigned"
    in_progress = "in_progress"
    resolved = "resolved"
    closed = "closed"
    rejected = "rejected"


class ComplaintPriority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class SubmissionType(enum.Enum):
    standard = "standard"
    anonymous = "anonymous"
    external = "external"


class ResponseAuthorType(enum.Enum):
    standard = "standard"
    anonymous = "anonymous"
    agent = "agent"
    staff = "staff"
    system = "system"


AUTHOR_TYPE_BY_KIND = {
    ActorKind.citizen: ResponseAuthorType.standard,
    ActorKind.anonymous: ResponseAuthorType.anonymous,
    ActorKind.agent: ResponseAuthorType.agent,
    ActorKind.staff: ResponseAuthorType.staff,
}

SUBMISSION_TYPE_BY_KIND = {
    ActorKind.citizen: SubmissionType.standard,
    ActorKind.anonymous: SubmissionType.anonymous,
}


# ---------------------------------------------------------------------------
# Complaints
# ---------------------------------------------------------------------------


class Complaint(Base):
    __tablename__ = "complaints"
    __table_args__ = (
        CheckConstraint(
            "(submission_type = 'standard' AND citizen_id IS NOT NULL "
            "AND anonymous_id IS NULL) OR "
            "(submission_type = 'anonymous' AND anonymous_id IS NOT NULL "
            "AND citizen_id IS NULL) OR "
            "(submission_type = 'external' AND citizen_id IS NULL "
            "AND anonymous_id IS NULL)",
            name="ck_complaints_submitter_matches_type",
        ),
        Index("ix_complaints_status_created", "status", "created_at"),
        Index("ix_complaints_agency_status", "agency_id", "status"),
        Index("ix_complaints_citizen_id", "citizen_id"),
        Index("ix_complaints_anonymous_id", "anonymous_id"),
        Index("ix_complaints_assigned_agent_id", "assigned_agent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tracking_id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    submission_type: Mapped[SubmissionType] = mapped_column(
        Enum(SubmissionType), nullable=False
    )
    citizen_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("citizens.id")
    )
    anonymous_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("anonymous_identities.id")
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("categories.id"), nullable=False
    )
    agency_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("agencies.id")
    )
    status: Mapped[ComplaintStatus] = mapped_column(
        Enum(ComplaintStatus), default=ComplaintStatus.pending, nullable=False
    )
    priority: Mapped[ComplaintPriority] = mapped_column(
        Enum(ComplaintPriority), default=ComplaintPriority.medium, nullable=False
    )
    assigned_agent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("agents.id")
    )
    attachments: Mapped[list | None] = mapped_column(JSON, default=list)
    location: Mapped[dict | None] = mapped_column(JSON)
    contact_info: Mapped[dict | None] = mapped_column(JSON)
    tags: Mapped[list | None] = mapped_column(JSON, default=list)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    category = relationship("Category")
    agency = relationship("Agency")
    assigned_agent = relationship("Agent")
    citizen = relationship("Citizen")
    anonymous_identity = relationship("AnonymousIdentity")
    responses = relationship(
        "ComplaintResponse",
        back_populates="complaint",
        order_by="ComplaintResponse.created_at",
    )

    @property
    def submitter(self) -> ActorRef | None:
        if self.submission_type == SubmissionType.standard and self.citizen_id:
            return ActorRef(ActorKind.citizen, self.citizen_id)
        if self.submission_type == SubmissionType.anonymous and self.anonymous_id:
            return ActorRef(ActorKind.anonymous, self.anonymous_id)
        return None


# ---------------------------------------------------------------------------
# Responses (comments and audit entries)
# ---------------------------------------------------------------------------


class ComplaintResponse(Base):
    __tablename__ = "complaint_responses"
    __table_args__ = (
        CheckConstraint(
            "author_type != 'standard' OR citizen_id IS NOT NULL",
            name="ck_complaint_responses_standard_author",
        ),
        CheckConstraint(
            "author_type != 'anonymous' OR anonymous_id IS NOT NULL",
            name="ck_complaint_responses_anonymous_author",
        ),
        CheckConstraint(
            "author_type != 'agent' OR agent_id IS NOT NULL",
            name="ck_complaint_responses_agent_author",
        ),
        CheckConstraint(
            "author_type != 'staff' OR staff_id IS NOT NULL",
            name="ck_complaint_responses_staff_author",
        ),
        Index("ix_complaint_responses_complaint_created", "complaint_id", "created_at"),
        Index("ix_complaint_responses_complaint_internal", "complaint_id", "is_internal"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    complaint_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("complaints.id"), nullable=False
    )
    author_type: Mapped[ResponseAuthorType] = mapped_column(
        Enum(ResponseAuthorType), nullable=False
    )
    # System entries may also carry the actor whose action they document.
    citizen_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("citizens.id")
    )
    anonymous_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("anonymous_identities.id")
    )
    agent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("agents.id")
    )
    staff_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff.id")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False)
    old_status: Mapped[ComplaintStatus | None] = mapped_column(Enum(ComplaintStatus))
    new_status: Mapped[ComplaintStatus | None] = mapped_column(Enum(ComplaintStatus))
    attachments: Mapped[list | None] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    complaint = relationship("Complaint", back_populates="responses")

    @property
    def status_change(self) -> dict | None:
        if self.old_status is None and self.new_status is None:
            return None
        return {
            "old": self.old_status.value if self.old_status else None,
            "new": self.new_status.value if self.new_status else None,
        }

    def set_author(self, actor: ActorRef | None) -> None:
        if actor is None:
            return
        column = {
            ActorKind.citizen: "citizen_id",
            ActorKind.anonymous: "anonymous_id",
            ActorKind.agent: "agent_id",
            ActorKind.staff: "staff_id",
        }[actor.kind]
        setattr(self, column, actor.id)
