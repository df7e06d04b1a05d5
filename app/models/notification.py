import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, Index, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base
from app.models.actor import ActorKind, ActorRef


class NotificationType(enum.Enum):
    complaint_update = "complaint_update"
    response_received = "response_received"
    system = "system"
    agency_update = "agency_update"


class NotificationPriority(enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"


class RelatedEntity(enum.Enum):
    complaint = "Complaint"
    response = "Response"
    agency = "Agency"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index(
            "ix_notifications_recipient_read",
            "recipient_kind",
            "recipient_id",
            "is_read",
        ),
        Index("ix_notifications_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    recipient_kind: Mapped[ActorKind] = mapped_column(Enum(ActorKind), nullable=False)
    recipient_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), nullable=False
    )
    priority: Mapped[NotificationPriority] = mapped_column(
        Enum(NotificationPriority), default=NotificationPriority.normal, nullable=False
    )
    entity_type: Mapped[RelatedEntity | None] = mapped_column(Enum(RelatedEntity))
    entity_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    actions: Mapped[list | None] = mapped_column(JSON, default=list)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def recipient(self) -> ActorRef:
        return ActorRef(self.recipient_kind, self.recipient_id)
