import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import DateTime, Enum, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.config import settings
from app.db import Base
from app.models.actor import ActorKind, ActorRef


class RecoveryCode(Base):
    """Short-lived password recovery code; at most one outstanding per email."""

    __tablename__ = "recovery_codes"
    __table_args__ = (
        Index("ix_recovery_codes_actor", "actor_kind", "actor_id"),
        Index("ix_recovery_codes_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_kind: Mapped[ActorKind] = mapped_column(Enum(ActorKind), nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
        + timedelta(hours=settings.recovery_code_hours),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def actor_ref(self) -> ActorRef:
        return ActorRef(self.actor_kind, self.actor_id)
