import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ClassVar

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.config import settings
from app.db import Base


class ActorKind(enum.Enum):
    citizen = "citizen"
    anonymous = "anonymous"
    agent = "agent"
    staff = "staff"


class StaffRole(enum.Enum):
    admin = "admin"
    supervisor = "supervisor"
    moderator = "moderator"
    analyst = "analyst"


AGENT_ROLE = "agent"


@dataclass(frozen=True)
class ActorRef:
    kind: ActorKind
    id: uuid.UUID

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


# ---------------------------------------------------------------------------
# Password-holding actors
# ---------------------------------------------------------------------------


class PasswordActorMixin:
    """Columns and capabilities shared by citizens, agents and staff."""

    kind: ClassVar[ActorKind]

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(40))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def ref(self) -> ActorRef:
        return ActorRef(self.kind, self.id)

    @property
    def token_role(self) -> str | None:
        return None

    @property
    def token_agency_id(self) -> uuid.UUID | None:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


class Citizen(PasswordActorMixin, Base):
    __tablename__ = "citizens"

    kind = ActorKind.citizen


class Agent(PasswordActorMixin, Base):
    __tablename__ = "agents"
    __table_args__ = (Index("ix_agents_agency_id", "agency_id"),)

    kind = ActorKind.agent

    agency_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("agencies.id"), nullable=False
    )
    position: Mapped[str | None] = mapped_column(String(100))
    department: Mapped[str | None] = mapped_column(String(100))

    agency = relationship("Agency", back_populates="agents")

    @property
    def token_role(self) -> str:
        return AGENT_ROLE

    @property
    def token_agency_id(self) -> uuid.UUID:
        return self.agency_id


class Staff(PasswordActorMixin, Base):
    __tablename__ = "staff"

    kind = ActorKind.staff

    role: Mapped[StaffRole] = mapped_column(
        Enum(StaffRole), default=StaffRole.moderator, nullable=False
    )

    @property
    def token_role(self) -> str:
        return self.role.value


# ---------------------------------------------------------------------------
# Anonymous identities
# ---------------------------------------------------------------------------


class AnonymousIdentity(Base):
    __tablename__ = "anonymous_identities"
    __table_args__ = (
        Index("ix_anonymous_identities_expires_at", "expires_at"),
        Index("ix_anonymous_identities_code_active", "code_hash", "is_active"),
    )

    kind: ClassVar[ActorKind] = ActorKind.anonymous

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
        + timedelta(days=settings.identity_code_days),
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by_staff_id: Mapped[uuid.UUID | None] = mapped_column(
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

    created_by = relationship("Staff", foreign_keys=[created_by_staff_id])

    @property
    def ref(self) -> ActorRef:
        return ActorRef(self.kind, self.id)

    @property
    def token_role(self) -> None:
        return None

    @property
    def token_agency_id(self) -> None:
        return None

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


def clamp_identity_expiry(
    expires_at: datetime | None, now: datetime | None = None
) -> datetime:
    now = now or datetime.now(timezone.utc)
    if expires_at is None:
        return now + timedelta(days=settings.identity_code_days)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    ceiling = now + timedelta(days=settings.identity_code_max_days)
    return min(expires_at, ceiling)


@event.listens_for(AnonymousIdentity, "before_insert")
@event.listens_for(AnonymousIdentity, "before_update")
def _clamp_expiry_on_save(mapper, connection, target: AnonymousIdentity) -> None:
    target.expires_at = clamp_identity_expiry(target.expires_at)


ACTOR_MODELS: dict[ActorKind, type] = {
    ActorKind.citizen: Citizen,
    ActorKind.agent: Agent,
    ActorKind.staff: Staff,
    ActorKind.anonymous: AnonymousIdentity,
}

PASSWORD_ACTOR_MODELS: dict[ActorKind, type[PasswordActorMixin]] = {
    ActorKind.citizen: Citizen,
    ActorKind.agent: Agent,
    ActorKind.staff: Staff,
}
