from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.actor import ActorKind
from app.models.notification import (
    NotificationPriority,
    NotificationType,
    RelatedEntity,
)


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_kind: ActorKind
    recipient_id: UUID
    title: str
    message: str
    notification_type: NotificationType
    priority: NotificationPriority
    entity_type: RelatedEntity | None = None
    entity_id: UUID | None = None
    actions: list[dict[str, Any]] | None = None
    is_read: bool
    read_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime


class UnreadCountResponse(BaseModel):
    count: int


class MarkedResponse(BaseModel):
    marked: int
