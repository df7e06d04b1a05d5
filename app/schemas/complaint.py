from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.complaint import (
    ComplaintPriority,
    ComplaintStatus,
    ResponseAuthorType,
    SubmissionType,
)


class AttachmentMeta(BaseModel):
    url: str
    original_name: str
    mime_type: str
    size_bytes: int = Field(ge=0)


class ContactInfo(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=40)


# ---------------------------------------------------------------------------
# Complaint
# ---------------------------------------------------------------------------


class ComplaintCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=2000)
    category_id: UUID
    agency_id: UUID | None = None
    priority: ComplaintPriority = ComplaintPriority.medium
    location: dict[str, Any] | None = None
    tags: list[str] = Field(default_factory=list)
    is_public: bool = True
    attachments: list[AttachmentMeta] = Field(default_factory=list)

    @field_validator("title", "description")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ExternalComplaintCreate(ComplaintCreate):
    contact_info: ContactInfo


class ComplaintRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tracking_id: str
    title: str
    description: str
    submission_type: SubmissionType
    category_id: UUID
    agency_id: UUID | None = None
    status: ComplaintStatus
    priority: ComplaintPriority
    assigned_agent_id: UUID | None = None
    attachments: list[dict[str, Any]] | None = None
    location: dict[str, Any] | None = None
    tags: list[str] | None = None
    is_public: bool
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TrackingSummary(BaseModel):
    tracking_id: str
    title: str | None = None
    status: ComplaintStatus
    category: str | None = None
    agency: str | None = None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None
    closed_at: datetime | None = None


class StatusUpdate(BaseModel):
    status: ComplaintStatus
    note: str | None = Field(default=None, max_length=2000)


class AssignRequest(BaseModel):
    agent_id: UUID


class RouteRequest(BaseModel):
    agency_id: UUID


class PriorityUpdate(BaseModel):
    priority: ComplaintPriority


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


class ResponseCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    is_internal: bool = False
    attachments: list[AttachmentMeta] = Field(default_factory=list)


class StatusChangeRead(BaseModel):
    old: ComplaintStatus | None = None
    new: ComplaintStatus | None = None


class ResponseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    complaint_id: UUID
    author_type: ResponseAuthorType
    citizen_id: UUID | None = None
    anonymous_id: UUID | None = None
    agent_id: UUID | None = None
    staff_id: UUID | None = None
    content: str
    is_internal: bool
    status_change: StatusChangeRead | None = None
    attachments: list[dict[str, Any]] | None = None
    created_at: datetime
