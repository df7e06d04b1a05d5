from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.complaint import SubmissionType


class FeedbackCreate(BaseModel):
    complaint_id: UUID
    satisfaction_level: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)
    response_time_rating: int | None = Field(default=None, ge=1, le=5)
    staff_professionalism_rating: int | None = Field(default=None, ge=1, le=5)
    resolution_satisfaction_rating: int | None = Field(default=None, ge=1, le=5)
    communication_rating: int | None = Field(default=None, ge=1, le=5)
    would_recommend: bool | None = None
    is_public: bool = False
    tags: list[str] = Field(default_factory=list)


class AgencyResponseCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)

    @field_validator("content")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class FeedbackRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    complaint_id: UUID
    submission_type: SubmissionType
    satisfaction_level: int
    comment: str | None = None
    response_time_rating: int | None = None
    staff_professionalism_rating: int | None = None
    resolution_satisfaction_rating: int | None = None
    communication_rating: int | None = None
    would_recommend: bool | None = None
    is_public: bool
    tags: list[str] | None = None
    average_rating: float
    agency_response: str | None = None
    agency_responded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class RatingAverages(BaseModel):
    satisfaction_level: float | None = None
    response_time_rating: float | None = None
    staff_professionalism_rating: float | None = None
    resolution_satisfaction_rating: float | None = None
    communication_rating: float | None = None


class RecommendationCounts(BaseModel):
    yes: int = 0
    no: int = 0
    not_specified: int = 0


class FeedbackAnalytics(BaseModel):
    count: int
    satisfaction_distribution: dict[int, int]
    averages: RatingAverages
    recommendation: RecommendationCounts
