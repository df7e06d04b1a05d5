from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_claims, get_db, require_kinds, require_staff_role
from app.models.actor import ActorKind, StaffRole
from app.schemas.common import ListResponse
from app.schemas.feedback import (
    AgencyResponseCreate,
    FeedbackAnalytics,
    FeedbackCreate,
    FeedbackRead,
)
from app.services.feedback import feedback
from app.services.tokens import TokenClaims

router = APIRouter(prefix="/feedback", tags=["feedback"])

_submitters = require_kinds(ActorKind.citizen, ActorKind.anonymous)
_handlers = require_kinds(ActorKind.staff, ActorKind.agent)
_reporting = require_staff_role(
    StaffRole.admin.value, StaffRole.supervisor.value, StaffRole.analyst.value
)


@router.post("", response_model=FeedbackRead, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    payload: FeedbackCreate,
    claims: TokenClaims = Depends(_submitters),
    db: Session = Depends(get_db),
):
    return feedback.submit(db, claims.actor, payload)


@router.get("/analytics", response_model=FeedbackAnalytics)
def feedback_analytics(
    agency_id: str | None = Query(default=None),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    claims: TokenClaims = Depends(_reporting),
    db: Session = Depends(get_db),
):
    return feedback.analytics(db, agency_id, start, end)


@router.get("/complaint/{complaint_id}", response_model=FeedbackRead)
def get_complaint_feedback(
    complaint_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return feedback.get_for_complaint(db, complaint_id, claims.actor)


@router.get("/agency/{agency_id}", response_model=ListResponse[FeedbackRead])
def list_agency_feedback(
    agency_id: str,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    claims: TokenClaims = Depends(_handlers),
    db: Session = Depends(get_db),
):
    return feedback.list_response(
        db, agency_id, claims.actor, order_by, order_dir, limit, offset
    )


@router.post("/{feedback_id}/agency-response", response_model=FeedbackRead)
def respond_to_feedback(
    feedback_id: str,
    payload: AgencyResponseCreate,
    claims: TokenClaims = Depends(_handlers),
    db: Session = Depends(get_db),
):
    return feedback.respond(db, feedback_id, claims.actor, payload.content)
