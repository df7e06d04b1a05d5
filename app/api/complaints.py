from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_claims, get_db, require_kinds
from app.models.actor import ActorKind
from app.schemas.common import ListResponse
from app.schemas.complaint import (
    AssignRequest,
    AttachmentMeta,
    ComplaintCreate,
    ComplaintRead,
    ExternalComplaintCreate,
    PriorityUpdate,
    ResponseCreate,
    ResponseRead,
    RouteRequest,
    StatusUpdate,
    TrackingSummary,
)
from app.services.attachments import attachments
from app.services.complaints import complaints
from app.services.tokens import TokenClaims

router = APIRouter(prefix="/complaints", tags=["complaints"])

_submitters = require_kinds(ActorKind.citizen, ActorKind.anonymous)
_handlers = require_kinds(ActorKind.staff, ActorKind.agent)


# ------------------------------------------------------------------
# Submission and public tracking
# ------------------------------------------------------------------


@router.post("", response_model=ComplaintRead, status_code=status.HTTP_201_CREATED)
def submit_complaint(
    payload: ComplaintCreate,
    claims: TokenClaims = Depends(_submitters),
    db: Session = Depends(get_db),
):
    return complaints.submit(db, claims.actor, payload)


@router.post(
    "/external", response_model=ComplaintRead, status_code=status.HTTP_201_CREATED
)
def submit_external_complaint(
    payload: ExternalComplaintCreate, db: Session = Depends(get_db)
):
    return complaints.submit(
        db, None, payload, contact_info=payload.contact_info.model_dump()
    )


@router.get("/track/{tracking_id}", response_model=TrackingSummary)
def track_complaint(tracking_id: str, db: Session = Depends(get_db)):
    return complaints.track(db, tracking_id)


@router.post(
    "/attachments",
    response_model=AttachmentMeta,
    status_code=status.HTTP_201_CREATED,
)
def upload_attachment(
    file: UploadFile = File(...),
    claims: TokenClaims = Depends(get_current_claims),
):
    if not attachments.is_configured():
        raise HTTPException(status_code=503, detail="Attachment storage is not configured")
    file_name = file.filename or ""
    mime_type = file.content_type or "application/octet-stream"
    attachments.validate(file_name, mime_type, file.size or 0)
    data = attachments.read_bounded(file.file)
    return attachments.save(data, file_name, mime_type)


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------


@router.get("", response_model=ListResponse[ComplaintRead])
def list_complaints(
    status_filter: str | None = Query(default=None, alias="status"),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return complaints.list_response(
        db, claims.actor, status_filter, order_by, order_dir, limit, offset
    )


@router.get("/{complaint_id}", response_model=ComplaintRead)
def get_complaint(
    complaint_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return complaints.get_for_actor(db, complaint_id, claims.actor)


@router.get("/{complaint_id}/responses", response_model=list[ResponseRead])
def list_responses(
    complaint_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return complaints.list_responses(db, complaint_id, claims.actor)


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------


@router.post(
    "/{complaint_id}/responses",
    response_model=ResponseRead,
    status_code=status.HTTP_201_CREATED,
)
def add_response(
    complaint_id: str,
    payload: ResponseCreate,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return complaints.add_response(
        db,
        complaint_id,
        claims.actor,
        payload.content,
        is_internal=payload.is_internal,
        attachments=[a.model_dump() for a in payload.attachments],
    )


@router.patch("/{complaint_id}/status", response_model=ComplaintRead)
def update_status(
    complaint_id: str,
    payload: StatusUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return complaints.set_status(
        db, complaint_id, payload.status, claims.actor, note=payload.note
    )


@router.post("/{complaint_id}/assign", response_model=ComplaintRead)
def assign_complaint(
    complaint_id: str,
    payload: AssignRequest,
    claims: TokenClaims = Depends(_handlers),
    db: Session = Depends(get_db),
):
    return complaints.assign(db, complaint_id, payload.agent_id, claims.actor)


@router.post("/{complaint_id}/unassign", response_model=ComplaintRead)
def unassign_complaint(
    complaint_id: str,
    claims: TokenClaims = Depends(_handlers),
    db: Session = Depends(get_db),
):
    return complaints.unassign(db, complaint_id, claims.actor)


@router.post("/{complaint_id}/route", response_model=ComplaintRead)
def route_complaint(
    complaint_id: str,
    payload: RouteRequest,
    claims: TokenClaims = Depends(require_kinds(ActorKind.staff)),
    db: Session = Depends(get_db),
):
    return complaints.route(db, complaint_id, payload.agency_id, claims.actor)


@router.patch("/{complaint_id}/priority", response_model=ComplaintRead)
def update_priority(
    complaint_id: str,
    payload: PriorityUpdate,
    claims: TokenClaims = Depends(_handlers),
    db: Session = Depends(get_db),
):
    return complaints.set_priority(db, complaint_id, payload.priority, claims.actor)
