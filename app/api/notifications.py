from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_claims, get_db
from app.schemas.common import ListResponse
from app.schemas.notification import (
    MarkedResponse,
    NotificationRead,
    UnreadCountResponse,
)
from app.services.notification import notifications
from app.services.tokens import TokenClaims

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)
):
    count = notifications.unread_count(db, claims.actor_ref)
    return {"count": count}


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    notification_type: str | None = Query(default=None, alias="type"),
    is_read: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return notifications.list_response(
        db,
        claims.actor_ref,
        notification_type,
        is_read,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/mark-all-read", response_model=MarkedResponse)
def mark_all_read(
    claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)
):
    count = notifications.mark_all_read(db, claims.actor_ref)
    return {"marked": count}


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(
    notification_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return notifications.get(db, notification_id, claims.actor_ref)


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return notifications.mark_read(db, notification_id, claims.actor_ref)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def dismiss_notification(
    notification_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    notifications.dismiss(db, notification_id, claims.actor_ref)
