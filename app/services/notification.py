from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import NotFoundOrForbidden
from app.models.actor import ActorKind, ActorRef
from app.models.notification import Notification, NotificationType
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    utcnow,
)
from app.services.notification_templates import TemplateKind, render
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def default_expiry(kind: ActorKind, now: datetime | None = None) -> datetime:
    now = now or utcnow()
    if kind == ActorKind.citizen:
        return now + timedelta(days=settings.citizen_notification_days)
    return now + timedelta(days=settings.notification_days)


def _visible(query, recipient: ActorRef, now: datetime):
    return query.filter(
        Notification.recipient_kind == recipient.kind,
        Notification.recipient_id == coerce_uuid(recipient.id),
        or_(Notification.expires_at.is_(None), Notification.expires_at > now),
    )


class Notifications(ListResponseMixin):
    @staticmethod
    def notify(
        db: Session,
        recipient: ActorRef,
        template: TemplateKind,
        context: dict,
        expires_at: datetime | None = None,
    ) -> Notification:
        """Add an inbox entry to the caller's transaction without committing."""
        rendered = render(template, context)
        notification = Notification(
            recipient_kind=recipient.kind,
            recipient_id=coerce_uuid(recipient.id),
            title=rendered.title,
            message=rendered.message,
            notification_type=rendered.notification_type,
            priority=rendered.priority,
            entity_type=rendered.entity_type,
            entity_id=coerce_uuid(rendered.entity_id),
            actions=rendered.actions,
            expires_at=expires_at or default_expiry(recipient.kind),
        )
        db.add(notification)
        db.flush()
        logger.debug("Queued %s notification for %s", template.value, recipient)
        return notification

    @staticmethod
    def get(db: Session, notification_id: str, recipient: ActorRef) -> Notification:
        notification = (
            _visible(db.query(Notification), recipient, utcnow())
            .filter(Notification.id == coerce_uuid(notification_id))
            .first()
        )
        if not notification:
            raise NotFoundOrForbidden("Notification not found")
        return notification

    @staticmethod
    def list(
        db: Session,
        recipient: ActorRef,
        notification_type: str | None,
        is_read: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Notification]:
        query = _visible(db.query(Notification), recipient, utcnow())
        if notification_type is not None:
            query = query.filter(
                Notification.notification_type == NotificationType(notification_type)
            )
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Notification.created_at, "priority": Notification.priority},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def unread_count(db: Session, recipient: ActorRef) -> int:
        return (
            _visible(db.query(Notification), recipient, utcnow())
            .filter(Notification.is_read.is_(False))
            .count()
        )

    @staticmethod
    def mark_read(db: Session, notification_id: str, recipient: ActorRef) -> Notification:
        notification = Notifications.get(db, notification_id, recipient)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, recipient: ActorRef) -> int:
        """Bulk update; a storage failure is logged and reported as zero."""
        now = utcnow()
        try:
            count = (
                _visible(db.query(Notification), recipient, now)
                .filter(Notification.is_read.is_(False))
                .update(
                    {"is_read": True, "read_at": now}, synchronize_session=False
                )
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not mark notifications read for %s: %s", recipient, e)
            return 0
        logger.info("Marked all %d notifications as read for %s", count, recipient)
        return count

    @staticmethod
    def dismiss(db: Session, notification_id: str, recipient: ActorRef) -> None:
        notification = Notifications.get(db, notification_id, recipient)
        db.delete(notification)
        db.commit()
        logger.info("Dismissed notification %s", notification_id)

    @staticmethod
    def purge_expired(db: Session) -> int:
        count = (
            db.query(Notification)
            .filter(Notification.expires_at.is_not(None))
            .filter(Notification.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Purged %d expired notifications", count)
        return count


notifications = Notifications()
