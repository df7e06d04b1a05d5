import logging

import httpx

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.notifications.dispatch_emails", ignore_result=True)
def dispatch_emails(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    complaint_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Render the emails an event triggers and queue one send per message."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _dispatch(
            db,
            {
                "event_type": event_type,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "actor_id": actor_id,
                "complaint_id": complaint_id,
                "payload": payload or {},
            },
        )
    except Exception as e:
        logger.exception("Failed to dispatch emails for %s: %s", event_type, e)
    finally:
        db.close()


def _dispatch(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    event_data: dict,
) -> int:
    from app.services.email import build_event_emails

    messages = build_event_emails(db, event_data)
    for message in messages:
        send_email.delay(
            to=message.to, subject=message.subject, html_body=message.html_body
        )
    logger.info(
        "Queued %d emails for event %s", len(messages), event_data["event_type"]
    )
    return len(messages)


@celery_app.task(
    name="app.tasks.notifications.send_email",
    ignore_result=True,
    bind=True,
    max_retries=3,
    default_retry_delay=10,
)
def send_email(
    self: "celery_app.Task",  # type: ignore[name-defined]
    to: str,
    subject: str,
    html_body: str,
) -> None:
    """Deliver one email through the configured notifier, retrying with backoff."""
    from app.services.email import get_notifier

    try:
        get_notifier().send(to, subject, html_body)
    except (httpx.HTTPError, OSError) as e:
        logger.warning("Email '%s' failed: %s", subject, e)
        try:
            self.retry(countdown=10 * (2 ** (self.request.retries or 0)))
        except self.MaxRetriesExceededError:
            logger.error("Email '%s' exhausted retries", subject)


@celery_app.task(
    name="app.tasks.notifications.purge_expired_notifications", ignore_result=True
)
def purge_expired_notifications() -> None:
    from app.db import SessionLocal
    from app.services.notification import notifications

    db = SessionLocal()
    try:
        notifications.purge_expired(db)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to purge expired notifications: %s", e)
    finally:
        db.close()
