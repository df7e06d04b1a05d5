import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    complaint_submitted = "complaint.submitted"
    complaint_status_changed = "complaint.status_changed"
    complaint_assigned = "complaint.assigned"
    complaint_routed = "complaint.routed"
    response_created = "response.created"

    recovery_code_issued = "auth.recovery_code_issued"
    password_reset = "auth.password_reset"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    complaint_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Call only after the owning transaction has committed. Queues a Celery
    task that fans out to outbound email. Never raises: logs failures and
    continues.
    """
    try:
        from app.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            complaint_id=str(complaint_id) if complaint_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
