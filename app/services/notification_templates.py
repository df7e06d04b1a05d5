import enum
from dataclasses import dataclass, field

from app.models.notification import (
    NotificationPriority,
    NotificationType,
    RelatedEntity,
)


class TemplateKind(enum.Enum):
    complaint_submitted = "complaint_submitted"
    status_changed = "status_changed"
    response_received = "response_received"
    feedback_response = "feedback_response"
    system = "system"


@dataclass
class RenderedNotification:
    title: str
    message: str
    notification_type: NotificationType
    priority: NotificationPriority = NotificationPriority.normal
    entity_type: RelatedEntity | None = None
    entity_id: object = None
    actions: list = field(default_factory=list)


# new status -> (title, message, priority)
_STATUS_COPY = {
    "under_review": (
        "Complaint Under Review",
        'Your complaint "{title}" is now being reviewed by our team.',
        NotificationPriority.normal,
    ),
    "assigned": (
        "Complaint Assigned",
        'Your complaint "{title}" has been assigned to an agent for resolution.',
        NotificationPriority.normal,
    ),
    "in_progress": (
        "Complaint In Progress",
        'Work has begun on your complaint "{title}".',
        NotificationPriority.normal,
    ),
    "resolved": (
        "Complaint Resolved",
        'Your complaint "{title}" has been marked as resolved. '
        "Please provide feedback if needed.",
        NotificationPriority.high,
    ),
    "closed": (
        "Complaint Closed",
        'Your complaint "{title}" has been closed. Thank you for using our service.',
        NotificationPriority.normal,
    ),
    "rejected": (
        "Complaint Rejected",
        'Unfortunately, your complaint "{title}" could not be processed. '
        "Please check the responses for more information.",
        NotificationPriority.high,
    ),
}

_RESPONDER_NAMES = {
    "agent": "an agency representative",
    "staff": "a staff member",
}


def _complaint_actions(complaint_id) -> list[dict]:
    return [{"label": "View Complaint", "url": f"/dashboard/complaints/{complaint_id}"}]


def complaint_submitted(context: dict) -> RenderedNotification:
    complaint_id = context["complaint_id"]
    tracking_id = context["tracking_id"]
    return RenderedNotification(
        title="Complaint Submitted Successfully",
        message=(
            f'Your complaint "{context["complaint_title"]}" has been received and '
            f"is being processed. Tracking ID: {tracking_id}"
        ),
        notification_type=NotificationType.system,
        entity_type=RelatedEntity.complaint,
        entity_id=complaint_id,
        actions=_complaint_actions(complaint_id)
        + [{"label": "Track Status", "url": f"/dashboard/track/{tracking_id}"}],
    )


def status_changed(context: dict) -> RenderedNotification:
    old, new = context["old_status"], context["new_status"]
    complaint_title = context["complaint_title"]
    if new in _STATUS_COPY:
        title, message, priority = _STATUS_COPY[new]
        message = message.format(title=complaint_title)
    else:
        title = "Complaint Status Updated"
        message = (
            f'The status of your complaint "{complaint_title}" has changed '
            f"from {old} to {new}."
        )
        priority = NotificationPriority.normal
    return RenderedNotification(
        title=title,
        message=message,
        notification_type=NotificationType.complaint_update,
        priority=priority,
        entity_type=RelatedEntity.complaint,
        entity_id=context["complaint_id"],
        actions=_complaint_actions(context["complaint_id"]),
    )


def response_received(context: dict) -> RenderedNotification:
    responder = _RESPONDER_NAMES.get(context.get("responder_type"), "someone")
    return RenderedNotification(
        title="New Response to Your Complaint",
        message=(
            f'{responder.capitalize()} has responded to your complaint '
            f'"{context["complaint_title"]}".'
        ),
        notification_type=NotificationType.response_received,
        priority=NotificationPriority.high,
        entity_type=RelatedEntity.response,
        entity_id=context["response_id"],
        actions=[
            {
                "label": "View Response",
                "url": f"/dashboard/complaints/{context['complaint_id']}#responses",
            }
        ],
    )


def feedback_response(context: dict) -> RenderedNotification:
    complaint_id = context["complaint_id"]
    base = "/anonymous" if context.get("anonymous") else "/dashboard"
    return RenderedNotification(
        title="Agency Responded to Your Feedback",
        message=(
            "The agency has responded to your feedback on complaint "
            f'"{context["complaint_title"]}".'
        ),
        notification_type=NotificationType.system,
        entity_type=RelatedEntity.complaint,
        entity_id=complaint_id,
        actions=[
            {
                "label": "View Response",
                "url": f"{base}/complaints/{complaint_id}/feedback",
            }
        ],
    )


def system(context: dict) -> RenderedNotification:
    return RenderedNotification(
        title=context["title"],
        message=context["message"],
        notification_type=NotificationType.system,
        priority=NotificationPriority(context.get("priority", "normal")),
        actions=list(context.get("actions") or []),
    )


_RENDERERS = {
    TemplateKind.complaint_submitted: complaint_submitted,
    TemplateKind.status_changed: status_changed,
    TemplateKind.response_received: response_received,
    TemplateKind.feedback_response: feedback_response,
    TemplateKind.system: system,
}


def render(template: TemplateKind, context: dict) -> RenderedNotification:
    return _RENDERERS[TemplateKind(template)](context)
