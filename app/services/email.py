from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from sqlalchemy.orm import Session

from app.config import settings
from app.models.actor import Agent, Citizen
from app.models.complaint import Complaint, SubmissionType
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html_body: str


class Notifier(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> None: ...


class HttpEmailNotifier:
    """Posts messages to a transactional email HTTP API (Brevo-compatible)."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        from_address: str,
        from_name: str,
        timeout: float = 10.0,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    def send(self, to: str, subject: str, html_body: str) -> None:
        response = httpx.post(
            self.api_url,
            headers={"api-key": self.api_key, "accept": "application/json"},
            json={
                "sender": {"email": self.from_address, "name": self.from_name},
                "to": [{"email": to}],
                "subject": subject,
                "htmlContent": html_body,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.info("Sent email '%s'", subject)


class LogNotifier:
    def send(self, to: str, subject: str, html_body: str) -> None:
        logger.info("Email delivery not configured; dropping '%s'", subject)


def get_notifier() -> Notifier:
    if settings.email_api_url:
        return HttpEmailNotifier(
            settings.email_api_url,
            settings.email_api_key,
            settings.email_from_address,
            settings.email_from_name,
        )
    return LogNotifier()


# ---------------------------------------------------------------------------
# Event -> email rendering
# ---------------------------------------------------------------------------


def _wrap(heading: str, *paragraphs: str) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h2 style="color: #4a5568;">{heading}</h2>{body}'
        "<p>Thank you,<br>The SAYIT Team</p></div>"
    )


def recovery_code_email(to: str, code: str) -> EmailMessage:
    """Render the reset email for a freshly issued recovery code.

    The plaintext code only exists in this message, so it is queued for
    delivery directly instead of travelling in an event payload.
    """
    return EmailMessage(
        to,
        "SAYIT - Password Reset Access Code",
        _wrap(
            "Password Reset Request",
            "A password reset was requested for your SAYIT account.",
            f"Your temporary access code is: <strong>{html.escape(code)}</strong>",
            f"This code will expire in {settings.recovery_code_hours} hours.",
            "If you didn't request this, you can ignore this email.",
        ),
    )


def queue_email(message: EmailMessage) -> None:
    """Hand one message to the send task. Never raises."""
    try:
        from app.tasks.notifications import send_email

        send_email.delay(
            to=message.to, subject=message.subject, html_body=message.html_body
        )
    except Exception as e:
        logger.exception("Failed to queue email '%s': %s", message.subject, e)


def _submitter_address(db: Session, complaint: Complaint) -> str | None:
    if complaint.submission_type == SubmissionType.standard and complaint.citizen_id:
        citizen = db.get(Citizen, complaint.citizen_id)
        return citizen.email if citizen and citizen.is_active else None
    if complaint.submission_type == SubmissionType.external:
        return (complaint.contact_info or {}).get("email")
    return None


def _track_link(complaint: Complaint) -> str:
    return f"{settings.frontend_url}/track/{complaint.tracking_id}"


def build_event_emails(db: Session, event: dict) -> list[EmailMessage]:
    """Turn a published event into the emails it should trigger."""
    event_type = event["event_type"]
    payload = event.get("payload") or {}

    if event_type == "auth.password_reset":
        return [
            EmailMessage(
                payload["email"],
                "SAYIT - Your Password Has Been Reset",
                _wrap(
                    "Password Reset Successful",
                    "Your password for your SAYIT account has been successfully reset.",
                    "If you did not make this change, please contact support immediately.",
                ),
            )
        ]

    complaint_id = event.get("complaint_id")
    if not complaint_id:
        return []
    complaint = db.get(Complaint, coerce_uuid(complaint_id))
    if complaint is None:
        return []
    title = html.escape(complaint.title)
    messages: list[EmailMessage] = []

    if event_type == "complaint.assigned":
        agent = db.get(Agent, coerce_uuid(payload.get("agent_id")))
        if agent is not None and agent.is_active:
            messages.append(
                EmailMessage(
                    agent.email,
                    f"SAYIT - Complaint Assigned ({complaint.tracking_id})",
                    _wrap(
                        "New Complaint Assigned",
                        f'The complaint "{title}" has been assigned to you.',
                    ),
                )
            )
        return messages

    address = _submitter_address(db, complaint)
    if not address:
        return messages

    if event_type == "complaint.submitted":
        messages.append(
            EmailMessage(
                address,
                f"Your Complaint Has Been Received - Tracking ID: {complaint.tracking_id}",
                _wrap(
                    "Complaint Received",
                    f'Your complaint "{title}" has been submitted successfully.',
                    f"Tracking ID: <strong>{complaint.tracking_id}</strong>",
                    f'Track its progress at <a href="{_track_link(complaint)}">{_track_link(complaint)}</a>.',
                ),
            )
        )
    elif event_type == "complaint.status_changed":
        new_status = payload.get("new_status", complaint.status.value)
        messages.append(
            EmailMessage(
                address,
                f"SAYIT - Complaint Status Updated ({complaint.tracking_id})",
                _wrap(
                    "Complaint Status Updated",
                    f'The status of your complaint "{title}" is now '
                    f"<strong>{html.escape(new_status.replace('_', ' '))}</strong>.",
                ),
            )
        )
    elif event_type == "response.created" and payload.get("author_type") in (
        "agent",
        "staff",
    ):
        messages.append(
            EmailMessage(
                address,
                f"SAYIT - New Response ({complaint.tracking_id})",
                _wrap(
                    "New Response to Your Complaint",
                    f'There is a new response to your complaint "{title}".',
                ),
            )
        )
    return messages
