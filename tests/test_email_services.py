from dataclasses import replace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.config import settings
from app.services.email import (
    HttpEmailNotifier,
    LogNotifier,
    build_event_emails,
    get_notifier,
    queue_email,
    recovery_code_email,
)


class TestHttpEmailNotifier:
    @patch("app.services.email.httpx.post")
    def test_posts_message(self, mock_post) -> None:
        mock_post.return_value = MagicMock(status_code=201)
        notifier = HttpEmailNotifier(
            "https://mail.example.com/v3/smtp/email", "key-123", "no-reply@x.com", "SAYIT"
        )
        notifier.send("a@example.com", "Subject", "<p>Body</p>")

        args, kwargs = mock_post.call_args
        assert args[0] == "https://mail.example.com/v3/smtp/email"
        assert kwargs["headers"]["api-key"] == "key-123"
        assert kwargs["json"]["to"] == [{"email": "a@example.com"}]
        assert kwargs["json"]["sender"] == {"email": "no-reply@x.com", "name": "SAYIT"}
        mock_post.return_value.raise_for_status.assert_called_once()

    @patch("app.services.email.httpx.post")
    def test_http_error_propagates(self, mock_post) -> None:
        request = httpx.Request("POST", "https://mail.example.com")
        mock_post.return_value = httpx.Response(500, request=request)
        notifier = HttpEmailNotifier("https://mail.example.com", "k", "f@x.com", "F")
        with pytest.raises(httpx.HTTPStatusError):
            notifier.send("a@example.com", "Subject", "<p>Body</p>")


class TestGetNotifier:
    def test_unconfigured_logs(self) -> None:
        with patch("app.services.email.settings", replace(settings, email_api_url="")):
            assert isinstance(get_notifier(), LogNotifier)

    def test_configured(self) -> None:
        configured = replace(settings, email_api_url="https://mail.example.com")
        with patch("app.services.email.settings", configured):
            assert isinstance(get_notifier(), HttpEmailNotifier)


class TestBuildEventEmails:
    def test_external_reporter_gets_status_email(self, db_session, category) -> None:
        from app.schemas.complaint import ComplaintCreate
        from app.services.complaints import complaints

        complaint = complaints.submit(
            db_session,
            None,
            ComplaintCreate(
                title="<b>Flood</b>", description="Street flooded", category_id=category.id
            ),
            contact_info={"email": "caller@example.com"},
        )
        messages = build_event_emails(
            db_session,
            {
                "event_type": "complaint.status_changed",
                "complaint_id": str(complaint.id),
                "payload": {"new_status": "resolved"},
            },
        )
        assert [m.to for m in messages] == ["caller@example.com"]
        assert "&lt;b&gt;Flood&lt;/b&gt;" in messages[0].html_body

    def test_unknown_complaint(self, db_session) -> None:
        event = {
            "event_type": "complaint.submitted",
            "complaint_id": "00000000-0000-0000-0000-000000000000",
        }
        assert build_event_emails(db_session, event) == []

    def test_password_reset(self, db_session) -> None:
        messages = build_event_emails(
            db_session,
            {"event_type": "auth.password_reset", "payload": {"email": "a@example.com"}},
        )
        assert messages[0].subject == "SAYIT - Your Password Has Been Reset"


class TestRecoveryCodeEmail:
    def test_renders_code(self) -> None:
        message = recovery_code_email("a@example.com", "SAY123456789")
        assert message.to == "a@example.com"
        assert message.subject == "SAYIT - Password Reset Access Code"
        assert "<strong>SAY123456789</strong>" in message.html_body

    @patch("app.tasks.notifications.send_email.delay")
    def test_queue_email(self, mock_send) -> None:
        queue_email(recovery_code_email("a@example.com", "SAY123456789"))
        kwargs = mock_send.call_args.kwargs
        assert kwargs["to"] == "a@example.com"
        assert "SAY123456789" in kwargs["html_body"]

    @patch(
        "app.tasks.notifications.send_email.delay",
        side_effect=ConnectionError("broker down"),
    )
    def test_queue_email_never_raises(self, mock_send) -> None:
        queue_email(recovery_code_email("a@example.com", "SAY123456789"))
        mock_send.assert_called_once()
