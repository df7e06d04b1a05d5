from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import httpx
from sqlalchemy.orm import sessionmaker

from app.models.access_code import RecoveryCode
from app.models.actor import AnonymousIdentity
from app.models.notification import Notification
from app.services.access_codes import identity_codes, recovery_codes
from app.services.notification import notifications
from app.services.notification_templates import TemplateKind
from app.tasks.access_codes import (
    purge_expired_identities,
    purge_expired_recovery_codes,
)
from app.tasks.notifications import (
    _dispatch,
    dispatch_emails,
    purge_expired_notifications,
    send_email,
)


def _event(event_type, complaint=None, **payload):
    return {
        "event_type": event_type,
        "entity_type": "complaint",
        "entity_id": str(complaint.id) if complaint else "x",
        "actor_id": None,
        "complaint_id": str(complaint.id) if complaint else None,
        "payload": payload,
    }


class TestDispatchEmails:
    @patch("app.tasks.notifications.send_email.delay")
    def test_submitted(self, mock_send, db_session, complaint, citizen) -> None:
        assert _dispatch(db_session, _event("complaint.submitted", complaint)) == 1
        kwargs = mock_send.call_args.kwargs
        assert kwargs["to"] == citizen.email
        assert complaint.tracking_id in kwargs["subject"]

    @patch("app.tasks.notifications.send_email.delay")
    def test_status_changed(self, mock_send, db_session, complaint) -> None:
        count = _dispatch(
            db_session,
            _event("complaint.status_changed", complaint, new_status="in_progress"),
        )
        assert count == 1
        assert "in progress" in mock_send.call_args.kwargs["html_body"]

    @patch("app.tasks.notifications.send_email.delay")
    def test_assigned_goes_to_agent(self, mock_send, db_session, complaint, agent) -> None:
        _dispatch(
            db_session, _event("complaint.assigned", complaint, agent_id=str(agent.id))
        )
        assert mock_send.call_args.kwargs["to"] == agent.email

    @patch("app.tasks.notifications.send_email.delay")
    def test_response_from_submitter_sends_nothing(
        self, mock_send, db_session, complaint
    ) -> None:
        event = _event("response.created", complaint, author_type="citizen")
        assert _dispatch(db_session, event) == 0
        mock_send.assert_not_called()

    @patch("app.tasks.notifications.send_email.delay")
    def test_anonymous_complaint_has_no_address(
        self, mock_send, db_session, anonymous_identity, category
    ) -> None:
        from app.schemas.complaint import ComplaintCreate
        from app.services.complaints import complaints

        complaint = complaints.submit(
            db_session,
            anonymous_identity,
            ComplaintCreate(title="Noise", description="Loud", category_id=category.id),
        )
        assert _dispatch(db_session, _event("complaint.submitted", complaint)) == 0

    @patch("app.tasks.notifications.send_email.delay")
    def test_recovery_event_sends_nothing(self, mock_send, db_session) -> None:
        event = _event("auth.recovery_code_issued", email="someone@example.com")
        assert _dispatch(db_session, event) == 0
        mock_send.assert_not_called()

    def test_task_uses_own_session(self, engine) -> None:
        Session = sessionmaker(bind=engine)
        with patch("app.db.SessionLocal", Session), patch(
            "app.tasks.notifications._dispatch", return_value=0
        ) as mock_dispatch:
            dispatch_emails(
                event_type="complaint.submitted", entity_type="complaint", entity_id="x"
            )
        event_data = mock_dispatch.call_args.args[1]
        assert event_data["payload"] == {}


class TestSendEmail:
    def test_delivers(self) -> None:
        notifier = MagicMock()
        with patch("app.services.email.get_notifier", return_value=notifier):
            send_email.apply(
                kwargs={"to": "a@example.com", "subject": "Hi", "html_body": "<p>x</p>"}
            )
        notifier.send.assert_called_once_with("a@example.com", "Hi", "<p>x</p>")

    def test_retries_then_gives_up(self) -> None:
        notifier = MagicMock()
        notifier.send.side_effect = httpx.ConnectError("unreachable")
        with patch("app.services.email.get_notifier", return_value=notifier):
            send_email.apply(
                kwargs={"to": "a@example.com", "subject": "Hi", "html_body": "<p>x</p>"}
            )
        assert notifier.send.call_count == send_email.max_retries + 1


class TestPurgeTasks:
    def test_purge_notifications(self, engine, db_session, citizen) -> None:
        notifications.notify(
            db_session,
            citizen.ref,
            TemplateKind.system,
            {"title": "Old", "message": "Old news"},
            expires_at=datetime.now(timezone.utc) - timedelta(days=1),
        )
        db_session.commit()
        with patch("app.db.SessionLocal", sessionmaker(bind=engine)):
            purge_expired_notifications()
        db_session.expire_all()
        assert db_session.query(Notification).count() == 0

    def test_purge_recovery_codes(self, engine, db_session, citizen) -> None:
        recovery_codes.issue(db_session, citizen)
        record = db_session.query(RecoveryCode).one()
        record.expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
        db_session.commit()
        with patch("app.db.SessionLocal", sessionmaker(bind=engine)):
            purge_expired_recovery_codes()
        assert db_session.query(RecoveryCode).count() == 0

    def test_purge_identities(self, engine, db_session) -> None:
        identity, _ = identity_codes.issue(db_session)
        identity.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        db_session.commit()
        with patch("app.db.SessionLocal", sessionmaker(bind=engine)):
            purge_expired_identities()
        db_session.expunge_all()
        assert db_session.query(AnonymousIdentity).count() == 0

    def test_purge_failure_is_logged(self) -> None:
        broken = MagicMock()
        broken.return_value.query.side_effect = RuntimeError("db down")
        with patch("app.db.SessionLocal", broken):
            purge_expired_notifications()
        broken.return_value.rollback.assert_called_once()
        broken.return_value.close.assert_called_once()
