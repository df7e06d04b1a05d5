import re
from dataclasses import replace
from unittest.mock import patch

from app.config import settings

PASSWORD = "correct-horse-battery"


def _submit(client, headers, category, **overrides):
    body = {
        "title": "Pothole on Main St",
        "description": "Deep pothole outside number 12.",
        "category_id": str(category.id),
    }
    body.update(overrides)
    return client.post("/complaints", json=body, headers=headers)


class TestEndToEnd:
    def test_register_submit_resolve_reopen(self, client, category, admin_headers) -> None:
        registered = client.post(
            "/auth/register",
            json={"name": "A", "email": "a@x.com", "password": PASSWORD},
        )
        assert registered.status_code == 201
        citizen_headers = {
            "Authorization": f"Bearer {registered.json()['access_token']}"
        }

        created = _submit(client, citizen_headers, category)
        assert created.status_code == 201
        complaint = created.json()
        assert re.fullmatch(r"SAY-\d{4}-\d{5}", complaint["tracking_id"])
        assert complaint["status"] == "pending"

        resolved = client.patch(
            f"/complaints/{complaint['id']}/status",
            json={"status": "resolved"},
            headers=admin_headers,
        )
        assert resolved.status_code == 200
        assert resolved.json()["status"] == "resolved"

        def updates():
            listed = client.get(
                "/notifications",
                params={"type": "complaint_update"},
                headers=citizen_headers,
            )
            return listed.json()["items"]

        before = updates()

        reply = client.post(
            f"/complaints/{complaint['id']}/responses",
            json={"content": "still broken"},
            headers=citizen_headers,
        )
        assert reply.status_code == 201
        assert reply.json()["author_type"] == "citizen"

        current = client.get(f"/complaints/{complaint['id']}", headers=citizen_headers)
        assert current.json()["status"] == "in_progress"

        after = updates()
        assert len(after) == len(before) + 1
        assert after[0]["title"] == "Complaint In Progress"


class TestSubmission:
    def test_anonymous_submission(self, client, anonymous_headers, category) -> None:
        response = _submit(client, anonymous_headers, category)
        assert response.status_code == 201
        assert response.json()["submission_type"] == "anonymous"

    def test_agents_cannot_submit(self, client, agent_headers, category) -> None:
        assert _submit(client, agent_headers, category).status_code == 403

    def test_requires_token(self, client, category) -> None:
        assert _submit(client, {}, category).status_code == 401

    def test_validation(self, client, citizen_headers, category) -> None:
        response = _submit(client, citizen_headers, category, title="   ")
        assert response.status_code == 422

    def test_external_submission(self, client, category) -> None:
        response = client.post(
            "/complaints/external",
            json={
                "title": "Broken bench",
                "description": "Reported at the front desk",
                "category_id": str(category.id),
                "contact_info": {"name": "Walk-in", "email": "walkin@example.com"},
            },
        )
        assert response.status_code == 201
        assert response.json()["submission_type"] == "external"

    def test_track_is_public(self, client, complaint) -> None:
        response = client.get(f"/complaints/track/{complaint.tracking_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending"
        assert body["title"] == complaint.title
        assert "description" not in body

    def test_track_unknown(self, client) -> None:
        response = client.get("/complaints/track/SAY-2000-00000")
        assert response.status_code == 404
        assert response.json()["code"] == "complaint_not_found"


class TestReads:
    def test_list_envelope(self, client, complaint, citizen_headers) -> None:
        response = client.get("/complaints", headers=citizen_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["limit"] == 25
        assert body["offset"] == 0
        assert body["items"][0]["id"] == str(complaint.id)

    def test_list_status_filter(self, client, complaint, admin_headers) -> None:
        response = client.get(
            "/api/v1/complaints", params={"status": "resolved"}, headers=admin_headers
        )
        assert response.json()["items"] == []

    def test_list_bad_order(self, client, admin_headers) -> None:
        response = client.get(
            "/complaints", params={"order_dir": "sideways"}, headers=admin_headers
        )
        assert response.status_code == 422

    def test_foreign_agent_gets_403(self, client, complaint, foreign_agent) -> None:
        from app.services.tokens import tokens

        headers = {"Authorization": f"Bearer {tokens.issue(foreign_agent)}"}
        response = client.get(f"/complaints/{complaint.id}", headers=headers)
        assert response.status_code == 403
        assert response.json()["code"] == "agency_mismatch"

    def test_internal_responses_hidden(
        self, client, complaint, agent_headers, citizen_headers
    ) -> None:
        client.post(
            f"/complaints/{complaint.id}/responses",
            json={"content": "Crew booked", "is_internal": True},
            headers=agent_headers,
        )
        citizen_view = client.get(
            f"/complaints/{complaint.id}/responses", headers=citizen_headers
        ).json()
        agent_view = client.get(
            f"/complaints/{complaint.id}/responses", headers=agent_headers
        ).json()
        assert "Crew booked" not in [r["content"] for r in citizen_view]
        assert "Crew booked" in [r["content"] for r in agent_view]


class TestHandling:
    def test_assign_and_unassign(self, client, complaint, agent, agent_headers) -> None:
        response = client.post(
            f"/complaints/{complaint.id}/assign",
            json={"agent_id": str(agent.id)},
            headers=agent_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "assigned"
        assert response.json()["assigned_agent_id"] == str(agent.id)

        response = client.post(
            f"/complaints/{complaint.id}/unassign", headers=agent_headers
        )
        assert response.json()["status"] == "pending"

    def test_assign_foreign_agent(
        self, client, complaint, foreign_agent, admin_headers
    ) -> None:
        response = client.post(
            f"/complaints/{complaint.id}/assign",
            json={"agent_id": str(foreign_agent.id)},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_assignment"

    def test_citizen_cannot_set_status(self, client, complaint, citizen_headers) -> None:
        response = client.patch(
            f"/complaints/{complaint.id}/status",
            json={"status": "closed"},
            headers=citizen_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_transition"

    def test_route_is_staff_only(
        self, client, complaint, other_agency, admin_headers, agent_headers
    ) -> None:
        body = {"agency_id": str(other_agency.id)}
        denied = client.post(
            f"/complaints/{complaint.id}/route", json=body, headers=agent_headers
        )
        assert denied.status_code == 403
        routed = client.post(
            f"/complaints/{complaint.id}/route", json=body, headers=admin_headers
        )
        assert routed.status_code == 200
        assert routed.json()["agency_id"] == str(other_agency.id)

    def test_priority(self, client, complaint, agent_headers) -> None:
        response = client.patch(
            f"/complaints/{complaint.id}/priority",
            json={"priority": "high"},
            headers=agent_headers,
        )
        assert response.status_code == 200
        assert response.json()["priority"] == "high"

    def test_storage_failure_is_503(self, client, complaint, admin_headers) -> None:
        from sqlalchemy.exc import SQLAlchemyError

        with patch(
            "app.services.complaints.notifications.notify",
            side_effect=SQLAlchemyError("boom"),
        ):
            response = client.patch(
                f"/complaints/{complaint.id}/status",
                json={"status": "resolved"},
                headers=admin_headers,
            )
        assert response.status_code == 503
        assert response.json()["code"] == "transaction_aborted"


class TestAttachments:
    def test_unconfigured_storage(self, client, citizen_headers) -> None:
        unconfigured = replace(settings, s3_endpoint_url="")
        with patch("app.services.attachments.settings", unconfigured):
            response = client.post(
                "/complaints/attachments",
                files={"file": ("photo.jpg", b"bytes", "image/jpeg")},
                headers=citizen_headers,
            )
        assert response.status_code == 503

    @patch("app.services.attachments.boto3.client")
    def test_upload(self, mock_client, client, citizen_headers) -> None:
        configured = replace(
            settings,
            s3_endpoint_url="http://minio:9000",
            s3_access_key="a",
            s3_secret_key="b",
        )
        with patch("app.services.attachments.settings", configured):
            response = client.post(
                "/complaints/attachments",
                files={"file": ("photo.jpg", b"bytes", "image/jpeg")},
                headers=citizen_headers,
            )
        assert response.status_code == 201
        assert response.json()["original_name"] == "photo.jpg"
        mock_client.return_value.put_object.assert_called_once()

    @patch("app.services.attachments.boto3.client")
    def test_oversize_upload(self, mock_client, client, citizen_headers) -> None:
        configured = replace(
            settings,
            s3_endpoint_url="http://minio:9000",
            s3_access_key="a",
            s3_secret_key="b",
            attachment_max_size_bytes=4,
        )
        with patch("app.services.attachments.settings", configured):
            response = client.post(
                "/complaints/attachments",
                files={"file": ("photo.jpg", b"far too many bytes", "image/jpeg")},
                headers=citizen_headers,
            )
        assert response.status_code == 400
        mock_client.return_value.put_object.assert_not_called()
