import uuid


class TestAgencies:
    def test_public_list(self, client, agency, other_agency) -> None:
        response = client.get("/agencies")
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        names = [a["name"] for a in body["items"]]
        assert names == sorted(names)

    def test_inactive_hidden_by_default(self, client, db_session, agency) -> None:
        agency.is_active = False
        db_session.commit()
        assert client.get("/agencies").json()["count"] == 0
        assert client.get("/agencies", params={"is_active": False}).json()["count"] == 1

    def test_bad_order_by(self, client) -> None:
        response = client.get("/agencies", params={"order_by": "budget"})
        assert response.status_code == 400

    def test_get_unknown(self, client) -> None:
        response = client.get(f"/agencies/{uuid.uuid4()}")
        assert response.status_code == 404

    def test_admin_creates_and_updates(self, client, admin_headers) -> None:
        created = client.post(
            "/agencies",
            json={"name": "Health Department", "short_name": "HD"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        agency_id = created.json()["id"]

        updated = client.patch(
            f"/agencies/{agency_id}",
            json={"contact_email": "health@example.gov"},
            headers=admin_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["contact_email"] == "health@example.gov"
        assert updated.json()["name"] == "Health Department"

    def test_duplicate_name(self, client, admin_headers, agency) -> None:
        response = client.post(
            "/agencies", json={"name": agency.name}, headers=admin_headers
        )
        assert response.status_code == 409

    def test_citizen_cannot_create(self, client, citizen_headers) -> None:
        response = client.post(
            "/agencies", json={"name": "Rogue Agency"}, headers=citizen_headers
        )
        assert response.status_code == 403

    def test_agency_agents(
        self, client, agency, agent, foreign_agent, agent_headers, citizen_headers
    ) -> None:
        response = client.get(f"/agencies/{agency.id}/agents", headers=agent_headers)
        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [str(agent.id)]
        assert response.json()[0]["role"] == "agent"

        denied = client.get(f"/agencies/{agency.id}/agents", headers=citizen_headers)
        assert denied.status_code == 403


class TestCategories:
    def test_public_list(self, client, category) -> None:
        response = client.get("/api/v1/categories")
        assert response.status_code == 200
        item = response.json()["items"][0]
        assert item["id"] == str(category.id)
        assert item["default_agency_id"] == str(category.default_agency_id)

    def test_create_checks_default_agency(self, client, admin_headers) -> None:
        response = client.post(
            "/categories",
            json={"name": "Roads", "default_agency_id": str(uuid.uuid4())},
            headers=admin_headers,
        )
        assert response.status_code == 404

    def test_create_and_deactivate(self, client, admin_headers, agency) -> None:
        created = client.post(
            "/categories",
            json={"name": "Sanitation", "default_agency_id": str(agency.id)},
            headers=admin_headers,
        )
        assert created.status_code == 201
        category_id = created.json()["id"]
        updated = client.patch(
            f"/categories/{category_id}",
            json={"is_active": False},
            headers=admin_headers,
        )
        assert updated.json()["is_active"] is False
        assert client.get(f"/categories/{category_id}").status_code == 200
