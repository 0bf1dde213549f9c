from uuid import uuid4

import pytest
from httpx import AsyncClient

EVENT_PAYLOAD = {
    "title": "Tournée d'été",
    "description": "Douze dates",
    "target_group": "techniques",
    "start_date": "2024-07-01",
    "end_date": "2024-07-15",
    "location": "Lyon",
}


class TestEventList:
    """Tests for event listing endpoint."""

    @pytest.mark.asyncio
    async def test_list_events(self, client: AsyncClient, sign_in, regisseur, sample_event):
        sign_in(regisseur)
        response = await client.get("/api/v1/events")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["events"][0]["title"] == "Festival X"
        assert data["has_more"] is False

    @pytest.mark.asyncio
    async def test_list_events_pagination(self, client: AsyncClient, platform, sign_in, regisseur):
        for i in range(25):
            platform.insert(
                "events",
                title=f"Date {i:02d}",
                status="draft",
                start_date=f"2024-07-{i + 1:02d}",
                end_date=f"2024-07-{i + 1:02d}",
                created_by=regisseur["id"],
            )
        sign_in(regisseur)

        response = await client.get("/api/v1/events", params={"page": 1, "page_size": 10})
        data = response.json()
        assert len(data["events"]) == 10
        assert data["total"] == 25
        assert data["has_more"] is True
        assert data["events"][0]["title"] == "Date 00"

        response = await client.get("/api/v1/events", params={"page": 3, "page_size": 10})
        data = response.json()
        assert len(data["events"]) == 5
        assert data["has_more"] is False

    @pytest.mark.asyncio
    async def test_list_events_filters(self, client: AsyncClient, platform, sign_in, regisseur):
        platform.insert("events", title="Gala", status="draft", start_date="2024-09-01",
                        end_date="2024-09-01", created_by=regisseur["id"])
        platform.insert("events", title="Festival", status="published", start_date="2024-06-01",
                        end_date="2024-06-02", created_by=regisseur["id"])
        sign_in(regisseur)

        response = await client.get("/api/v1/events", params={"status": "draft"})
        assert [e["title"] for e in response.json()["events"]] == ["Gala"]

        response = await client.get("/api/v1/events", params={"search": "fest"})
        assert [e["title"] for e in response.json()["events"]] == ["Festival"]

        response = await client.get(
            "/api/v1/events", params={"sort_by": "start_date", "sort_order": "desc"}
        )
        assert [e["title"] for e in response.json()["events"]] == ["Gala", "Festival"]

    @pytest.mark.asyncio
    async def test_intermittent_sees_published_and_own(
        self, client: AsyncClient, platform, sign_in, regisseur, intermittent, sample_event
    ):
        hidden = platform.insert("events", title="Brouillon", status="draft",
                                 start_date="2024-08-01", end_date="2024-08-01",
                                 created_by=regisseur["id"])
        invited = platform.insert("events", title="Privé", status="draft",
                                  start_date="2024-08-02", end_date="2024-08-02",
                                  created_by=regisseur["id"])
        platform.insert("event_participants", event_id=invited["id"], user_id=intermittent["id"])
        sign_in(intermittent)

        response = await client.get("/api/v1/events")
        titles = {e["title"] for e in response.json()["events"]}
        assert titles == {"Festival X", "Privé"}
        assert hidden["title"] not in titles

    @pytest.mark.asyncio
    async def test_list_events_requires_login(self, client: AsyncClient):
        response = await client.get("/api/v1/events")
        assert response.status_code == 307


class TestEventCrud:
    """Tests for creating and editing events."""

    @pytest.mark.asyncio
    async def test_create_event(self, client: AsyncClient, platform, sign_in, regisseur):
        sign_in(regisseur)
        response = await client.post("/api/v1/events", json=EVENT_PAYLOAD)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "draft"
        assert data["created_by"] == regisseur["id"]
        assert len(platform.tables["events"]) == 1

    @pytest.mark.asyncio
    async def test_create_event_end_before_start(self, client: AsyncClient, sign_in, regisseur):
        sign_in(regisseur)
        payload = {**EVENT_PAYLOAD, "end_date": "2024-06-01"}
        response = await client.post("/api/v1/events", json=payload)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_intermittent_cannot_create(self, client: AsyncClient, sign_in, intermittent):
        sign_in(intermittent)
        response = await client.post("/api/v1/events", json=EVENT_PAYLOAD)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_event(self, client: AsyncClient, sign_in, regisseur, sample_event):
        sign_in(regisseur)
        response = await client.get(f"/api/v1/events/{sample_event['id']}")
        assert response.status_code == 200
        assert response.json()["location"] == "Parc des Expositions"

    @pytest.mark.asyncio
    async def test_get_event_not_found(self, client: AsyncClient, sign_in, regisseur):
        sign_in(regisseur)
        response = await client.get(f"/api/v1/events/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Événement introuvable"

    @pytest.mark.asyncio
    async def test_update_event(self, client: AsyncClient, sign_in, regisseur, sample_event):
        sign_in(regisseur)
        response = await client.patch(
            f"/api/v1/events/{sample_event['id']}", json={"title": "Festival Y"}
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Festival Y"

    @pytest.mark.asyncio
    async def test_update_event_dates_checked_against_stored(
        self, client: AsyncClient, sign_in, regisseur, sample_event
    ):
        sign_in(regisseur)
        response = await client.patch(
            f"/api/v1/events/{sample_event['id']}", json={"end_date": "2024-05-01"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_regisseur_cannot_update(
        self, client: AsyncClient, platform, sign_in, sample_event
    ):
        other = platform.add_user("autre@example.com", role="regisseur", username="autre")
        sign_in(other)
        response = await client.patch(
            f"/api/v1/events/{sample_event['id']}", json={"title": "Pirate"}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_can_update_any_event(
        self, client: AsyncClient, sign_in, admin, sample_event
    ):
        sign_in(admin)
        response = await client.patch(
            f"/api/v1/events/{sample_event['id']}", json={"location": "Arena"}
        )
        assert response.status_code == 200


class TestEventStatus:
    """Tests for publishing and status changes."""

    @pytest.mark.asyncio
    async def test_publish_sets_published_at(
        self, client: AsyncClient, platform, sign_in, regisseur
    ):
        event = platform.insert("events", title="Gala", status="draft", start_date="2024-09-01",
                                end_date="2024-09-01", created_by=regisseur["id"])
        sign_in(regisseur)

        response = await client.put(
            f"/api/v1/events/{event['id']}/status", json={"status": "published"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "published"
        assert data["published_at"] is not None

        response = await client.put(
            f"/api/v1/events/{event['id']}/status", json={"status": "draft"}
        )
        assert response.json()["published_at"] is None

    @pytest.mark.asyncio
    async def test_republish_keeps_published_at(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        sample_event["published_at"] = "2024-05-01T08:00:00+00:00"
        sign_in(regisseur)
        response = await client.put(
            f"/api/v1/events/{sample_event['id']}/status", json={"status": "published"}
        )
        assert response.status_code == 200
        assert response.json()["published_at"].startswith("2024-05-01T08:00:00")
        assert platform.tables["events"][0]["published_at"] == "2024-05-01T08:00:00+00:00"

    @pytest.mark.asyncio
    async def test_cancel(self, client: AsyncClient, sign_in, regisseur, sample_event):
        sign_in(regisseur)
        response = await client.put(
            f"/api/v1/events/{sample_event['id']}/status", json={"status": "cancelled"}
        )
        assert response.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_invalid_status(self, client: AsyncClient, sign_in, regisseur, sample_event):
        sign_in(regisseur)
        response = await client.put(
            f"/api/v1/events/{sample_event['id']}/status", json={"status": "archived"}
        )
        assert response.status_code == 422


class TestEventDuplicateAndDelete:
    """Tests for duplicating and deleting events."""

    @pytest.mark.asyncio
    async def test_duplicate(self, client: AsyncClient, platform, sign_in, regisseur, sample_event):
        sign_in(regisseur)
        response = await client.post(f"/api/v1/events/{sample_event['id']}/duplicate")
        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Copie de Festival X"
        assert data["status"] == "draft"
        assert data["id"] != sample_event["id"]
        assert data["published_at"] is None
        assert len(platform.tables["events"]) == 2

    @pytest.mark.asyncio
    async def test_delete_draft(self, client: AsyncClient, platform, sign_in, regisseur):
        event = platform.insert("events", title="Gala", status="draft", start_date="2024-09-01",
                                end_date="2024-09-01", created_by=regisseur["id"])
        sign_in(regisseur)
        response = await client.delete(f"/api/v1/events/{event['id']}")
        assert response.status_code == 204
        assert platform.tables["events"] == []

    @pytest.mark.asyncio
    async def test_delete_published_with_participants(
        self, client: AsyncClient, platform, sign_in, regisseur, intermittent, sample_event
    ):
        platform.insert(
            "event_participants", event_id=sample_event["id"], user_id=intermittent["id"]
        )
        sign_in(regisseur)

        response = await client.get(f"/api/v1/events/{sample_event['id']}/deletable")
        assert response.json() == {
            "event_id": sample_event["id"],
            "can_delete": False,
            "reason": "Impossible de supprimer un événement avec des participants",
        }

        response = await client.delete(f"/api/v1/events/{sample_event['id']}")
        assert response.status_code == 409
        assert len(platform.tables["events"]) == 1

    @pytest.mark.asyncio
    async def test_delete_refused_by_platform(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        platform.rpc_results["can_delete_event"] = False
        sign_in(regisseur)
        response = await client.delete(f"/api/v1/events/{sample_event['id']}")
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_expired_token_recovered(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        """One rejected call is refreshed and retried transparently."""
        sign_in(regisseur)
        platform.queue_jwt_expired(target="events")
        response = await client.get(f"/api/v1/events/{sample_event['id']}")
        assert response.status_code == 200
        assert len(platform.calls_to("/auth/v1/token")) == 1

    @pytest.mark.asyncio
    async def test_expired_token_twice_requires_login(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        sign_in(regisseur)
        platform.queue_jwt_expired(times=2, target="events")
        response = await client.get(f"/api/v1/events/{sample_event['id']}")
        assert response.status_code == 401
        data = response.json()
        assert data["kind"] == "token_expired"
        assert data["redirect_to"] == "/auth/login"

    @pytest.mark.asyncio
    async def test_failed_retry_with_other_error_requires_login(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        """The retry failing for another reason still ends the session."""
        sign_in(regisseur)
        platform.queue_jwt_expired(target="events")
        platform.queue_error(503, {"message": "upstream unavailable"}, target="events")
        response = await client.get(f"/api/v1/events/{sample_event['id']}")
        assert response.status_code == 502
        data = response.json()
        assert data["kind"] == "unknown"
        assert data["redirect_to"] == "/auth/login"
        assert data["detail"] == "Votre session a expiré. Veuillez vous reconnecter."

    @pytest.mark.asyncio
    async def test_plain_error_has_no_redirect(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        sign_in(regisseur)
        platform.queue_error(503, {"message": "upstream unavailable"}, target="events")
        response = await client.get(f"/api/v1/events/{sample_event['id']}")
        assert response.status_code == 502
        assert "redirect_to" not in response.json()
