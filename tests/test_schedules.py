from uuid import uuid4

import pytest
from httpx import AsyncClient

SCHEDULE_PAYLOAD = {
    "schedule_date": "2024-06-01",
    "start_time": "09:00:00",
    "end_time": "10:30:00",
    "title": "Balance son",
    "target_groups": ["techniques"],
    "location": "Grande scène",
    "required_skills": ["son"],
    "is_mandatory": True,
    "responsible_person": "Camille",
}


def seed_schedule(platform, event, **values):
    defaults = {
        "event_id": event["id"],
        "schedule_date": "2024-06-01",
        "start_time": "09:00:00",
        "end_time": "10:00:00",
        "title": "Accueil",
        "target_groups": ["both"],
    }
    defaults.update(values)
    return platform.insert("daily_schedules", **defaults)


class TestScheduleList:
    """Tests for listing the schedule of an event."""

    @pytest.mark.asyncio
    async def test_list_ordered_by_day_and_time(
        self, client: AsyncClient, platform, sign_in, intermittent, sample_event
    ):
        seed_schedule(platform, sample_event, title="Démontage", schedule_date="2024-06-02")
        seed_schedule(platform, sample_event, title="Concert", start_time="20:00:00",
                      end_time="23:00:00")
        seed_schedule(platform, sample_event, title="Accueil")
        sign_in(intermittent)

        response = await client.get(f"/api/v1/events/{sample_event['id']}/schedules")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [s["title"] for s in data["schedules"]] == ["Accueil", "Concert", "Démontage"]

    @pytest.mark.asyncio
    async def test_list_filtered_by_group_and_date(
        self, client: AsyncClient, platform, sign_in, intermittent, sample_event
    ):
        seed_schedule(platform, sample_event, title="Tous")
        seed_schedule(platform, sample_event, title="Tech", target_groups=["techniques"])
        seed_schedule(platform, sample_event, title="Artistes", target_groups=["artistes"],
                      schedule_date="2024-06-02")
        sign_in(intermittent)

        response = await client.get(
            f"/api/v1/events/{sample_event['id']}/schedules",
            params={"target_groups": ["artistes"]},
        )
        assert [s["title"] for s in response.json()["schedules"]] == ["Tous", "Artistes"]

        response = await client.get(
            f"/api/v1/events/{sample_event['id']}/schedules",
            params={"start_date": "2024-06-02"},
        )
        assert [s["title"] for s in response.json()["schedules"]] == ["Artistes"]

    @pytest.mark.asyncio
    async def test_list_unknown_event(self, client: AsyncClient, sign_in, intermittent):
        sign_in(intermittent)
        response = await client.get(f"/api/v1/events/{uuid4()}/schedules")
        assert response.status_code == 404


class TestScheduleCrud:
    """Tests for editing schedule entries."""

    @pytest.mark.asyncio
    async def test_create(self, client: AsyncClient, platform, sign_in, regisseur, sample_event):
        sign_in(regisseur)
        response = await client.post(
            f"/api/v1/events/{sample_event['id']}/schedules", json=SCHEDULE_PAYLOAD
        )
        assert response.status_code == 201
        data = response.json()
        assert data["event_id"] == sample_event["id"]
        assert data["created_by"] == regisseur["id"]
        assert data["is_mandatory"] is True
        assert len(platform.tables["daily_schedules"]) == 1

    @pytest.mark.asyncio
    async def test_create_outside_event_dates(
        self, client: AsyncClient, sign_in, regisseur, sample_event
    ):
        sign_in(regisseur)
        payload = {**SCHEDULE_PAYLOAD, "schedule_date": "2024-06-05"}
        response = await client.post(
            f"/api/v1/events/{sample_event['id']}/schedules", json=payload
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_create_end_before_start(
        self, client: AsyncClient, sign_in, regisseur, sample_event
    ):
        sign_in(regisseur)
        payload = {**SCHEDULE_PAYLOAD, "end_time": "08:00:00"}
        response = await client.post(
            f"/api/v1/events/{sample_event['id']}/schedules", json=payload
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_intermittent_cannot_create(
        self, client: AsyncClient, sign_in, intermittent, sample_event
    ):
        sign_in(intermittent)
        response = await client.post(
            f"/api/v1/events/{sample_event['id']}/schedules", json=SCHEDULE_PAYLOAD
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient, platform, sign_in, regisseur, sample_event):
        schedule = seed_schedule(platform, sample_event)
        sign_in(regisseur)
        response = await client.patch(
            f"/api/v1/events/{sample_event['id']}/schedules/{schedule['id']}",
            json={"title": "Accueil public", "end_time": "11:00:00"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Accueil public"
        assert data["end_time"] == "11:00:00"

    @pytest.mark.asyncio
    async def test_update_end_before_stored_start(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        schedule = seed_schedule(platform, sample_event)
        sign_in(regisseur)
        response = await client.patch(
            f"/api/v1/events/{sample_event['id']}/schedules/{schedule['id']}",
            json={"end_time": "08:00:00"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate(self, client: AsyncClient, platform, sign_in, regisseur, sample_event):
        schedule = seed_schedule(platform, sample_event)
        sign_in(regisseur)
        response = await client.post(
            f"/api/v1/events/{sample_event['id']}/schedules/{schedule['id']}/duplicate"
        )
        assert response.status_code == 201
        assert response.json()["title"] == "Copie de Accueil"
        assert len(platform.tables["daily_schedules"]) == 2

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, platform, sign_in, regisseur, sample_event):
        schedule = seed_schedule(platform, sample_event)
        sign_in(regisseur)
        response = await client.delete(
            f"/api/v1/events/{sample_event['id']}/schedules/{schedule['id']}"
        )
        assert response.status_code == 204
        assert platform.tables["daily_schedules"] == []

    @pytest.mark.asyncio
    async def test_schedule_of_other_event_not_found(
        self, client: AsyncClient, platform, sign_in, regisseur, sample_event
    ):
        schedule = seed_schedule(platform, sample_event)
        sign_in(regisseur)
        response = await client.delete(
            f"/api/v1/events/{uuid4()}/schedules/{schedule['id']}"
        )
        assert response.status_code == 404
        assert len(platform.tables["daily_schedules"]) == 1
