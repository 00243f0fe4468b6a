"""
Verdant Backend: API Integration Tests
======================================

What:  End-to-end tests through the HTTP layer with a real SQLite database.
How:   HTTPX AsyncClient over ASGITransport; enrichment runs with the fake
       AI capabilities from conftest and finishes before each call returns.

What we test:
    ✅ POST care-logs → 201 with camelCase body, reminder created
    ✅ Missing careType → 422; missing X-User-ID → 401
    ✅ Foreign and unknown plants → identical 404
    ✅ Bad photo → 500, no care log persisted
    ✅ Photo triggers enrichment; mismatch shows up in the care log list
    ✅ Enrichment failure is invisible to the caller
    ✅ Plant, dashboard and reminder endpoints
    ✅ Stored photos: owner only; anonymous → 401, foreign → 404
    ✅ Health check and X-Request-ID propagation
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from verdant.exceptions import AIServiceError
from verdant.services.ai_base import IdentityMatch, JournalEntry

USER = {"X-User-ID": "user-1"}


def _care_logs_url(plant_id) -> str:
    return f"/api/plants/{plant_id}/care-logs"


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestCreateCareLog:
    @pytest.mark.asyncio
    async def test_water_log_created(self, test_client, make_plant):
        plant = await make_plant(name="Fern", water_frequency_days=7)

        response = await test_client.post(
            _care_logs_url(plant.id), json={"careType": "water", "notes": "Deep soak"}, headers=USER
        )

        assert response.status_code == 201
        body = response.json()
        assert body["plantId"] == str(plant.id)
        assert body["careType"] == "water"
        assert body["notes"] == "Deep soak"
        assert body["photoUrl"] is None
        assert body["metadata"] is None
        timestamp = _parse(body["timestamp"])
        assert timestamp.tzinfo is not None

        reminders = await test_client.get(f"/api/plants/{plant.id}/reminders", headers=USER)
        assert reminders.status_code == 200
        [reminder] = reminders.json()
        assert reminder["title"] == "Water your Fern"
        assert reminder["status"] == "pending"
        assert _parse(reminder["dueDate"]) == timestamp + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_snake_case_body_is_accepted(self, test_client, make_plant):
        plant = await make_plant()
        response = await test_client.post(
            _care_logs_url(plant.id), json={"care_type": "prune"}, headers=USER
        )
        assert response.status_code == 201
        assert response.json()["careType"] == "prune"

    @pytest.mark.asyncio
    async def test_missing_care_type(self, test_client, make_plant):
        plant = await make_plant()
        response = await test_client.post(_care_logs_url(plant.id), json={"notes": "?"}, headers=USER)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_care_type(self, test_client, make_plant):
        plant = await make_plant()
        response = await test_client.post(
            _care_logs_url(plant.id), json={"careType": "sing"}, headers=USER
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_identity(self, test_client, make_plant):
        plant = await make_plant()
        response = await test_client.post(_care_logs_url(plant.id), json={"careType": "water"})
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_foreign_and_unknown_plants_look_alike(self, test_client, make_plant):
        foreign = await make_plant(owner_id="someone-else")

        foreign_response = await test_client.post(
            _care_logs_url(foreign.id), json={"careType": "water"}, headers=USER
        )
        missing_id = uuid4()
        missing_response = await test_client.post(
            _care_logs_url(missing_id), json={"careType": "water"}, headers=USER
        )

        assert foreign_response.status_code == missing_response.status_code == 404
        assert foreign_response.json()["error"] == missing_response.json()["error"] == "not_found"
        assert foreign_response.json()["message"] == f"plant with ID '{foreign.id}' was not found"
        assert "details" not in foreign_response.json()

    @pytest.mark.asyncio
    async def test_bad_photo_persists_nothing(self, test_client, make_plant, fake_vision):
        plant = await make_plant()

        response = await test_client.post(
            _care_logs_url(plant.id),
            json={"careType": "water", "photoBase64": "bm90IGFuIGltYWdl"},
            headers=USER,
        )

        assert response.status_code == 500
        assert response.json()["error"] == "photo_processing_error"
        assert fake_vision.calls == []

        logs = await test_client.get(_care_logs_url(plant.id), headers=USER)
        assert logs.json() == []
        reminders = await test_client.get(f"/api/plants/{plant.id}/reminders", headers=USER)
        assert reminders.json() == []


class TestEnrichmentThroughApi:
    @pytest.mark.asyncio
    async def test_photo_triggers_enrichment(
        self, test_client, make_plant, photo_b64, fake_vision, fake_language
    ):
        fake_language.result = JournalEntry(
            narrative="Watered something that is not a fern.",
            identity_match=IdentityMatch(matches=False, detected_plant="Pothos"),
        )
        plant = await make_plant()

        response = await test_client.post(
            _care_logs_url(plant.id),
            json={"careType": "water", "photoBase64": f"data:image/png;base64,{photo_b64}"},
            headers=USER,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["photoUrl"].startswith("/api/files/")
        assert body["photoUrl"].endswith(".jpg")
        assert body["metadata"] is None
        assert len(fake_vision.calls) == 1

        plant_response = await test_client.get(f"/api/plants/{plant.id}", headers=USER)
        assert plant_response.json()["sunlightLevel"] == "high"

        [log] = (await test_client.get(_care_logs_url(plant.id), headers=USER)).json()
        assert log["metadata"] == {
            "identityMismatch": {"plantIdentityMismatch": True, "detectedPlant": "Pothos"}
        }

    @pytest.mark.asyncio
    async def test_enrichment_failure_is_invisible(
        self, test_client, make_plant, photo_b64, fake_language
    ):
        fake_language.error = AIServiceError(message="AI service request failed")
        plant = await make_plant()

        response = await test_client.post(
            _care_logs_url(plant.id),
            json={"careType": "fertilize", "photoBase64": photo_b64},
            headers=USER,
        )

        assert response.status_code == 201
        [log] = (await test_client.get(_care_logs_url(plant.id), headers=USER)).json()
        assert log["id"] == response.json()["id"]
        assert log["metadata"] is None

    @pytest.mark.asyncio
    async def test_no_photo_no_enrichment(self, test_client, make_plant, fake_vision, fake_language):
        plant = await make_plant()
        await test_client.post(_care_logs_url(plant.id), json={"careType": "water"}, headers=USER)
        assert fake_vision.calls == []
        assert fake_language.calls == []


class TestPlantReads:
    @pytest.mark.asyncio
    async def test_overdue_plant_needs_water(self, test_client, make_plant):
        long_ago = datetime.now(timezone.utc) - timedelta(days=10)
        plant = await make_plant(water_frequency_days=7, last_watered=long_ago, last_fertilized=long_ago)

        response = await test_client.get(f"/api/plants/{plant.id}", headers=USER)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "needs_water"
        assert _parse(body["nextWatering"]) == long_ago + timedelta(days=7)
        assert _parse(body["nextFertilizing"]) == long_ago + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_watering_clears_needs_water(self, test_client, make_plant):
        long_ago = datetime.now(timezone.utc) - timedelta(days=10)
        plant = await make_plant(last_watered=long_ago, last_fertilized=long_ago)

        await test_client.post(_care_logs_url(plant.id), json={"careType": "water"}, headers=USER)

        body = (await test_client.get(f"/api/plants/{plant.id}", headers=USER)).json()
        assert body["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_list_plants_is_owner_scoped(self, test_client, make_plant):
        await make_plant(name="Aloe")
        await make_plant(name="Basil")
        await make_plant(name="Cactus", owner_id="someone-else")

        response = await test_client.get("/api/plants", headers=USER)

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Aloe", "Basil"]
        assert response.headers["X-Total-Count"] == "2"

    @pytest.mark.asyncio
    async def test_dashboard_care_needed(self, test_client, make_plant):
        now = datetime.now(timezone.utc)
        await make_plant(name="Thirsty", last_watered=now - timedelta(days=9), last_fertilized=now)
        await make_plant(name="Hungry", last_watered=now, last_fertilized=now - timedelta(days=31))
        await make_plant(name="Fine", last_watered=now, last_fertilized=now)
        await make_plant(
            name="Elsewhere", owner_id="someone-else", last_watered=now - timedelta(days=9)
        )

        response = await test_client.get("/api/dashboard/care-needed", headers=USER)

        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "no-store"
        body = response.json()
        assert [p["name"] for p in body["needsWater"]] == ["Thirsty"]
        assert [p["name"] for p in body["needsFertilizer"]] == ["Hungry"]

    @pytest.mark.asyncio
    async def test_reminders_of_foreign_plant(self, test_client, make_plant):
        plant = await make_plant(owner_id="someone-else")
        response = await test_client.get(f"/api/plants/{plant.id}/reminders", headers=USER)
        assert response.status_code == 404


class TestFiles:
    async def _post_photo(self, test_client, make_plant, photo_b64) -> str:
        plant = await make_plant()
        created = await test_client.post(
            _care_logs_url(plant.id),
            json={"careType": "prune", "photoBase64": photo_b64},
            headers=USER,
        )
        return created.json()["photoUrl"]

    @pytest.mark.asyncio
    async def test_owner_gets_stored_photo(self, test_client, make_plant, photo_b64):
        photo_url = await self._post_photo(test_client, make_plant, photo_b64)

        response = await test_client.get(photo_url, headers=USER)

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content[:2] == b"\xff\xd8"

    @pytest.mark.asyncio
    async def test_anonymous_caller_rejected(self, test_client, make_plant, photo_b64):
        photo_url = await self._post_photo(test_client, make_plant, photo_b64)

        response = await test_client.get(photo_url)

        assert response.status_code == 401
        assert response.content[:2] != b"\xff\xd8"

    @pytest.mark.asyncio
    async def test_foreign_caller_gets_not_found(self, test_client, make_plant, photo_b64):
        photo_url = await self._post_photo(test_client, make_plant, photo_b64)

        response = await test_client.get(photo_url, headers={"X-User-ID": "intruder"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_unreferenced_file(self, test_client):
        response = await test_client.get("/api/files/2024/01/01/missing.jpg", headers=USER)
        assert response.status_code == 404


class TestInfrastructure:
    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["ai"] == "available"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, test_client):
        response = await test_client.get("/health")
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_error_body_carries_request_id(self, test_client):
        response = await test_client.get(
            f"/api/plants/{uuid4()}", headers={**USER, "X-Request-ID": "req-404"}
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "req-404"
