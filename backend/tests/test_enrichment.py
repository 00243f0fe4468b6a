"""
Verdant Backend: Enrichment Pipeline Tests
==========================================

What we test:
    ✅ Medium/high confidence light classification updates the plant
    ✅ Low confidence leaves the sunlight level alone
    ✅ Vision unavailable → light step skipped, journal still runs
    ✅ Language unavailable → pipeline stops after the light step
    ✅ Journal failure is contained: the care log stays, earlier steps stay
    ✅ Identity mismatch is written as typed care log metadata
    ✅ Deleted plant or care log turns the step into a no-op
    ✅ History passed to the journal writer excludes the current log
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import delete

from verdant.exceptions import AIServiceError
from verdant.models import CareLog, Plant
from verdant.services.ai_base import IdentityMatch, JournalEntry, LightClassification
from verdant.services.enrichment import (
    STEP_IDENTITY,
    STEP_JOURNAL,
    STEP_LIGHT,
    EnrichmentJob,
    EnrichmentPipeline,
)
from verdant.services.storage import PlantStorage

T = datetime(2024, 6, 1, 8, 30, tzinfo=timezone.utc)
PHOTO = "2024/06/01/photo.jpg"


@pytest.fixture
def pipeline(session_factory, fake_vision, fake_language):
    return EnrichmentPipeline(
        session_factory=session_factory,
        vision=fake_vision,
        language=fake_language,
        history_limit=5,
    )


@pytest.fixture
def seeded_job(session_factory, make_plant):
    """Async factory: plant + photo care log, returns the job for it."""

    async def _seed(**plant_fields) -> EnrichmentJob:
        plant = await make_plant(**plant_fields)
        async with session_factory() as session:
            log = await PlantStorage(session).create_care_log(
                plant.id, "water", T, notes="Watered", photo_path=PHOTO
            )
            await session.commit()
        return EnrichmentJob(
            care_log_id=log.id,
            plant_id=plant.id,
            photo_path=PHOTO,
            care_type="water",
            request_id="test1234",
        )

    return _seed


async def _load(session_factory, job):
    async with session_factory() as session:
        return await session.get(Plant, job.plant_id), await session.get(CareLog, job.care_log_id)


class TestLightStep:
    @pytest.mark.asyncio
    async def test_confident_classification_updates_plant(
        self, pipeline, seeded_job, session_factory, fake_vision
    ):
        job = await seeded_job()

        outcome = await pipeline.run(job)

        plant, log = await _load(session_factory, job)
        assert fake_vision.calls == [PHOTO]
        assert plant.sunlight_level == "high"
        assert outcome.sunlight_updated is True
        assert outcome.steps_completed == [STEP_LIGHT, STEP_JOURNAL, STEP_IDENTITY]
        assert outcome.failed_step is None
        assert log.care_metadata is None

    @pytest.mark.asyncio
    async def test_medium_confidence_is_enough(self, pipeline, seeded_job, session_factory, fake_vision):
        fake_vision.result = LightClassification(sunlight_level="low", confidence="medium")
        job = await seeded_job()

        await pipeline.run(job)

        plant, _ = await _load(session_factory, job)
        assert plant.sunlight_level == "low"

    @pytest.mark.asyncio
    async def test_low_confidence_is_ignored(self, pipeline, seeded_job, session_factory, fake_vision):
        fake_vision.result = LightClassification(sunlight_level="high", confidence="low")
        job = await seeded_job()

        outcome = await pipeline.run(job)

        plant, _ = await _load(session_factory, job)
        assert plant.sunlight_level == "medium"
        assert outcome.sunlight_updated is False
        assert STEP_LIGHT in outcome.steps_completed

    @pytest.mark.asyncio
    async def test_vision_unavailable_skips_step(
        self, pipeline, seeded_job, session_factory, fake_vision, fake_language
    ):
        fake_vision.is_available = False
        job = await seeded_job()

        outcome = await pipeline.run(job)

        plant, _ = await _load(session_factory, job)
        assert fake_vision.calls == []
        assert plant.sunlight_level == "medium"
        assert outcome.steps_completed == [STEP_JOURNAL, STEP_IDENTITY]
        assert len(fake_language.calls) == 1

    @pytest.mark.asyncio
    async def test_vision_failure_ends_pipeline(
        self, pipeline, seeded_job, session_factory, fake_vision, fake_language
    ):
        fake_vision.error = AIServiceError(message="AI service timed out")
        job = await seeded_job()

        outcome = await pipeline.run(job)

        plant, log = await _load(session_factory, job)
        assert outcome.failed_step == STEP_LIGHT
        assert outcome.error == "AI service timed out"
        assert fake_language.calls == []
        assert plant.sunlight_level == "medium"
        assert log is not None


class TestJournalStep:
    @pytest.mark.asyncio
    async def test_language_unavailable_stops_after_light(
        self, pipeline, seeded_job, session_factory, fake_language
    ):
        fake_language.is_available = False
        job = await seeded_job()

        outcome = await pipeline.run(job)

        plant, _ = await _load(session_factory, job)
        assert outcome.steps_completed == [STEP_LIGHT]
        assert outcome.journal is None
        assert fake_language.calls == []
        assert plant.sunlight_level == "high"

    @pytest.mark.asyncio
    async def test_language_failure_keeps_log_and_light(
        self, pipeline, seeded_job, session_factory, fake_language
    ):
        fake_language.error = AIServiceError(message="AI service request failed")
        job = await seeded_job()

        outcome = await pipeline.run(job)

        plant, log = await _load(session_factory, job)
        assert outcome.failed_step == STEP_JOURNAL
        assert outcome.steps_completed == [STEP_LIGHT]
        assert log is not None
        assert log.care_metadata is None
        assert plant.sunlight_level == "high"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, pipeline, seeded_job, fake_language):
        fake_language.error = RuntimeError("socket closed")
        job = await seeded_job()

        outcome = await pipeline.run(job)

        assert outcome.failed_step == STEP_JOURNAL
        assert outcome.error == "socket closed"

    @pytest.mark.asyncio
    async def test_history_excludes_current_log(
        self, pipeline, seeded_job, session_factory, fake_language
    ):
        job = await seeded_job()
        async with session_factory() as session:
            storage = PlantStorage(session)
            for days in range(1, 8):
                await storage.create_care_log(job.plant_id, "water", T - timedelta(days=days))
            await session.commit()

        await pipeline.run(job)

        call = fake_language.calls[0]
        history = call["history"]
        assert call["care_log"].id == job.care_log_id
        assert call["plant_with_care"].plant.id == job.plant_id
        assert len(history) == 5
        assert job.care_log_id not in {h.id for h in history}
        assert [h.timestamp for h in history] == sorted(
            (h.timestamp for h in history), reverse=True
        )


class TestIdentityStep:
    @pytest.mark.asyncio
    async def test_mismatch_written_as_metadata(
        self, pipeline, seeded_job, session_factory, fake_language
    ):
        fake_language.result = JournalEntry(
            narrative="Watered what looks like a pothos.",
            identity_match=IdentityMatch(matches=False, detected_plant="Pothos"),
        )
        job = await seeded_job()

        outcome = await pipeline.run(job)

        _, log = await _load(session_factory, job)
        assert outcome.mismatch_flagged is True
        assert log.care_metadata == {
            "identity_mismatch": {"plant_identity_mismatch": True, "detected_plant": "Pothos"}
        }

    @pytest.mark.asyncio
    async def test_no_verdict_writes_nothing(self, pipeline, seeded_job, session_factory, fake_language):
        fake_language.result = JournalEntry(narrative="Watered.", identity_match=None)
        job = await seeded_job()

        outcome = await pipeline.run(job)

        _, log = await _load(session_factory, job)
        assert outcome.mismatch_flagged is False
        assert log.care_metadata is None


class TestDeletedRecords:
    @pytest.mark.asyncio
    async def test_plant_deleted_before_run(
        self, pipeline, seeded_job, session_factory, fake_language
    ):
        job = await seeded_job()
        async with session_factory() as session:
            await session.execute(delete(Plant).where(Plant.id == job.plant_id))
            await session.commit()

        outcome = await pipeline.run(job)

        assert outcome.failed_step is None
        assert outcome.sunlight_updated is False
        assert outcome.journal is None
        assert fake_language.calls == []

    @pytest.mark.asyncio
    async def test_care_log_deleted_before_run(
        self, pipeline, seeded_job, session_factory, fake_language
    ):
        job = await seeded_job()
        async with session_factory() as session:
            await session.execute(delete(CareLog).where(CareLog.id == job.care_log_id))
            await session.commit()

        outcome = await pipeline.run(job)

        plant, log = await _load(session_factory, job)
        assert log is None
        assert plant.sunlight_level == "high"
        assert outcome.journal is None
        assert fake_language.calls == []
