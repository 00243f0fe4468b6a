"""
Verdant Backend: Background Enrichment Pipeline
===============================================

What:  Best-effort AI augmentation of a care log that carries a photo.
Why:   Light level and plant identity are useful but never worth delaying or
       failing the request that recorded the care event.
How:   Dispatched with FastAPI BackgroundTasks after the 201 response.
       Opens its own session (the request session is closed by then) and
       commits after each step, so an early step survives a later failure.
Who:   Dispatched by the care-log route with the EnrichmentJob returned by
       CareLogService.ingest.

Pipeline:
    ┌────────────────┐    ┌───────────────────┐    ┌──────────────────────┐
    │ 1. classify    │───▶│ 2. journal entry  │───▶│ 3. identity mismatch │
    │    light level │    │    (+ identity)   │    │    metadata patch    │
    └────────────────┘    └───────────────────┘    └──────────────────────┘
      vision unavailable     language unavailable     verdict absent or
      → step skipped         → pipeline stops         matching → no-op

    Sunlight level is only written for medium/high confidence.

Failure Semantics:
    Any exception ends the pipeline and is logged with the originating
    request id. Nothing is retried and nothing already committed is rolled
    back. A plant or care log deleted meanwhile turns its step into a no-op.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from verdant.constants import Confidence
from verdant.exceptions import EnrichmentError, VerdantError
from verdant.schemas.care import CareLogMetadata, IdentityMismatch
from verdant.services.ai_base import JournalEntry, LanguageCapability, VisionCapability
from verdant.services.storage import PlantStorage

logger = logging.getLogger(__name__)

STEP_LIGHT = "classify_light"
STEP_JOURNAL = "generate_journal"
STEP_IDENTITY = "annotate_identity"


@dataclass(frozen=True)
class EnrichmentJob:
    """Everything the detached pipeline needs; no ORM objects cross the boundary."""

    care_log_id: UUID
    plant_id: UUID
    photo_path: str
    care_type: str
    request_id: str = ""


@dataclass
class EnrichmentOutcome:
    """What a run did. Logged and asserted in tests; never sent to a client."""

    steps_completed: List[str] = field(default_factory=list)
    sunlight_updated: bool = False
    mismatch_flagged: bool = False
    journal: Optional[JournalEntry] = None
    failed_step: Optional[str] = None
    error: Optional[str] = None


class EnrichmentPipeline:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        vision: VisionCapability,
        language: LanguageCapability,
        history_limit: int = 20,
    ):
        self.session_factory = session_factory
        self.vision = vision
        self.language = language
        self.history_limit = history_limit

    async def run(self, job: EnrichmentJob) -> EnrichmentOutcome:
        """
        Runs all steps for one job. Never raises.

        Returns:
            EnrichmentOutcome describing completed steps and the failure, if any.
        """
        outcome = EnrichmentOutcome()
        rid = job.request_id
        logger.info("[%s] Enrichment started for care log %s", rid, job.care_log_id)

        try:
            async with self.session_factory() as session:
                storage = PlantStorage(session)

                if self.vision.available:
                    await self._step(outcome, STEP_LIGHT, self._classify_light(storage, job, outcome))
                    await session.commit()
                else:
                    logger.info("[%s] Vision capability unavailable; light step skipped", rid)

                if not self.language.available:
                    logger.info("[%s] Language capability unavailable; enrichment stops", rid)
                    return outcome

                entry = await self._step(outcome, STEP_JOURNAL, self._journal(storage, job))
                outcome.journal = entry

                if entry is not None:
                    await self._step(
                        outcome, STEP_IDENTITY, self._annotate_identity(storage, job, entry, outcome)
                    )
                    await session.commit()

        except EnrichmentError as e:
            outcome.failed_step = e.step
            outcome.error = e.message
            logger.exception(
                "[%s] Enrichment failed at %s for care log %s: %s",
                rid,
                e.step,
                job.care_log_id,
                e.message,
            )
        except Exception as e:
            # Session open/commit failures land here
            outcome.error = str(e)
            logger.exception("[%s] Enrichment failed for care log %s", rid, job.care_log_id)

        logger.info(
            "[%s] Enrichment finished for care log %s: completed=%s failed=%s",
            rid,
            job.care_log_id,
            outcome.steps_completed,
            outcome.failed_step,
        )
        return outcome

    async def _step(self, outcome: EnrichmentOutcome, name: str, coro):
        """Awaits one step, recording completion or wrapping its failure."""
        try:
            result = await coro
        except VerdantError as e:
            raise EnrichmentError(step=name, message=e.message, context=e.context) from e
        except Exception as e:
            raise EnrichmentError(
                step=name,
                message=str(e) or type(e).__name__,
                context={"error_type": type(e).__name__},
            ) from e
        outcome.steps_completed.append(name)
        return result

    # ── Steps ─────────────────────────────────────────────────────────────

    async def _classify_light(
        self,
        storage: PlantStorage,
        job: EnrichmentJob,
        outcome: EnrichmentOutcome,
    ) -> None:
        classification = await self.vision.classify_light(job.photo_path)
        if classification.confidence == Confidence.LOW:
            logger.info(
                "[%s] Light classification %s ignored (low confidence)",
                job.request_id,
                classification.sunlight_level.value,
            )
            return

        plant = await storage.update_plant(
            job.plant_id, sunlight_level=classification.sunlight_level.value
        )
        if plant is None:
            logger.info("[%s] Plant %s gone; sunlight level not updated", job.request_id, job.plant_id)
            return
        outcome.sunlight_updated = True
        logger.info(
            "[%s] Plant %s sunlight level set to %s (%s confidence)",
            job.request_id,
            job.plant_id,
            classification.sunlight_level.value,
            classification.confidence.value,
        )

    async def _journal(self, storage: PlantStorage, job: EnrichmentJob) -> Optional[JournalEntry]:
        care_log = await storage.get_care_log(job.care_log_id)
        plant_with_care = await storage.get_plant_with_care(job.plant_id)
        if care_log is None or plant_with_care is None:
            logger.info(
                "[%s] Care log %s or plant %s gone; journal skipped",
                job.request_id,
                job.care_log_id,
                job.plant_id,
            )
            return None

        history = await storage.get_plant_care_history(
            job.plant_id, limit=self.history_limit, exclude_id=job.care_log_id
        )
        entry = await self.language.generate_journal_entry(care_log, plant_with_care, history)
        logger.info(
            "[%s] Journal entry for care log %s: %d chars",
            job.request_id,
            job.care_log_id,
            len(entry.narrative),
        )
        return entry

    async def _annotate_identity(
        self,
        storage: PlantStorage,
        job: EnrichmentJob,
        entry: JournalEntry,
        outcome: EnrichmentOutcome,
    ) -> None:
        verdict = entry.identity_match
        if verdict is None or verdict.matches:
            return

        metadata = CareLogMetadata(
            identity_mismatch=IdentityMismatch(detected_plant=verdict.detected_plant)
        )
        log = await storage.update_care_log_metadata(job.care_log_id, metadata)
        if log is None:
            logger.info("[%s] Care log %s gone; mismatch not recorded", job.request_id, job.care_log_id)
            return
        outcome.mismatch_flagged = True
        logger.warning(
            "[%s] Care log %s photo looks like %r, not the plant on record",
            job.request_id,
            job.care_log_id,
            verdict.detected_plant,
        )
