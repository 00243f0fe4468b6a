"""
Verdant Backend: Care Log Service (Ingestion Orchestrator)
==========================================================

What:  Records a care event and moves the plant's schedule forward.
Why:   Keeps the synchronous half of the care pipeline out of the HTTP layer.
How:   Composes PlantStorage, PhotoService and ReminderScheduler inside the
       caller's session and commits before handing back an EnrichmentJob.
Who:   Called by the care-log routes.

Orchestration Flow (POST /api/plants/{plant_id}/care-logs):
    ┌──────────┐   ┌─────────────┐   ┌──────────────┐   ┌──────────────┐   ┌────────┐
    │ ownership│──▶│ photo       │──▶│ insert       │──▶│ reminder     │──▶│ commit │
    │ check    │   │ (optional)  │   │ care log     │   │ scheduler    │   │        │
    └──────────┘   └─────────────┘   └──────────────┘   └──────────────┘   └────────┘

    On failure at any step:
    - no care log row survives (the transaction is rolled back)
    - a photo already written to disk is removed
    - the exception propagates to the global handlers

The commit happens here, not in get_db_session, so the background
enrichment task (which opens its own session) always sees the rows.
"""

import logging
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from verdant.config import settings
from verdant.exceptions import DatabaseError
from verdant.middleware.request_id import request_id_var
from verdant.models import CareLog
from verdant.schemas.care import CareLogCreate
from verdant.services.enrichment import EnrichmentJob
from verdant.services.photo_service import PhotoService, photo_service
from verdant.services.reminder_scheduler import ReminderScheduler, reminder_scheduler
from verdant.services.storage import PlantStorage

logger = logging.getLogger(__name__)


class IngestResult(NamedTuple):
    care_log: CareLog
    enrichment_job: Optional[EnrichmentJob]


class CareLogService:
    """
    Stateless apart from its collaborators; receives the session per call.
    """

    def __init__(
        self,
        photos: Optional[PhotoService] = None,
        scheduler: Optional[ReminderScheduler] = None,
        enrichment_enabled: Optional[bool] = None,
    ):
        self.photos = photos or photo_service
        self.scheduler = scheduler or reminder_scheduler
        self.enrichment_enabled = (
            settings.enrichment_enabled if enrichment_enabled is None else enrichment_enabled
        )

    async def ingest(
        self,
        db: AsyncSession,
        plant_id: UUID,
        owner_id: str,
        payload: CareLogCreate,
        now: Optional[datetime] = None,
    ) -> IngestResult:
        """
        Persists a care event for an owned plant.

        Args:
            db: Request session; committed before returning
            plant_id: Target plant
            owner_id: Requesting user, as resolved by the auth dependency
            payload: Validated request body
            now: Event time (defaults to the current UTC time)

        Returns:
            IngestResult with the committed CareLog and, when a photo was
            stored and enrichment is enabled, the job to run in background.

        Raises:
            AccessError: plant missing or owned by someone else (→ 404)
            ValidationError: photo too large (→ 400)
            PhotoProcessingError: photo not decodable (→ 500)
            FileStorageError, DatabaseError (→ 500)
        """
        now = now or datetime.now(timezone.utc)
        care_type = payload.care_type.value
        storage = PlantStorage(db)

        plant = await storage.get_owned_plant(plant_id, owner_id)

        photo_path: Optional[str] = None
        if payload.photo_base64:
            photo_path = await self.photos.save_photo(payload.photo_base64)

        try:
            care_log = await storage.create_care_log(
                plant_id=plant.id,
                care_type=care_type,
                timestamp=now,
                notes=payload.notes,
                photo_path=photo_path,
            )
            await self.scheduler.advance(storage, plant, care_type, now)
            await db.commit()

        except SQLAlchemyError as e:
            if photo_path:
                await self.photos.cleanup(photo_path)
            logger.error("Database error recording %s for plant %s: %s", care_type, plant_id, str(e))
            raise DatabaseError(
                message="Could not record the care event. Please try again.",
                context={"plant_id": str(plant_id), "error_type": type(e).__name__},
            ) from e
        except Exception:
            if photo_path:
                await self.photos.cleanup(photo_path)
            raise

        logger.info(
            "Care log %s recorded: plant=%s type=%s photo=%s",
            care_log.id,
            plant_id,
            care_type,
            bool(photo_path),
        )

        job: Optional[EnrichmentJob] = None
        if photo_path and self.enrichment_enabled:
            job = EnrichmentJob(
                care_log_id=care_log.id,
                plant_id=plant.id,
                photo_path=photo_path,
                care_type=care_type,
                request_id=request_id_var.get(""),
            )
        return IngestResult(care_log=care_log, enrichment_job=job)

    async def list_care_logs(
        self,
        db: AsyncSession,
        plant_id: UUID,
        owner_id: str,
        limit: Optional[int] = None,
    ) -> List[CareLog]:
        """Care logs of an owned plant, newest first."""
        storage = PlantStorage(db)
        await storage.get_owned_plant(plant_id, owner_id)
        return await storage.get_care_logs(plant_id, limit=limit)


care_log_service = CareLogService()
