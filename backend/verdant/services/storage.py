"""
Verdant Backend: Plant Storage
==============================

What:  Thin persistence interface over an AsyncSession for plants, care logs
       and reminders.
Why:   Services talk in domain operations ("get owned plant", "patch care log
       metadata") instead of building queries inline, and tests can exercise
       the same calls against an in-memory SQLite database.
How:   Every write flushes but never commits. The caller owns the transaction:
       the request session commits in `get_db_session`, the enrichment
       pipeline commits its own session after each step.

Update semantics:
    `update_plant` and `update_care_log_metadata` follow "update if the
    target still exists". A row deleted in the meantime yields None instead
    of an error, which background enrichment treats as a no-op.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from verdant.exceptions import AccessError
from verdant.models import CareLog, Plant, Reminder
from verdant.schemas.care import CareLogMetadata
from verdant.services.plant_status import PlantWithCare, with_care

logger = logging.getLogger(__name__)


class PlantStorage:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Plants ────────────────────────────────────────────────────────────

    async def get_plant(self, plant_id: UUID) -> Optional[Plant]:
        return await self.session.get(Plant, plant_id)

    async def get_owned_plant(self, plant_id: UUID, owner_id: str) -> Plant:
        """
        Returns the plant if it exists and belongs to `owner_id`.

        Raises:
            AccessError: for a missing plant and for someone else's plant alike
        """
        plant = await self.get_plant(plant_id)
        if plant is None:
            raise AccessError(resource_id=str(plant_id), reason="missing")
        if plant.owner_id != owner_id:
            raise AccessError(
                resource_id=str(plant_id),
                reason="foreign_owner",
                context={"owner_id": owner_id},
            )
        return plant

    async def update_plant(self, plant_id: UUID, **changes: Any) -> Optional[Plant]:
        plant = await self.get_plant(plant_id)
        if plant is None:
            return None
        for field, value in changes.items():
            setattr(plant, field, value)
        await self.session.flush()
        return plant

    async def list_plants(self, owner_id: str) -> List[Plant]:
        result = await self.session.execute(
            select(Plant).where(Plant.owner_id == owner_id).order_by(Plant.name, Plant.id)
        )
        return list(result.scalars().all())

    async def get_plant_with_care(
        self,
        plant_id: UUID,
        now: Optional[datetime] = None,
    ) -> Optional[PlantWithCare]:
        plant = await self.get_plant(plant_id)
        if plant is None:
            return None
        return with_care(plant, now)

    async def get_plant_for_file(self, relative_path: str) -> Optional[Plant]:
        """The plant a stored file belongs to, via a care log photo or the plant image."""
        result = await self.session.execute(
            select(Plant)
            .join(CareLog, CareLog.plant_id == Plant.id)
            .where(CareLog.photo_path == relative_path)
            .limit(1)
        )
        plant = result.scalar_one_or_none()
        if plant is not None:
            return plant
        result = await self.session.execute(
            select(Plant).where(Plant.image_path == relative_path).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_owned_file_plant(self, relative_path: str, owner_id: str) -> Plant:
        """
        Returns the plant owning a stored file if it belongs to `owner_id`.

        Raises:
            AccessError: no plant references the file, or it is someone else's
        """
        plant = await self.get_plant_for_file(relative_path)
        if plant is None:
            raise AccessError(reason="unreferenced_file", context={"path": relative_path})
        if plant.owner_id != owner_id:
            raise AccessError(
                reason="foreign_owner",
                context={"path": relative_path, "owner_id": owner_id},
            )
        return plant

    # ── Care Logs ─────────────────────────────────────────────────────────

    async def create_care_log(
        self,
        plant_id: UUID,
        care_type: str,
        timestamp: datetime,
        notes: Optional[str] = None,
        photo_path: Optional[str] = None,
    ) -> CareLog:
        log = CareLog(
            plant_id=plant_id,
            care_type=care_type,
            timestamp=timestamp,
            notes=notes,
            photo_path=photo_path,
        )
        self.session.add(log)
        # Assigns the id without committing
        await self.session.flush()
        return log

    async def get_care_log(self, care_log_id: UUID) -> Optional[CareLog]:
        return await self.session.get(CareLog, care_log_id)

    async def get_care_logs(self, plant_id: UUID, limit: Optional[int] = None) -> List[CareLog]:
        """All logs of a plant, newest first."""
        query = (
            select(CareLog)
            .where(CareLog.plant_id == plant_id)
            .order_by(desc(CareLog.timestamp), desc(CareLog.id))
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_plant_care_history(
        self,
        plant_id: UUID,
        limit: int,
        exclude_id: Optional[UUID] = None,
    ) -> List[CareLog]:
        """Past logs handed to the journal writer, newest first, bounded by `limit`."""
        query = select(CareLog).where(CareLog.plant_id == plant_id)
        if exclude_id is not None:
            query = query.where(CareLog.id != exclude_id)
        query = query.order_by(desc(CareLog.timestamp), desc(CareLog.id)).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_care_log_metadata(
        self,
        care_log_id: UUID,
        metadata: CareLogMetadata,
    ) -> Optional[CareLog]:
        """
        Merges `metadata` into the stored JSON of a care log.

        Existing variants not present in `metadata` are kept. Returns None
        when the care log no longer exists.
        """
        log = await self.get_care_log(care_log_id)
        if log is None:
            return None
        merged = dict(log.care_metadata or {})
        merged.update(metadata.to_storage())
        # New dict object so the JSON column is detected as changed
        log.care_metadata = merged
        await self.session.flush()
        return log

    # ── Reminders ─────────────────────────────────────────────────────────

    async def get_reminders_by_plant(self, plant_id: UUID) -> List[Reminder]:
        result = await self.session.execute(
            select(Reminder)
            .where(Reminder.plant_id == plant_id)
            .order_by(Reminder.due_date, Reminder.care_type)
        )
        return list(result.scalars().all())

    async def get_reminder_for(self, plant_id: UUID, care_type: str) -> Optional[Reminder]:
        result = await self.session.execute(
            select(Reminder).where(
                Reminder.plant_id == plant_id,
                Reminder.care_type == care_type,
            )
        )
        return result.scalar_one_or_none()

    async def create_reminder(
        self,
        plant_id: UUID,
        owner_id: str,
        care_type: str,
        title: str,
        due_date: datetime,
    ) -> Reminder:
        """
        Inserts a reminder and flushes immediately.

        Raises:
            sqlalchemy.exc.IntegrityError: a reminder for (plant, care type)
                already exists. Callers run this inside a savepoint.
        """
        reminder = Reminder(
            plant_id=plant_id,
            owner_id=owner_id,
            care_type=care_type,
            title=title,
            due_date=due_date,
        )
        self.session.add(reminder)
        await self.session.flush()
        return reminder

    async def update_reminder(self, reminder: Reminder, **changes: Any) -> Reminder:
        for field, value in changes.items():
            setattr(reminder, field, value)
        await self.session.flush()
        return reminder
