"""
Verdant Backend: Plant Read Service
===================================

Read paths that show derived care state: single plant, plant list,
per-plant reminders, and the dashboard's care-needed summary. Every status
shown here comes from `plant_status.derive_status`.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from verdant.models import Reminder
from verdant.services.plant_status import PlantWithCare, plants_needing_care, with_care
from verdant.services.storage import PlantStorage

logger = logging.getLogger(__name__)


class PlantService:
    async def get_plant(
        self,
        db: AsyncSession,
        plant_id: UUID,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> PlantWithCare:
        plant = await PlantStorage(db).get_owned_plant(plant_id, owner_id)
        return with_care(plant, now)

    async def list_plants(
        self,
        db: AsyncSession,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> List[PlantWithCare]:
        now = now or datetime.now(timezone.utc)
        plants = await PlantStorage(db).list_plants(owner_id)
        return [with_care(plant, now) for plant in plants]

    async def list_reminders(
        self,
        db: AsyncSession,
        plant_id: UUID,
        owner_id: str,
    ) -> List[Reminder]:
        storage = PlantStorage(db)
        await storage.get_owned_plant(plant_id, owner_id)
        return await storage.get_reminders_by_plant(plant_id)

    async def care_needed(
        self,
        db: AsyncSession,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> Tuple[List[PlantWithCare], List[PlantWithCare]]:
        """(needs_water, needs_fertilizer) for the owner's plants."""
        plants = await PlantStorage(db).list_plants(owner_id)
        needs_water, needs_fertilizer = plants_needing_care(plants, now)
        logger.debug(
            "Care needed for owner %s: water=%d fertilizer=%d",
            owner_id,
            len(needs_water),
            len(needs_fertilizer),
        )
        return needs_water, needs_fertilizer


plant_service = PlantService()
