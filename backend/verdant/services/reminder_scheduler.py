"""
Verdant Backend: Reminder Scheduler
===================================

What:  Moves a plant's schedule forward after a care event.
Who:   Called synchronously by CareLogService.ingest, inside the request
       transaction, right after the care log row is flushed.

For a care type with a positive frequency:
    1. due_date = now + frequency days
    2. existing reminder for (plant, care type) → new due date, status pending
       otherwise → new reminder titled "<Verb> your <plant name>"
    3. plant.last_watered / plant.last_fertilized = now

Care types without a schedule (repot, prune, other) and frequencies of 0 or
less leave reminders and timestamps untouched.

Concurrent first-time events for the same plant can both find no reminder.
The insert runs in a savepoint; the loser hits uq_reminders_plant_care_type,
rolls back only the savepoint and updates the winner's row instead.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError

from verdant.constants import CareType, ReminderStatus
from verdant.models import Plant, Reminder
from verdant.services.storage import PlantStorage

logger = logging.getLogger(__name__)


class CareSchedule(NamedTuple):
    frequency_field: str
    last_care_field: str
    verb: str


CARE_SCHEDULES: Dict[str, CareSchedule] = {
    CareType.WATER.value: CareSchedule("water_frequency_days", "last_watered", "Water"),
    CareType.FERTILIZE.value: CareSchedule(
        "fertilizer_frequency_days", "last_fertilized", "Fertilize"
    ),
}


def reminder_title(care_type: str, plant_name: str) -> str:
    return f"{CARE_SCHEDULES[care_type].verb} your {plant_name}"


class ReminderScheduler:
    """Stateless; one shared instance is enough."""

    async def advance(
        self,
        storage: PlantStorage,
        plant: Plant,
        care_type: str,
        now: datetime,
    ) -> Optional[Reminder]:
        """
        Reschedules `care_type` for `plant` as of `now`.

        Returns:
            The created or updated reminder, or None when the care type is
            unscheduled for this plant.
        """
        care_type = CareType(care_type).value
        schedule = CARE_SCHEDULES.get(care_type)
        if schedule is None:
            return None

        frequency = getattr(plant, schedule.frequency_field) or 0
        if frequency <= 0:
            logger.debug(
                "No %s schedule for plant %s (frequency=%d)", care_type, plant.id, frequency
            )
            return None

        due_date = now + timedelta(days=frequency)

        reminder = await storage.get_reminder_for(plant.id, care_type)
        if reminder is not None:
            reminder = await self._reschedule(storage, reminder, due_date)
        else:
            reminder = await self._create_or_reschedule(storage, plant, care_type, due_date)

        await storage.update_plant(plant.id, **{schedule.last_care_field: now})

        logger.info(
            "Plant %s %s reminder due %s",
            plant.id,
            care_type,
            due_date.isoformat(),
        )
        return reminder

    async def _reschedule(
        self,
        storage: PlantStorage,
        reminder: Reminder,
        due_date: datetime,
    ) -> Reminder:
        return await storage.update_reminder(
            reminder,
            due_date=due_date,
            status=ReminderStatus.PENDING.value,
        )

    async def _create_or_reschedule(
        self,
        storage: PlantStorage,
        plant: Plant,
        care_type: str,
        due_date: datetime,
    ) -> Reminder:
        try:
            async with storage.session.begin_nested():
                return await storage.create_reminder(
                    plant_id=plant.id,
                    owner_id=plant.owner_id,
                    care_type=care_type,
                    title=reminder_title(care_type, plant.name),
                    due_date=due_date,
                )
        except IntegrityError:
            logger.info(
                "Concurrent %s reminder insert for plant %s; updating existing row",
                care_type,
                plant.id,
            )
            existing = await storage.get_reminder_for(plant.id, care_type)
            if existing is None:
                raise
            return await self._reschedule(storage, existing, due_date)


reminder_scheduler = ReminderScheduler()
