"""
Verdant Backend: Plant Status Derivation
========================================

What:  Pure functions computing a plant's next care dates and current status.
Why:   Status is never stored as "needs water"; it is recomputed on every read
       from the last-care timestamps, so it cannot go stale.
Who:   Single-plant view, plant list, dashboard aggregation, and the journal
       step of background enrichment.

Precedence is expressed as data (`STATUS_RULES`), evaluated top to bottom,
first match wins:

    1. next watering due (set and not after now)     → needs_water
    2. next fertilizing due (set and not after now)  → needs_fertilizer
    3. stored free-form status present                → stored value
    4. otherwise                                      → healthy

The dashboard groups plants by `derive_status` instead of re-testing dates,
so a plant listed under "needs water" shows "needs_water" on its own page too.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple

from verdant.constants import PlantStatus
from verdant.models import Plant


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_due(when: Optional[datetime], now: datetime) -> bool:
    return when is not None and as_utc(when) <= as_utc(now)


class StatusInputs(NamedTuple):
    next_watering: Optional[datetime]
    next_fertilizing: Optional[datetime]
    stored_status: Optional[str]
    now: datetime


class StatusRule(NamedTuple):
    name: str
    applies: Callable[[StatusInputs], bool]
    result: Callable[[StatusInputs], str]


STATUS_RULES: Tuple[StatusRule, ...] = (
    StatusRule(
        "water_due",
        lambda s: _is_due(s.next_watering, s.now),
        lambda s: PlantStatus.NEEDS_WATER.value,
    ),
    StatusRule(
        "fertilizer_due",
        lambda s: _is_due(s.next_fertilizing, s.now),
        lambda s: PlantStatus.NEEDS_FERTILIZER.value,
    ),
    StatusRule(
        "stored_status",
        lambda s: bool(s.stored_status),
        lambda s: s.stored_status,
    ),
    StatusRule(
        "default",
        lambda s: True,
        lambda s: PlantStatus.HEALTHY.value,
    ),
)


def derive_status(
    next_watering: Optional[datetime],
    next_fertilizing: Optional[datetime],
    stored_status: Optional[str],
    now: datetime,
) -> str:
    """
    Returns the status of the first rule in STATUS_RULES that applies.

    Deterministic and side-effect free: identical inputs give identical output.
    """
    inputs = StatusInputs(next_watering, next_fertilizing, stored_status, now)
    for rule in STATUS_RULES:
        if rule.applies(inputs):
            return rule.result(inputs)
    # The last rule always applies
    return PlantStatus.HEALTHY.value


def next_care_date(
    last: Optional[datetime],
    frequency_days: int,
    created_at: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    next = last + frequency_days.

    A frequency of 0 or less disables scheduling (None). A plant never cared
    for counts from its creation date.
    """
    if frequency_days is None or frequency_days <= 0:
        return None
    anchor = last if last is not None else created_at
    if anchor is None:
        return None
    return as_utc(anchor) + timedelta(days=frequency_days)


def care_dates(plant: Plant) -> Tuple[Optional[datetime], Optional[datetime]]:
    """(next_watering, next_fertilizing) for a plant."""
    return (
        next_care_date(plant.last_watered, plant.water_frequency_days, plant.created_at),
        next_care_date(
            plant.last_fertilized, plant.fertilizer_frequency_days, plant.created_at
        ),
    )


@dataclass(frozen=True)
class PlantWithCare:
    """Read-side view of a plant: stored row plus derived schedule and status."""

    plant: Plant
    next_watering: Optional[datetime]
    next_fertilizing: Optional[datetime]
    status: str


def with_care(plant: Plant, now: Optional[datetime] = None) -> PlantWithCare:
    now = now or datetime.now(timezone.utc)
    next_watering, next_fertilizing = care_dates(plant)
    return PlantWithCare(
        plant=plant,
        next_watering=next_watering,
        next_fertilizing=next_fertilizing,
        status=derive_status(next_watering, next_fertilizing, plant.status, now),
    )


def plants_needing_care(
    plants: Iterable[Plant],
    now: Optional[datetime] = None,
) -> Tuple[List[PlantWithCare], List[PlantWithCare]]:
    """
    Dashboard grouping: (needs_water, needs_fertilizer).

    A plant due for both appears only under needs_water, matching the
    precedence of its own derived status.
    """
    now = now or datetime.now(timezone.utc)
    needs_water: List[PlantWithCare] = []
    needs_fertilizer: List[PlantWithCare] = []
    for plant in plants:
        view = with_care(plant, now)
        if view.status == PlantStatus.NEEDS_WATER.value:
            needs_water.append(view)
        elif view.status == PlantStatus.NEEDS_FERTILIZER.value:
            needs_fertilizer.append(view)
    return needs_water, needs_fertilizer
