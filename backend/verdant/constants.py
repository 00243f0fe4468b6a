"""
Verdant Backend: Domain Constants
=================================

String enums shared by models, schemas and services. Values are what is
stored in the database and sent over the wire, so they must not change.
"""

from enum import Enum


class CareType(str, Enum):
    WATER = "water"
    FERTILIZE = "fertilize"
    REPOT = "repot"
    PRUNE = "prune"
    OTHER = "other"


class SunlightLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Confidence(str, Enum):
    """Qualitative reliability tier attached to an AI classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReminderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DISMISSED = "dismissed"


class PlantStatus(str, Enum):
    HEALTHY = "healthy"
    NEEDS_WATER = "needs_water"
    NEEDS_FERTILIZER = "needs_fertilizer"
