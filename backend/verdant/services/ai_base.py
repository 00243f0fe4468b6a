"""
Verdant Backend: Abstract AI Capability Interfaces
==================================================

What:  Contracts for the two AI capabilities used by background enrichment.
Why:   The pipeline depends on these interfaces, not on a provider SDK, so
       tests plug in fakes and a provider swap touches one module.
How:   GeminiService implements both. Each capability reports `available`;
       the pipeline skips (vision) or stops (language) when it is False.

Result Types:
    LightClassification  sunlight level + confidence tier from a photo
    JournalEntry         narrative text + optional identity verdict
    IdentityMatch        does the photo show the plant on record?
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, Field

from verdant.constants import Confidence, SunlightLevel

if TYPE_CHECKING:
    from verdant.models import CareLog
    from verdant.services.plant_status import PlantWithCare


class LightClassification(BaseModel):
    sunlight_level: SunlightLevel
    confidence: Confidence


class IdentityMatch(BaseModel):
    matches: bool
    detected_plant: Optional[str] = Field(
        default=None,
        description="What the model thinks the photo shows when it does not match",
    )


class JournalEntry(BaseModel):
    narrative: str
    identity_match: Optional[IdentityMatch] = None


class VisionCapability(ABC):
    """Classifies the light conditions visible in a plant photo."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """False when unconfigured or temporarily disabled; callers skip the step."""
        ...

    @abstractmethod
    async def classify_light(self, photo_path: str) -> LightClassification:
        """
        Args:
            photo_path: Stored reference of a normalized JPEG (relative to
                the storage root)

        Raises:
            AIServiceError: provider failure, timeout, or unparseable reply
            CircuitBreakerOpenError: too many recent failures
        """
        ...


class LanguageCapability(ABC):
    """Writes a journal entry for a care event and judges the plant's identity."""

    @property
    @abstractmethod
    def available(self) -> bool:
        ...

    @abstractmethod
    async def generate_journal_entry(
        self,
        care_log: "CareLog",
        plant_with_care: "PlantWithCare",
        history: List["CareLog"],
    ) -> JournalEntry:
        """
        Args:
            care_log: The event being enriched (carries the photo reference)
            plant_with_care: Plant row plus derived schedule and status
            history: Earlier care logs, newest first

        Raises:
            AIServiceError, CircuitBreakerOpenError
        """
        ...
