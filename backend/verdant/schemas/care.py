"""
Verdant Backend: Pydantic Request/Response Schemas
==================================================

What:  Pydantic models defining the API contract between frontend and backend.
Why:   Strict input validation, automatic serialization, OpenAPI docs.
How:   FastAPI validates request bodies against these models and serializes
       responses through them. Wire keys are camelCase (`careType`,
       `nextWatering`); Python attributes stay snake_case.

Schemas are separate from SQLAlchemy models so the API contract can evolve
independently of the table layout (e.g. derived `status`, `nextWatering`).
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from verdant.constants import CareType, ReminderStatus, SunlightLevel

if TYPE_CHECKING:
    from verdant.models import CareLog
    from verdant.services.plant_status import PlantWithCare


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_validator("*", mode="after")
    @classmethod
    def assume_utc(cls, v: Any) -> Any:
        # SQLite returns naive datetimes; everything stored is UTC
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class CareLogCreate(CamelModel):
    """
    Body of POST /api/plants/{plant_id}/care-logs.

    photoBase64 accepts either bare base64 or a `data:image/...;base64,` URL.
    The decoded bytes are normalized and stored as a file; only the file
    reference ends up on the care log.
    """

    care_type: CareType = Field(description="water, fertilize, repot, prune or other")
    notes: Optional[str] = Field(default=None, max_length=2000)
    photo_base64: Optional[str] = Field(
        default=None,
        description="Optional photo as base64 or data URL",
    )

    @field_validator("notes", "photo_base64")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None


# ══════════════════════════════════════════════════════════════════════════
# Care Log Metadata: typed extension data written by enrichment
# ══════════════════════════════════════════════════════════════════════════


class IdentityMismatch(CamelModel):
    """The photo looks like a different plant than the one on record."""

    plant_identity_mismatch: bool = True
    detected_plant: Optional[str] = Field(
        default=None,
        description="Plant name the AI believes is in the photo",
    )


class CareLogMetadata(CamelModel):
    """
    Fixed-schema extension structure stored in care_logs.metadata.

    Each variant is an optional field; new variants are added as new fields,
    never as free-form keys.
    """

    identity_mismatch: Optional[IdentityMismatch] = None

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_storage(cls, raw: Optional[Dict[str, Any]]) -> Optional["CareLogMetadata"]:
        if not raw:
            return None
        return cls.model_validate(raw)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class CareLogResponse(CamelModel):
    """A persisted care log as returned by the API (HTTP 201 on creation)."""

    id: uuid.UUID
    plant_id: uuid.UUID
    care_type: str
    timestamp: datetime
    notes: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, description="URL of the stored photo")
    metadata: Optional[CareLogMetadata] = None

    @classmethod
    def from_model(cls, log: "CareLog") -> "CareLogResponse":
        return cls(
            id=log.id,
            plant_id=log.plant_id,
            care_type=log.care_type,
            timestamp=log.timestamp,
            notes=log.notes,
            photo_url=f"/api/files/{log.photo_path}" if log.photo_path else None,
            metadata=CareLogMetadata.from_storage(log.care_metadata),
        )


class ReminderResponse(CamelModel):
    id: uuid.UUID
    plant_id: uuid.UUID
    care_type: str
    title: str
    due_date: datetime
    status: ReminderStatus


class PlantWithCareResponse(CamelModel):
    """
    A plant together with its derived care schedule and status.

    `status` is the derived status (needs_water, needs_fertilizer, the
    stored fallback label, or healthy), never the raw column.
    """

    id: uuid.UUID
    name: str
    type: str
    location: str
    water_frequency_days: int
    fertilizer_frequency_days: int
    last_watered: Optional[datetime] = None
    last_fertilized: Optional[datetime] = None
    next_watering: Optional[datetime] = None
    next_fertilizing: Optional[datetime] = None
    sunlight_level: SunlightLevel
    status: str
    image_url: Optional[str] = None

    @classmethod
    def from_view(cls, view: "PlantWithCare") -> "PlantWithCareResponse":
        plant = view.plant
        return cls(
            id=plant.id,
            name=plant.name,
            type=plant.type,
            location=plant.location,
            water_frequency_days=plant.water_frequency_days,
            fertilizer_frequency_days=plant.fertilizer_frequency_days,
            last_watered=plant.last_watered,
            last_fertilized=plant.last_fertilized,
            next_watering=view.next_watering,
            next_fertilizing=view.next_fertilizing,
            sunlight_level=plant.sunlight_level,
            status=view.status,
            image_url=f"/api/files/{plant.image_path}" if plant.image_path else None,
        )


class CareNeededResponse(CamelModel):
    """Dashboard summary: plants whose derived status asks for care."""

    needs_water: List[PlantWithCareResponse]
    needs_fertilizer: List[PlantWithCareResponse]


# ══════════════════════════════════════════════════════════════════════════
# Error / Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "plant with ID '...' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    ai: str = Field(description="AI capability: available, unavailable, circuit_open, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
