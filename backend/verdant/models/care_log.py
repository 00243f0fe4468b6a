"""
Verdant Backend: CareLog SQLAlchemy Model
=========================================

What:  ORM model for the `care_logs` table, one row per recorded care action.

Lifecycle:
    1. Inserted once by the care-log ingestion path
    2. Optionally patched once by background enrichment (metadata column)
    3. Never edited otherwise; removed only with its plant (ON DELETE CASCADE)

The `metadata` column holds the JSON form of `schemas.care.CareLogMetadata`.
The Python attribute is `care_metadata` because `metadata` is reserved on
declarative classes.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from verdant.database import Base


class CareLog(Base):
    __tablename__ = "care_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    plant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("plants.id", ondelete="CASCADE"),
        nullable=False,
    )

    care_type: Mapped[str] = mapped_column(String(20), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    # Relative path of the normalized JPEG under the storage root
    photo_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)

    care_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        default=None,
    )

    # Care history is always read newest-first for one plant
    __table_args__ = (
        Index("idx_care_logs_plant_timestamp", "plant_id", timestamp.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<CareLog(id={self.id}, plant_id={self.plant_id}, "
            f"care_type='{self.care_type}', timestamp='{self.timestamp}')>"
        )
