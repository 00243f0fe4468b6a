"""
Verdant Backend: Plant SQLAlchemy Model
=======================================

What:  ORM model representing the `plants` table.
Who:   Read by every care-pipeline component; mutated by the reminder
       scheduler (last-care timestamps) and by background enrichment
       (sunlight level). Created and edited through a separate CRUD path.

Table Design Rationale:
    - Next care dates are NOT stored. They are derived on read from
      last-care timestamp + frequency (see services/plant_status.py), so
      the "next = last + frequency" invariant cannot drift.
    - status is a free-form fallback label; the displayed status is derived
      and only falls back to this column when nothing is due.
    - Frequencies of 0 or less switch scheduling off for that care type.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from verdant.constants import SunlightLevel
from verdant.database import Base


class Plant(Base):
    __tablename__ = "plants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Identity of the owning user as resolved by the auth layer
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[str] = mapped_column(String(80), nullable=False)
    location: Mapped[str] = mapped_column(String(120), nullable=False, default="")

    water_frequency_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    fertilizer_frequency_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_watered: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    last_fertilized: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    sunlight_level: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=SunlightLevel.MEDIUM.value,
    )

    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, default=None)

    # Relative path under the storage root; never raw bytes
    image_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_plants_owner_id", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<Plant(id={self.id}, name='{self.name}', owner='{self.owner_id}')>"
