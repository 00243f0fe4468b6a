"""
Verdant Backend: Reminder SQLAlchemy Model
==========================================

A due date prompting the next care action of one type for one plant.

The unique constraint on (plant_id, care_type) makes "at most one reminder
per plant and care type" a storage guarantee. Two concurrent care logs can
both miss the lookup; the second insert then fails on the constraint and
the scheduler falls back to updating the row that won.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from verdant.constants import ReminderStatus
from verdant.database import Base


class Reminder(Base):
    __tablename__ = "reminders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    plant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("plants.id", ondelete="CASCADE"),
        nullable=False,
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)

    care_type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # pending → completed | dismissed (completion/dismissal happens elsewhere)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReminderStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("plant_id", "care_type", name="uq_reminders_plant_care_type"),
        Index("idx_reminders_owner_due", "owner_id", "due_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Reminder(id={self.id}, plant_id={self.plant_id}, "
            f"care_type='{self.care_type}', due='{self.due_date}', status='{self.status}')>"
        )
