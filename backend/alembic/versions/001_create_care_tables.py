"""Create plants, care_logs and reminders tables

Revision ID: 001
Revises: None
Create Date: 2024-05-14 00:00:00.000000+00:00

What:  Initial schema of the care pipeline.
How:   PostgreSQL UUID keys, TIMESTAMP WITH TIME ZONE, JSONB metadata.
       care_logs and reminders cascade-delete with their plant.
       uq_reminders_plant_care_type keeps one reminder per plant and care type.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "plants",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "owner_id",
            sa.String(64),
            nullable=False,
            comment="User id resolved by the auth gateway",
        ),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("type", sa.String(80), nullable=False),
        sa.Column("location", sa.String(120), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "water_frequency_days",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("7"),
            comment="Days between waterings; 0 or less disables watering reminders",
        ),
        sa.Column(
            "fertilizer_frequency_days",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
            comment="Days between fertilizings; 0 or less disables fertilizing reminders",
        ),
        sa.Column("last_watered", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_fertilized", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "sunlight_level",
            sa.String(10),
            nullable=False,
            server_default=sa.text("'medium'"),
            comment="low, medium or high; may be updated from care photos",
        ),
        sa.Column(
            "status",
            sa.String(50),
            nullable=True,
            comment="Free-form fallback label shown when no care is due",
        ),
        sa.Column("image_path", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_plants_owner_id", "plants", ["owner_id"])

    op.create_table(
        "care_logs",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("plant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "care_type",
            sa.String(20),
            nullable=False,
            comment="water, fertilize, repot, prune, other",
        ),
        sa.Column(
            "timestamp",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "photo_path",
            sa.String(255),
            nullable=True,
            comment="Relative path of the normalized JPEG under the storage root",
        ),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=True,
            comment="Typed extension data written by background enrichment",
        ),
        sa.ForeignKeyConstraint(["plant_id"], ["plants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_care_logs_plant_timestamp",
        "care_logs",
        ["plant_id", sa.text("timestamp DESC")],
    )

    op.create_table(
        "reminders",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("plant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("care_type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("due_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
            comment="pending, completed, dismissed",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["plant_id"], ["plants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plant_id", "care_type", name="uq_reminders_plant_care_type"),
    )
    op.create_index("idx_reminders_owner_due", "reminders", ["owner_id", "due_date"])


def downgrade() -> None:
    op.drop_index("idx_reminders_owner_due", table_name="reminders")
    op.drop_table("reminders")
    op.drop_index("idx_care_logs_plant_timestamp", table_name="care_logs")
    op.drop_table("care_logs")
    op.drop_index("idx_plants_owner_id", table_name="plants")
    op.drop_table("plants")
