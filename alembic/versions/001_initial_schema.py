"""Initial schema — doctors, appointments, audit_log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None

ACTIVE_STATUSES = ("scheduled", "confirmed")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("localtimestamp"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("localtimestamp"), nullable=False),
    ]


def upgrade() -> None:
    # gist equality on uuid/text columns for the overlap constraint
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "doctors",
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("specialty", sa.String(100)),
        sa.Column("professional_phone", sa.String(20)),
        sa.Column("working_hours_text", sa.Text(), comment="day:HH:MM-HH:MM,...;day:..."),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("doctor_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("actor_id", sa.String(100), comment="Staff member id or 'system'"),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Appointments (FK → doctors) ────────────────────────────────────

    op.create_table(
        "appointments",
        sa.Column("doctor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("creator_id", postgresql.UUID(as_uuid=True), nullable=False, comment="Staff member who made the booking"),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(100), nullable=False, server_default="standard"),
        sa.Column("status", sa.String(30), nullable=False, server_default="scheduled"),
        sa.Column("notes", sa.String(1000)),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"]),
        sa.CheckConstraint("duration_minutes > 0", name="ck_appointments_positive_duration"),
    )
    op.create_index("ix_appointments_doctor_start", "appointments", ["doctor_id", "starts_at"])

    # Half-open ranges: back-to-back appointments do not collide
    active = ", ".join(f"'{s}'" for s in ACTIVE_STATUSES)
    op.execute(
        f"""
        ALTER TABLE appointments
        ADD CONSTRAINT ex_appointments_no_overlap
        EXCLUDE USING gist (
            doctor_id WITH =,
            tsrange(starts_at, starts_at + duration_minutes * interval '1 minute', '[)') WITH &&
        )
        WHERE (status IN ({active}))
        """
    )


def downgrade() -> None:
    op.drop_table("appointments")
    op.drop_table("audit_log")
    op.drop_table("doctors")
