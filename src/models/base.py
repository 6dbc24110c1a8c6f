"""SQLAlchemy declarative base and shared mixins.

Every table gets `id`, `created_at`, and `updated_at` via the TimestampMixin.
Timestamps are naive local time, like every other date-time in the clinic.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


class TimestampMixin:
    """Mixin adding id (UUID), created_at, and updated_at to every model.

    Server-side defaults cover inserts; the booking workflow also stamps
    ``updated_at`` explicitly with its injected clock on every mutation.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(),
        server_default=func.localtimestamp(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(),
        server_default=func.localtimestamp(),
        onupdate=func.localtimestamp(),
        nullable=False,
    )
