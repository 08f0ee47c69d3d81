"""Declarative base and shared column mixins."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_message_id() -> str:
    """Return a fresh message identifier."""

    return uuid4().hex


class Base(DeclarativeBase):
    """Base class for ORM models."""


class IdMixin:
    """String primary key assigned on insert."""

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_message_id)


class CreatedAtMixin:
    """Creation timestamp column."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
