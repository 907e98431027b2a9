# src/bulk_stage/db/time.py
"""Timestamp helpers shared by the ORM models."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.orm import mapped_column


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def created_at_column() -> Any:
    """Timezone-aware timestamp set once on insert."""
    return mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


def updated_at_column() -> Any:
    """Timezone-aware timestamp refreshed on every ORM update."""
    return mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
