"""SQLAlchemy base and helper utilities."""

import re
from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


def normalize_food_item(item: str) -> str:
    """Normalize an allergy or disliked food for storage and matching.

    Lowercases, trims, and collapses whitespace so that
    "Peanuts" == " peanuts " == "PEANUTS".

    Args:
        item: The raw item entered by the user.

    Returns:
        Normalized item text.
    """
    item = item.lower()
    item = re.sub(r"\s+", " ", item).strip()  # Collapse whitespace
    return item
