"""Food preference model for allergies and disliked foods."""

import enum

from sqlalchemy import Integer, String, Enum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, normalize_food_item


class PreferenceKind(str, enum.Enum):
    """Kind of food preference."""

    ALLERGY = "allergy"
    DISLIKE = "dislike"


class FoodPreference(Base, TimestampMixin):
    """Model for storing one allergy or disliked food per row.

    Items are stored normalized (lowercase), unique per user and kind.
    """

    __tablename__ = "food_preferences"
    __table_args__ = (
        UniqueConstraint("user_id", "kind", "item", name="uq_food_preferences_user_kind_item"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[PreferenceKind] = mapped_column(
        Enum(PreferenceKind, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    item: Mapped[str] = mapped_column(String(255), nullable=False)

    def __init__(self, **kwargs):
        """Initialize preference, auto-normalizing the item."""
        if "item" in kwargs:
            kwargs["item"] = normalize_food_item(kwargs["item"])
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<FoodPreference(id={self.id}, kind={self.kind.value}, item='{self.item}')>"
