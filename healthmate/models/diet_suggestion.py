"""Diet suggestion model for structured AI recommendations."""

import enum
from datetime import datetime

from sqlalchemy import Integer, String, Text, DateTime, Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class SuggestionCategory(str, enum.Enum):
    """Category of a diet or lifestyle suggestion."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    LIFESTYLE = "lifestyle"


class SuggestionSource(str, enum.Enum):
    """Where the suggestion content came from."""

    PARSED = "parsed"
    FALLBACK = "fallback"


class DietSuggestion(Base):
    """Model for storing generated suggestions, one row per suggestion.

    Rows are immutable once written. ``source`` records whether the content
    was parsed from the model output or substituted from the defaults.
    """

    __tablename__ = "diet_suggestions"
    __table_args__ = (Index("ix_diet_suggestions_user_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[SuggestionCategory] = mapped_column(
        Enum(SuggestionCategory, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    source: Mapped[SuggestionSource] = mapped_column(
        Enum(SuggestionSource, values_callable=lambda x: [e.value for e in x]),
        default=SuggestionSource.PARSED,
        nullable=False,
    )
    fallback_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "source": self.source.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<DietSuggestion(id={self.id}, category={self.category.value}, source={self.source.value})>"
