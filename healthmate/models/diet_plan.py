"""Saved free-text diet plans."""

from sqlalchemy import Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class DietPlan(Base, TimestampMixin):
    """Model for storing free-text diet plans.

    Only the most recent plans per user are kept; older rows are deleted
    when a new plan is saved (see persistence.save_plan).
    """

    __tablename__ = "diet_plans"
    __table_args__ = (Index("ix_diet_plans_user_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "goal": self.goal,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<DietPlan(id={self.id}, user_id='{self.user_id}')>"
