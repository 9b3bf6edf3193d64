"""Health report model for uploaded medical reports."""

from datetime import date, datetime

from sqlalchemy import Integer, String, Text, Date, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class HealthReport(Base):
    """Model for storing an uploaded report and its AI summary.

    The file itself lives in external storage; only its name is kept here.
    """

    __tablename__ = "health_reports"
    __table_args__ = (Index("ix_health_reports_user_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<HealthReport(id={self.id}, title='{self.title}')>"
