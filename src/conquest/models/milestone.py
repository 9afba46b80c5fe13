"""Execution milestone model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Milestone(Base, TimestampMixin):
    """A scheduled unit of market-entry work.

    ``version`` is SQLAlchemy's ``version_id_col``: a flush against a stale
    row raises ``StaleDataError`` instead of overwriting.

    Attributes:
        id: Primary key
        title, description, type, priority: Definition
        status: planned/in_progress/blocked/completed/cancelled
        assigned_to: Assignee reference (optional)
        planned_start_date / planned_end_date: Schedule
        actual_start_date / actual_end_date: Set once by transitions
        progress_percentage, target_value, actual_value: Tracking
        progress_notes: JSON list of notes
        weekly_progress: JSON map keyed by ISO week
        blocked_reason: Reason given for the latest block
    """

    __tablename__ = "milestones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="planned")
    priority: Mapped[str] = mapped_column(String, nullable=False, default="medium")
    assigned_to: Mapped[str | None] = mapped_column(String, nullable=True)

    planned_start_date: Mapped[datetime] = mapped_column(nullable=False)
    planned_end_date: Mapped[datetime] = mapped_column(nullable=False)
    actual_start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_end_date: Mapped[datetime | None] = mapped_column(nullable=True)

    progress_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    progress_notes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    weekly_progress: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    blocked_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    last_update_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('planned', 'in_progress', 'blocked', 'completed', 'cancelled')",
            name="ck_milestones_status",
        ),
        CheckConstraint(
            "priority IN ('critical', 'high', 'medium', 'low')", name="ck_milestones_priority"
        ),
        CheckConstraint(
            "planned_start_date < planned_end_date", name="ck_milestones_planned_window"
        ),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_milestones_progress",
        ),
        Index("idx_milestones_status", "status"),
        Index("idx_milestones_assigned", "assigned_to"),
    )

    def __repr__(self) -> str:
        return f"<Milestone(id={self.id}, title='{self.title}', status='{self.status}')>"
