"""Competitor and job-outcome models."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampCreatedMixin, TimestampMixin

if TYPE_CHECKING:
    from .territory import Territory


class Competitor(Base, TimestampMixin):
    """A competing business and its derived standing against us.

    The counters, ``average_bid_gap``, ``threat_score`` and ``threat_level``
    are written only by the recompute step, always from the full outcome
    history.

    Attributes:
        id: Primary key
        territory_id: Territory the competitor is tracked in (optional)
        name, type: Identity
        city, state, zip_code: Location
        estimated_revenue, employee_count, service_areas: Profile data
        pricing: JSON map of service type to listed price
        presence_score: Informational score derived from the profile
        jobs_won_against / jobs_lost_to: Our wins / our losses
        value_won / value_lost: Job value of those outcomes
        threat_score / threat_level: Derived threat
    """

    __tablename__ = "competitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    territory_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("territories.id"), nullable=True
    )

    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    state: Mapped[str | None] = mapped_column(String, nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String, nullable=True)

    estimated_revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    employee_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    service_areas: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    pricing: Mapped[dict[str, float] | None] = mapped_column(JSON, nullable=True)
    presence_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Derived from job_outcomes
    jobs_won_against: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    jobs_lost_to: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    value_won: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    value_lost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    average_bid_gap: Mapped[float | None] = mapped_column(Float, nullable=True)
    threat_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    threat_level: Mapped[str] = mapped_column(String, nullable=False, default="low")

    territory: Mapped[Optional["Territory"]] = relationship(
        "Territory", back_populates="competitors"
    )
    outcomes: Mapped[list["JobOutcome"]] = relationship(
        "JobOutcome",
        back_populates="competitor",
        order_by="JobOutcome.recorded_at",
    )

    __table_args__ = (
        CheckConstraint(
            "threat_level IN ('low', 'medium', 'high', 'critical')",
            name="ck_competitors_threat_level",
        ),
        CheckConstraint(
            "type IN ('local_company', 'franchise', 'national_chain', 'independent')",
            name="ck_competitors_type",
        ),
        Index("idx_competitors_territory", "territory_id"),
        Index("idx_competitors_threat", "threat_level"),
    )

    @property
    def win_rate(self) -> float:
        """Our win rate against this competitor, 0-100."""

        total = self.jobs_won_against + self.jobs_lost_to
        return round(self.jobs_won_against / total * 100, 2) if total else 0.0

    def __repr__(self) -> str:
        return f"<Competitor(id={self.id}, name='{self.name}', threat='{self.threat_level}')>"


class JobOutcome(Base, TimestampCreatedMixin):
    """Append-only record of one contested job.

    Attributes:
        id: Primary key
        competitor_id: Competitor we bid against
        outcome: won/lost from our side
        job_value: Value of the job
        our_bid / their_bid: Bids, theirs optional
        professional_id: Our professional on the job, for revenue attribution
        recorded_at: Request clock at the time of recording
    """

    __tablename__ = "job_outcomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    competitor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competitors.id"), nullable=False
    )
    outcome: Mapped[str] = mapped_column(String, nullable=False)
    job_value: Mapped[float] = mapped_column(Float, nullable=False)
    our_bid: Mapped[float] = mapped_column(Float, nullable=False)
    their_bid: Mapped[float | None] = mapped_column(Float, nullable=True)
    professional_id: Mapped[str | None] = mapped_column(String, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    competitor: Mapped["Competitor"] = relationship("Competitor", back_populates="outcomes")

    __table_args__ = (
        CheckConstraint("outcome IN ('won', 'lost')", name="ck_job_outcomes_outcome"),
        CheckConstraint("job_value > 0", name="ck_job_outcomes_job_value"),
        CheckConstraint("our_bid > 0", name="ck_job_outcomes_our_bid"),
        Index("idx_job_outcomes_competitor", "competitor_id", "recorded_at"),
        Index("idx_job_outcomes_professional", "professional_id", "recorded_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<JobOutcome(id={self.id}, competitor={self.competitor_id}, "
            f"outcome='{self.outcome}')>"
        )
