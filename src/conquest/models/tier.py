"""Professional tier state, revenue ledger and tier history."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampCreatedMixin, TimestampMixin

_TIER_VALUES = "('bronze', 'silver', 'gold', 'platinum', 'elite')"


class ProfessionalTier(Base, TimestampMixin):
    """Tier record, one per professional.

    Attributes:
        id: Primary key
        professional_id: External professional reference (unique)
        current_tier: Tier currently held
        qualifying_revenue: Latest cumulative qualifying revenue snapshot
        tier_entered_at: When ``current_tier`` was entered
        tier_ceiling: Administrative cap on automatic progression
        version: Row version; bumped by every locked write and checked by
            SQLAlchemy on flush (``version_id_col``)
    """

    __tablename__ = "professional_tiers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    professional_id: Mapped[str] = mapped_column(String, nullable=False)
    current_tier: Mapped[str] = mapped_column(String, nullable=False, default="bronze")
    qualifying_revenue: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tier_entered_at: Mapped[datetime] = mapped_column(nullable=False)
    tier_ceiling: Mapped[str | None] = mapped_column(String, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("professional_id", name="uq_professional_tiers_professional"),
        CheckConstraint(f"current_tier IN {_TIER_VALUES}", name="ck_professional_tiers_tier"),
        CheckConstraint("qualifying_revenue >= 0", name="ck_professional_tiers_revenue"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProfessionalTier(professional='{self.professional_id}', "
            f"tier='{self.current_tier}')>"
        )


class RevenueEvent(Base, TimestampCreatedMixin):
    """A consumed "qualifying revenue changed" notification.

    ``event_id`` is the sender's idempotency key; replays are ignored.
    """

    __tablename__ = "revenue_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String, nullable=False)
    professional_id: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", name="uq_revenue_events_event_id"),
        Index("idx_revenue_events_professional", "professional_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return f"<RevenueEvent(event_id='{self.event_id}', amount={self.amount})>"


class TierChange(Base):
    """One step of a professional's tier history."""

    __tablename__ = "tier_changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    professional_id: Mapped[str] = mapped_column(String, nullable=False)
    from_tier: Mapped[str | None] = mapped_column(String, nullable=True)
    to_tier: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False)
    qualifying_revenue: Mapped[float] = mapped_column(Float, nullable=False)
    changed_by: Mapped[str] = mapped_column(String, nullable=False)
    note: Mapped[str | None] = mapped_column(String, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint(
            "reason IN ('initial', 'progression', 'demotion', 'ceiling_lifted')",
            name="ck_tier_changes_reason",
        ),
        Index("idx_tier_changes_professional", "professional_id", "changed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TierChange(professional='{self.professional_id}', "
            f"{self.from_tier}->{self.to_tier})>"
        )
