"""Territory model: a claimable geographic unit."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .competitor import Competitor


class Territory(Base, TimestampMixin):
    """Represents a territory and its current claim.

    ``professional_id`` is a weak reference to a professional owned by the
    surrounding application. ``version`` is bumped by every claim write and is
    the token for the store's conditional update.

    Attributes:
        id: Primary key
        name: Display name
        type: residential/commercial/mixed
        county, state, city, zip_code: Geographic key
        status: open/assigned/protected
        professional_id: Assigned or protecting professional
        exclusivity_fee: Fee agreed for the current protection
        protection_started_at: When the current protection began
        protected_until: Expiry of the current protection
        opportunity_score: 0-100 demographic score computed at creation
        version: Optimistic concurrency counter
    """

    __tablename__ = "territories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    county: Mapped[str | None] = mapped_column(String, nullable=True)
    state: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String, nullable=True)

    population: Mapped[int | None] = mapped_column(Integer, nullable=True)
    households: Mapped[int | None] = mapped_column(Integer, nullable=True)
    median_income: Mapped[float | None] = mapped_column(Float, nullable=True)
    tree_canopy_coverage: Mapped[float | None] = mapped_column(Float, nullable=True)
    opportunity_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Claim state
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    professional_id: Mapped[str | None] = mapped_column(String, nullable=True)
    exclusivity_fee: Mapped[float | None] = mapped_column(Float, nullable=True)
    protection_started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    protected_until: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    competitors: Mapped[list["Competitor"]] = relationship(
        "Competitor", back_populates="territory"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'assigned', 'protected')", name="ck_territories_status"
        ),
        CheckConstraint(
            "type IN ('residential', 'commercial', 'mixed')", name="ck_territories_type"
        ),
        CheckConstraint(
            "status = 'open' OR professional_id IS NOT NULL",
            name="ck_territories_claim_has_holder",
        ),
        Index("idx_territories_status", "status"),
        Index("idx_territories_geo", "state", "county", "city"),
    )

    def __repr__(self) -> str:
        return f"<Territory(id={self.id}, name='{self.name}', status='{self.status}')>"
