import math
from datetime import datetime

from pydantic import Field, field_validator

from conquest.domain.context import as_utc
from conquest.domain.enums import Tier, TierChangeReason

from .base import InputModel, ReadModel


class RevenueEventIn(InputModel):
    """A "qualifying revenue changed" notification from revenue tracking.

    Negative amounts are refunds or chargebacks.
    """

    event_id: str = Field(..., min_length=1, description="Sender idempotency key")
    professional_id: str = Field(..., min_length=1)
    amount: float
    occurred_at: datetime

    @field_validator("amount")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value) or value == 0:
            raise ValueError("amount must be a finite, non-zero number")
        return value

    @field_validator("occurred_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ProfessionalTierRead(ReadModel):
    professional_id: str
    current_tier: Tier
    qualifying_revenue: float
    tier_entered_at: datetime
    tier_ceiling: Tier | None


class TierChangeRead(ReadModel):
    from_tier: Tier | None
    to_tier: Tier
    reason: TierChangeReason
    qualifying_revenue: float
    changed_by: str
    note: str | None
    changed_at: datetime
