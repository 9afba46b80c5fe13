"""Tier Progression Engine Protocol Interface."""

from datetime import datetime
from typing import Any, Protocol


class ITierService(Protocol):
    """Read side of the tier engine used by the orchestrator."""

    def get_professional_tier_dashboard(
        self, professional_id: str, now: datetime | None = None
    ) -> dict[str, Any]:
        """Current tier, revenue to the next tier, benefits and history."""
        ...

    def get_tier_analytics(self) -> dict[str, Any]:
        """Distribution of professionals across tiers."""
        ...
