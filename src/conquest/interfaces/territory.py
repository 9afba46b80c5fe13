"""Territory Store Protocol Interface."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from conquest.models import Territory


class ITerritoryService(Protocol):
    """Read side of the territory store used by the orchestrator."""

    def get_territory(self, territory_id: int) -> Territory:
        """Return a territory or raise ``NotFoundError``."""
        ...

    def get_territories(self, filters: Mapping[str, Any] | None = None) -> list[Territory]:
        """List territories matching equality filters."""
        ...

    def get_territory_analytics(
        self, territory_id: int | None = None, now: datetime | None = None
    ) -> dict[str, Any]:
        """Claim state joined with competitor density and recent revenue.

        Args:
            territory_id: Single territory, or None for the aggregate view
            now: Clock for the revenue window

        Returns:
            Analytics dictionary
        """
        ...
