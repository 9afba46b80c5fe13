"""Competitor Intelligence Protocol Interface."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from conquest.models import Competitor


class ICompetitorService(Protocol):
    """Read side of competitor intelligence used by the orchestrator."""

    def get_competitors(self, filters: Mapping[str, Any] | None = None) -> list[Competitor]:
        """List competitors matching equality filters, highest threat first."""
        ...

    def get_competitive_dashboard(
        self, territory_id: int | None = None, now: datetime | None = None
    ) -> dict[str, Any]:
        """Threat-level counts, win rates and the recent outcome trend."""
        ...
