"""Conquest Orchestrator.

Read-side composition of the four stores. It owns no state and talks to the
stores only through their Protocols. Any failing call propagates unchanged:
a dashboard is either complete or not returned at all.
"""

import logging
from datetime import datetime
from typing import Any

from conquest.domain.context import resolve_now
from conquest.interfaces import (
    ICompetitorService,
    IExecutionService,
    ITerritoryService,
    ITierService,
)

logger = logging.getLogger(__name__)


class ConquestService:
    """Service composing territory, competitor, tier and execution views."""

    def __init__(
        self,
        territories: ITerritoryService,
        competitors: ICompetitorService,
        tiers: ITierService,
        execution: IExecutionService,
    ):
        self.territories = territories
        self.competitors = competitors
        self.tiers = tiers
        self.execution = execution

    def get_conquest_overview(self, now: datetime | None = None) -> dict[str, Any]:
        """Market-wide dashboard built from all four stores at one instant.

        Args:
            now: Clock shared by every sub-view

        Returns:
            Sub-views plus a headline summary
        """
        now = resolve_now(now)
        territories = self.territories.get_territory_analytics(now=now)
        tiers = self.tiers.get_tier_analytics()
        competition = self.competitors.get_competitive_dashboard(now=now)
        execution = self.execution.get_execution_dashboard(now=now)

        logger.debug("Conquest overview assembled at %s", now)
        return {
            "generated_at": now,
            "summary": {
                "total_territories": territories["total_territories"],
                "penetration_rate": territories["penetration_rate"],
                "active_protections": territories["active_protections"],
                "total_professionals": tiers["total_professionals"],
                "total_competitors": competition["total_competitors"],
                "major_threats": len(competition["major_threats"]),
                "overall_win_rate": competition["overall_win_rate"],
                "milestone_completion_rate": execution["completion_rate"],
                "delayed_milestones": len(execution["delayed"]),
            },
            "territories": territories,
            "tiers": tiers,
            "competition": competition,
            "execution": execution,
        }

    def get_territory_report(
        self, territory_id: int, now: datetime | None = None
    ) -> dict[str, Any]:
        """One territory: claim analytics, local competition and the holder's tier."""

        now = resolve_now(now)
        analytics = self.territories.get_territory_analytics(territory_id, now=now)
        competition = self.competitors.get_competitive_dashboard(territory_id, now=now)
        holder = analytics["professional_id"]
        holder_tier = (
            self.tiers.get_professional_tier_dashboard(holder, now=now) if holder else None
        )
        return {
            "generated_at": now,
            "territory": analytics,
            "competition": competition,
            "holder_tier": holder_tier,
        }
