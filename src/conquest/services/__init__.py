"""Services for the conquest engine.

Each store service owns its entities and validates its own invariants before
persisting through :class:`conquest.repository.ConquestStore`. The
orchestrator composes their read side.
"""

from conquest.services.competitor_service import CompetitorService
from conquest.services.conquest_service import ConquestService
from conquest.services.execution_service import ExecutionService
from conquest.services.territory_service import TerritoryService
from conquest.services.tier_service import TierService

__all__ = [
    "CompetitorService",
    "ConquestService",
    "ExecutionService",
    "TerritoryService",
    "TierService",
]
