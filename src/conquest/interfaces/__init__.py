"""Protocol-based interfaces for conquest services.

The orchestrator depends on these contracts rather than on the concrete
services, so it can be exercised with plain fakes.
"""

from conquest.interfaces.competitor import ICompetitorService
from conquest.interfaces.execution import IExecutionService
from conquest.interfaces.territory import ITerritoryService
from conquest.interfaces.tier import ITierService

__all__ = [
    "ICompetitorService",
    "IExecutionService",
    "ITerritoryService",
    "ITierService",
]
