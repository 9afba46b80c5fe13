"""Service Factory for the conquest engine.

Production wiring of the services. Every factory takes the session for the
current unit of work and an optional policy override.

For testing, build :class:`ConquestService` from protocol-based fakes instead.

Example:
    # Production usage
    from conquest.factory import create_conquest_service
    overview = create_conquest_service(session).get_conquest_overview()

    # Testing usage
    from conquest.services.conquest_service import ConquestService

    class FakeTiers:
        def get_tier_analytics(self):
            return {"total_professionals": 0}

    conquest = ConquestService(territories, competitors, FakeTiers(), execution)
"""

from sqlalchemy.orm import Session

from conquest.domain.rules_config import DEFAULT_RULES, RulesConfig
from conquest.services.competitor_service import CompetitorService
from conquest.services.conquest_service import ConquestService
from conquest.services.execution_service import ExecutionService
from conquest.services.territory_service import TerritoryService
from conquest.services.tier_service import TierService


def create_territory_service(
    session: Session, rules: RulesConfig = DEFAULT_RULES
) -> TerritoryService:
    return TerritoryService(session, rules)


def create_competitor_service(
    session: Session, rules: RulesConfig = DEFAULT_RULES
) -> CompetitorService:
    return CompetitorService(session, rules)


def create_tier_service(session: Session, rules: RulesConfig = DEFAULT_RULES) -> TierService:
    return TierService(session, rules)


def create_execution_service(
    session: Session, rules: RulesConfig = DEFAULT_RULES
) -> ExecutionService:
    return ExecutionService(session, rules)


def create_conquest_service(
    session: Session, rules: RulesConfig = DEFAULT_RULES
) -> ConquestService:
    """Create a ConquestService wired to the four stores on one session.

    Args:
        session: Database session shared by all stores
        rules: Policy constants

    Returns:
        Fully initialized ConquestService
    """
    return ConquestService(
        territories=create_territory_service(session, rules),
        competitors=create_competitor_service(session, rules),
        tiers=create_tier_service(session, rules),
        execution=create_execution_service(session, rules),
    )
