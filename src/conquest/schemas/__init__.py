from .base import validate_input
from .competitor import (
    CompetitorCreate,
    CompetitorFilters,
    CompetitorRead,
    JobOutcomeBatchItem,
    JobOutcomeCreate,
    JobOutcomeRead,
)
from .milestone import MilestoneCreate, MilestoneFilters, MilestoneProgressUpdate, MilestoneRead
from .territory import TerritoryCreate, TerritoryFilters, TerritoryRead
from .tier import ProfessionalTierRead, RevenueEventIn, TierChangeRead

__all__ = [
    "CompetitorCreate",
    "CompetitorFilters",
    "CompetitorRead",
    "JobOutcomeBatchItem",
    "JobOutcomeCreate",
    "JobOutcomeRead",
    "MilestoneCreate",
    "MilestoneFilters",
    "MilestoneProgressUpdate",
    "MilestoneRead",
    "ProfessionalTierRead",
    "RevenueEventIn",
    "TerritoryCreate",
    "TerritoryFilters",
    "TerritoryRead",
    "TierChangeRead",
    "validate_input",
]
