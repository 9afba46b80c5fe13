"""Default market-entry plan used to seed the execution scheduler."""

from __future__ import annotations

from dataclasses import dataclass

from conquest.domain.enums import MilestonePriority, MilestoneType


@dataclass(frozen=True, slots=True)
class PlannedMilestone:
    title: str
    description: str
    type: MilestoneType
    priority: MilestonePriority
    target_value: float
    first_week: int
    last_week: int


DEFAULT_TIMELINE: tuple[PlannedMilestone, ...] = (
    PlannedMilestone(
        "Platform Enhancement for Market Conquest",
        "Ship territory management, tier progression and competitive intelligence tooling.",
        MilestoneType.SYSTEM_DEVELOPMENT,
        MilestonePriority.CRITICAL,
        100,
        1,
        4,
    ),
    PlannedMilestone(
        "Initialize Territory Protection System",
        "Open exclusive territory protection to the first gold-tier professionals.",
        MilestoneType.TERRITORY_EXPANSION,
        MilestonePriority.HIGH,
        25,
        1,
        4,
    ),
    PlannedMilestone(
        "Recruit First 25 Professionals",
        "Recruit and onboard certified professionals with proven track records.",
        MilestoneType.RECRUITMENT,
        MilestonePriority.CRITICAL,
        25,
        5,
        8,
    ),
    PlannedMilestone(
        "Secure Property Management Partnerships",
        "Sign recurring-work agreements with regional property managers.",
        MilestoneType.PARTNERSHIP,
        MilestonePriority.HIGH,
        5,
        5,
        8,
    ),
    PlannedMilestone(
        "Achieve 50% Territory Penetration",
        "Assign professionals to half of the territories in the launch market.",
        MilestoneType.MARKET_PENETRATION,
        MilestonePriority.CRITICAL,
        50,
        9,
        16,
    ),
    PlannedMilestone(
        "Scale to 100 Active Professionals",
        "Grow the professional network to the size needed for market leadership.",
        MilestoneType.RECRUITMENT,
        MilestonePriority.CRITICAL,
        100,
        17,
        26,
    ),
    PlannedMilestone(
        "Reach Annual Revenue Run Rate Target",
        "Hit the monthly revenue that projects to the annual target.",
        MilestoneType.REVENUE_TARGET,
        MilestonePriority.CRITICAL,
        940_000,
        17,
        26,
    ),
    PlannedMilestone(
        "Prepare Multi-Market Expansion",
        "Plan infrastructure and staffing for neighbouring markets.",
        MilestoneType.MARKET_PENETRATION,
        MilestonePriority.HIGH,
        3,
        27,
        52,
    ),
)
