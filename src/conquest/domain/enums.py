"""Enumerations shared by the conquest domain."""

from __future__ import annotations

from enum import StrEnum


class TerritoryType(StrEnum):
    """Land-use classification of a territory."""

    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    MIXED = "mixed"


class TerritoryStatus(StrEnum):
    """Claim state of a territory."""

    OPEN = "open"
    ASSIGNED = "assigned"
    PROTECTED = "protected"


class CompetitorType(StrEnum):
    """Business shape of a competitor."""

    LOCAL_COMPANY = "local_company"
    FRANCHISE = "franchise"
    NATIONAL_CHAIN = "national_chain"
    INDEPENDENT = "independent"


class ThreatLevel(StrEnum):
    """Derived risk classification of a competitor."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


THREAT_ORDER: tuple[ThreatLevel, ...] = (
    ThreatLevel.LOW,
    ThreatLevel.MEDIUM,
    ThreatLevel.HIGH,
    ThreatLevel.CRITICAL,
)


class JobOutcomeKind(StrEnum):
    """Result of a contested job, from our side."""

    WON = "won"
    LOST = "lost"


class Tier(StrEnum):
    """Service tiers, declared lowest first."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    ELITE = "elite"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)


TIER_ORDER: tuple[Tier, ...] = tuple(Tier)


class TierChangeReason(StrEnum):
    """Why a tier history entry was written."""

    INITIAL = "initial"
    PROGRESSION = "progression"
    DEMOTION = "demotion"
    CEILING_LIFTED = "ceiling_lifted"


class MilestoneStatus(StrEnum):
    """Lifecycle states of an execution milestone."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MilestoneEvent(StrEnum):
    """Events that drive the milestone state machine."""

    START = "start"
    BLOCK = "block"
    UNBLOCK = "unblock"
    COMPLETE = "complete"
    CANCEL = "cancel"


class MilestoneType(StrEnum):
    """Kinds of market-entry work."""

    SYSTEM_DEVELOPMENT = "system_development"
    TERRITORY_EXPANSION = "territory_expansion"
    RECRUITMENT = "recruitment"
    PARTNERSHIP = "partnership"
    MARKET_PENETRATION = "market_penetration"
    REVENUE_TARGET = "revenue_target"


class MilestonePriority(StrEnum):
    """Scheduling priority of a milestone."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER: tuple[MilestonePriority, ...] = tuple(MilestonePriority)


class CallerRole(StrEnum):
    """Roles the engine distinguishes for entity-level authorization."""

    PROFESSIONAL = "professional"
    ADMIN = "admin"
