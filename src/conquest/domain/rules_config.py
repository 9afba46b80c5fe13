"""Declarative policy constants for the conquest engine.

None of these numbers come from a contract; they are operator policy and are
meant to be replaced per deployment by building a custom :class:`RulesConfig`
and handing it to the services.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from conquest.domain.enums import Tier


@dataclass(frozen=True, slots=True)
class TerritoryRules:
    """Territory claim and analytics policy."""

    protection_days: int = 365
    default_exclusivity_fee: float = 299.0
    revenue_window_days: int = 30
    top_territories: int = 10
    home_state: str | None = None


@dataclass(frozen=True, slots=True)
class ThreatRules:
    """Weights and thresholds for competitor threat scoring.

    score = win_rate_weight * win_rate
          + value_weight * value_pressure
          + recency_weight * recency
    """

    window_days: int = 180
    recency_half_life_days: float = 90.0
    value_ratio_cap: float = 2.0
    win_rate_weight: float = 0.5
    value_weight: float = 0.3
    recency_weight: float = 0.2
    medium_threshold: float = 0.35
    high_threshold: float = 0.55
    critical_threshold: float = 0.75
    dashboard_recent_outcomes: int = 10
    pricing_competitive_band_pct: float = 15.0
    pricing_action_band_pct: float = 20.0


@dataclass(frozen=True, slots=True)
class TierBenefits:
    """Perks unlocked by a tier."""

    territory_protection: bool = False
    commission_bonus_pct: int = 0
    priority_alerts: bool = False
    advanced_analytics: bool = False


def _default_thresholds() -> tuple[tuple[float, Tier], ...]:
    return (
        (0.0, Tier.BRONZE),
        (18_000.0, Tier.SILVER),
        (60_000.0, Tier.GOLD),
        (144_000.0, Tier.PLATINUM),
        (300_000.0, Tier.ELITE),
    )


def _default_benefits() -> dict[Tier, TierBenefits]:
    return {
        Tier.BRONZE: TierBenefits(),
        Tier.SILVER: TierBenefits(),
        Tier.GOLD: TierBenefits(
            territory_protection=True, commission_bonus_pct=5, priority_alerts=True
        ),
        Tier.PLATINUM: TierBenefits(
            territory_protection=True,
            commission_bonus_pct=10,
            priority_alerts=True,
            advanced_analytics=True,
        ),
        Tier.ELITE: TierBenefits(
            territory_protection=True,
            commission_bonus_pct=15,
            priority_alerts=True,
            advanced_analytics=True,
        ),
    }


@dataclass(frozen=True, slots=True)
class TierRules:
    """Minimum cumulative qualifying revenue per tier, lowest first."""

    thresholds: tuple[tuple[float, Tier], ...] = field(default_factory=_default_thresholds)
    benefits: dict[Tier, TierBenefits] = field(default_factory=_default_benefits)
    top_performers: int = 10


@dataclass(frozen=True, slots=True)
class ExecutionRules:
    """Milestone scheduling policy."""

    on_track_tolerance: float = 0.9
    recent_update_days: int = 7


@dataclass(frozen=True, slots=True)
class RulesConfig:
    """Top-level container for all policy groups."""

    territory: TerritoryRules = TerritoryRules()
    threat: ThreatRules = ThreatRules()
    tier: TierRules = TierRules()
    execution: ExecutionRules = ExecutionRules()


DEFAULT_RULES = RulesConfig()
