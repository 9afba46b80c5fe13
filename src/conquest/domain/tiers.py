"""Revenue-driven tier table lookups."""

from __future__ import annotations

from conquest.domain.enums import Tier
from conquest.domain.rules_config import TierRules


def tier_for_revenue(revenue: float, rules: TierRules) -> Tier:
    """Return the highest tier whose minimum revenue is met."""

    achieved = rules.thresholds[0][1]
    for minimum, tier in rules.thresholds:
        if revenue >= minimum:
            achieved = tier
    return achieved


def threshold_for(tier: Tier, rules: TierRules) -> float:
    for minimum, candidate in rules.thresholds:
        if candidate == tier:
            return minimum
    raise KeyError(tier)


def next_tier(tier: Tier, rules: TierRules) -> Tier | None:
    """Tier directly above ``tier`` in the table, or None at the top."""

    tiers = [candidate for _, candidate in rules.thresholds]
    index = tiers.index(tier)
    if index + 1 < len(tiers):
        return tiers[index + 1]
    return None


def progressed_tier(
    current: Tier, revenue: float, rules: TierRules, ceiling: Tier | None = None
) -> Tier:
    """Tier after an automatic recompute.

    The revenue-derived tier is capped by an administrative ceiling, and the
    result never falls below ``current``.
    """

    candidate = tier_for_revenue(revenue, rules)
    if ceiling is not None and candidate.rank > ceiling.rank:
        candidate = ceiling
    return candidate if candidate.rank > current.rank else current


def revenue_to_next(current: Tier, revenue: float, rules: TierRules) -> float | None:
    """Revenue still missing for the next tier, or None at the top."""

    upcoming = next_tier(current, rules)
    if upcoming is None:
        return None
    return max(0.0, threshold_for(upcoming, rules) - revenue)


def progress_percentage(current: Tier, revenue: float, rules: TierRules) -> float:
    """Position between the current tier's floor and the next tier's floor."""

    upcoming = next_tier(current, rules)
    if upcoming is None:
        return 100.0
    floor = threshold_for(current, rules)
    span = threshold_for(upcoming, rules) - floor
    if span <= 0:
        return 100.0
    return round(min(100.0, max(0.0, (revenue - floor) / span * 100)), 2)
