"""Static scores computed from territory demographics and competitor profiles."""

from __future__ import annotations

from conquest.domain.enums import CompetitorType

_TYPE_PRESENCE = {
    CompetitorType.NATIONAL_CHAIN: 10,
    CompetitorType.FRANCHISE: 8,
    CompetitorType.LOCAL_COMPANY: 6,
}


def opportunity_score(
    *,
    median_income: float | None = None,
    population: int | None = None,
    households: int | None = None,
    tree_canopy_coverage: float | None = None,
    state: str | None = None,
    home_state: str | None = None,
) -> int:
    """Rate a territory 0-100 on income, density, canopy and home-market fit."""

    score = 0.0
    if median_income:
        score += min(median_income / 100_000 * 30, 30)
    if population and households:
        score += min(households / 1000 * 20, 20)
    if tree_canopy_coverage:
        score += tree_canopy_coverage / 100 * 25
    if home_state and state and state.upper() == home_state.upper():
        score += 25
    return min(round(score), 100)


def presence_score(
    competitor_type: CompetitorType | str,
    *,
    estimated_revenue: float | None = None,
    employee_count: int | None = None,
    service_areas: list[str] | None = None,
) -> int:
    """Informational market-presence score (0-100) from a competitor profile.

    This never feeds the threat level, which is derived from outcomes only.
    """

    score = 0
    if estimated_revenue:
        if estimated_revenue > 5_000_000:
            score += 40
        elif estimated_revenue > 1_000_000:
            score += 30
        elif estimated_revenue > 500_000:
            score += 20
        else:
            score += 10
    if employee_count:
        if employee_count > 50:
            score += 30
        elif employee_count > 20:
            score += 25
        elif employee_count > 10:
            score += 20
        else:
            score += 15
    if service_areas:
        score += min(len(service_areas) * 5, 20)
    score += _TYPE_PRESENCE.get(CompetitorType(competitor_type), 4)
    return min(score, 100)
