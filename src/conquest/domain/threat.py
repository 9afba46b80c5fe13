"""Threat scoring for competitors, derived purely from outcome history."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from conquest.domain.context import ensure_aware
from conquest.domain.enums import JobOutcomeKind, ThreatLevel
from conquest.domain.rules_config import ThreatRules


class OutcomeLike(Protocol):
    outcome: str
    job_value: float
    our_bid: float
    their_bid: float | None
    recorded_at: datetime


@dataclass(frozen=True, slots=True)
class OutcomeTotals:
    """Cumulative counters over the full history."""

    jobs_won_against: int = 0
    jobs_lost_to: int = 0
    value_won: float = 0.0
    value_lost: float = 0.0
    average_bid_gap: float | None = None

    @property
    def total(self) -> int:
        return self.jobs_won_against + self.jobs_lost_to

    @property
    def our_win_rate(self) -> float:
        return self.jobs_won_against / self.total if self.total else 0.0


@dataclass(frozen=True, slots=True)
class ThreatAssessment:
    """Score components and the bucketed level."""

    win_rate: float
    value_pressure: float
    recency: float
    score: float
    level: ThreatLevel


def summarize_outcomes(outcomes: Iterable[OutcomeLike]) -> OutcomeTotals:
    """Fold the full outcome history into cumulative counters."""

    won = lost = 0
    value_won = value_lost = 0.0
    gaps: list[float] = []
    for item in outcomes:
        if item.outcome == JobOutcomeKind.WON:
            won += 1
            value_won += item.job_value
        else:
            lost += 1
            value_lost += item.job_value
        if item.their_bid is not None:
            gaps.append(item.our_bid - item.their_bid)
    return OutcomeTotals(
        jobs_won_against=won,
        jobs_lost_to=lost,
        value_won=value_won,
        value_lost=value_lost,
        average_bid_gap=sum(gaps) / len(gaps) if gaps else None,
    )


def bucket_threat(score: float, rules: ThreatRules) -> ThreatLevel:
    """Map a combined score onto the four threat levels."""

    if score >= rules.critical_threshold:
        return ThreatLevel.CRITICAL
    if score >= rules.high_threshold:
        return ThreatLevel.HIGH
    if score >= rules.medium_threshold:
        return ThreatLevel.MEDIUM
    return ThreatLevel.LOW


def _decay(age: timedelta, half_life_days: float) -> float:
    age_days = max(age.total_seconds(), 0.0) / 86_400
    return 0.5 ** (age_days / half_life_days)


def assess_threat(
    outcomes: Sequence[OutcomeLike], now: datetime, rules: ThreatRules
) -> ThreatAssessment:
    """Score a competitor from its outcome history.

    A "loss" is a job the competitor won from us. The three components are:

    * win rate: their share of outcomes inside the trailing window;
    * value pressure: mean value of the jobs they won in the window relative
      to our mean bid in the window, normalised by ``value_ratio_cap``;
    * recency: value-weighted share of losses over the whole history, with an
      exponential decay so that recent losses dominate.
    """

    now = ensure_aware(now)
    cutoff = now - timedelta(days=rules.window_days)
    windowed = [o for o in outcomes if ensure_aware(o.recorded_at) >= cutoff]

    win_rate = 0.0
    value_pressure = 0.0
    if windowed:
        losses = [o for o in windowed if o.outcome == JobOutcomeKind.LOST]
        win_rate = len(losses) / len(windowed)
        if losses:
            mean_lost_value = sum(o.job_value for o in losses) / len(losses)
            mean_our_bid = sum(o.our_bid for o in windowed) / len(windowed)
            ratio = mean_lost_value / mean_our_bid
            value_pressure = min(1.0, ratio / rules.value_ratio_cap)

    weighted_losses = 0.0
    weighted_total = 0.0
    for item in outcomes:
        weight = _decay(now - ensure_aware(item.recorded_at), rules.recency_half_life_days)
        weight *= item.job_value
        weighted_total += weight
        if item.outcome == JobOutcomeKind.LOST:
            weighted_losses += weight
    recency = weighted_losses / weighted_total if weighted_total else 0.0

    score = (
        rules.win_rate_weight * win_rate
        + rules.value_weight * value_pressure
        + rules.recency_weight * recency
    )
    return ThreatAssessment(
        win_rate=win_rate,
        value_pressure=value_pressure,
        recency=recency,
        score=round(score, 6),
        level=bucket_threat(score, rules),
    )
