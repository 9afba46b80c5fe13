"""Competitor Intelligence for the conquest engine.

Owns competitor records and the append-only job-outcome history. Counters and
threat fields on :class:`Competitor` are re-derived from the full history after
every append, inside the same transaction that holds the competitor row lock.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from conquest.domain.context import CallerContext, resolve_now
from conquest.domain.enums import JobOutcomeKind, ThreatLevel
from conquest.domain.rules_config import DEFAULT_RULES, RulesConfig
from conquest.domain.scoring import presence_score
from conquest.domain.threat import ThreatAssessment, assess_threat, summarize_outcomes
from conquest.errors import NotFoundError, ValidationError
from conquest.models import Competitor, JobOutcome
from conquest.repository import ConquestStore
from conquest.results import run_batch
from conquest.schemas import (
    CompetitorCreate,
    CompetitorFilters,
    JobOutcomeBatchItem,
    JobOutcomeCreate,
    validate_input,
)

logger = logging.getLogger(__name__)

_MAJOR_THREATS = frozenset({ThreatLevel.HIGH, ThreatLevel.CRITICAL})


class CompetitorService:
    """Service for competitor tracking and threat scoring."""

    def __init__(self, session: Session, rules: RulesConfig = DEFAULT_RULES):
        self.session = session
        self.store = ConquestStore(session)
        self.rules = rules.threat

    def add_competitor(
        self,
        data: CompetitorCreate | Mapping[str, Any],
        territory_id: int | None = None,
        *,
        caller: CallerContext,
    ) -> Competitor:
        """Register a competitor, optionally inside a territory.

        Raises:
            ValidationError: If ``name`` or ``type`` is missing or malformed
            NotFoundError: If ``territory_id`` does not exist
        """
        payload = validate_input(CompetitorCreate, data, "competitor")
        if territory_id is not None and self.store.get_territory(territory_id) is None:
            raise NotFoundError("Territory", territory_id)

        assessment = assess_threat([], caller.now, self.rules)
        competitor = Competitor(
            **payload.model_dump(),
            territory_id=territory_id,
            presence_score=presence_score(
                payload.type,
                estimated_revenue=payload.estimated_revenue,
                employee_count=payload.employee_count,
                service_areas=payload.service_areas,
            ),
            jobs_won_against=0,
            jobs_lost_to=0,
            value_won=0.0,
            value_lost=0.0,
            threat_score=assessment.score,
            threat_level=assessment.level,
        )
        self.store.add(competitor)
        self.store.commit(f"add competitor {payload.name!r}")
        logger.info(
            "Competitor %s (%s) added to territory %s by %s",
            competitor.id,
            competitor.name,
            territory_id,
            caller.caller_id,
        )
        return competitor

    def get_competitor(self, competitor_id: int) -> Competitor:
        competitor = self.store.get_competitor(competitor_id)
        if competitor is None:
            raise NotFoundError("Competitor", competitor_id)
        return competitor

    def get_competitors(
        self, filters: CompetitorFilters | Mapping[str, Any] | None = None
    ) -> list[Competitor]:
        """List competitors matching ``filters``, highest threat first."""

        criteria = validate_input(CompetitorFilters, filters, "competitor filters")
        return self.store.list_competitors(criteria.active())

    def track_job_outcome(
        self,
        competitor_id: int,
        outcome: JobOutcomeKind | str,
        job_value: float,
        our_bid: float,
        their_bid: float | None = None,
        *,
        caller: CallerContext,
        professional_id: str | None = None,
    ) -> Competitor:
        """Append one contested job and recompute the competitor's standing.

        The input is validated before anything is written, so a rejected call
        leaves no trace. The append and the recompute share one transaction
        opened by locking the competitor row, so concurrent appends on the same
        competitor never recompute from a partial history.

        Args:
            competitor_id: Competitor we bid against
            outcome: ``won`` or ``lost`` from our side
            job_value: Value of the job, positive
            our_bid: Our bid, positive
            their_bid: Their bid if known, positive
            caller: Acting caller; ``caller.now`` stamps the record
            professional_id: Our professional on the job, for revenue attribution

        Returns:
            The competitor with refreshed counters and threat level

        Raises:
            ValidationError: If any field is invalid
            NotFoundError: If the competitor does not exist
        """
        payload = validate_input(
            JobOutcomeCreate,
            {
                "outcome": outcome,
                "job_value": job_value,
                "our_bid": our_bid,
                "their_bid": their_bid,
                "professional_id": professional_id,
            },
            "job outcome",
        )

        competitor = self.store.lock_competitor(competitor_id)
        if competitor is None:
            self.store.rollback()
            raise NotFoundError("Competitor", competitor_id)

        self.store.add(
            JobOutcome(
                competitor_id=competitor.id,
                **payload.model_dump(),
                recorded_at=caller.now,
            )
        )
        self.store.flush(f"record outcome against competitor {competitor_id}")
        assessment = self._recompute(competitor, caller.now)
        self.store.commit(f"record outcome against competitor {competitor_id}")

        logger.info(
            "Outcome %s (%.2f) recorded against competitor %s by %s; threat %s (%.3f)",
            payload.outcome,
            payload.job_value,
            competitor_id,
            caller.caller_id,
            assessment.level,
            assessment.score,
        )
        return competitor

    def track_job_outcomes(
        self, batch: Iterable[JobOutcomeBatchItem | Mapping[str, Any]], *, caller: CallerContext
    ) -> dict[str, Any]:
        """Record several outcomes, each in its own transaction.

        Returns:
            Batch report with ``executed_count``, ``success_count``,
            ``failure_count`` and per-item ``results``
        """

        def track(item: JobOutcomeBatchItem | Mapping[str, Any]) -> Competitor:
            entry = validate_input(JobOutcomeBatchItem, item, "job outcome")
            return self.track_job_outcome(
                entry.competitor_id,
                entry.outcome,
                entry.job_value,
                entry.our_bid,
                entry.their_bid,
                caller=caller,
                professional_id=entry.professional_id,
            )

        report = run_batch(batch, track)
        logger.info(
            "Outcome batch by %s: %d succeeded, %d failed",
            caller.caller_id,
            report["success_count"],
            report["failure_count"],
        )
        return report

    def recompute_threat(self, competitor_id: int, now: datetime | None = None) -> Competitor:
        """Re-derive counters and threat from history, e.g. after a policy change."""

        now = resolve_now(now)
        competitor = self.store.lock_competitor(competitor_id)
        if competitor is None:
            self.store.rollback()
            raise NotFoundError("Competitor", competitor_id)
        self._recompute(competitor, now)
        self.store.commit(f"recompute threat of competitor {competitor_id}")
        return competitor

    def analyze_pricing(
        self, competitor_id: int, service_type: str, our_price: float
    ) -> dict[str, Any]:
        """Compare our price for ``service_type`` with the competitor's listed price."""

        if not math.isfinite(our_price) or our_price <= 0:
            raise ValidationError(
                f"our_price must be a positive number, got {our_price}", field="our_price"
            )
        competitor = self.get_competitor(competitor_id)
        pricing = competitor.pricing or {}
        if service_type not in pricing:
            raise NotFoundError("Competitor price", f"{competitor_id}/{service_type}")

        their_price = float(pricing[service_type])
        gap = our_price - their_price
        gap_pct = gap / their_price * 100
        competitive = abs(gap_pct) <= self.rules.pricing_competitive_band_pct
        if gap_pct > self.rules.pricing_action_band_pct:
            recommendation = "Price well above competitor; justify the premium or reduce"
        elif gap_pct < -self.rules.pricing_action_band_pct:
            recommendation = "Price well below competitor; room to raise"
        elif competitive:
            recommendation = "Pricing is competitive"
        else:
            recommendation = "Monitor pricing against this competitor"

        return {
            "competitor_id": competitor.id,
            "competitor_name": competitor.name,
            "service_type": service_type,
            "our_price": our_price,
            "their_price": their_price,
            "price_gap": round(gap, 2),
            "price_gap_pct": round(gap_pct, 2),
            "competitive": competitive,
            "recommendation": recommendation,
        }

    def get_competitive_dashboard(
        self, territory_id: int | None = None, now: datetime | None = None
    ) -> dict[str, Any]:
        """Aggregate threat levels, win rates and the recent outcome trend.

        Threat is assessed from history at ``now`` rather than read from the
        stored columns, so the view reflects recency decay since the last
        write.
        """
        now = resolve_now(now)
        if territory_id is not None:
            if self.store.get_territory(territory_id) is None:
                raise NotFoundError("Territory", territory_id)
            competitors = self.store.list_competitors({"territory_id": territory_id})
            scope: list[int] | None = [c.id for c in competitors]
        else:
            competitors = self.store.list_competitors()
            scope = None

        histories = self.store.outcomes_by_competitor(c.id for c in competitors)
        by_threat_level = {level.value: 0 for level in ThreatLevel}
        rows = []
        won = lost = 0
        for competitor in competitors:
            history = histories.get(competitor.id, [])
            totals = summarize_outcomes(history)
            assessment = assess_threat(history, now, self.rules)
            by_threat_level[assessment.level] += 1
            won += totals.jobs_won_against
            lost += totals.jobs_lost_to
            rows.append(
                {
                    "competitor_id": competitor.id,
                    "name": competitor.name,
                    "type": competitor.type,
                    "territory_id": competitor.territory_id,
                    "threat_level": assessment.level.value,
                    "threat_score": assessment.score,
                    "jobs_won_against": totals.jobs_won_against,
                    "jobs_lost_to": totals.jobs_lost_to,
                    "win_rate": round(totals.our_win_rate * 100, 2),
                    "value_won": round(totals.value_won, 2),
                    "value_lost": round(totals.value_lost, 2),
                    "average_bid_gap": totals.average_bid_gap,
                }
            )
        rows.sort(key=lambda row: row["threat_score"], reverse=True)

        recent = self.store.recent_outcomes(scope, self.rules.dashboard_recent_outcomes)
        trend = [
            {
                "competitor_id": item.competitor_id,
                "outcome": item.outcome,
                "job_value": item.job_value,
                "recorded_at": item.recorded_at,
            }
            for item in recent
        ]

        return {
            "territory_id": territory_id,
            "total_competitors": len(competitors),
            "by_threat_level": by_threat_level,
            "overall_win_rate": round(won / (won + lost) * 100, 2) if won + lost else 0.0,
            "competitors": rows,
            "major_threats": [row for row in rows if row["threat_level"] in _MAJOR_THREATS],
            "recent_trend": {
                "outcomes": trend,
                "wins": sum(1 for item in trend if item["outcome"] == JobOutcomeKind.WON),
                "losses": sum(1 for item in trend if item["outcome"] == JobOutcomeKind.LOST),
            },
        }

    def _recompute(self, competitor: Competitor, now: datetime) -> ThreatAssessment:
        history = self.store.outcomes_for(competitor.id)
        totals = summarize_outcomes(history)
        assessment = assess_threat(history, now, self.rules)

        competitor.jobs_won_against = totals.jobs_won_against
        competitor.jobs_lost_to = totals.jobs_lost_to
        competitor.value_won = totals.value_won
        competitor.value_lost = totals.value_lost
        competitor.average_bid_gap = totals.average_bid_gap
        competitor.threat_score = assessment.score
        competitor.threat_level = assessment.level
        return assessment
