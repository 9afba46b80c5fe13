"""Territory Store for the conquest engine.

Owns territory records and their claim state. Every claim write (assign,
protect, release, expiry) goes through
:meth:`ConquestStore.compare_and_set_territory`, so of two writers holding the
same snapshot exactly one wins and the other sees a ``ConflictError``.
"""

import logging
import math
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from conquest.domain.context import CallerContext, ensure_aware, resolve_now
from conquest.domain.enums import TerritoryStatus, Tier
from conquest.domain.rules_config import DEFAULT_RULES, RulesConfig
from conquest.domain.scoring import opportunity_score
from conquest.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from conquest.models import ProfessionalTier, Territory
from conquest.repository import ConquestStore
from conquest.schemas import TerritoryCreate, TerritoryFilters, validate_input

logger = logging.getLogger(__name__)


def protection_active(territory: Territory, now: datetime) -> bool:
    """True while a protection is in force at ``now``."""

    return (
        territory.status == TerritoryStatus.PROTECTED
        and territory.protected_until is not None
        and ensure_aware(territory.protected_until) > now
    )


def _open_claim() -> dict[str, Any]:
    return {
        "status": TerritoryStatus.OPEN,
        "professional_id": None,
        "exclusivity_fee": None,
        "protection_started_at": None,
        "protected_until": None,
    }


class TerritoryService:
    """Service for territory creation, claims and territory analytics."""

    def __init__(self, session: Session, rules: RulesConfig = DEFAULT_RULES):
        self.session = session
        self.store = ConquestStore(session)
        self.rules = rules.territory
        self.tier_rules = rules.tier

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create_territory(
        self, data: TerritoryCreate | Mapping[str, Any], *, caller: CallerContext
    ) -> Territory:
        """Create an open territory.

        Args:
            data: Territory attributes; ``name`` and ``type`` are required
            caller: Acting caller

        Returns:
            The persisted territory

        Raises:
            ValidationError: If the payload is malformed
        """
        payload = validate_input(TerritoryCreate, data, "territory")
        territory = Territory(
            **payload.model_dump(),
            status=TerritoryStatus.OPEN,
            version=1,
            opportunity_score=opportunity_score(
                median_income=payload.median_income,
                population=payload.population,
                households=payload.households,
                tree_canopy_coverage=payload.tree_canopy_coverage,
                state=payload.state,
                home_state=self.rules.home_state,
            ),
        )
        self.store.add(territory)
        self.store.commit(f"create territory {payload.name!r}")
        logger.info(
            "Territory %s (%s) created by %s", territory.id, territory.name, caller.caller_id
        )
        return territory

    def assign_professional(
        self, territory_id: int, professional_id: str, *, caller: CallerContext
    ) -> Territory:
        """Record ``professional_id`` as the (advisory) assignee of a territory.

        Assignment grants no exclusivity. It is refused only while another
        professional holds a protection that has not expired; a lapsed
        protection is cleared by the assignment. Assigning the current holder
        again changes nothing.

        Raises:
            ValidationError: If ``professional_id`` is empty
            AuthorizationError: If the caller may not act for the professional
            NotFoundError: If the territory does not exist
            ConflictError: If another professional holds an active protection
                or the territory changed concurrently
        """
        self._require_professional(professional_id)
        self._require_acting_for(caller, professional_id, "assign")

        territory = self._require(territory_id)
        if protection_active(territory, caller.now):
            if territory.professional_id == professional_id:
                return territory
            raise self._protected_conflict(territory, professional_id, "assign")
        if (
            territory.status == TerritoryStatus.ASSIGNED
            and territory.professional_id == professional_id
        ):
            return territory

        changes = _open_claim()
        changes.update(status=TerritoryStatus.ASSIGNED, professional_id=professional_id)
        self.store.compare_and_set_territory(territory, **changes)
        self.store.commit(f"assign territory {territory_id}")
        logger.info(
            "Territory %s assigned to %s by %s", territory_id, professional_id, caller.caller_id
        )
        return territory

    def protect_territory(
        self,
        territory_id: int,
        professional_id: str,
        exclusivity_fee: float | None = None,
        *,
        caller: CallerContext,
    ) -> Territory:
        """Grant ``professional_id`` an exclusive, time-bounded claim.

        The professional's tier must include territory protection (gold and
        above by default). They must also be the territory's assignee, unless
        the territory is open (or its old protection lapsed) in which case it
        is claimed directly. Re-invoking by the holder before expiry renews the
        protection from ``caller.now``.

        Args:
            territory_id: Territory to protect
            professional_id: Professional taking the protection
            exclusivity_fee: Agreed fee, policy default when omitted
            caller: Acting caller

        Returns:
            The protected territory

        Raises:
            ValidationError: On an empty professional or a negative fee
            AuthorizationError: If the caller may not act for the professional,
                the professional's tier lacks territory protection, or the
                territory is assigned to someone else
            NotFoundError: If the territory does not exist
            ConflictError: If another active protection exists or the
                territory changed concurrently
        """
        self._require_professional(professional_id)
        fee = self.rules.default_exclusivity_fee if exclusivity_fee is None else exclusivity_fee
        if not math.isfinite(fee) or fee < 0:
            raise ValidationError(
                f"exclusivity_fee must be a non-negative number, got {exclusivity_fee}",
                field="exclusivity_fee",
            )
        self._require_acting_for(caller, professional_id, "protect")
        self._require_protection_benefit(professional_id)

        territory = self._require(territory_id)
        now = caller.now
        active = protection_active(territory, now)
        if active and territory.professional_id != professional_id:
            raise self._protected_conflict(territory, professional_id, "protect")
        if (
            territory.status == TerritoryStatus.ASSIGNED
            and territory.professional_id != professional_id
        ):
            logger.warning(
                "Protection of territory %s by %s rejected: assigned to %s",
                territory_id,
                professional_id,
                territory.professional_id,
            )
            raise AuthorizationError(
                f"Only the assigned professional {territory.professional_id} "
                f"may protect territory {territory_id}",
                territory_id=territory_id,
                professional_id=professional_id,
                current_holder=territory.professional_id,
            )

        renewal = active
        started_at = territory.protection_started_at if renewal else now
        self.store.compare_and_set_territory(
            territory,
            status=TerritoryStatus.PROTECTED,
            professional_id=professional_id,
            exclusivity_fee=fee,
            protection_started_at=started_at,
            protected_until=now + timedelta(days=self.rules.protection_days),
        )
        self.store.commit(f"protect territory {territory_id}")
        logger.info(
            "Territory %s %s for %s until %s (fee %.2f)",
            territory_id,
            "protection renewed" if renewal else "protected",
            professional_id,
            territory.protected_until,
            fee,
        )
        return territory

    def release_territory(self, territory_id: int, *, caller: CallerContext) -> Territory:
        """Return a territory to ``open``, clearing its claim.

        Only the current holder or an admin may release. Releasing an open
        territory is a no-op.
        """
        territory = self._require(territory_id)
        if territory.status == TerritoryStatus.OPEN:
            return territory
        if not (caller.is_admin or caller.caller_id == territory.professional_id):
            raise AuthorizationError(
                f"Only {territory.professional_id} or an admin may release "
                f"territory {territory_id}",
                territory_id=territory_id,
                caller_id=caller.caller_id,
                current_holder=territory.professional_id,
            )

        previous_holder = territory.professional_id
        self.store.compare_and_set_territory(territory, **_open_claim())
        self.store.commit(f"release territory {territory_id}")
        logger.info(
            "Territory %s released from %s by %s", territory_id, previous_holder, caller.caller_id
        )
        return territory

    def expire_protections(self, now: datetime | None = None) -> dict[str, list[int]]:
        """Sweep lapsed protections back to ``open``.

        Each territory is expired in its own transaction. A territory whose
        row moved on since it was listed (typically a renewal) is skipped.

        Returns:
            ``{"expired": [...], "skipped": [...]}`` territory ids
        """
        now = resolve_now(now)
        expired: list[int] = []
        skipped: list[int] = []
        for territory in self.store.list_lapsed_protections(now):
            territory_id = territory.id
            # A rollback earlier in the sweep reloads the row; re-check it.
            if territory.status != TerritoryStatus.PROTECTED or protection_active(
                territory, now
            ):
                skipped.append(territory_id)
                continue
            try:
                self.store.compare_and_set_territory(territory, **_open_claim())
            except ConflictError:
                skipped.append(territory_id)
                continue
            self.store.commit(f"expire protection of territory {territory_id}")
            expired.append(territory_id)

        if expired or skipped:
            logger.info("Expired %d protections, skipped %d", len(expired), len(skipped))
        return {"expired": expired, "skipped": skipped}

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_territory(self, territory_id: int) -> Territory:
        return self._require(territory_id)

    def get_territories(
        self, filters: TerritoryFilters | Mapping[str, Any] | None = None
    ) -> list[Territory]:
        """List territories matching ``filters``, best opportunities first."""

        criteria = validate_input(TerritoryFilters, filters, "territory filters")
        return self.store.list_territories(criteria.active())

    def get_territory_analytics(
        self, territory_id: int | None = None, now: datetime | None = None
    ) -> dict[str, Any]:
        """Join claim state with competitor density and recent revenue.

        Recent revenue is the value of ``won`` job outcomes attributed to the
        territory's current professional over the trailing revenue window.

        Args:
            territory_id: Single territory, or None to aggregate all
            now: Clock for the revenue window and protection checks

        Returns:
            Per-territory summary, or an aggregate over all territories
        """
        now = resolve_now(now)
        since = now - timedelta(days=self.rules.revenue_window_days)

        if territory_id is not None:
            territory = self._require(territory_id)
            density = self.store.competitor_counts_by_territory([territory.id])
            holder = [territory.professional_id] if territory.professional_id else []
            revenue = self.store.won_value_by_professional(holder, since) if holder else {}
            tiers = self.store.tiers_for(holder) if holder else {}
            return self._summarize(territory, density, revenue, tiers, now)

        territories = self.store.list_territories()
        density = self.store.competitor_counts_by_territory(t.id for t in territories)
        holders = {t.professional_id for t in territories if t.professional_id}
        revenue = self.store.won_value_by_professional(holders, since) if holders else {}
        tiers = self.store.tiers_for(holders) if holders else {}
        summaries = [self._summarize(t, density, revenue, tiers, now) for t in territories]

        total = len(summaries)
        by_status = {status.value: 0 for status in TerritoryStatus}
        for summary in summaries:
            by_status[summary["status"]] += 1
        claimed = by_status[TerritoryStatus.ASSIGNED] + by_status[TerritoryStatus.PROTECTED]
        holder_tiers = {tier.value: 0 for tier in Tier}
        untiered = 0
        for summary in summaries:
            if summary["professional_id"] is None:
                continue
            if summary["holder_tier"] is None:
                untiered += 1
            else:
                holder_tiers[summary["holder_tier"]] += 1
        top = sorted(
            summaries,
            key=lambda s: (s["recent_revenue"], s["opportunity_score"]),
            reverse=True,
        )[: self.rules.top_territories]

        return {
            "total_territories": total,
            "by_status": by_status,
            "active_protections": sum(1 for s in summaries if s["protection_active"]),
            "penetration_rate": round(claimed / total * 100, 2) if total else 0.0,
            "protection_rate": (
                round(by_status[TerritoryStatus.PROTECTED] / total * 100, 2) if total else 0.0
            ),
            "holder_tiers": holder_tiers,
            "untiered_holders": untiered,
            "total_competitors": sum(s["competitor_count"] for s in summaries),
            # Revenue is attributed per professional, so count each holder once.
            "total_recent_revenue": round(sum(revenue.values()), 2),
            "average_opportunity_score": (
                round(sum(s["opportunity_score"] for s in summaries) / total, 2) if total else 0.0
            ),
            "revenue_window_days": self.rules.revenue_window_days,
            "top_territories": top,
        }

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _require(self, territory_id: int) -> Territory:
        territory = self.store.get_territory(territory_id)
        if territory is None:
            raise NotFoundError("Territory", territory_id)
        return territory

    @staticmethod
    def _require_professional(professional_id: str) -> None:
        if not professional_id:
            raise ValidationError("professional_id is required", field="professional_id")

    @staticmethod
    def _require_acting_for(caller: CallerContext, professional_id: str, action: str) -> None:
        if not caller.acts_for(professional_id):
            raise AuthorizationError(
                f"{caller.caller_id} may not {action} territories for {professional_id}",
                caller_id=caller.caller_id,
                professional_id=professional_id,
            )

    def _require_protection_benefit(self, professional_id: str) -> None:
        """Only tiers whose benefits include territory protection may protect."""

        record = self.store.get_tier(professional_id)
        tier = Tier(record.current_tier) if record is not None else None
        benefits = self.tier_rules.benefits.get(tier) if tier is not None else None
        if benefits is not None and benefits.territory_protection:
            return

        held = tier.value if tier is not None else "no tier"
        logger.warning(
            "Protection by %s rejected: %s does not include territory protection",
            professional_id,
            held,
        )
        raise AuthorizationError(
            f"{professional_id} holds {held}, which does not include territory protection",
            professional_id=professional_id,
            current_tier=tier.value if tier is not None else None,
        )

    @staticmethod
    def _protected_conflict(
        territory: Territory, professional_id: str, action: str
    ) -> ConflictError:
        until = ensure_aware(territory.protected_until).isoformat()
        logger.warning(
            "Cannot %s territory %s for %s: protected by %s until %s",
            action,
            territory.id,
            professional_id,
            territory.professional_id,
            until,
        )
        return ConflictError(
            f"Territory {territory.id} is protected by {territory.professional_id} until {until}",
            territory_id=territory.id,
            current_holder=territory.professional_id,
            protected_until=until,
        )

    def _summarize(
        self,
        territory: Territory,
        density: Mapping[int, int],
        revenue: Mapping[str, float],
        tiers: Mapping[str, ProfessionalTier],
        now: datetime,
    ) -> dict[str, Any]:
        active = protection_active(territory, now)
        days_remaining = None
        if active:
            days_remaining = (ensure_aware(territory.protected_until) - now).days
        holder = tiers.get(territory.professional_id) if territory.professional_id else None
        return {
            "territory_id": territory.id,
            "name": territory.name,
            "type": territory.type,
            "county": territory.county,
            "state": territory.state,
            "city": territory.city,
            "status": territory.status,
            "professional_id": territory.professional_id,
            "holder_tier": holder.current_tier if holder else None,
            "protection_active": active,
            "protected_until": territory.protected_until,
            "protection_days_remaining": days_remaining,
            "exclusivity_fee": territory.exclusivity_fee,
            "opportunity_score": territory.opportunity_score,
            "competitor_count": density.get(territory.id, 0),
            "recent_revenue": round(revenue.get(territory.professional_id, 0.0), 2)
            if territory.professional_id
            else 0.0,
        }
