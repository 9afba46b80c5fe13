"""Tier Progression Engine for the conquest engine.

A professional's tier follows cumulative qualifying revenue through the
threshold table in :class:`conquest.domain.rules_config.TierRules`. Automatic
recomputes never lower a tier; only :meth:`TierService.demote_professional`
does, and it leaves a ceiling behind so that the next recompute cannot quietly
undo it.

Writes for one professional are serialized by locking their tier row before
reading the revenue snapshot.
"""

import logging
import math
from dataclasses import asdict
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from conquest.domain.context import CallerContext, ensure_aware, resolve_now
from conquest.domain.enums import Tier, TierChangeReason
from conquest.domain.rules_config import DEFAULT_RULES, RulesConfig
from conquest.domain.tiers import (
    next_tier,
    progress_percentage,
    progressed_tier,
    revenue_to_next,
    tier_for_revenue,
)
from conquest.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from conquest.models import ProfessionalTier, RevenueEvent, TierChange
from conquest.repository import ConquestStore
from conquest.schemas import RevenueEventIn, validate_input

logger = logging.getLogger(__name__)


class TierService:
    """Service for professional tier state and revenue-driven progression."""

    def __init__(self, session: Session, rules: RulesConfig = DEFAULT_RULES):
        self.session = session
        self.store = ConquestStore(session)
        self.rules = rules.tier

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def initialize_professional_tier(
        self, professional_id: str, *, caller: CallerContext
    ) -> ProfessionalTier:
        """Create the entry-tier record, or return the existing one unchanged.

        Raises:
            ValidationError: If ``professional_id`` is empty
            AuthorizationError: If the caller may not act for the professional
        """
        if not professional_id:
            raise ValidationError("professional_id is required", field="professional_id")
        if not caller.acts_for(professional_id):
            raise AuthorizationError(
                f"{caller.caller_id} may not initialize the tier of {professional_id}",
                caller_id=caller.caller_id,
                professional_id=professional_id,
            )

        existing = self.store.get_tier(professional_id)
        if existing is not None:
            return existing

        entry_tier = self.rules.thresholds[0][1]
        record = ProfessionalTier(
            professional_id=professional_id,
            current_tier=entry_tier,
            qualifying_revenue=0.0,
            tier_entered_at=caller.now,
        )
        self.store.add(record)
        self._log_change(record, None, TierChangeReason.INITIAL, caller)
        try:
            self.store.commit(f"initialize tier of {professional_id}")
        except ConflictError:
            # Lost a race with a concurrent initialization: hand back the winner's record.
            existing = self.store.get_tier(professional_id)
            if existing is None:
                raise
            return existing

        logger.info("Tier of %s initialized at %s", professional_id, entry_tier)
        return record

    def recompute_tier(
        self, professional_id: str, new_qualifying_revenue: float, *, caller: CallerContext
    ) -> ProfessionalTier:
        """Apply a new cumulative revenue snapshot.

        The resulting tier is the highest one whose threshold is met, capped
        by any administrative ceiling and never below the current tier.

        Raises:
            ValidationError: If the snapshot is negative or not finite
            AuthorizationError: If the caller is not an admin or system caller
            NotFoundError: If the professional has no tier record
        """
        if not math.isfinite(new_qualifying_revenue) or new_qualifying_revenue < 0:
            raise ValidationError(
                f"Qualifying revenue must be a non-negative number, got {new_qualifying_revenue}",
                field="new_qualifying_revenue",
            )
        self._require_admin(caller, "recompute tiers")

        record = self._lock(professional_id)
        self._apply_revenue(record, new_qualifying_revenue, caller)
        self.store.commit(f"recompute tier of {professional_id}")
        return record

    def record_revenue_event(
        self, event: RevenueEventIn | dict[str, Any], *, caller: CallerContext
    ) -> ProfessionalTier:
        """Consume a "qualifying revenue changed" notification.

        The amount is added to the cumulative snapshot (clamped at zero) and
        the tier recomputed. Events are idempotent on ``event_id``: a replay
        returns the current record without counting the amount again.

        Raises:
            ValidationError: If the event is malformed
            AuthorizationError: If the caller is not an admin or system caller
            NotFoundError: If the professional has no tier record
        """
        payload = validate_input(RevenueEventIn, event, "revenue event")
        self._require_admin(caller, "record revenue events")

        record = self._lock(payload.professional_id)
        if self.store.revenue_event_seen(payload.event_id):
            self.store.rollback()
            logger.info("Revenue event %s already applied; ignoring replay", payload.event_id)
            return self.get_professional_tier(payload.professional_id)

        self.store.add(
            RevenueEvent(
                event_id=payload.event_id,
                professional_id=payload.professional_id,
                amount=payload.amount,
                occurred_at=payload.occurred_at,
            )
        )
        self._apply_revenue(record, max(0.0, record.qualifying_revenue + payload.amount), caller)
        try:
            self.store.commit(f"apply revenue event {payload.event_id}")
        except ConflictError:
            if not self.store.revenue_event_seen(payload.event_id):
                raise
            logger.info("Revenue event %s applied concurrently; ignoring replay", payload.event_id)
            return self.get_professional_tier(payload.professional_id)
        return record

    def demote_professional(
        self,
        professional_id: str,
        target_tier: Tier | str,
        *,
        caller: CallerContext,
        reason: str | None = None,
    ) -> ProfessionalTier:
        """Administratively lower a professional's tier and cap it there.

        Raises:
            AuthorizationError: If the caller is not an admin
            ValidationError: If ``target_tier`` is unknown or not below the
                current tier
            NotFoundError: If the professional has no tier record
        """
        self._require_admin(caller, "demote professionals")
        target = self._parse_tier(target_tier)

        record = self._lock(professional_id)
        current = Tier(record.current_tier)
        if target.rank >= current.rank:
            self.store.rollback()
            raise ValidationError(
                f"Demotion target {target} must be below current tier {current}",
                professional_id=professional_id,
                current_tier=str(current),
                target_tier=str(target),
            )

        record.current_tier = target
        record.tier_ceiling = target
        record.tier_entered_at = caller.now
        self._log_change(record, current, TierChangeReason.DEMOTION, caller, note=reason)
        self.store.commit(f"demote {professional_id}")
        logger.info(
            "%s demoted from %s to %s by %s (%s)",
            professional_id,
            current,
            target,
            caller.caller_id,
            reason or "no reason given",
        )
        return record

    def lift_tier_ceiling(
        self, professional_id: str, *, caller: CallerContext
    ) -> ProfessionalTier:
        """Remove an administrative ceiling and let revenue decide again."""

        self._require_admin(caller, "lift tier ceilings")
        record = self._lock(professional_id)
        if record.tier_ceiling is None:
            self.store.rollback()
            return record

        current = Tier(record.current_tier)
        record.tier_ceiling = None
        target = progressed_tier(current, record.qualifying_revenue, self.rules)
        if target != current:
            record.current_tier = target
            record.tier_entered_at = caller.now
        self._log_change(record, current, TierChangeReason.CEILING_LIFTED, caller)
        self.store.commit(f"lift tier ceiling of {professional_id}")
        logger.info("Tier ceiling of %s lifted by %s", professional_id, caller.caller_id)
        return record

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_professional_tier(self, professional_id: str) -> ProfessionalTier:
        record = self.store.get_tier(professional_id)
        if record is None:
            raise NotFoundError("ProfessionalTier", professional_id)
        return record

    def get_professional_tier_dashboard(
        self, professional_id: str, now: datetime | None = None
    ) -> dict[str, Any]:
        """Current tier, distance to the next tier, benefits and history."""

        now = resolve_now(now)
        record = self.get_professional_tier(professional_id)
        current = Tier(record.current_tier)
        revenue = record.qualifying_revenue
        upcoming = next_tier(current, self.rules)

        return {
            "professional_id": professional_id,
            "current_tier": current.value,
            "qualifying_revenue": revenue,
            "tier_entered_at": record.tier_entered_at,
            "days_in_tier": max(0, (now - ensure_aware(record.tier_entered_at)).days),
            "tier_ceiling": record.tier_ceiling,
            "revenue_tier": tier_for_revenue(revenue, self.rules).value,
            "next_tier": upcoming.value if upcoming else None,
            "revenue_to_next_tier": revenue_to_next(current, revenue, self.rules),
            "progress_percentage": progress_percentage(current, revenue, self.rules),
            "benefits": asdict(self.rules.benefits[current]),
            "history": [
                {
                    "from_tier": change.from_tier,
                    "to_tier": change.to_tier,
                    "reason": change.reason,
                    "qualifying_revenue": change.qualifying_revenue,
                    "changed_by": change.changed_by,
                    "note": change.note,
                    "changed_at": change.changed_at,
                }
                for change in self.store.tier_history(professional_id)
            ],
        }

    def get_tier_analytics(self) -> dict[str, Any]:
        """Distribution of professionals across tiers plus top performers."""

        records = self.store.list_tiers()
        by_tier = {tier.value: 0 for _, tier in self.rules.thresholds}
        for record in records:
            by_tier[record.current_tier] += 1

        total = len(records)
        total_revenue = sum(record.qualifying_revenue for record in records)
        top = sorted(records, key=lambda r: r.qualifying_revenue, reverse=True)
        return {
            "total_professionals": total,
            "by_tier": by_tier,
            "total_qualifying_revenue": round(total_revenue, 2),
            "average_qualifying_revenue": round(total_revenue / total, 2) if total else 0.0,
            "capped_professionals": sum(1 for record in records if record.tier_ceiling),
            "top_performers": [
                {
                    "professional_id": record.professional_id,
                    "current_tier": record.current_tier,
                    "qualifying_revenue": record.qualifying_revenue,
                }
                for record in top[: self.rules.top_performers]
            ],
        }

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _lock(self, professional_id: str) -> ProfessionalTier:
        record = self.store.lock_tier(professional_id)
        if record is None:
            self.store.rollback()
            raise NotFoundError("ProfessionalTier", professional_id)
        return record

    def _apply_revenue(
        self, record: ProfessionalTier, revenue: float, caller: CallerContext
    ) -> None:
        current = Tier(record.current_tier)
        ceiling = Tier(record.tier_ceiling) if record.tier_ceiling else None
        target = progressed_tier(current, revenue, self.rules, ceiling)
        record.qualifying_revenue = revenue
        if target != current:
            record.current_tier = target
            record.tier_entered_at = caller.now
            self._log_change(record, current, TierChangeReason.PROGRESSION, caller)
            logger.info(
                "%s progressed from %s to %s at revenue %.2f",
                record.professional_id,
                current,
                target,
                revenue,
            )

    def _log_change(
        self,
        record: ProfessionalTier,
        from_tier: Tier | None,
        reason: TierChangeReason,
        caller: CallerContext,
        note: str | None = None,
    ) -> None:
        self.store.add(
            TierChange(
                professional_id=record.professional_id,
                from_tier=from_tier,
                to_tier=record.current_tier,
                reason=reason,
                qualifying_revenue=record.qualifying_revenue,
                changed_by=caller.caller_id,
                note=note,
                changed_at=caller.now,
            )
        )

    @staticmethod
    def _parse_tier(value: Tier | str) -> Tier:
        try:
            return Tier(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown tier {value!r}", field="target_tier") from exc

    @staticmethod
    def _require_admin(caller: CallerContext, action: str) -> None:
        if not caller.is_admin:
            raise AuthorizationError(
                f"{caller.caller_id} may not {action}", caller_id=caller.caller_id
            )
