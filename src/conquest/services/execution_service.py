"""Execution Scheduler for the conquest engine.

Milestone status changes go exclusively through the transition table in
:mod:`conquest.domain.milestones`. Concurrent edits of one milestone are
detected by the ``version_id_col`` on :class:`Milestone` and surface as
``ConflictError``.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from conquest.domain.context import CallerContext, as_utc, ensure_aware, resolve_now
from conquest.domain.enums import (
    PRIORITY_ORDER,
    MilestoneEvent,
    MilestonePriority,
    MilestoneStatus,
    MilestoneType,
)
from conquest.domain.milestones import TERMINAL_STATES, is_on_track, next_status
from conquest.domain.rules_config import DEFAULT_RULES, RulesConfig
from conquest.domain.timeline import DEFAULT_TIMELINE
from conquest.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from conquest.models import Milestone
from conquest.repository import ConquestStore
from conquest.schemas import (
    MilestoneCreate,
    MilestoneFilters,
    MilestoneProgressUpdate,
    validate_input,
)

logger = logging.getLogger(__name__)


def _summary(milestone: Milestone) -> dict[str, Any]:
    return {
        "milestone_id": milestone.id,
        "title": milestone.title,
        "type": milestone.type,
        "status": milestone.status,
        "priority": milestone.priority,
        "assigned_to": milestone.assigned_to,
        "planned_end_date": milestone.planned_end_date,
        "progress_percentage": milestone.progress_percentage,
    }


class ExecutionService:
    """Service for market-entry milestones and their lifecycle."""

    def __init__(self, session: Session, rules: RulesConfig = DEFAULT_RULES):
        self.session = session
        self.store = ConquestStore(session)
        self.rules = rules.execution

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create_milestone(
        self, data: MilestoneCreate | Mapping[str, Any], *, caller: CallerContext
    ) -> Milestone:
        """Create a planned milestone.

        Raises:
            ValidationError: On missing fields or a non-increasing planned window
        """
        payload = validate_input(MilestoneCreate, data, "milestone")
        milestone = Milestone(
            **payload.model_dump(),
            status=MilestoneStatus.PLANNED,
            progress_percentage=0.0,
            progress_notes=[],
            weekly_progress={},
        )
        self.store.add(milestone)
        self.store.commit(f"create milestone {payload.title!r}")
        logger.info(
            "Milestone %s (%s) created by %s", milestone.id, milestone.title, caller.caller_id
        )
        return milestone

    def transition_milestone(
        self,
        milestone_id: int,
        event: MilestoneEvent | str,
        *,
        caller: CallerContext,
        reason: str | None = None,
    ) -> Milestone:
        """Drive a milestone through one state-machine event.

        Entering ``in_progress`` sets ``actual_start_date`` and entering
        ``completed`` or ``cancelled`` sets ``actual_end_date``, each only if
        still unset.

        Raises:
            ValidationError: If ``event`` is not a milestone event
            NotFoundError: If the milestone does not exist
            InvalidTransitionError: If the table has no entry for the
                current state and ``event``
            ConflictError: If the milestone changed concurrently
        """
        try:
            event = MilestoneEvent(event)
        except ValueError as exc:
            raise ValidationError(f"Unknown milestone event {event!r}", field="event") from exc

        milestone = self._require(milestone_id)
        previous = milestone.status
        target = next_status(milestone.status, event, milestone_id=milestone_id)
        self._enter(milestone, event, target, caller.now, reason)
        self.store.commit(f"{event} milestone {milestone_id}")
        logger.info(
            "Milestone %s: %s -> %s (%s) by %s",
            milestone_id,
            previous,
            target,
            event,
            caller.caller_id,
        )
        return milestone

    def start_milestone(self, milestone_id: int, *, caller: CallerContext) -> Milestone:
        return self.transition_milestone(milestone_id, MilestoneEvent.START, caller=caller)

    def block_milestone(
        self, milestone_id: int, *, caller: CallerContext, reason: str | None = None
    ) -> Milestone:
        return self.transition_milestone(
            milestone_id, MilestoneEvent.BLOCK, caller=caller, reason=reason
        )

    def unblock_milestone(self, milestone_id: int, *, caller: CallerContext) -> Milestone:
        return self.transition_milestone(milestone_id, MilestoneEvent.UNBLOCK, caller=caller)

    def complete_milestone(self, milestone_id: int, *, caller: CallerContext) -> Milestone:
        return self.transition_milestone(milestone_id, MilestoneEvent.COMPLETE, caller=caller)

    def cancel_milestone(
        self, milestone_id: int, *, caller: CallerContext, reason: str | None = None
    ) -> Milestone:
        return self.transition_milestone(
            milestone_id, MilestoneEvent.CANCEL, caller=caller, reason=reason
        )

    def assign_milestone(
        self, milestone_id: int, assignee: str | None, *, caller: CallerContext
    ) -> Milestone:
        """Set or clear the assignee of a milestone that is not finished."""

        milestone = self._require(milestone_id)
        self._require_open(milestone, "be reassigned")
        milestone.assigned_to = assignee or None
        milestone.last_update_at = caller.now
        self.store.commit(f"assign milestone {milestone_id}")
        logger.info("Milestone %s assigned to %s by %s", milestone_id, assignee, caller.caller_id)
        return milestone

    def update_milestone_progress(
        self,
        milestone_id: int,
        percentage: float,
        *,
        caller: CallerContext,
        notes: str | None = None,
        actual_value: float | None = None,
    ) -> Milestone:
        """Record progress, starting or completing the milestone via the table.

        A planned milestone with progress above zero is started; reaching 100
        completes it. Every transition is checked before anything is written.

        Raises:
            ValidationError: If ``percentage`` is outside 0..100
            NotFoundError: If the milestone does not exist
            InvalidTransitionError: If the milestone is finished, or 100 is
                reported while it is blocked
        """
        update = validate_input(
            MilestoneProgressUpdate,
            {"progress_percentage": percentage, "notes": notes, "actual_value": actual_value},
            "milestone progress",
        )
        milestone = self._require(milestone_id)
        self._require_open(milestone, "record progress")

        status = MilestoneStatus(milestone.status)
        steps: list[tuple[MilestoneEvent, MilestoneStatus]] = []
        if status == MilestoneStatus.PLANNED and update.progress_percentage > 0:
            status = next_status(status, MilestoneEvent.START, milestone_id=milestone_id)
            steps.append((MilestoneEvent.START, status))
        if update.progress_percentage >= 100:
            status = next_status(status, MilestoneEvent.COMPLETE, milestone_id=milestone_id)
            steps.append((MilestoneEvent.COMPLETE, status))

        now = caller.now
        for event, target in steps:
            self._enter(milestone, event, target, now)
        milestone.progress_percentage = update.progress_percentage
        if update.actual_value is not None:
            milestone.actual_value = update.actual_value
        if update.notes:
            milestone.progress_notes = [*milestone.progress_notes, update.notes]

        year, week, _ = now.isocalendar()
        milestone.weekly_progress = {
            **milestone.weekly_progress,
            f"{year}-W{week:02d}": {
                "progress_percentage": update.progress_percentage,
                "actual_value": update.actual_value,
                "notes": update.notes,
                "recorded_at": now.isoformat(),
                "recorded_by": caller.caller_id,
            },
        }
        milestone.last_update_at = now
        self.store.commit(f"update progress of milestone {milestone_id}")
        logger.info(
            "Milestone %s progress %.1f%% by %s",
            milestone_id,
            update.progress_percentage,
            caller.caller_id,
        )
        return milestone

    def initialize_timeline(
        self, start_date: datetime, *, caller: CallerContext
    ) -> dict[str, Any]:
        """Seed the default market-entry plan from ``start_date``.

        Milestones whose title already exists are skipped, so the call can be
        repeated safely.

        Returns:
            ``{"created": [Milestone, ...], "skipped": [title, ...]}``
        """
        if not caller.is_admin:
            raise AuthorizationError(
                f"{caller.caller_id} may not initialize the timeline", caller_id=caller.caller_id
            )

        start = as_utc(start_date)
        existing = self.store.milestone_titles()
        created: list[Milestone] = []
        skipped: list[str] = []
        for plan in DEFAULT_TIMELINE:
            if plan.title in existing:
                skipped.append(plan.title)
                continue
            milestone = Milestone(
                title=plan.title,
                description=plan.description,
                type=plan.type,
                priority=plan.priority,
                status=MilestoneStatus.PLANNED,
                planned_start_date=start + timedelta(weeks=plan.first_week - 1),
                planned_end_date=start + timedelta(weeks=plan.last_week),
                target_value=plan.target_value,
                progress_percentage=0.0,
                progress_notes=[],
                weekly_progress={},
            )
            self.store.add(milestone)
            created.append(milestone)

        self.store.commit("initialize timeline")
        logger.info(
            "Timeline initialized by %s: %d created, %d skipped",
            caller.caller_id,
            len(created),
            len(skipped),
        )
        return {"created": created, "skipped": skipped}

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_milestone(self, milestone_id: int) -> Milestone:
        return self._require(milestone_id)

    def get_milestones(
        self, filters: MilestoneFilters | Mapping[str, Any] | None = None
    ) -> list[Milestone]:
        """List milestones matching ``filters`` by priority, then planned start."""

        criteria = validate_input(MilestoneFilters, filters, "milestone filters")
        milestones = self.store.list_milestones(criteria.active())
        return sorted(milestones, key=self._schedule_key)

    def get_execution_dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        """Status counts, delays, per-type breakdown, critical path and tracking."""

        now = resolve_now(now)
        milestones = sorted(self.store.list_milestones(), key=self._schedule_key)
        total = len(milestones)

        by_status = {status.value: 0 for status in MilestoneStatus}
        by_type = {kind.value: {"total": 0, "completed": 0} for kind in MilestoneType}
        delayed = []
        off_track = []
        on_track_count = 0
        recent_cutoff = now - timedelta(days=self.rules.recent_update_days)
        recent_updates = 0

        for milestone in milestones:
            status = MilestoneStatus(milestone.status)
            by_status[status] += 1
            by_type[milestone.type]["total"] += 1
            if status == MilestoneStatus.COMPLETED:
                by_type[milestone.type]["completed"] += 1
            if milestone.last_update_at and ensure_aware(milestone.last_update_at) >= recent_cutoff:
                recent_updates += 1
            if status in TERMINAL_STATES:
                continue
            if ensure_aware(milestone.planned_end_date) < now:
                delayed.append(_summary(milestone))
            on_track = is_on_track(
                status=status,
                progress_percentage=milestone.progress_percentage,
                planned_start=milestone.planned_start_date,
                planned_end=milestone.planned_end_date,
                now=now,
                tolerance=self.rules.on_track_tolerance,
            )
            if on_track:
                on_track_count += 1
            else:
                off_track.append(_summary(milestone))

        completed = by_status[MilestoneStatus.COMPLETED]
        return {
            "total_milestones": total,
            "by_status": by_status,
            "completion_rate": round(completed / total * 100, 2) if total else 0.0,
            "delayed": delayed,
            "by_type": by_type,
            "critical_path": [
                _summary(m)
                for m in milestones
                if m.priority == MilestonePriority.CRITICAL and m.status not in TERMINAL_STATES
            ],
            "on_track_count": on_track_count,
            "off_track": off_track,
            "recent_updates": recent_updates,
        }

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _require(self, milestone_id: int) -> Milestone:
        milestone = self.store.get_milestone(milestone_id)
        if milestone is None:
            raise NotFoundError("Milestone", milestone_id)
        return milestone

    @staticmethod
    def _require_open(milestone: Milestone, action: str) -> None:
        if milestone.status in TERMINAL_STATES:
            raise InvalidTransitionError(
                f"Milestone {milestone.id} is {milestone.status} and cannot {action}",
                milestone_id=milestone.id,
                current_status=milestone.status,
                attempted_event=action,
            )

    @staticmethod
    def _schedule_key(milestone: Milestone) -> tuple[int, datetime]:
        return (
            PRIORITY_ORDER.index(MilestonePriority(milestone.priority)),
            ensure_aware(milestone.planned_start_date),
        )

    @staticmethod
    def _enter(
        milestone: Milestone,
        event: MilestoneEvent,
        target: MilestoneStatus,
        now: datetime,
        reason: str | None = None,
    ) -> None:
        milestone.status = target
        if target == MilestoneStatus.IN_PROGRESS and milestone.actual_start_date is None:
            milestone.actual_start_date = now
        if target in TERMINAL_STATES and milestone.actual_end_date is None:
            milestone.actual_end_date = now
        if target == MilestoneStatus.COMPLETED:
            milestone.progress_percentage = 100.0
        if event == MilestoneEvent.BLOCK:
            milestone.blocked_reason = reason
        elif event == MilestoneEvent.UNBLOCK:
            milestone.blocked_reason = None
        if reason:
            milestone.progress_notes = [*milestone.progress_notes, f"{event}: {reason}"]
        milestone.last_update_at = now
