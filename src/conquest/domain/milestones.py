"""Milestone lifecycle as an explicit transition table."""

from __future__ import annotations

from datetime import datetime

from conquest.domain.context import ensure_aware
from conquest.domain.enums import MilestoneEvent, MilestoneStatus
from conquest.errors import InvalidTransitionError

TRANSITIONS: dict[tuple[MilestoneStatus, MilestoneEvent], MilestoneStatus] = {
    (MilestoneStatus.PLANNED, MilestoneEvent.START): MilestoneStatus.IN_PROGRESS,
    (MilestoneStatus.IN_PROGRESS, MilestoneEvent.COMPLETE): MilestoneStatus.COMPLETED,
    (MilestoneStatus.IN_PROGRESS, MilestoneEvent.BLOCK): MilestoneStatus.BLOCKED,
    (MilestoneStatus.IN_PROGRESS, MilestoneEvent.CANCEL): MilestoneStatus.CANCELLED,
    (MilestoneStatus.BLOCKED, MilestoneEvent.UNBLOCK): MilestoneStatus.IN_PROGRESS,
    (MilestoneStatus.BLOCKED, MilestoneEvent.CANCEL): MilestoneStatus.CANCELLED,
}

TERMINAL_STATES = frozenset({MilestoneStatus.COMPLETED, MilestoneStatus.CANCELLED})


def allowed_events(status: MilestoneStatus) -> list[MilestoneEvent]:
    return [event for (state, event) in TRANSITIONS if state == status]


def next_status(
    status: MilestoneStatus, event: MilestoneEvent, *, milestone_id: object = None
) -> MilestoneStatus:
    """Look up the target state or raise ``InvalidTransitionError``."""

    status = MilestoneStatus(status)
    event = MilestoneEvent(event)
    target = TRANSITIONS.get((status, event))
    if target is None:
        allowed = ", ".join(allowed_events(status)) or "none (terminal)"
        raise InvalidTransitionError(
            f"Milestone {milestone_id} cannot {event} while {status}; allowed: {allowed}",
            milestone_id=milestone_id,
            current_status=str(status),
            attempted_event=str(event),
        )
    return target


def is_on_track(
    *,
    status: MilestoneStatus,
    progress_percentage: float,
    planned_start: datetime,
    planned_end: datetime,
    now: datetime,
    tolerance: float,
) -> bool:
    """Progress is on track when it reaches ``tolerance`` of the elapsed share."""

    if status == MilestoneStatus.COMPLETED:
        return True
    if status in (MilestoneStatus.BLOCKED, MilestoneStatus.CANCELLED):
        return False
    start = ensure_aware(planned_start)
    end = ensure_aware(planned_end)
    total = (end - start).total_seconds()
    elapsed = (ensure_aware(now) - start).total_seconds()
    if elapsed <= 0:
        return True
    expected = min(100.0, elapsed / total * 100)
    return progress_percentage >= expected * tolerance
