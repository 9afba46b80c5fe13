"""Stale milestone edits are detected by the row version."""

from datetime import timedelta

import pytest

from conquest.domain.enums import MilestoneStatus
from conquest.errors import ConflictError
from conquest.services.execution_service import ExecutionService


def test_stale_transition_conflicts(session_factory, admin, now):
    with session_factory() as session:
        milestone_id = ExecutionService(session).create_milestone(
            {
                "title": "Recruit First 25 Professionals",
                "description": "Onboard certified professionals",
                "type": "recruitment",
                "planned_start_date": now,
                "planned_end_date": now + timedelta(weeks=4),
            },
            caller=admin,
        ).id

    first = session_factory()
    second = session_factory()
    try:
        stale = ExecutionService(second)
        stale.get_milestone(milestone_id)

        ExecutionService(first).start_milestone(milestone_id, caller=admin)

        with pytest.raises(ConflictError):
            stale.start_milestone(milestone_id, caller=admin)
    finally:
        first.close()
        second.close()

    with session_factory() as session:
        milestone = ExecutionService(session).get_milestone(milestone_id)
        assert milestone.status == MilestoneStatus.IN_PROGRESS
        assert milestone.version == 2
