"""Concurrent job outcomes against one competitor on a file-backed database."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conquest.database import count_rows
from conquest.domain.context import CallerContext
from conquest.services.competitor_service import CompetitorService


@pytest.fixture
def competitor_id(session_factory, admin):
    with session_factory() as session:
        competitor = CompetitorService(session).add_competitor(
            {"name": "Rival Trees", "type": "local_company"}, caller=admin
        )
        return competitor.id


def test_stale_session_recomputes_full_history(session_factory, competitor_id, professional):
    first = session_factory()
    second = session_factory()
    try:
        stale = CompetitorService(second)
        assert stale.get_competitor(competitor_id).jobs_lost_to == 0

        CompetitorService(first).track_job_outcome(
            competitor_id, "lost", 4000, 4100, 3900, caller=professional("P1")
        )
        competitor = stale.track_job_outcome(
            competitor_id, "won", 2500, 2400, 2600, caller=professional("P2")
        )

        assert competitor.jobs_lost_to == 1
        assert competitor.jobs_won_against == 1
    finally:
        first.close()
        second.close()

    with session_factory() as session:
        competitor = CompetitorService(session).get_competitor(competitor_id)
        assert competitor.jobs_lost_to == 1
        assert competitor.jobs_won_against == 1
        assert competitor.value_lost == 4000
        assert competitor.value_won == 2500


def test_parallel_outcomes_all_counted(session_factory, competitor_id, now):
    outcomes = ["won", "lost"] * 3
    barrier = threading.Barrier(len(outcomes))

    def track(index):
        with session_factory() as session:
            service = CompetitorService(session)
            service.get_competitor(competitor_id)
            barrier.wait()
            service.track_job_outcome(
                competitor_id,
                outcomes[index],
                1000,
                1000,
                caller=CallerContext(caller_id=f"P{index}", now=now),
            )

    with ThreadPoolExecutor(max_workers=len(outcomes)) as pool:
        list(pool.map(track, range(len(outcomes))))

    with session_factory() as session:
        competitor = CompetitorService(session).get_competitor(competitor_id)
        assert competitor.jobs_won_against == 3
        assert competitor.jobs_lost_to == 3
        assert competitor.value_won == 3000
        assert count_rows(session, "job_outcomes") == 6
