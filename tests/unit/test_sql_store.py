"""Tests for ConquestStore error translation and conditional updates."""

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from conquest.domain.enums import TerritoryStatus
from conquest.errors import ConflictError, StorageError, StorageTimeoutError
from conquest.models import ProfessionalTier, Territory
from conquest.repository import ConquestStore


@pytest.fixture
def store(engine):
    session = Session(engine, expire_on_commit=False)
    yield ConquestStore(session)
    session.close()


@pytest.fixture
def territory(store):
    territory = Territory(name="Maple County", type="residential", status=TerritoryStatus.OPEN)
    store.add(territory)
    store.commit()
    return territory


class TestGuard:
    """Driver failures map onto the engine's error kinds."""

    @pytest.mark.parametrize(
        ("raised", "expected"),
        [
            (StaleDataError("row changed"), ConflictError),
            (IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")), ConflictError),
            (PoolTimeoutError("QueuePool limit reached"), StorageTimeoutError),
            (OperationalError("UPDATE", {}, Exception("database is locked")), StorageTimeoutError),
            (
                OperationalError("SELECT", {}, Exception("canceling statement: statement timeout")),
                StorageTimeoutError,
            ),
            (OperationalError("SELECT", {}, Exception("disk I/O error")), StorageError),
            (ProgrammingError("SELECT", {}, Exception("no such table")), StorageError),
        ],
    )
    def test_translation(self, store, raised, expected):
        with pytest.raises(expected) as exc_info, store.guard("load things"):
            raise raised

        assert exc_info.value.details["action"] == "load things"
        assert exc_info.value.__cause__ is raised

    def test_timeouts_are_storage_errors(self, store):
        with pytest.raises(StorageError), store.guard("commit"):
            raise PoolTimeoutError("QueuePool limit reached")

    def test_other_exceptions_pass_through(self, store):
        with pytest.raises(KeyError), store.guard("read"):
            raise KeyError("boom")


class TestCompareAndSet:
    """Conditional updates on the territory version."""

    def test_matching_version_bumps(self, store, territory):
        store.compare_and_set_territory(
            territory, status=TerritoryStatus.ASSIGNED, professional_id="P1"
        )
        store.commit()

        assert territory.version == 2
        assert territory.status == TerritoryStatus.ASSIGNED
        assert territory.professional_id == "P1"

    def test_stale_version_conflicts(self, store, territory):
        store.session.execute(
            update(Territory)
            .where(Territory.id == territory.id)
            .values(version=5, status=TerritoryStatus.ASSIGNED, professional_id="P9")
            .execution_options(synchronize_session=False)
        )
        store.commit()
        assert territory.version == 1

        with pytest.raises(ConflictError) as exc_info:
            store.compare_and_set_territory(territory, professional_id="P1")

        details = exc_info.value.details
        assert details["expected_version"] == 1
        assert details["current_version"] == 5
        assert details["current_holder"] == "P9"
        assert territory.professional_id == "P9"


def test_filters_and_ordering(store):
    for name, score, state in (("Low", 10, "TX"), ("High", 80, "TX"), ("Other", 50, "OK")):
        store.add(
            Territory(
                name=name,
                type="mixed",
                state=state,
                status=TerritoryStatus.OPEN,
                opportunity_score=score,
            )
        )
    store.commit()

    assert [t.name for t in store.list_territories()] == ["High", "Other", "Low"]
    assert [t.name for t in store.list_territories({"state": "TX"})] == ["High", "Low"]


class TestLockTier:
    """Tests for the lock-first tier read."""

    @pytest.fixture
    def tier(self, store, now):
        tier = ProfessionalTier(
            professional_id="P1", current_tier="bronze", qualifying_revenue=0.0, tier_entered_at=now
        )
        store.add(tier)
        store.commit()
        return tier

    def test_bumps_version_and_reloads(self, store, tier):
        assert tier.version == 1

        locked = store.lock_tier("P1")

        assert locked is tier
        assert locked.version == 2
        locked.qualifying_revenue = 5000.0
        store.commit()
        assert tier.version == 3

    def test_unknown_professional(self, store):
        assert store.lock_tier("P9") is None
        store.rollback()

    def test_tiers_for(self, store, tier):
        assert store.tiers_for(["P1", "P9"]) == {"P1": tier}
