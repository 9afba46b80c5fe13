"""SQLAlchemy-backed storage collaborator for the conquest services.

Contract offered to the services:

* plain reads with equality filters and date-window range queries;
* ``compare_and_set_territory``: an ``UPDATE ... WHERE id = :id AND
  version = :expected`` that bumps ``version`` and raises ``ConflictError``
  when no row matched, so two writers holding the same snapshot cannot both
  succeed;
* ``lock_competitor`` / ``lock_tier``: an ``UPDATE`` of the row followed by a
  fresh ``SELECT``, for the read-modify-write sequences. The write comes first
  so the lock (a row lock, or the database write lock on SQLite, which ignores
  ``FOR UPDATE``) is held before anything is read;
* every driver failure is translated exactly once into ``StorageError`` or
  ``StorageTimeoutError``; nothing is retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from conquest.domain.enums import JobOutcomeKind, TerritoryStatus
from conquest.errors import ConflictError, StorageError, StorageTimeoutError
from conquest.models import (
    Competitor,
    JobOutcome,
    Milestone,
    ProfessionalTier,
    RevenueEvent,
    Territory,
    TierChange,
)

logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = ("database is locked", "timeout", "timed out")


class ConquestStore:
    """Unit-of-work wrapper around a single SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # ------------------------------------------------------------------ #
    # Transaction control
    # ------------------------------------------------------------------ #

    @contextmanager
    def guard(self, action: str) -> Iterator[None]:
        """Translate SQLAlchemy failures raised inside the block."""

        try:
            yield
        except StaleDataError as exc:
            self.session.rollback()
            raise ConflictError(
                f"Concurrent modification while trying to {action}", action=action
            ) from exc
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(
                f"Integrity conflict while trying to {action}",
                action=action,
                reason=str(exc.orig),
            ) from exc
        except PoolTimeoutError as exc:
            self.session.rollback()
            raise StorageTimeoutError(
                f"Timed out waiting for a connection to {action}", action=action
            ) from exc
        except OperationalError as exc:
            self.session.rollback()
            reason = str(exc.orig)
            if any(marker in reason.lower() for marker in _TIMEOUT_MARKERS):
                raise StorageTimeoutError(
                    f"Storage timed out while trying to {action}", action=action, reason=reason
                ) from exc
            raise StorageError(
                f"Storage failed while trying to {action}", action=action, reason=reason
            ) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(
                f"Storage failed while trying to {action}", action=action, reason=str(exc)
            ) from exc

    def add(self, entity: Any) -> None:
        self.session.add(entity)

    def flush(self, action: str = "flush pending changes") -> None:
        with self.guard(action):
            self.session.flush()

    def commit(self, action: str = "commit") -> None:
        with self.guard(action):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def refresh(self, entity: Any, action: str = "reload entity") -> None:
        with self.guard(action):
            self.session.refresh(entity)

    # ------------------------------------------------------------------ #
    # Territories
    # ------------------------------------------------------------------ #

    def get_territory(self, territory_id: int) -> Territory | None:
        with self.guard(f"load territory {territory_id}"):
            return self.session.get(Territory, territory_id)

    def list_territories(self, filters: dict[str, Any] | None = None) -> list[Territory]:
        stmt = (
            select(Territory)
            .filter_by(**(filters or {}))
            .order_by(Territory.opportunity_score.desc(), Territory.id)
        )
        with self.guard("list territories"):
            return list(self.session.scalars(stmt))

    def list_lapsed_protections(self, now: datetime) -> list[Territory]:
        stmt = select(Territory).where(
            Territory.status == TerritoryStatus.PROTECTED,
            Territory.protected_until <= now,
        )
        with self.guard("list lapsed protections"):
            return list(self.session.scalars(stmt))

    def compare_and_set_territory(self, territory: Territory, **changes: Any) -> Territory:
        """Apply ``changes`` only if the row still carries ``territory.version``.

        On success the row's version is incremented, the change is flushed
        into the current transaction and ``territory`` is refreshed. On a
        version mismatch the transaction is rolled back and ``ConflictError``
        reports what the row holds now.
        """

        expected = territory.version
        stmt = (
            update(Territory)
            .where(Territory.id == territory.id, Territory.version == expected)
            .values(**changes, version=expected + 1)
            .execution_options(synchronize_session=False)
        )
        with self.guard(f"update territory {territory.id}"):
            result = self.session.execute(stmt)
        if result.rowcount != 1:
            self.session.rollback()
            self.refresh(territory, f"reload territory {territory.id}")
            logger.warning(
                "Stale claim on territory %s: expected version %s, found %s",
                territory.id,
                expected,
                territory.version,
            )
            raise ConflictError(
                f"Territory {territory.id} was modified concurrently "
                f"(now {territory.status}, held by {territory.professional_id})",
                territory_id=territory.id,
                expected_version=expected,
                current_version=territory.version,
                current_status=territory.status,
                current_holder=territory.professional_id,
            )
        self.refresh(territory, f"reload territory {territory.id}")
        return territory

    # ------------------------------------------------------------------ #
    # Competitors and outcomes
    # ------------------------------------------------------------------ #

    def get_competitor(self, competitor_id: int) -> Competitor | None:
        with self.guard(f"load competitor {competitor_id}"):
            return self.session.get(Competitor, competitor_id)

    def lock_competitor(self, competitor_id: int) -> Competitor | None:
        """Take the write lock on a competitor, then load it fresh."""

        touch = (
            update(Competitor)
            .where(Competitor.id == competitor_id)
            .values(threat_score=Competitor.threat_score)
            .execution_options(synchronize_session=False)
        )
        stmt = (
            select(Competitor)
            .where(Competitor.id == competitor_id)
            .execution_options(populate_existing=True)
        )
        with self.guard(f"lock competitor {competitor_id}"):
            self.session.execute(touch)
            return self.session.scalars(stmt).first()

    def list_competitors(self, filters: dict[str, Any] | None = None) -> list[Competitor]:
        stmt = (
            select(Competitor)
            .filter_by(**(filters or {}))
            .order_by(Competitor.threat_score.desc(), Competitor.id)
        )
        with self.guard("list competitors"):
            return list(self.session.scalars(stmt))

    def outcomes_for(self, competitor_id: int) -> list[JobOutcome]:
        stmt = (
            select(JobOutcome)
            .where(JobOutcome.competitor_id == competitor_id)
            .order_by(JobOutcome.recorded_at, JobOutcome.id)
        )
        with self.guard(f"load outcomes of competitor {competitor_id}"):
            return list(self.session.scalars(stmt))

    def outcomes_by_competitor(self, competitor_ids: Iterable[int]) -> dict[int, list[JobOutcome]]:
        ids = list(competitor_ids)
        grouped: dict[int, list[JobOutcome]] = {competitor_id: [] for competitor_id in ids}
        stmt = (
            select(JobOutcome)
            .where(JobOutcome.competitor_id.in_(ids))
            .order_by(JobOutcome.recorded_at, JobOutcome.id)
        )
        with self.guard("load outcome history"):
            for outcome in self.session.scalars(stmt):
                grouped[outcome.competitor_id].append(outcome)
        return grouped

    def recent_outcomes(
        self, competitor_ids: Iterable[int] | None, limit: int
    ) -> list[JobOutcome]:
        stmt = select(JobOutcome).order_by(JobOutcome.recorded_at.desc(), JobOutcome.id.desc())
        if competitor_ids is not None:
            stmt = stmt.where(JobOutcome.competitor_id.in_(list(competitor_ids)))
        with self.guard("load recent outcomes"):
            return list(self.session.scalars(stmt.limit(limit)))

    def competitor_counts_by_territory(self, territory_ids: Iterable[int]) -> dict[int, int]:
        stmt = (
            select(Competitor.territory_id, func.count(Competitor.id))
            .where(Competitor.territory_id.in_(list(territory_ids)))
            .group_by(Competitor.territory_id)
        )
        with self.guard("count competitors per territory"):
            return {territory_id: count for territory_id, count in self.session.execute(stmt)}

    def won_value_by_professional(
        self, professional_ids: Iterable[str], since: datetime
    ) -> dict[str, float]:
        """Sum of won job value per professional recorded at or after ``since``."""

        stmt = (
            select(JobOutcome.professional_id, func.sum(JobOutcome.job_value))
            .where(
                JobOutcome.professional_id.in_(list(professional_ids)),
                JobOutcome.outcome == JobOutcomeKind.WON,
                JobOutcome.recorded_at >= since,
            )
            .group_by(JobOutcome.professional_id)
        )
        with self.guard("sum recent revenue"):
            return {pid: float(total or 0.0) for pid, total in self.session.execute(stmt)}

    # ------------------------------------------------------------------ #
    # Tiers
    # ------------------------------------------------------------------ #

    def get_tier(self, professional_id: str) -> ProfessionalTier | None:
        stmt = select(ProfessionalTier).where(ProfessionalTier.professional_id == professional_id)
        with self.guard(f"load tier of {professional_id}"):
            return self.session.scalars(stmt).first()

    def lock_tier(self, professional_id: str) -> ProfessionalTier | None:
        """Bump the tier row version to take the write lock, then load it fresh.

        Concurrent writers for the same professional queue on the bump, so
        each one reads the revenue its predecessor committed.
        """
        bump = (
            update(ProfessionalTier)
            .where(ProfessionalTier.professional_id == professional_id)
            .values(version=ProfessionalTier.version + 1)
            .execution_options(synchronize_session=False)
        )
        stmt = (
            select(ProfessionalTier)
            .where(ProfessionalTier.professional_id == professional_id)
            .execution_options(populate_existing=True)
        )
        with self.guard(f"lock tier of {professional_id}"):
            self.session.execute(bump)
            return self.session.scalars(stmt).first()

    def list_tiers(self) -> list[ProfessionalTier]:
        stmt = select(ProfessionalTier).order_by(ProfessionalTier.professional_id)
        with self.guard("list tiers"):
            return list(self.session.scalars(stmt))

    def tiers_for(self, professional_ids: Iterable[str]) -> dict[str, ProfessionalTier]:
        stmt = select(ProfessionalTier).where(
            ProfessionalTier.professional_id.in_(list(professional_ids))
        )
        with self.guard("load tiers"):
            return {row.professional_id: row for row in self.session.scalars(stmt)}

    def revenue_event_seen(self, event_id: str) -> bool:
        stmt = select(RevenueEvent.id).where(RevenueEvent.event_id == event_id)
        with self.guard(f"look up revenue event {event_id}"):
            return self.session.scalars(stmt).first() is not None

    def tier_history(self, professional_id: str) -> list[TierChange]:
        stmt = (
            select(TierChange)
            .where(TierChange.professional_id == professional_id)
            .order_by(TierChange.changed_at, TierChange.id)
        )
        with self.guard(f"load tier history of {professional_id}"):
            return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------ #
    # Milestones
    # ------------------------------------------------------------------ #

    def get_milestone(self, milestone_id: int) -> Milestone | None:
        with self.guard(f"load milestone {milestone_id}"):
            return self.session.get(Milestone, milestone_id)

    def list_milestones(self, filters: dict[str, Any] | None = None) -> list[Milestone]:
        stmt = select(Milestone).filter_by(**(filters or {}))
        with self.guard("list milestones"):
            return list(self.session.scalars(stmt))

    def milestone_titles(self) -> set[str]:
        with self.guard("list milestone titles"):
            return set(self.session.scalars(select(Milestone.title)))
