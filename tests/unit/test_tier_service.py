"""Unit tests for TierService."""

from datetime import timedelta

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from conquest.domain.context import CallerContext, ensure_aware, system_context
from conquest.domain.enums import Tier, TierChangeReason
from conquest.errors import AuthorizationError, NotFoundError, ValidationError
from conquest.models import ProfessionalTier, RevenueEvent, TierChange
from conquest.services.tier_service import TierService


@pytest.fixture
def service(session):
    return TierService(session)


@pytest.fixture
def system(now):
    return system_context(now)


@pytest.fixture
def p1(service, professional):
    return service.initialize_professional_tier("P1", caller=professional("P1"))


def revenue_event(event_id, amount, now, professional_id="P1"):
    return {
        "event_id": event_id,
        "professional_id": professional_id,
        "amount": amount,
        "occurred_at": now,
    }


class TestInitialize:
    """Tests for idempotent initialization."""

    def test_starts_at_entry_tier(self, p1, now):
        assert p1.current_tier == Tier.BRONZE
        assert p1.qualifying_revenue == 0.0
        assert ensure_aware(p1.tier_entered_at) == now

    def test_twice_returns_same_record(self, session, service, p1, professional):
        again = service.initialize_professional_tier("P1", caller=professional("P1"))

        assert again.id == p1.id
        assert session.query(ProfessionalTier).count() == 1
        assert session.query(TierChange).count() == 1

    def test_requires_professional(self, service, admin):
        with pytest.raises(ValidationError):
            service.initialize_professional_tier("", caller=admin)

    def test_other_professional_rejected(self, service, professional):
        with pytest.raises(AuthorizationError):
            service.initialize_professional_tier("P1", caller=professional("P2"))


class TestRecomputeTier:
    """Tests for revenue snapshots."""

    def test_progression(self, service, p1, system):
        record = service.recompute_tier("P1", 70_000, caller=system)
        assert record.current_tier == Tier.GOLD
        assert record.qualifying_revenue == 70_000

        history = service.get_professional_tier_dashboard("P1")["history"]
        assert [h["reason"] for h in history] == ["initial", "progression"]
        assert history[-1]["from_tier"] == "bronze"
        assert history[-1]["to_tier"] == "gold"

    def test_lower_snapshot_never_demotes(self, service, p1, system):
        service.recompute_tier("P1", 150_000, caller=system)
        record = service.recompute_tier("P1", 10_000, caller=system)
        assert record.current_tier == Tier.PLATINUM
        assert record.qualifying_revenue == 10_000

    def test_tier_entered_at_moves_only_on_change(self, service, p1, now):
        later = system_context(now + timedelta(days=10))
        service.recompute_tier("P1", 20_000, caller=later)
        record = service.recompute_tier(
            "P1", 25_000, caller=system_context(now + timedelta(days=20))
        )
        assert record.current_tier == Tier.SILVER
        assert ensure_aware(record.tier_entered_at) == later.now

    @pytest.mark.parametrize("revenue", [-1, float("nan"), float("inf")])
    def test_invalid_snapshot(self, service, p1, system, revenue):
        with pytest.raises(ValidationError):
            service.recompute_tier("P1", revenue, caller=system)

    def test_requires_admin(self, service, p1, professional):
        with pytest.raises(AuthorizationError):
            service.recompute_tier("P1", 1_000_000, caller=professional("P1"))
        assert service.get_professional_tier("P1").current_tier == Tier.BRONZE

    def test_unknown_professional(self, service, system):
        with pytest.raises(NotFoundError):
            service.recompute_tier("ghost", 10, caller=system)

    @settings(max_examples=25, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(st.lists(st.floats(min_value=0, max_value=500_000), min_size=1, max_size=8))
    def test_tier_never_decreases(self, service, system, snapshots):
        """Property-based test: any snapshot sequence yields non-decreasing tiers."""
        professional_id = f"P-{len(snapshots)}-{hash(tuple(snapshots))}"
        service.initialize_professional_tier(professional_id, caller=system)
        ranks = []
        for revenue in snapshots:
            record = service.recompute_tier(professional_id, revenue, caller=system)
            ranks.append(Tier(record.current_tier).rank)
        assert ranks == sorted(ranks)


class TestRevenueEvents:
    """Tests for consuming revenue notifications."""

    def test_events_accumulate(self, service, p1, system, now):
        service.record_revenue_event(revenue_event("e1", 12_000, now), caller=system)
        record = service.record_revenue_event(revenue_event("e2", 7_000, now), caller=system)
        assert record.qualifying_revenue == 19_000
        assert record.current_tier == Tier.SILVER

    def test_replay_is_ignored(self, session, service, p1, system, now):
        service.record_revenue_event(revenue_event("e1", 20_000, now), caller=system)
        record = service.record_revenue_event(revenue_event("e1", 20_000, now), caller=system)
        assert record.qualifying_revenue == 20_000
        assert session.query(RevenueEvent).count() == 1

    def test_refund_clamped_and_keeps_tier(self, service, p1, system, now):
        service.record_revenue_event(revenue_event("e1", 20_000, now), caller=system)
        record = service.record_revenue_event(revenue_event("e2", -50_000, now), caller=system)
        assert record.qualifying_revenue == 0.0
        assert record.current_tier == Tier.SILVER

    def test_malformed_event(self, service, p1, system, now):
        with pytest.raises(ValidationError):
            service.record_revenue_event(revenue_event("", 100, now), caller=system)

    def test_professional_cannot_report_own_revenue(self, service, p1, professional, now):
        with pytest.raises(AuthorizationError):
            service.record_revenue_event(
                revenue_event("e1", 100_000, now), caller=professional("P1")
            )


class TestDemotion:
    """Tests for administrative demotion and ceilings."""

    def test_demotion_sets_ceiling(self, service, p1, system, admin):
        service.recompute_tier("P1", 150_000, caller=system)

        record = service.demote_professional("P1", "silver", caller=admin, reason="complaints")

        assert record.current_tier == Tier.SILVER
        assert record.tier_ceiling == Tier.SILVER
        change = service.get_professional_tier_dashboard("P1")["history"][-1]
        assert change["reason"] == TierChangeReason.DEMOTION
        assert change["note"] == "complaints"
        assert change["changed_by"] == admin.caller_id

    def test_recompute_respects_ceiling(self, service, p1, system, admin):
        service.recompute_tier("P1", 70_000, caller=system)
        service.demote_professional("P1", Tier.BRONZE, caller=admin)

        record = service.recompute_tier("P1", 400_000, caller=system)

        assert record.current_tier == Tier.BRONZE

    def test_lifting_ceiling_recomputes(self, service, p1, system, admin):
        service.recompute_tier("P1", 70_000, caller=system)
        service.demote_professional("P1", Tier.SILVER, caller=admin)

        record = service.lift_tier_ceiling("P1", caller=admin)

        assert record.tier_ceiling is None
        assert record.current_tier == Tier.GOLD

    def test_lifting_absent_ceiling_is_noop(self, service, p1, admin):
        assert service.lift_tier_ceiling("P1", caller=admin).current_tier == Tier.BRONZE

    def test_demotion_requires_admin(self, service, p1, professional):
        with pytest.raises(AuthorizationError):
            service.demote_professional("P1", "bronze", caller=professional("P1"))

    @pytest.mark.parametrize("target", ["gold", "bronze", "diamond"])
    def test_target_must_be_lower(self, service, p1, admin, target):
        with pytest.raises(ValidationError):
            service.demote_professional("P1", target, caller=admin)


class TestDashboards:
    """Tests for read-side views."""

    def test_professional_dashboard(self, service, p1, system, now):
        service.recompute_tier("P1", 102_000, caller=system)

        dashboard = service.get_professional_tier_dashboard(
            "P1", now=now + timedelta(days=3)
        )

        assert dashboard["current_tier"] == "gold"
        assert dashboard["next_tier"] == "platinum"
        assert dashboard["revenue_to_next_tier"] == 42_000
        assert dashboard["progress_percentage"] == 50.0
        assert dashboard["days_in_tier"] == 3
        assert dashboard["benefits"]["territory_protection"] is True
        assert dashboard["benefits"]["commission_bonus_pct"] == 5
        assert len(dashboard["history"]) == 2

    def test_dashboard_unknown_professional(self, service):
        with pytest.raises(NotFoundError):
            service.get_professional_tier_dashboard("nobody")

    def test_tier_analytics(self, service, system):
        for pid, revenue in (("A", 0), ("B", 20_000), ("C", 20_000), ("D", 350_000)):
            service.initialize_professional_tier(pid, caller=system)
            if revenue:
                service.recompute_tier(pid, revenue, caller=system)

        analytics = service.get_tier_analytics()

        assert analytics["total_professionals"] == 4
        assert analytics["by_tier"] == {
            "bronze": 1,
            "silver": 2,
            "gold": 0,
            "platinum": 0,
            "elite": 1,
        }
        assert analytics["average_qualifying_revenue"] == 97_500
        assert analytics["top_performers"][0]["professional_id"] == "D"

    def test_empty_analytics(self, service):
        analytics = service.get_tier_analytics()
        assert analytics["total_professionals"] == 0
        assert set(analytics["by_tier"]) == {tier.value for tier in Tier}


def test_system_context_is_admin(now):
    assert system_context(now).is_admin
    assert not CallerContext(caller_id="P1", now=now).is_admin
