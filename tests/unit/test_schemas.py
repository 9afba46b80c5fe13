"""Unit tests for input validation schemas."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from conquest.domain.enums import JobOutcomeKind, TerritoryStatus, TerritoryType
from conquest.errors import ValidationError
from conquest.schemas import (
    CompetitorCreate,
    JobOutcomeCreate,
    MilestoneCreate,
    RevenueEventIn,
    TerritoryCreate,
    TerritoryFilters,
    validate_input,
)

START = datetime(2026, 1, 5, tzinfo=UTC)


class TestTerritoryCreate:
    def test_strips_and_parses(self):
        payload = validate_input(
            TerritoryCreate, {"name": "  Maple County ", "type": "residential"}, "territory"
        )
        assert payload.name == "Maple County"
        assert payload.type == TerritoryType.RESIDENTIAL

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "residential"},
            {"name": "", "type": "residential"},
            {"name": "   ", "type": "residential"},
            {"name": "Maple County"},
            {"name": "Maple County", "type": "rural"},
            {"name": "Maple County", "type": "mixed", "owner": "P1"},
        ],
    )
    def test_rejects_malformed(self, data):
        with pytest.raises(ValidationError):
            validate_input(TerritoryCreate, data, "territory")

    def test_passes_through_instances(self):
        payload = TerritoryCreate(name="Oak", type=TerritoryType.MIXED)
        assert validate_input(TerritoryCreate, payload, "territory") is payload

    @pytest.mark.parametrize("data", [["Maple County", "residential"], 42, "Maple County"])
    def test_non_mapping_is_a_validation_error(self, data):
        with pytest.raises(ValidationError) as exc_info:
            validate_input(TerritoryCreate, data, "territory")
        assert exc_info.value.details["fields"] == {"territory": "expected a mapping"}

    def test_other_models_are_revalidated(self):
        filters = TerritoryFilters(state="TX")
        with pytest.raises(ValidationError):
            validate_input(TerritoryCreate, filters, "territory")


class TestFilters:
    def test_unset_fields_impose_no_filter(self):
        filters = validate_input(TerritoryFilters, {"state": "TX"}, "filters")
        assert filters.active() == {"state": "TX"}

    def test_none_means_no_filters(self):
        assert validate_input(TerritoryFilters, None, "filters").active() == {}

    def test_enum_filters(self):
        filters = validate_input(TerritoryFilters, {"status": "protected"}, "filters")
        assert filters.active() == {"status": TerritoryStatus.PROTECTED}


class TestJobOutcomeCreate:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"outcome": "tied"},
            {"job_value": 0},
            {"job_value": -10},
            {"our_bid": 0},
            {"their_bid": -1},
            {"job_value": float("nan")},
            {"our_bid": float("inf")},
        ],
    )
    def test_rejects_invalid(self, overrides):
        data = {"outcome": "won", "job_value": 1000, "our_bid": 900, **overrides}
        with pytest.raises(ValidationError):
            validate_input(JobOutcomeCreate, data, "job outcome")

    def test_accepts_minimal(self):
        payload = validate_input(
            JobOutcomeCreate, {"outcome": "lost", "job_value": 1, "our_bid": 1}, "job outcome"
        )
        assert payload.outcome == JobOutcomeKind.LOST
        assert payload.their_bid is None


class TestCompetitorCreate:
    def test_rejects_non_positive_prices(self):
        with pytest.raises(ValidationError):
            validate_input(
                CompetitorCreate,
                {"name": "TreeCo", "type": "franchise", "pricing": {"removal": 0}},
                "competitor",
            )


class TestMilestoneCreate:
    def base(self, **overrides):
        return {
            "title": "Recruit",
            "description": "Recruit professionals",
            "type": "recruitment",
            "planned_start_date": START,
            "planned_end_date": START + timedelta(weeks=4),
            **overrides,
        }

    def test_window_must_increase(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_input(MilestoneCreate, self.base(planned_end_date=START), "milestone")
        assert "planned_start_date must be before planned_end_date" in exc_info.value.message

    def test_dates_normalized_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        payload = validate_input(
            MilestoneCreate,
            self.base(
                planned_start_date=datetime(2026, 1, 5, 7, 0, tzinfo=eastern),
                planned_end_date=datetime(2026, 2, 5),
            ),
            "milestone",
        )
        assert payload.planned_start_date == datetime(2026, 1, 5, 12, 0, tzinfo=UTC)
        assert payload.planned_end_date.tzinfo == UTC


class TestRevenueEventIn:
    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError):
            validate_input(
                RevenueEventIn,
                {"event_id": "e1", "professional_id": "P1", "amount": 0, "occurred_at": START},
                "revenue event",
            )

    def test_refunds_allowed(self):
        payload = validate_input(
            RevenueEventIn,
            {"event_id": "e1", "professional_id": "P1", "amount": -250, "occurred_at": START},
            "revenue event",
        )
        assert payload.amount == -250
