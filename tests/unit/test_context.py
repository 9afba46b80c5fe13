"""Unit tests for the caller context and clock helpers."""

from datetime import UTC, datetime, timedelta, timezone

from conquest.domain.context import CallerContext, resolve_now, system_context
from conquest.domain.enums import CallerRole

PLUS_FIVE = timezone(timedelta(hours=5))


class TestCallerContext:
    """Tests for request clock normalization and acting rights."""

    def test_offset_clock_is_normalized_to_utc(self, now):
        caller = CallerContext(caller_id="P1", now=now.astimezone(PLUS_FIVE))
        assert caller.now.tzinfo == UTC
        assert caller.now == now
        assert caller.now.hour == 12

    def test_naive_clock_is_read_as_utc(self):
        caller = CallerContext(caller_id="P1", now=datetime(2026, 3, 2, 12, 0))
        assert caller.now == datetime(2026, 3, 2, 12, 0, tzinfo=UTC)

    def test_default_clock_is_utc(self):
        assert CallerContext(caller_id="P1").now.tzinfo == UTC

    def test_acts_for(self, admin, professional):
        assert professional("P1").acts_for("P1")
        assert not professional("P1").acts_for("P2")
        assert admin.acts_for("P2")


class TestClockHelpers:
    def test_resolve_now_converts_offsets(self, now):
        assert resolve_now(now.astimezone(PLUS_FIVE)).tzinfo == UTC

    def test_system_context(self, now):
        caller = system_context(now.astimezone(PLUS_FIVE))
        assert caller.role == CallerRole.ADMIN
        assert caller.now == now
        assert caller.now.tzinfo == UTC
