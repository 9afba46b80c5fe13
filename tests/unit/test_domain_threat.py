"""Unit tests for competitor threat scoring."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from hypothesis import given
from hypothesis import strategies as st

from conquest.domain.enums import THREAT_ORDER, JobOutcomeKind, ThreatLevel
from conquest.domain.rules_config import ThreatRules
from conquest.domain.threat import assess_threat, bucket_threat, summarize_outcomes

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
RULES = ThreatRules()


@dataclass
class Outcome:
    outcome: str
    job_value: float
    our_bid: float
    their_bid: float | None = None
    recorded_at: datetime = NOW


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


class TestSummarizeOutcomes:
    """Tests for folding history into counters."""

    def test_empty_history(self):
        totals = summarize_outcomes([])
        assert totals.total == 0
        assert totals.our_win_rate == 0.0
        assert totals.average_bid_gap is None

    def test_counts_and_values(self):
        history = [
            Outcome(JobOutcomeKind.WON, 5000, 4500, their_bid=4800),
            Outcome(JobOutcomeKind.LOST, 8000, 8200, their_bid=7600),
            Outcome(JobOutcomeKind.LOST, 2000, 2100),
        ]
        totals = summarize_outcomes(history)

        assert totals.jobs_won_against == 1
        assert totals.jobs_lost_to == 2
        assert totals.value_won == 5000
        assert totals.value_lost == 10000
        # Only outcomes with a known competitor bid contribute to the gap.
        assert totals.average_bid_gap == ((4500 - 4800) + (8200 - 7600)) / 2
        assert round(totals.our_win_rate, 4) == round(1 / 3, 4)


class TestAssessThreat:
    """Tests for the combined threat score."""

    def test_no_history_is_low(self):
        assessment = assess_threat([], NOW, RULES)
        assert assessment.score == 0.0
        assert assessment.level == ThreatLevel.LOW

    def test_recent_high_value_losses_are_at_least_medium(self):
        """Two recent expensive losses outweigh one old win."""
        history = [
            Outcome(JobOutcomeKind.WON, 3000, 2800, recorded_at=days_ago(365)),
            Outcome(JobOutcomeKind.LOST, 10000, 9000, recorded_at=days_ago(5)),
            Outcome(JobOutcomeKind.LOST, 12000, 11000, recorded_at=days_ago(10)),
        ]
        assessment = assess_threat(history, NOW, RULES)

        assert THREAT_ORDER.index(assessment.level) >= THREAT_ORDER.index(ThreatLevel.MEDIUM)
        assert assessment.win_rate == 1.0
        assert assessment.value_pressure == 0.55
        assert assessment.recency > 0.95

    def test_old_losses_weigh_less_than_recent_ones(self):
        recent_losses = [
            Outcome(JobOutcomeKind.WON, 5000, 5000, recorded_at=days_ago(300)),
            Outcome(JobOutcomeKind.LOST, 5000, 5000, recorded_at=days_ago(10)),
        ]
        old_losses = [
            Outcome(JobOutcomeKind.WON, 5000, 5000, recorded_at=days_ago(10)),
            Outcome(JobOutcomeKind.LOST, 5000, 5000, recorded_at=days_ago(300)),
        ]
        assert (
            assess_threat(recent_losses, NOW, RULES).score
            > assess_threat(old_losses, NOW, RULES).score
        )

    def test_outcomes_outside_window_only_feed_recency(self):
        history = [
            Outcome(JobOutcomeKind.LOST, 9000, 1000, recorded_at=days_ago(400)),
            Outcome(JobOutcomeKind.LOST, 9000, 1000, recorded_at=days_ago(500)),
        ]
        assessment = assess_threat(history, NOW, RULES)

        assert assessment.win_rate == 0.0
        assert assessment.value_pressure == 0.0
        assert assessment.recency == 1.0
        assert assessment.score == RULES.recency_weight
        assert assessment.level == ThreatLevel.LOW

    def test_value_pressure_is_capped(self):
        history = [Outcome(JobOutcomeKind.LOST, 100000, 1000, recorded_at=days_ago(1))]
        assert assess_threat(history, NOW, RULES).value_pressure == 1.0

    def test_weights_are_configurable(self):
        history = [
            Outcome(JobOutcomeKind.WON, 1000, 1000, recorded_at=days_ago(1)),
            Outcome(JobOutcomeKind.LOST, 4000, 1000, recorded_at=days_ago(1)),
        ]
        default = assess_threat(history, NOW, RULES)
        win_rate_only = assess_threat(
            history,
            NOW,
            ThreatRules(win_rate_weight=1.0, value_weight=0.0, recency_weight=0.0),
        )

        assert win_rate_only.score == 0.5
        assert default.score != win_rate_only.score

    def test_naive_timestamps_are_treated_as_utc(self):
        history = [
            Outcome(
                JobOutcomeKind.LOST, 1000, 1000, recorded_at=days_ago(1).replace(tzinfo=None)
            )
        ]
        assert assess_threat(history, NOW, RULES).win_rate == 1.0

    @given(
        st.lists(
            st.tuples(
                st.sampled_from([JobOutcomeKind.WON, JobOutcomeKind.LOST]),
                st.floats(min_value=1, max_value=1e6),
                st.floats(min_value=1, max_value=1e6),
                st.integers(min_value=0, max_value=1000),
            ),
            max_size=20,
        )
    )
    def test_score_is_bounded(self, rows):
        """Property-based test: every component and the score stay within [0, 1]."""
        history = [
            Outcome(kind, value, bid, recorded_at=days_ago(age)) for kind, value, bid, age in rows
        ]
        assessment = assess_threat(history, NOW, RULES)

        for component in (assessment.win_rate, assessment.value_pressure, assessment.recency):
            assert 0.0 <= component <= 1.0
        assert 0.0 <= assessment.score <= 1.0


class TestBucketThreat:
    """Tests for mapping scores onto levels."""

    def test_thresholds_are_inclusive(self):
        assert bucket_threat(0.3499, RULES) == ThreatLevel.LOW
        assert bucket_threat(0.35, RULES) == ThreatLevel.MEDIUM
        assert bucket_threat(0.55, RULES) == ThreatLevel.HIGH
        assert bucket_threat(0.75, RULES) == ThreatLevel.CRITICAL
        assert bucket_threat(1.0, RULES) == ThreatLevel.CRITICAL

    @given(
        st.floats(min_value=0, max_value=1),
        st.floats(min_value=0, max_value=1),
    )
    def test_bucketing_is_monotonic(self, a, b):
        """Property-based test: a higher score never maps to a lower level."""
        low, high = sorted((a, b))
        assert THREAT_ORDER.index(bucket_threat(low, RULES)) <= THREAT_ORDER.index(
            bucket_threat(high, RULES)
        )
