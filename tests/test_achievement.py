"""
Tests for the achievement aggregator: per-date success cap, duplicate
policies, timezone grouping and frequency weeks.
"""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from cadence.services.achievement import (
    DuplicatePolicy,
    VerificationEvent,
    aggregate_achievement,
    aggregate_frequency,
    percent,
)
from cadence.services.date_ranges import DateRange

SEOUL = ZoneInfo("Asia/Seoul")


def _ok(day: int, hour: int = 7, minute: int = 0) -> VerificationEvent:
    return VerificationEvent(datetime(2025, 1, day, hour, minute, tzinfo=SEOUL), "success")


def _fail(day: int) -> VerificationEvent:
    return VerificationEvent(datetime(2025, 1, day, 7, 0, tzinfo=SEOUL), "fail")


class TestAggregateAchievement:
    def test_surplus_successes_are_capped(self):
        result = aggregate_achievement({date(2025, 1, 6): 1}, [_ok(6), _ok(6, 9)], SEOUL)
        assert result.total_achieved == 1
        assert result.achievement_percent == 100
        assert result.days[0].success == 2

    def test_nothing_required(self):
        result = aggregate_achievement({}, [_ok(6)], SEOUL)
        assert result.required_total == 0
        assert result.achievement_percent == 0

    def test_successes_on_unrequired_dates_are_ignored(self):
        result = aggregate_achievement({date(2025, 1, 6): 1}, [_ok(7)], SEOUL)
        assert result.total_achieved == 0

    def test_fails_are_reported_but_never_achieve(self):
        result = aggregate_achievement({date(2025, 1, 6): 1}, [_fail(6)], SEOUL)
        assert result.days[0].fail == 1
        assert result.total_achieved == 0

    def test_count_each_counts_simultaneous_events(self):
        events = [_ok(6), _ok(6)]
        result = aggregate_achievement({date(2025, 1, 6): 2}, events, SEOUL)
        assert result.total_achieved == 2
        assert result.policy is DuplicatePolicy.COUNT_EACH

    def test_one_per_date_counts_a_date_once(self):
        events = [_ok(6), _ok(6, 19)]
        result = aggregate_achievement(
            {date(2025, 1, 6): 2}, events, SEOUL, DuplicatePolicy.ONE_PER_DATE,
        )
        assert result.total_achieved == 1
        assert result.achievement_percent == 50

    def test_policy_accepts_string_value(self):
        result = aggregate_achievement({date(2025, 1, 6): 2}, [_ok(6), _ok(6)], SEOUL, "one_per_date")
        assert result.total_achieved == 1

    def test_events_grouped_by_local_date(self):
        late_utc = VerificationEvent(datetime(2025, 1, 5, 16, 0, tzinfo=timezone.utc), "success")
        result = aggregate_achievement({date(2025, 1, 6): 1}, [late_utc], SEOUL)
        assert result.total_achieved == 1

    def test_partial_achievement_percent(self):
        required = {date(2025, 1, d): 1 for d in (6, 8, 10, 13, 15, 17)}
        result = aggregate_achievement(required, [_ok(6)], SEOUL)
        assert result.required_total == 6
        assert result.achievement_percent == 17


class TestPercent:
    @pytest.mark.parametrize("achieved,required,expected", [
        (0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 3, 100),
    ])
    def test_rounds_half_up(self, achieved, required, expected):
        assert percent(achieved, required) == expected


class TestAggregateFrequency:
    RANGE = DateRange(date(2025, 1, 6), date(2025, 1, 19))

    def test_distinct_days_per_week(self):
        events = [_ok(6), _ok(6, 20), _ok(8), _fail(13)]
        result = aggregate_frequency(events, 2, self.RANGE, SEOUL)
        assert result.total_weeks == 2
        assert [w.count for w in result.weeks] == [2, 0]
        assert result.weeks[0].passed is True
        assert result.overall_pass is False
        assert result.reason == "1/2 weeks passed"

    def test_all_weeks_pass(self):
        events = [_ok(6), _ok(7), _ok(13), _ok(19)]
        result = aggregate_frequency(events, 2, self.RANGE, SEOUL)
        assert result.overall_pass is True
        assert result.reason == "All complete weeks achieved target"

    def test_short_range_has_no_weeks(self):
        short = DateRange(date(2025, 1, 6), date(2025, 1, 10))
        result = aggregate_frequency([_ok(6)], 1, short, SEOUL)
        assert result.total_weeks == 0
        assert result.overall_pass is False
        assert result.reason == "No complete 7-day blocks in range"

    def test_partial_trailing_week_is_ignored(self):
        rng = DateRange(date(2025, 1, 6), date(2025, 1, 6) + timedelta(days=9))
        result = aggregate_frequency([_ok(14)], 1, rng, SEOUL)
        assert result.total_weeks == 1
        assert result.weeks[0].count == 0
