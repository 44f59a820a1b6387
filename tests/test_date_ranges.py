"""
Tests for the date-range algebra and DateOnly helpers.
"""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from cadence.services.date_ranges import (
    DateRange,
    add,
    contains,
    local_day,
    merge,
    min_max,
    normalize,
    parse_day,
    subtract,
    weekday_index,
)

SEOUL = ZoneInfo("Asia/Seoul")


def _r(a: int, b: int) -> DateRange:
    return DateRange(date(2025, 1, a), date(2025, 1, b))


class TestDayHelpers:
    def test_parse_day_accepts_strict_format(self):
        assert parse_day("2025-01-06") == date(2025, 1, 6)

    @pytest.mark.parametrize("bad", ["2025-1-6", "2025/01/06", "2025-02-30", "", "20250106"])
    def test_parse_day_rejects_everything_else(self, bad):
        with pytest.raises(ValueError):
            parse_day(bad)

    def test_weekday_index_is_sunday_based(self):
        assert weekday_index(date(2025, 1, 5)) == 0   # Sunday
        assert weekday_index(date(2025, 1, 6)) == 1   # Monday
        assert weekday_index(date(2025, 1, 11)) == 6  # Saturday

    def test_local_day_uses_given_timezone(self):
        ts = datetime(2025, 1, 5, 16, 0, tzinfo=timezone.utc)
        assert local_day(ts, SEOUL) == date(2025, 1, 6)
        assert local_day(ts, timezone.utc) == date(2025, 1, 5)

    def test_naive_timestamp_is_read_as_utc(self):
        assert local_day(datetime(2025, 1, 5, 16, 0), SEOUL) == date(2025, 1, 6)


class TestDateRange:
    def test_start_after_end_is_rejected(self):
        with pytest.raises(ValueError):
            DateRange(date(2025, 1, 10), date(2025, 1, 1))

    def test_normalize_orders_dates(self):
        assert normalize(date(2025, 1, 10), date(2025, 1, 1)) == _r(1, 10)
        assert normalize(date(2025, 1, 1), date(2025, 1, 10)) == _r(1, 10)

    def test_days_and_membership_are_inclusive(self):
        r = _r(6, 19)
        assert r.days == 14
        assert date(2025, 1, 6) in r
        assert date(2025, 1, 19) in r
        assert date(2025, 1, 20) not in r
        assert len(list(r.iter_days())) == 14

    def test_single_day_range(self):
        r = _r(6, 6)
        assert r.days == 1
        assert list(r.iter_days()) == [date(2025, 1, 6)]


class TestAlgebra:
    def test_merge_coalesces_overlap_and_adjacency(self):
        assert merge([_r(4, 6), _r(1, 3)]) == [_r(1, 6)]
        assert merge([_r(1, 5), _r(3, 8)]) == [_r(1, 8)]

    def test_merge_keeps_gaps(self):
        assert merge([_r(5, 6), _r(1, 3)]) == [_r(1, 3), _r(5, 6)]

    def test_merge_empty(self):
        assert merge([]) == []

    def test_add_covers_every_day_of_new_range(self):
        ranges = add([_r(1, 3), _r(10, 12)], _r(5, 8))
        for d in _r(5, 8).iter_days():
            assert contains(d, ranges)
        assert ranges == [_r(1, 3), _r(5, 8), _r(10, 12)]

    def test_subtract_from_middle_splits(self):
        assert subtract([_r(1, 10)], _r(4, 5)) == [_r(1, 3), _r(6, 10)]

    def test_subtract_edges(self):
        assert subtract([_r(1, 10)], _r(1, 3)) == [_r(4, 10)]
        assert subtract([_r(1, 10)], _r(8, 15)) == [_r(1, 7)]

    def test_subtract_everything(self):
        assert subtract([_r(3, 5)], _r(1, 10)) == []

    def test_subtract_removes_cut(self):
        cut = _r(4, 7)
        result = subtract([_r(1, 10), _r(12, 20)], cut)
        for d in cut.iter_days():
            assert not contains(d, result)
        assert contains(date(2025, 1, 15), result)

    def test_min_max(self):
        assert min_max([]) == (None, None)
        assert min_max([_r(5, 6), _r(1, 3)]) == (date(2025, 1, 1), date(2025, 1, 6))

    def test_inputs_are_not_mutated(self):
        ranges = [_r(1, 10)]
        subtract(ranges, _r(4, 5))
        add(ranges, _r(12, 14))
        assert ranges == [_r(1, 10)]
