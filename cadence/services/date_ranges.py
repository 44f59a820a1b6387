"""
Date-range algebra over closed (inclusive) calendar-date intervals.

Every value here is a plain `datetime.date`; a DateOnly is serialized as
`YYYY-MM-DD` and two dates are equal iff their serialized strings are.
Timestamps only become dates through `local_day`, which takes the fixed
application timezone as an explicit argument.

Public API
----------
normalize(a, b)          -> DateRange
merge(ranges)            -> list[DateRange]   (sorted, non-overlapping, non-adjacent)
add(ranges, r)           -> list[DateRange]
subtract(ranges, cut)    -> list[DateRange]
min_max(ranges)          -> (start, end) | (None, None)
contains(day, ranges)    -> bool

All functions are pure: inputs are never mutated.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Iterator, Optional

ONE_DAY = timedelta(days=1)

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------------
# DateOnly helpers
# ---------------------------------------------------------------------------

def parse_day(text: str) -> date:
    """Parse a strict `YYYY-MM-DD` string. Raises ValueError otherwise."""
    if not isinstance(text, str) or not _DAY_RE.match(text):
        raise ValueError(f"expected a YYYY-MM-DD date, got {text!r}")
    return date.fromisoformat(text)


def format_day(day: date) -> str:
    return day.isoformat()


def weekday_index(day: date) -> int:
    """0=Sunday to 6=Saturday (Python's weekday() is 0=Monday)."""
    return (day.weekday() + 1) % 7


def local_day(ts: datetime, tz: tzinfo) -> date:
    """
    Calendar date of `ts` in the fixed application timezone.
    Naive timestamps are taken to be UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz).date()


def today(tz: tzinfo) -> date:
    return datetime.now(tz=tz).date()


# ---------------------------------------------------------------------------
# DateRange
# ---------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"range start {self.start} is after end {self.end}")

    @property
    def days(self) -> int:
        """Inclusive day count."""
        return (self.end - self.start).days + 1

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end

    def iter_days(self) -> Iterator[date]:
        cursor = self.start
        while cursor <= self.end:
            yield cursor
            cursor += ONE_DAY

    def to_dict(self) -> dict[str, str]:
        return {"start": format_day(self.start), "end": format_day(self.end)}


def normalize(a: date, b: date) -> DateRange:
    return DateRange(start=min(a, b), end=max(a, b))


def merge(ranges: Iterable[DateRange]) -> list[DateRange]:
    """Coalesce overlapping or immediately adjacent ranges."""
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    if not ordered:
        return []
    out: list[DateRange] = [ordered[0]]
    for cur in ordered[1:]:
        prev = out[-1]
        if cur.start <= prev.end + ONE_DAY:
            if cur.end > prev.end:
                out[-1] = DateRange(prev.start, cur.end)
        else:
            out.append(cur)
    return out


def add(ranges: Iterable[DateRange], r: DateRange) -> list[DateRange]:
    return merge([*ranges, normalize(r.start, r.end)])


def subtract(ranges: Iterable[DateRange], cut: DateRange) -> list[DateRange]:
    """
    Remove every day of `cut` from `ranges`.
    A cut strictly inside a range splits it in two.
    """
    c = normalize(cut.start, cut.end)
    out: list[DateRange] = []
    for r in ranges:
        if c.end < r.start or c.start > r.end:
            out.append(r)
            continue
        # Overlap: keep whatever survives on the left / right of the cut
        if c.start > r.start:
            out.append(DateRange(r.start, c.start - ONE_DAY))
        if c.end < r.end:
            out.append(DateRange(c.end + ONE_DAY, r.end))
    return out


def min_max(ranges: Iterable[DateRange]) -> tuple[Optional[date], Optional[date]]:
    ranges = list(ranges)
    if not ranges:
        return None, None
    return min(r.start for r in ranges), max(r.end for r in ranges)


def contains(day: date, ranges: Iterable[DateRange]) -> bool:
    return any(r.start <= day <= r.end for r in ranges)
