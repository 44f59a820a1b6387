"""
Complete-week partitioner.

A complete week is a 7-day accounting window anchored at the goal start
date (not a Sunday-Saturday calendar week). Only complete weeks take part
in frequency / achievement accounting.

Boundary rule
-------------
  - Range shorter than 7 days: no complete weeks. The result is
    required_total=0 with an empty per-date map. This is "nothing to
    validate yet", not an error.
  - Otherwise windows [cursor, cursor+6] are cut from the start, clamped to
    the range end. The trailing window is dropped when it spans fewer
    than 7 days.

The per-date map only carries dates from complete weeks so it always
sums to required_total.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Mapping

from cadence.services.date_ranges import DateRange
from cadence.services.overrides import OverrideEvent, OverrideState
from cadence.services.schedule import materialize_sessions, session_counts

logger = logging.getLogger(__name__)

WEEK_DAYS = 7


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class WeekWindow:
    index: int            # 1-based
    start: date
    end: date
    dates: list[date]     # scheduled dates inside the window
    total: int            # required sessions inside the window

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass
class WeekPartition:
    required_total: int = 0
    per_date_required: dict[date, int] = field(default_factory=dict)
    weeks: list[WeekWindow] = field(default_factory=list)
    partial_days: int = 0   # days of the trailing window left out of accounting


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def iter_windows(date_range: DateRange) -> Iterable[DateRange]:
    """Every 7-day window from the range start, the last one clamped."""
    cursor = date_range.start
    while cursor <= date_range.end:
        end = min(cursor + timedelta(days=WEEK_DAYS - 1), date_range.end)
        yield DateRange(cursor, end)
        cursor += timedelta(days=WEEK_DAYS)


def partition_complete_weeks(
    date_range: DateRange,
    requirements: Mapping[date, int],
) -> WeekPartition:
    """Keep only the requirements that fall inside complete 7-day windows."""
    if date_range.days < WEEK_DAYS:
        logger.debug("partition: %d-day range has no complete weeks", date_range.days)
        return WeekPartition()

    result = WeekPartition()
    for index, window in enumerate(iter_windows(date_range), start=1):
        if window.days != WEEK_DAYS:
            result.partial_days = window.days
            continue
        dates = [d for d in window.iter_days() if requirements.get(d, 0) > 0]
        total = 0
        for d in dates:
            result.per_date_required[d] = requirements[d]
            total += requirements[d]
        result.weeks.append(WeekWindow(
            index=index, start=window.start, end=window.end, dates=dates, total=total,
        ))
        result.required_total += total

    return result


def compute_schedule_counts(
    date_range: DateRange,
    state: OverrideState,
    override_events: Iterable[OverrideEvent] = (),
) -> WeekPartition:
    """Materialize the schedule (override events included) and partition it."""
    if date_range.days < WEEK_DAYS:
        return WeekPartition()
    sessions = materialize_sessions(date_range, state, override_events)
    return partition_complete_weeks(date_range, session_counts(sessions))
