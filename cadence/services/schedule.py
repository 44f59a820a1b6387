"""
Schedule materializer: turns a goal's declarative schedule into the
concrete per-date requirement.

Public API
----------
materialize(date_range, pattern, includes, excludes)        -> dict[date, int]
materialize_sessions(date_range, state, override_events)    -> dict[date, RequiredSessions]
requirement_payload(requirements)                           -> dict[str, int]
preview_occurrences(date_range, sessions, limit)            -> list[OccurrencePreview]

Only scheduled dates appear in the result; unscheduled dates are absent,
never present with 0. Results are ordered by date, so two calls with the
same inputs serialize identically. There is no cap on the number of days
walked: callers that need a bounded list truncate the derived occurrences,
never the requirement map.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping

from cadence.services.date_ranges import DateRange, format_day, weekday_index
from cadence.services.overrides import (
    OverrideEvent,
    OverrideState,
    RequiredSessions,
    WeeklyPattern,
    index_override_events,
    required_count,
    required_sessions,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)

DEFAULT_PREVIEW_LIMIT = 100


@dataclass(frozen=True)
class OccurrencePreview:
    """One (date, time) occurrence, as listed before a goal is confirmed."""
    day: date
    time: str | None
    day_name: str
    week_number: int   # 1-based, counted in 7-day blocks from the range start


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------

def materialize(
    date_range: DateRange,
    pattern: WeeklyPattern,
    includes: Iterable[date] = (),
    excludes: Iterable[date] = (),
) -> dict[date, int]:
    """Required session count for every scheduled date in `date_range`."""
    state = OverrideState.build(pattern, includes, excludes)
    out: dict[date, int] = {}
    for day in date_range.iter_days():
        count = required_count(day, state)
        if count:
            out[day] = count
    return out


def materialize_sessions(
    date_range: DateRange,
    state: OverrideState,
    override_events: Iterable[OverrideEvent] = (),
) -> dict[date, RequiredSessions]:
    """Like `materialize`, with required times and override events folded in."""
    override_index = index_override_events(
        ev for ev in override_events if ev.day in date_range
    )
    out: dict[date, RequiredSessions] = {}
    for day in date_range.iter_days():
        sessions = required_sessions(day, state, override_index.get(day, ()))
        if sessions is not None:
            out[day] = sessions
    logger.debug(
        "materialized %s..%s: %d scheduled dates",
        date_range.start, date_range.end, len(out),
    )
    return out


def session_counts(sessions: Mapping[date, RequiredSessions]) -> dict[date, int]:
    return {d: s.count for d, s in sessions.items()}


def requirement_payload(requirements: Mapping[date, int]) -> dict[str, int]:
    """Canonical `{YYYY-MM-DD: count}` form, sorted by date."""
    return {format_day(d): requirements[d] for d in sorted(requirements)}


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

def preview_occurrences(
    date_range: DateRange,
    sessions: Mapping[date, RequiredSessions],
    limit: int = DEFAULT_PREVIEW_LIMIT,
) -> list[OccurrencePreview]:
    """
    One row per required time (one row with no time for manual check-in
    dates), earliest first, truncated to `limit`.
    """
    rows: list[OccurrencePreview] = []
    for day in sorted(sessions):
        week_number = (day - date_range.start).days // 7 + 1
        name = WEEKDAY_NAMES[weekday_index(day)]
        times = sessions[day].times or (None,)
        for t in times:
            rows.append(OccurrencePreview(day=day, time=t, day_name=name, week_number=week_number))
            if len(rows) >= limit:
                return rows
    return rows
