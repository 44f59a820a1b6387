"""
Override reconciliation: folds a goal's weekly pattern, include dates,
exclude dates and one-off override events into a per-date decision.

Per-date decision
-----------------
  base_included = weekday(day) in pattern.weekdays
  is_scheduled  = (base_included and day not in excludes) or day in includes
  count         = len(pattern times for that weekday) or 1

Override events (source="override") add explicit times to one date:
the requirement becomes the distinct union of weekly-derived times (only
when the date is base-included and not excluded) and the override times.
A date outside the pattern that carries override events is scheduled with
one session per distinct override time. An explicitly excluded date stays
unscheduled whatever events it carries. source="weekly" events mirror the
pattern and are ignored here.

Edits
-----
toggle_date(state, day, date_range)            -> OverrideState
toggle_weekday(state, weekday, date_range)     -> OverrideState
reconcile_weekly_pattern(state, weekday, range)-> OverrideState
set_weekday_times(pattern, weekday, times)     -> WeeklyPattern
clamp_to_range(state, date_range)              -> OverrideState

Invariant after every edit: a date is never in both include and exclude
lists. Reconciliation only changes how the schedule is represented, never
which dates are scheduled.
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from functools import cached_property
from typing import Iterable, Mapping, Optional

from cadence.services.date_ranges import DateRange, format_day, parse_day, weekday_index

logger = logging.getLogger(__name__)

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
WEEKDAYS = range(7)


def is_valid_time(text: str) -> bool:
    return isinstance(text, str) and bool(TIME_RE.match(text))


def _clean_times(times: Iterable[str]) -> tuple[str, ...]:
    cleaned = set()
    for t in times:
        if not is_valid_time(t):
            raise ValueError(f"expected an HH:MM time, got {t!r}")
        cleaned.add(t)
    return tuple(sorted(cleaned))


def _check_weekday(weekday: int) -> int:
    if weekday not in WEEKDAYS:
        raise ValueError(f"weekday must be 0 (Sunday) to 6 (Saturday), got {weekday!r}")
    return weekday


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WeeklyPattern:
    """Weekdays (0=Sunday) and their sorted, de-duplicated HH:MM times."""
    weekdays: frozenset[int] = frozenset()
    times: Mapping[int, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        weekdays: Iterable[int],
        time_settings: Optional[Mapping] = None,
    ) -> "WeeklyPattern":
        """Accepts int or string weekday keys (`{"1": ["07:00"]}`)."""
        days = frozenset(_check_weekday(int(w)) for w in weekdays)
        times: dict[int, tuple[str, ...]] = {}
        for key, values in (time_settings or {}).items():
            weekday = int(key)
            if weekday in days and values:
                times[weekday] = _clean_times(values)
        return cls(weekdays=days, times=times)

    def times_for(self, weekday: int) -> tuple[str, ...]:
        return self.times.get(weekday, ())

    def with_weekday(self, weekday: int) -> "WeeklyPattern":
        return WeeklyPattern(self.weekdays | {_check_weekday(weekday)}, dict(self.times))

    def without_weekday(self, weekday: int) -> "WeeklyPattern":
        times = {w: t for w, t in self.times.items() if w != weekday}
        return WeeklyPattern(self.weekdays - {weekday}, times)

    def to_payload(self) -> tuple[list[int], dict[str, list[str]]]:
        weekdays = sorted(self.weekdays)
        settings = {str(w): list(self.times[w]) for w in weekdays if self.times.get(w)}
        return weekdays, settings


@dataclass(frozen=True)
class OverrideState:
    """Everything that decides whether a date is scheduled."""
    pattern: WeeklyPattern
    include_dates: tuple[date, ...] = ()
    exclude_dates: tuple[date, ...] = ()

    @classmethod
    def build(
        cls,
        pattern: WeeklyPattern,
        include_dates: Iterable[date] = (),
        exclude_dates: Iterable[date] = (),
    ) -> "OverrideState":
        includes = set(include_dates)
        # An explicit include already wins the per-date decision
        excludes = set(exclude_dates) - includes
        return cls(pattern, tuple(sorted(includes)), tuple(sorted(excludes)))

    @classmethod
    def from_payload(
        cls,
        weekly_weekdays: Iterable[int],
        weekly_time_settings: Optional[Mapping] = None,
        include_dates: Iterable[str] = (),
        exclude_dates: Iterable[str] = (),
    ) -> "OverrideState":
        return cls.build(
            WeeklyPattern.build(weekly_weekdays, weekly_time_settings),
            [parse_day(d) for d in include_dates],
            [parse_day(d) for d in exclude_dates],
        )

    @cached_property
    def includes(self) -> frozenset[date]:
        return frozenset(self.include_dates)

    @cached_property
    def excludes(self) -> frozenset[date]:
        return frozenset(self.exclude_dates)

    def to_payload(self) -> dict:
        weekdays, settings = self.pattern.to_payload()
        return {
            "weekly_weekdays": weekdays,
            "weekly_time_settings": settings,
            "include_dates": [format_day(d) for d in self.include_dates],
            "exclude_dates": [format_day(d) for d in self.exclude_dates],
        }


class EventSource(str, enum.Enum):
    weekly = "weekly"
    override = "override"


@dataclass(frozen=True)
class OverrideEvent:
    """A calendar event attached to one date of a goal."""
    day: date
    time: str
    source: str = EventSource.override.value
    group_id: Optional[str] = None


@dataclass(frozen=True)
class RequiredSessions:
    count: int
    times: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Per-date decision
# ---------------------------------------------------------------------------

def is_base_included(day: date, pattern: WeeklyPattern) -> bool:
    return weekday_index(day) in pattern.weekdays


def is_scheduled(day: date, state: OverrideState) -> bool:
    base = is_base_included(day, state.pattern)
    return (base and day not in state.excludes) or day in state.includes


def required_count(day: date, state: OverrideState) -> int:
    """Sessions required on `day` from the pattern alone; 0 when unscheduled."""
    if not is_scheduled(day, state):
        return 0
    return len(state.pattern.times_for(weekday_index(day))) or 1


def index_override_events(events: Iterable[OverrideEvent]) -> dict[date, tuple[str, ...]]:
    """Distinct, sorted override times per date. Weekly mirrors are skipped."""
    by_day: dict[date, set[str]] = {}
    for ev in events:
        if _ev(ev.source) != EventSource.override.value:
            continue
        by_day.setdefault(ev.day, set()).add(ev.time)
    return {d: tuple(sorted(times)) for d, times in by_day.items()}


def required_sessions(
    day: date,
    state: OverrideState,
    override_times: tuple[str, ...] = (),
) -> Optional[RequiredSessions]:
    """Full requirement for one date, or None when the date is not scheduled."""
    weekday = weekday_index(day)
    if override_times:
        if day in state.excludes:
            return None
        weekly: tuple[str, ...] = ()
        if is_base_included(day, state.pattern):
            weekly = state.pattern.times_for(weekday)
        times = tuple(sorted(set(weekly) | set(override_times)))
        return RequiredSessions(count=len(times), times=times)

    if not is_scheduled(day, state):
        return None
    times = state.pattern.times_for(weekday)
    return RequiredSessions(count=len(times) or 1, times=times)


def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------

def _weekday_dates(date_range: DateRange, weekday: int) -> list[date]:
    """Every date in `date_range` that falls on `weekday`."""
    offset = (weekday - weekday_index(date_range.start)) % 7
    cursor = date_range.start + timedelta(days=offset)
    out = []
    while cursor <= date_range.end:
        out.append(cursor)
        cursor += timedelta(days=7)
    return out


def clamp_to_range(state: OverrideState, date_range: DateRange) -> OverrideState:
    """Drop include/exclude dates that fall outside `date_range`."""
    return OverrideState.build(
        state.pattern,
        [d for d in state.include_dates if d in date_range],
        [d for d in state.exclude_dates if d in date_range],
    )


def reconcile_weekly_pattern(
    state: OverrideState,
    weekday: int,
    date_range: DateRange,
) -> OverrideState:
    """
    Sync one weekday of the pattern with the dates actually scheduled.

    - No in-range date of `weekday` scheduled, weekday in pattern:
      drop the weekday and its times; its in-range excludes become redundant.
    - Some in-range date scheduled, weekday absent: re-add the weekday; its
      in-range includes become base coverage and every in-range date that
      was not scheduled is excluded explicitly.
    """
    days = _weekday_dates(date_range, weekday)
    scheduled = {d for d in days if is_scheduled(d, state)}
    in_pattern = weekday in state.pattern.weekdays
    day_set = set(days)

    if not scheduled and in_pattern:
        logger.debug("reconcile: dropping weekday %s (no scheduled dates left)", weekday)
        return OverrideState.build(
            state.pattern.without_weekday(weekday),
            state.includes,
            state.excludes - day_set,
        )

    if scheduled and not in_pattern:
        logger.debug("reconcile: re-adding weekday %s (%d scheduled dates)", weekday, len(scheduled))
        return OverrideState.build(
            state.pattern.with_weekday(weekday),
            state.includes - day_set,
            state.excludes | (day_set - scheduled),
        )

    return state


def toggle_date(
    state: OverrideState,
    day: date,
    date_range: Optional[DateRange] = None,
) -> OverrideState:
    """
    Flip one calendar cell.

    With a range the include/exclude lists are clamped to it and the
    weekday pattern is reconciled afterwards; dates outside the range are
    left alone. Without a range only the include list is toggled.
    """
    includes = set(state.includes)
    excludes = set(state.excludes)

    if date_range is None:
        if day in includes:
            includes.discard(day)
        else:
            includes.add(day)
        return OverrideState.build(state.pattern, includes, excludes)

    if day not in date_range:
        return state

    base = is_base_included(day, state.pattern)
    if is_scheduled(day, state):
        includes.discard(day)
        if base:
            excludes.add(day)
    elif base:
        excludes.discard(day)
    else:
        includes.add(day)

    toggled = clamp_to_range(OverrideState.build(state.pattern, includes, excludes), date_range)
    return reconcile_weekly_pattern(toggled, weekday_index(day), date_range)


def toggle_weekday(
    state: OverrideState,
    weekday: int,
    date_range: Optional[DateRange] = None,
) -> OverrideState:
    """
    Turn a whole weekday on or off. Per-date overrides for that weekday
    inside the range are cleared so the weekday reads uniformly afterwards.
    """
    _check_weekday(weekday)
    if weekday in state.pattern.weekdays:
        pattern = state.pattern.without_weekday(weekday)
    else:
        pattern = state.pattern.with_weekday(weekday)

    if date_range is None:
        return OverrideState.build(pattern, state.includes, state.excludes)

    day_set = set(_weekday_dates(date_range, weekday))
    return OverrideState.build(pattern, state.includes - day_set, state.excludes - day_set)


def set_weekday_times(
    pattern: WeeklyPattern,
    weekday: int,
    times: Iterable[str],
) -> WeeklyPattern:
    """
    Replace the times of one weekday. Non-empty times put the weekday in
    the pattern; an empty list keeps it as a manual check-in day.
    """
    _check_weekday(weekday)
    cleaned = _clean_times(times)
    new_times = {w: t for w, t in pattern.times.items() if w != weekday}
    if cleaned:
        new_times[weekday] = cleaned
        return WeeklyPattern(pattern.weekdays | {weekday}, new_times)
    return WeeklyPattern(pattern.weekdays, new_times)
