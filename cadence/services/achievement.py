"""
Achievement aggregator: matches verification events against required
sessions.

Definition
----------
For every date in per_date_required:
    achieved(date) = min(successes(date), required(date))
total_achieved     = sum of achieved(date)
achievement_pct    = round(100 * total_achieved / required_total)   (half-up)
                     0 when required_total == 0

Events are grouped by their calendar date in the fixed application
timezone. Successes on dates that require nothing are ignored, and
surplus successes on a date never inflate the ratio.

Duplicate policy
----------------
COUNT_EACH (default)  every event counts, even several on the same date/time
ONE_PER_DATE          at most one success per date counts

The verification subsystem is the only source of "did it happen"; nothing
here infers completion from the schedule.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping

from cadence.services.date_ranges import DateRange, local_day
from cadence.services.weeks import WEEK_DAYS, iter_windows

logger = logging.getLogger(__name__)


class VerificationStatus(str, enum.Enum):
    success = "success"
    fail = "fail"


class DuplicatePolicy(str, enum.Enum):
    COUNT_EACH = "count_each"
    ONE_PER_DATE = "one_per_date"


@dataclass(frozen=True)
class VerificationEvent:
    timestamp: datetime
    status: str


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class DayTally:
    success: int = 0
    fail: int = 0


@dataclass
class DateAchievement:
    day: date
    required: int
    success: int
    fail: int
    achieved: int


@dataclass
class AchievementResult:
    required_total: int
    total_achieved: int
    achievement_percent: int
    policy: DuplicatePolicy
    days: list[DateAchievement] = field(default_factory=list)


@dataclass
class FrequencyWeekResult:
    index: int
    start: date
    end: date
    count: int                 # distinct days with at least one success
    target: int
    passed: bool
    verification_days: list[date]


@dataclass
class FrequencyResult:
    total_weeks: int
    passed_weeks: int
    overall_pass: bool
    reason: str
    weeks: list[FrequencyWeekResult] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def tally_by_date(
    events: Iterable[VerificationEvent],
    tz: tzinfo,
    policy: DuplicatePolicy = DuplicatePolicy.COUNT_EACH,
) -> dict[date, DayTally]:
    """Success / fail counts per local date under the given duplicate policy."""
    tallies: dict[date, DayTally] = {}
    for ev in events:
        day = local_day(ev.timestamp, tz)
        tally = tallies.setdefault(day, DayTally())
        if _status(ev.status) == VerificationStatus.success.value:
            tally.success += 1
        else:
            tally.fail += 1

    if DuplicatePolicy(policy) is DuplicatePolicy.ONE_PER_DATE:
        for tally in tallies.values():
            tally.success = min(tally.success, 1)
            tally.fail = min(tally.fail, 1)
    return tallies


def percent(achieved: int, required: int) -> int:
    if required <= 0:
        return 0
    ratio = Decimal(100 * achieved) / Decimal(required)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def aggregate_achievement(
    per_date_required: Mapping[date, int],
    events: Iterable[VerificationEvent],
    tz: tzinfo,
    policy: DuplicatePolicy = DuplicatePolicy.COUNT_EACH,
) -> AchievementResult:
    """Required vs achieved sessions over the dates in `per_date_required`."""
    policy = DuplicatePolicy(policy)
    tallies = tally_by_date(events, tz, policy)

    days: list[DateAchievement] = []
    required_total = 0
    total_achieved = 0
    for day in sorted(per_date_required):
        required = per_date_required[day]
        tally = tallies.get(day, DayTally())
        achieved = min(tally.success, required)
        days.append(DateAchievement(
            day=day,
            required=required,
            success=tally.success,
            fail=tally.fail,
            achieved=achieved,
        ))
        required_total += required
        total_achieved += achieved

    logger.debug(
        "achievement: %d/%d sessions (%s)", total_achieved, required_total, policy.value,
    )
    return AchievementResult(
        required_total=required_total,
        total_achieved=total_achieved,
        achievement_percent=percent(total_achieved, required_total),
        policy=policy,
        days=days,
    )


def aggregate_frequency(
    events: Iterable[VerificationEvent],
    target_per_week: int,
    date_range: DateRange,
    tz: tzinfo,
) -> FrequencyResult:
    """
    Frequency goals: each complete week passes when the number of distinct
    days with at least one success reaches `target_per_week`.
    """
    windows = [w for w in iter_windows(date_range) if w.days == WEEK_DAYS]
    if not windows:
        return FrequencyResult(
            total_weeks=0,
            passed_weeks=0,
            overall_pass=False,
            reason="No complete 7-day blocks in range",
        )

    success_days = {
        local_day(ev.timestamp, tz)
        for ev in events
        if _status(ev.status) == VerificationStatus.success.value
    }

    weeks: list[FrequencyWeekResult] = []
    for index, window in enumerate(windows, start=1):
        days = sorted(d for d in success_days if d in window)
        weeks.append(FrequencyWeekResult(
            index=index,
            start=window.start,
            end=window.end,
            count=len(days),
            target=target_per_week,
            passed=len(days) >= target_per_week,
            verification_days=days,
        ))

    passed = sum(1 for w in weeks if w.passed)
    overall = passed == len(weeks)
    return FrequencyResult(
        total_weeks=len(weeks),
        passed_weeks=passed,
        overall_pass=overall,
        reason=(
            "All complete weeks achieved target"
            if overall else f"{passed}/{len(weeks)} weeks passed"
        ),
        weeks=weeks,
    )
