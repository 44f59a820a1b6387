"""
Deterministic quest expansion.

Turns a goal definition into concrete quest occurrences without any AI
call. The same draft always yields the same quests, ids included, so a
caller retrying after a failed write cannot produce divergent records.

Goal types
----------
schedule   one quest per scheduled date of the full goal range
           (include/exclude dates honored, partial weeks included)
frequency  per_week quests in each of ceil(total_days / 7) weeks,
           the trailing partial week included
milestone  one quest per milestone, spread proportionally over the span

Every quest carries verification rules built from the selected methods;
"manual" is always present as the fallback proof.

Output is ordered by date / week and truncated to the first `limit`
occurrences (100 by default).

Public API
----------
validate_quest_generation(goal_type, draft) -> ValidationResult
expand_quests(goal_type, draft, goal_id, limit) -> list[QuestCandidate]
diff_quests(existing, candidates) -> QuestDiff
"""
from __future__ import annotations

import enum
import itertools
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Iterator, Optional, Protocol

from cadence.services.date_ranges import DateRange, format_day, parse_day, weekday_index
from cadence.services.overrides import OverrideState, WeeklyPattern, is_valid_time
from cadence.services.schedule import WEEKDAY_NAMES, materialize_sessions

logger = logging.getLogger(__name__)

QUEST_LIMIT = 100
MAX_PER_WEEK = 7
WEEKDAY_KEYS = frozenset(str(w) for w in range(7))

TIME_WINDOW_MINUTES = 60
TIME_TOLERANCE_MINUTES = 15
LOCATION_RADIUS_METERS = 100

MILESTONE_LABELS = {
    "kickoff": "Kickoff",
    "mid": "Midpoint check",
    "finish": "Finish",
}


class GoalType(str, enum.Enum):
    schedule = "schedule"
    frequency = "frequency"
    milestone = "milestone"


class QuestStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    skipped = "skipped"


class VerificationMethod(str, enum.Enum):
    manual = "manual"
    time = "time"
    location = "location"
    camera = "camera"
    screenshot = "screenshot"
    screentime = "screentime"
    partner = "partner"


# ---------------------------------------------------------------------------
# Input / output types
# ---------------------------------------------------------------------------

@dataclass
class GoalDraft:
    """Resolved goal inputs, as collected by the goal-creation flow."""
    title: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    # schedule
    weekdays: list[int] = field(default_factory=list)
    time: Optional[str] = None
    weekly_time_settings: dict[str, list[str]] = field(default_factory=dict)
    include_dates: list[str] = field(default_factory=list)
    exclude_dates: list[str] = field(default_factory=list)
    # frequency
    per_week: Optional[int] = None
    allowed_days: list[int] = field(default_factory=list)
    # milestone
    milestones: list[str] = field(default_factory=list)
    # verification
    verification_methods: list[str] = field(default_factory=list)
    location_name: Optional[str] = None


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str]


@dataclass(frozen=True)
class VerificationRule:
    type: str
    required: bool = True
    config: dict = field(default_factory=dict, hash=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "required": self.required, "config": self.config}


@dataclass(frozen=True)
class QuestCandidate:
    id: str
    goal_id: Optional[int]
    goal_type: str
    occurrence_key: str
    title: str
    description: str
    target_date: Optional[date]
    week_number: Optional[int]
    sequence: int
    time: Optional[str]
    verification_rules: tuple[VerificationRule, ...]
    status: str = QuestStatus.pending.value


class ExistingQuest(Protocol):
    occurrence_key: str
    status: Any


@dataclass
class QuestDiff:
    to_create: list[QuestCandidate]
    to_retire: list[Any]     # pending quests with no candidate left
    kept: list[Any]          # matched quests + unmatched quests with history


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def _period(draft: GoalDraft) -> DateRange:
    return DateRange(parse_day(draft.start_date), parse_day(draft.end_date))


def _add_minutes(hhmm: str, minutes: int) -> str:
    t = datetime.strptime(hhmm, "%H:%M") + timedelta(minutes=minutes)
    return t.strftime("%H:%M")


def schedule_pattern(draft: GoalDraft) -> WeeklyPattern:
    """Weekday pattern of a schedule draft; weekdays without times use draft.time."""
    settings = {str(k): list(v) for k, v in draft.weekly_time_settings.items() if v}
    if draft.time:
        for w in draft.weekdays:
            settings.setdefault(str(w), [draft.time])
    return WeeklyPattern.build(draft.weekdays, settings)


def build_verification_rules(
    methods: Iterable[str],
    time: Optional[str] = None,
    location_name: Optional[str] = None,
) -> tuple[VerificationRule, ...]:
    rules: list[VerificationRule] = []
    seen: set[str] = set()
    for method in methods:
        method = _ev(method)
        if method in seen:
            continue
        seen.add(method)
        config: dict[str, Any] = {}
        if method == VerificationMethod.time.value and time:
            config = {"time": {
                "window": {"start": time, "end": _add_minutes(time, TIME_WINDOW_MINUTES)},
                "tolerance": TIME_TOLERANCE_MINUTES,
            }}
        elif method == VerificationMethod.location.value and location_name:
            config = {"location": {"name": location_name, "radius": LOCATION_RADIUS_METERS}}
        elif method == VerificationMethod.camera.value:
            config = {"camera": {"required": True, "exif_validation": True}}
        rules.append(VerificationRule(type=method, required=True, config=config))

    if VerificationMethod.manual.value not in seen:
        rules.append(VerificationRule(type=VerificationMethod.manual.value, required=False))
    return tuple(rules)


def _quest_id(goal_id: Optional[int], key: str) -> str:
    return f"{goal_id}:{key}" if goal_id is not None else key


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_quest_generation(goal_type: str, draft: GoalDraft) -> ValidationResult:
    """Human-readable reasons a draft cannot be expanded yet. Never raises."""
    errors: list[str] = []

    if not (draft.title or "").strip():
        errors.append("A goal title is required.")

    if not draft.start_date or not draft.end_date:
        errors.append("A goal period (start and end date) is required.")
    else:
        try:
            start, end = parse_day(draft.start_date), parse_day(draft.end_date)
        except ValueError:
            errors.append("Goal period dates must use the YYYY-MM-DD format.")
        else:
            if end < start:
                errors.append("The goal period ends before it starts.")

    try:
        goal_type = GoalType(_ev(goal_type))
    except ValueError:
        errors.append(f"Unknown goal type {goal_type!r}.")
        return ValidationResult(is_valid=False, errors=errors)

    valid_methods = {m.value for m in VerificationMethod}
    for method in draft.verification_methods:
        if _ev(method) not in valid_methods:
            errors.append(f"Unknown verification method {method!r}.")

    if goal_type is GoalType.schedule:
        if not draft.weekdays:
            errors.append("Schedule goals need at least one weekday.")
        elif any(not isinstance(w, int) or not 0 <= w <= 6 for w in draft.weekdays):
            errors.append("Weekdays must be between 0 (Sunday) and 6 (Saturday).")
        has_times = any(draft.weekly_time_settings.get(k) for k in draft.weekly_time_settings)
        if not draft.time and not has_times:
            errors.append("Schedule goals need a time.")
        times = [draft.time] if draft.time else []
        for values in draft.weekly_time_settings.values():
            times.extend(values or [])
        if any(not is_valid_time(t) for t in times):
            errors.append("Times must use the 24h HH:MM format.")
        if any(str(k) not in WEEKDAY_KEYS for k in draft.weekly_time_settings):
            errors.append("Weekly time settings must be keyed by weekday 0-6.")
        try:
            for d in [*draft.include_dates, *draft.exclude_dates]:
                parse_day(d)
        except ValueError:
            errors.append("Include and exclude dates must use the YYYY-MM-DD format.")

    elif goal_type is GoalType.frequency:
        if draft.per_week is None or draft.per_week < 1:
            errors.append("Frequency goals need a per-week count of at least 1.")
        elif draft.per_week > MAX_PER_WEEK:
            errors.append(f"Frequency goals allow at most {MAX_PER_WEEK} per week.")

    elif goal_type is GoalType.milestone:
        if not [m for m in draft.milestones if str(m).strip()]:
            errors.append("Milestone goals need at least one milestone.")

    return ValidationResult(is_valid=not errors, errors=errors)


# ---------------------------------------------------------------------------
# Expansion per goal type
# ---------------------------------------------------------------------------

def _schedule_quests(draft: GoalDraft, goal_id: Optional[int]) -> list[QuestCandidate]:
    period = _period(draft)
    state = OverrideState.build(
        schedule_pattern(draft),
        [parse_day(d) for d in draft.include_dates],
        [parse_day(d) for d in draft.exclude_dates],
    )
    title = draft.title.strip()
    quests = []
    for seq, (day, sessions) in enumerate(materialize_sessions(period, state).items(), start=1):
        weekday = WEEKDAY_NAMES[weekday_index(day)]
        first_time = sessions.times[0] if sessions.times else draft.time
        when = f" at {', '.join(sessions.times)}" if sessions.times else ""
        key = f"date:{format_day(day)}"
        quests.append(QuestCandidate(
            id=_quest_id(goal_id, key),
            goal_id=goal_id,
            goal_type=GoalType.schedule.value,
            occurrence_key=key,
            title=f"{title} - {weekday} {day.month}/{day.day}",
            description=f'Complete "{title}" on {weekday}{when}.',
            target_date=day,
            week_number=(day - period.start).days // 7 + 1,
            sequence=seq,
            time=first_time,
            verification_rules=build_verification_rules(
                draft.verification_methods, first_time, draft.location_name,
            ),
        ))
    return quests


def _frequency_quests(draft: GoalDraft, goal_id: Optional[int]) -> Iterator[QuestCandidate]:
    period = _period(draft)
    per_week = int(draft.per_week)
    total_weeks = math.ceil(period.days / 7)
    allowed = set(draft.allowed_days)
    title = draft.title.strip()
    rules = build_verification_rules(draft.verification_methods, None, draft.location_name)

    for week in range(1, total_weeks + 1):
        week_start = period.start + timedelta(days=7 * (week - 1))
        window = DateRange(week_start, min(week_start + timedelta(days=6), period.end))
        candidates = [d for d in window.iter_days() if weekday_index(d) in allowed]
        if not candidates:
            candidates = list(window.iter_days())
        for occurrence in range(1, per_week + 1):
            day = candidates[(occurrence - 1) * len(candidates) // per_week]
            weekday = WEEKDAY_NAMES[weekday_index(day)]
            key = f"week:{week}:{occurrence}"
            yield QuestCandidate(
                id=_quest_id(goal_id, key),
                goal_id=goal_id,
                goal_type=GoalType.frequency.value,
                occurrence_key=key,
                title=f"{title} (week {week}, occurrence {occurrence})",
                description=(
                    f'Complete "{title}" on {weekday}: '
                    f"{occurrence} of {per_week} this week."
                ),
                target_date=day,
                week_number=week,
                sequence=occurrence,
                time=None,
                verification_rules=rules,
            )


def _milestone_quests(draft: GoalDraft, goal_id: Optional[int]) -> list[QuestCandidate]:
    period = _period(draft)
    span = (period.end - period.start).days
    milestones = [str(m).strip() for m in draft.milestones if str(m).strip()]
    count = len(milestones)
    title = draft.title.strip()
    rules = build_verification_rules(draft.verification_methods, None, draft.location_name)

    quests = []
    for index, milestone in enumerate(milestones):
        offset = span if count == 1 else span * index // (count - 1)
        day = period.start + timedelta(days=offset)
        label = MILESTONE_LABELS.get(milestone, milestone)
        key = f"milestone:{index + 1}"
        quests.append(QuestCandidate(
            id=_quest_id(goal_id, key),
            goal_id=goal_id,
            goal_type=GoalType.milestone.value,
            occurrence_key=key,
            title=f"{title} - {label}",
            description=f'Complete the "{label}" stage of "{title}".',
            target_date=day,
            week_number=offset // 7 + 1,
            sequence=index + 1,
            time=None,
            verification_rules=rules,
        ))
    return quests


_EXPANDERS = {
    GoalType.schedule: _schedule_quests,
    GoalType.frequency: _frequency_quests,
    GoalType.milestone: _milestone_quests,
}


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def expand_quests(
    goal_type: str,
    draft: GoalDraft,
    goal_id: Optional[int] = None,
    limit: int = QUEST_LIMIT,
) -> list[QuestCandidate]:
    """
    Expand a validated draft into quest occurrences, earliest first, at most
    `limit` of them. Raises ValueError for a draft that does not validate;
    call `validate_quest_generation` first to get the reasons.
    """
    check = validate_quest_generation(goal_type, draft)
    if not check.is_valid:
        raise ValueError("; ".join(check.errors))

    # one past the limit tells truncation apart from an exact fit
    expanded = _EXPANDERS[GoalType(_ev(goal_type))](draft, goal_id)
    quests = list(itertools.islice(expanded, limit + 1))
    if len(quests) > limit:
        logger.info("quest expansion for goal %s truncated to %d", goal_id, limit)
    return quests[:limit]


def diff_quests(
    existing: Iterable[ExistingQuest],
    candidates: Iterable[QuestCandidate],
) -> QuestDiff:
    """
    Compare stored quests with a fresh expansion, matching by occurrence key
    (date, week + occurrence, or milestone sequence).

    Stored quests are never rewritten: a match keeps the stored record, an
    unmatched pending quest is retired, and an unmatched quest that already
    has a result (completed / failed / skipped) is kept as history.
    """
    existing = list(existing)
    stored_keys = {q.occurrence_key for q in existing}
    candidate_keys = set()

    to_create = []
    for c in candidates:
        candidate_keys.add(c.occurrence_key)
        if c.occurrence_key not in stored_keys:
            to_create.append(c)

    to_retire, kept = [], []
    for q in existing:
        if q.occurrence_key in candidate_keys:
            kept.append(q)
        elif _ev(q.status) == QuestStatus.pending.value:
            to_retire.append(q)
        else:
            kept.append(q)

    return QuestDiff(to_create=to_create, to_retire=to_retire, kept=kept)
