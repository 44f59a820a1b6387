"""
Goal service: persistence around the schedule engine.

Every public function takes a Session, loads what it needs, calls the pure
engine modules, writes the result back and commits once at the end.
Nothing derived (materialized schedule, week partition, achievement) is
stored; it is recomputed from the goal row on every read.

Public API
----------
preview_goal(goal_type, draft, limit)                 -> GoalPreview
create_goal(db, goal_type, draft, limit)              -> CreatedGoal
get_goal / delete_goal(db, goal_id)
toggle_goal_date(db, goal_id, day)                    -> Goal
toggle_goal_weekday(db, goal_id, weekday)             -> Goal
set_goal_weekday_times(db, goal_id, weekday, times)   -> Goal
add_calendar_event / delete_calendar_event
get_schedule(db, goal_id)                             -> ScheduleView
record_verification(db, goal_id, timestamp, status, quest_id)
get_achievement(db, goal_id, policy)                  -> AchievementView
list_quests / regenerate_quests / update_quest_status
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from cadence.core.config import settings
from cadence.core.errors import (
    CalendarEventNotFoundError,
    GoalNotFoundError,
    InvalidGoalDefinitionError,
    NotAScheduleGoalError,
    QuestNotFoundError,
)
from cadence.models.calendar_event import CalendarEvent
from cadence.models.goal import Goal
from cadence.models.quest import Quest
from cadence.models.verification import Verification
from cadence.services import overrides
from cadence.services.achievement import (
    AchievementResult,
    DuplicatePolicy,
    FrequencyResult,
    VerificationEvent,
    VerificationStatus,
    aggregate_achievement,
    aggregate_frequency,
    percent,
)
from cadence.services.date_ranges import DateRange, format_day, parse_day
from cadence.services.overrides import OverrideEvent, OverrideState, RequiredSessions
from cadence.services.quest_expander import (
    GoalDraft,
    GoalType,
    QuestCandidate,
    QuestStatus,
    ValidationResult,
    diff_quests,
    expand_quests,
    schedule_pattern,
    validate_quest_generation,
)
from cadence.services.schedule import OccurrencePreview, materialize_sessions, preview_occurrences
from cadence.services.weeks import WeekPartition, compute_schedule_counts

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class GoalPreview:
    validation: ValidationResult
    quests: list[QuestCandidate] = field(default_factory=list)
    occurrences: list[OccurrencePreview] = field(default_factory=list)


@dataclass
class CreatedGoal:
    goal: Goal
    quests: list[Quest]
    truncated: bool


@dataclass
class ScheduleView:
    goal: Goal
    sessions: dict[date, RequiredSessions]
    partition: WeekPartition


@dataclass
class AchievementView:
    goal: Goal
    policy: DuplicatePolicy
    required_total: int
    total_achieved: int
    achievement_percent: int
    result: Optional[AchievementResult] = None
    frequency: Optional[FrequencyResult] = None


@dataclass
class RegeneratedQuests:
    created: list[Quest]
    retired: list[Quest]
    kept: int


# ---------------------------------------------------------------------------
# JSON column helpers
# ---------------------------------------------------------------------------

def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        logger.warning("unreadable JSON column value %r", raw)
        return default


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


# ---------------------------------------------------------------------------
# Goal row <-> engine values
# ---------------------------------------------------------------------------

def goal_range(goal: Goal) -> DateRange:
    return DateRange(goal.start_date, goal.end_date)


def goal_state(goal: Goal) -> OverrideState:
    return OverrideState.from_payload(
        _loads(goal.weekly_weekdays, []),
        _loads(goal.weekly_time_settings, {}),
        _loads(goal.include_dates, []),
        _loads(goal.exclude_dates, []),
    )


def goal_draft(goal: Goal) -> GoalDraft:
    state = goal_state(goal)
    weekdays, time_settings = state.pattern.to_payload()
    return GoalDraft(
        title=goal.title,
        start_date=format_day(goal.start_date),
        end_date=format_day(goal.end_date),
        weekdays=weekdays,
        time=None,
        weekly_time_settings=time_settings,
        include_dates=[format_day(d) for d in state.include_dates],
        exclude_dates=[format_day(d) for d in state.exclude_dates],
        per_week=goal.per_week,
        allowed_days=_loads(goal.allowed_days, []),
        milestones=_loads(goal.milestones, []),
        verification_methods=_loads(goal.verification_methods, []),
        location_name=goal.location_name,
    )


def _store_state(goal: Goal, state: OverrideState) -> None:
    payload = state.to_payload()
    goal.weekly_weekdays = _dumps(payload["weekly_weekdays"])
    goal.weekly_time_settings = _dumps(payload["weekly_time_settings"])
    goal.include_dates = _dumps(payload["include_dates"])
    goal.exclude_dates = _dumps(payload["exclude_dates"])


def _override_events(db: Session, goal_id: int) -> list[OverrideEvent]:
    rows = db.query(CalendarEvent).filter(CalendarEvent.goal_id == goal_id).all()
    return [
        OverrideEvent(day=r.day, time=r.time, source=_ev(r.source), group_id=r.group_id)
        for r in rows
    ]


def _verification_events(db: Session, goal_id: int) -> list[VerificationEvent]:
    rows = db.query(Verification).filter(Verification.goal_id == goal_id).all()
    return [VerificationEvent(timestamp=r.timestamp, status=_ev(r.status)) for r in rows]


def _get_goal(db: Session, goal_id: int) -> Goal:
    goal = db.get(Goal, goal_id)
    if goal is None:
        raise GoalNotFoundError(goal_id)
    return goal


def _require_schedule(goal: Goal) -> None:
    if _ev(goal.goal_type) != GoalType.schedule.value:
        raise NotAScheduleGoalError(goal.id, _ev(goal.goal_type))


def _quest_row(goal_id: int, c: QuestCandidate) -> Quest:
    return Quest(
        goal_id=goal_id,
        occurrence_key=c.occurrence_key,
        title=c.title,
        description=c.description,
        target_date=c.target_date,
        week_number=c.week_number,
        sequence=c.sequence,
        time=c.time,
        verification_rules=_dumps([r.to_dict() for r in c.verification_rules]),
        status=QuestStatus.pending,
    )


def _as_utc(ts: datetime) -> datetime:
    """Aware UTC timestamp; naive input is read as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Goal creation
# ---------------------------------------------------------------------------

def preview_goal(
    goal_type: str,
    draft: GoalDraft,
    limit: Optional[int] = None,
) -> GoalPreview:
    """Validate and expand without touching the database."""
    limit = settings.QUEST_LIMIT if limit is None else limit
    validation = validate_quest_generation(goal_type, draft)
    if not validation.is_valid:
        return GoalPreview(validation=validation)

    preview = GoalPreview(validation=validation, quests=expand_quests(goal_type, draft, None, limit))
    if _ev(goal_type) == GoalType.schedule.value:
        period = DateRange(parse_day(draft.start_date), parse_day(draft.end_date))
        state = OverrideState.build(
            schedule_pattern(draft),
            [parse_day(d) for d in draft.include_dates],
            [parse_day(d) for d in draft.exclude_dates],
        )
        preview.occurrences = preview_occurrences(
            period, materialize_sessions(period, state), limit,
        )
    return preview


def create_goal(
    db: Session,
    goal_type: str,
    draft: GoalDraft,
    limit: Optional[int] = None,
) -> CreatedGoal:
    """
    Persist a goal and its quests in one commit.
    Raises InvalidGoalDefinitionError with the validation reasons.
    """
    limit = settings.QUEST_LIMIT if limit is None else limit
    validation = validate_quest_generation(goal_type, draft)
    if not validation.is_valid:
        raise InvalidGoalDefinitionError(validation.errors)

    goal_type = GoalType(_ev(goal_type))
    period = DateRange(parse_day(draft.start_date), parse_day(draft.end_date))
    goal = Goal(
        title=draft.title.strip(),
        goal_type=goal_type,
        start_date=period.start,
        end_date=period.end,
        default_time=draft.time,
        per_week=draft.per_week,
        allowed_days=_dumps(sorted(set(draft.allowed_days))),
        milestones=_dumps([m.strip() for m in draft.milestones if m.strip()]),
        verification_methods=_dumps(list(dict.fromkeys(draft.verification_methods))),
        location_name=draft.location_name,
    )
    if goal_type is GoalType.schedule:
        state = OverrideState.build(
            schedule_pattern(draft),
            [parse_day(d) for d in draft.include_dates],
            [parse_day(d) for d in draft.exclude_dates],
        )
        _store_state(goal, overrides.clamp_to_range(state, period))
    else:
        _store_state(goal, OverrideState(overrides.WeeklyPattern()))

    db.add(goal)
    db.flush()  # get goal.id

    candidates = expand_quests(goal_type, draft, goal.id, limit + 1)
    truncated = len(candidates) > limit
    quests = [_quest_row(goal.id, c) for c in candidates[:limit]]
    db.add_all(quests)
    db.commit()
    db.refresh(goal)

    logger.info(
        "created %s goal %s with %d quests%s",
        goal_type.value, goal.id, len(quests), " (truncated)" if truncated else "",
    )
    return CreatedGoal(goal=goal, quests=quests, truncated=truncated)


def get_goal(db: Session, goal_id: int) -> Goal:
    return _get_goal(db, goal_id)


def delete_goal(db: Session, goal_id: int) -> None:
    """Delete a goal with its calendar events, quests and verifications."""
    goal = _get_goal(db, goal_id)
    for model in (Verification, Quest, CalendarEvent):
        db.query(model).filter(model.goal_id == goal_id).delete(synchronize_session=False)
    db.delete(goal)
    db.commit()
    logger.info("deleted goal %s", goal_id)


# ---------------------------------------------------------------------------
# Schedule edits
# ---------------------------------------------------------------------------

def toggle_goal_date(db: Session, goal_id: int, day: date) -> Goal:
    goal = _get_goal(db, goal_id)
    _require_schedule(goal)
    state = overrides.toggle_date(goal_state(goal), day, goal_range(goal))
    _store_state(goal, state)
    db.commit()
    db.refresh(goal)
    return goal


def toggle_goal_weekday(db: Session, goal_id: int, weekday: int) -> Goal:
    goal = _get_goal(db, goal_id)
    _require_schedule(goal)
    state = overrides.toggle_weekday(goal_state(goal), weekday, goal_range(goal))
    _store_state(goal, state)
    db.commit()
    db.refresh(goal)
    return goal


def set_goal_weekday_times(db: Session, goal_id: int, weekday: int, times: list[str]) -> Goal:
    goal = _get_goal(db, goal_id)
    _require_schedule(goal)
    state = goal_state(goal)
    pattern = overrides.set_weekday_times(state.pattern, weekday, times)
    _store_state(goal, OverrideState.build(pattern, state.includes, state.excludes))
    db.commit()
    db.refresh(goal)
    return goal


def add_calendar_event(
    db: Session,
    goal_id: int,
    day: date,
    time: str,
    source: str = overrides.EventSource.override.value,
    group_id: Optional[str] = None,
) -> CalendarEvent:
    goal = _get_goal(db, goal_id)
    _require_schedule(goal)
    event = CalendarEvent(
        goal_id=goal_id,
        day=day,
        time=time,
        source=overrides.EventSource(_ev(source)),
        group_id=group_id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def delete_calendar_event(db: Session, goal_id: int, event_id: int) -> None:
    _get_goal(db, goal_id)
    event = db.get(CalendarEvent, event_id)
    if event is None or event.goal_id != goal_id:
        raise CalendarEventNotFoundError(goal_id, event_id)
    db.delete(event)
    db.commit()


def get_schedule(db: Session, goal_id: int) -> ScheduleView:
    goal = _get_goal(db, goal_id)
    _require_schedule(goal)
    period, state = goal_range(goal), goal_state(goal)
    events = _override_events(db, goal_id)
    return ScheduleView(
        goal=goal,
        sessions=materialize_sessions(period, state, events),
        partition=compute_schedule_counts(period, state, events),
    )


# ---------------------------------------------------------------------------
# Verification + achievement
# ---------------------------------------------------------------------------

def record_verification(
    db: Session,
    goal_id: int,
    timestamp: datetime,
    status: str,
    quest_id: Optional[int] = None,
) -> Verification:
    _get_goal(db, goal_id)
    if quest_id is not None:
        quest = db.get(Quest, quest_id)
        if quest is None or quest.goal_id != goal_id:
            raise QuestNotFoundError(quest_id)
    row = Verification(
        goal_id=goal_id,
        quest_id=quest_id,
        timestamp=_as_utc(timestamp),
        status=VerificationStatus(_ev(status)),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_achievement(
    db: Session,
    goal_id: int,
    policy: Optional[str] = None,
) -> AchievementView:
    """
    schedule   complete-week requirement (override events included) vs successes
    frequency  distinct success days per complete week vs per_week
    milestone  one required session per quest target date vs successes
    """
    goal = _get_goal(db, goal_id)
    policy = DuplicatePolicy(policy or settings.DUPLICATE_EVENT_POLICY)
    events = _verification_events(db, goal_id)
    goal_type = GoalType(_ev(goal.goal_type))
    tz = settings.tz

    if goal_type is GoalType.frequency:
        freq = aggregate_frequency(events, goal.per_week or 1, goal_range(goal), tz)
        required = sum(w.target for w in freq.weeks)
        achieved = sum(min(w.count, w.target) for w in freq.weeks)
        return AchievementView(
            goal=goal,
            policy=policy,
            required_total=required,
            total_achieved=achieved,
            achievement_percent=percent(achieved, required),
            frequency=freq,
        )

    if goal_type is GoalType.schedule:
        partition = compute_schedule_counts(
            goal_range(goal), goal_state(goal), _override_events(db, goal_id),
        )
        per_date = partition.per_date_required
    else:
        quests = (
            db.query(Quest)
            .filter(Quest.goal_id == goal_id, Quest.status != QuestStatus.skipped)
            .all()
        )
        per_date = dict(Counter(q.target_date for q in quests if q.target_date))

    result = aggregate_achievement(per_date, events, tz, policy)
    return AchievementView(
        goal=goal,
        policy=policy,
        required_total=result.required_total,
        total_achieved=result.total_achieved,
        achievement_percent=result.achievement_percent,
        result=result,
    )


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------

def list_quests(db: Session, goal_id: int) -> list[Quest]:
    _get_goal(db, goal_id)
    return (
        db.query(Quest)
        .filter(Quest.goal_id == goal_id)
        .order_by(Quest.target_date, Quest.week_number, Quest.sequence, Quest.id)
        .all()
    )


def regenerate_quests(
    db: Session,
    goal_id: int,
    limit: Optional[int] = None,
) -> RegeneratedQuests:
    """
    Align stored quests with the goal's current definition. New occurrences
    are written, pending quests whose occurrence disappeared are marked
    skipped, everything else is left as it is.
    """
    limit = settings.QUEST_LIMIT if limit is None else limit
    goal = _get_goal(db, goal_id)
    draft = goal_draft(goal)
    # weekdays cleared to no times stay manual; the default time only counts for validation
    validation = validate_quest_generation(goal.goal_type, replace(draft, time=goal.default_time))
    if not validation.is_valid:
        raise InvalidGoalDefinitionError(validation.errors)

    existing = db.query(Quest).filter(Quest.goal_id == goal_id).all()
    # Skipped rows keep their key; a candidate matching one revives nothing.
    diff = diff_quests(existing, expand_quests(goal.goal_type, draft, goal_id, limit))

    created = [_quest_row(goal_id, c) for c in diff.to_create]
    db.add_all(created)
    for quest in diff.to_retire:
        quest.status = QuestStatus.skipped
    db.commit()

    logger.info(
        "regenerated quests for goal %s: +%d, retired %d, kept %d",
        goal_id, len(created), len(diff.to_retire), len(diff.kept),
    )
    return RegeneratedQuests(created=created, retired=diff.to_retire, kept=len(diff.kept))


def update_quest_status(db: Session, quest_id: int, status: str) -> Quest:
    quest = db.get(Quest, quest_id)
    if quest is None:
        raise QuestNotFoundError(quest_id)
    quest.status = QuestStatus(_ev(status))
    db.commit()
    db.refresh(quest)
    return quest


def quest_rules(quest: Quest) -> list[dict]:
    return _loads(quest.verification_rules, [])


def goal_lists(goal: Goal) -> dict[str, Iterable]:
    """Decoded JSON columns of a goal, for responses."""
    return {
        "weekly_weekdays": _loads(goal.weekly_weekdays, []),
        "weekly_time_settings": _loads(goal.weekly_time_settings, {}),
        "include_dates": _loads(goal.include_dates, []),
        "exclude_dates": _loads(goal.exclude_dates, []),
        "allowed_days": _loads(goal.allowed_days, []),
        "milestones": _loads(goal.milestones, []),
        "verification_methods": _loads(goal.verification_methods, []),
    }
