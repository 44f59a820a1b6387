"""
Goals router.

POST   /goals/preview                          validate + expand, nothing stored
POST   /goals                                  create goal and its quests
GET    /goals/{goal_id}                        goal with its schedule definition
DELETE /goals/{goal_id}                        goal + events, quests, verifications
POST   /goals/{goal_id}/toggle-date            flip one date, then reconcile
POST   /goals/{goal_id}/toggle-weekday         turn a weekday on / off
PUT    /goals/{goal_id}/weekdays/{wd}/times    replace a weekday's times
POST   /goals/{goal_id}/calendar-events        add a timed session
DELETE /goals/{goal_id}/calendar-events/{id}   remove it
GET    /goals/{goal_id}/schedule               materialized sessions + complete weeks
POST   /goals/{goal_id}/verifications          record a success / fail proof
GET    /goals/{goal_id}/achievement            required vs achieved
GET    /goals/{goal_id}/quests                 stored quests
POST   /goals/{goal_id}/quests/regenerate      align quests with the definition
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.orm import Session

from cadence.db.base import get_db
from cadence.models.calendar_event import CalendarEvent
from cadence.models.goal import Goal
from cadence.models.quest import Quest
from cadence.models.verification import Verification
from cadence.schemas.common import ErrorResponse
from cadence.schemas.goal import (
    GoalCreateRequest,
    GoalCreateResponse,
    GoalPreviewResponse,
    GoalResponse,
)
from cadence.schemas.quest import (
    QuestListResponse,
    QuestPreview,
    QuestRegenerateResponse,
    QuestResponse,
    VerificationRuleOut,
)
from cadence.schemas.schedule import (
    AchievementResponse,
    CalendarEventCreate,
    CalendarEventResponse,
    DayAchievementRow,
    FrequencySummary,
    FrequencyWeekRow,
    OccurrenceRow,
    ScheduleResponse,
    SessionRow,
    ToggleDateRequest,
    ToggleWeekdayRequest,
    VerificationCreate,
    VerificationResponse,
    WeekdayTimesRequest,
    WeekRow,
)
from cadence.services import goal_service
from cadence.services.achievement import DuplicatePolicy
from cadence.services.date_ranges import format_day
from cadence.services.quest_expander import QuestCandidate

router = APIRouter(prefix="/goals", tags=["goals"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Goal not found."}}
_SCHEDULE_ONLY = {
    **_NOT_FOUND,
    409: {"model": ErrorResponse, "description": "Goal is not a schedule goal."},
}


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def _goal_to_response(goal: Goal) -> GoalResponse:
    return GoalResponse(
        id=goal.id,
        title=goal.title,
        goal_type=_ev(goal.goal_type),
        start_date=format_day(goal.start_date),
        end_date=format_day(goal.end_date),
        default_time=goal.default_time,
        per_week=goal.per_week,
        location_name=goal.location_name,
        created_at=goal.created_at.isoformat() if goal.created_at else "",
        **goal_service.goal_lists(goal),
    )


def quest_to_response(q: Quest) -> QuestResponse:
    return QuestResponse(
        id=q.id,
        goal_id=q.goal_id,
        occurrence_key=q.occurrence_key,
        title=q.title,
        description=q.description or "",
        target_date=format_day(q.target_date) if q.target_date else None,
        week_number=q.week_number,
        sequence=q.sequence,
        time=q.time,
        verification_rules=[VerificationRuleOut(**r) for r in goal_service.quest_rules(q)],
        status=_ev(q.status),
    )


def _candidate_to_preview(c: QuestCandidate) -> QuestPreview:
    return QuestPreview(
        occurrence_key=c.occurrence_key,
        title=c.title,
        description=c.description,
        target_date=format_day(c.target_date) if c.target_date else None,
        week_number=c.week_number,
        sequence=c.sequence,
        time=c.time,
        verification_rules=[VerificationRuleOut(**r.to_dict()) for r in c.verification_rules],
    )


def _event_to_response(ev: CalendarEvent) -> CalendarEventResponse:
    return CalendarEventResponse(
        id=ev.id,
        goal_id=ev.goal_id,
        date=format_day(ev.day),
        time=ev.time,
        source=_ev(ev.source),
        group_id=ev.group_id,
    )


def _verification_to_response(v: Verification) -> VerificationResponse:
    return VerificationResponse(
        id=v.id,
        goal_id=v.goal_id,
        quest_id=v.quest_id,
        timestamp=v.timestamp.isoformat(),
        status=_ev(v.status),
    )


# ---------------------------------------------------------------------------
# Goal lifecycle
# ---------------------------------------------------------------------------

@router.post(
    "/preview",
    response_model=GoalPreviewResponse,
    summary="Validate a goal definition and list the quests it would produce",
)
def preview_goal(body: GoalCreateRequest):
    """
    Nothing is stored. An incomplete definition comes back with
    `is_valid=false` and the reasons, never as an error.
    """
    preview = goal_service.preview_goal(body.goal_type, body.to_draft())
    return GoalPreviewResponse(
        is_valid=preview.validation.is_valid,
        errors=preview.validation.errors,
        quests=[_candidate_to_preview(c) for c in preview.quests],
        occurrences=[
            OccurrenceRow(
                date=format_day(o.day), time=o.time, day_name=o.day_name, week_number=o.week_number,
            )
            for o in preview.occurrences
        ],
    )


@router.post(
    "",
    response_model=GoalCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a goal and generate its quests",
    responses={
        422: {"model": ErrorResponse, "description": "INVALID_GOAL_DEFINITION with reasons."},
    },
)
def create_goal(body: GoalCreateRequest, db: Session = Depends(get_db)):
    created = goal_service.create_goal(db, body.goal_type, body.to_draft())
    return GoalCreateResponse(
        goal=_goal_to_response(created.goal),
        quests=[quest_to_response(q) for q in created.quests],
        truncated=created.truncated,
    )


@router.get("/{goal_id}", response_model=GoalResponse, responses=_NOT_FOUND, summary="Get a goal")
def get_goal(goal_id: int, db: Session = Depends(get_db)):
    return _goal_to_response(goal_service.get_goal(db, goal_id))


@router.delete(
    "/{goal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
    summary="Delete a goal and everything attached to it",
)
def delete_goal(goal_id: int, db: Session = Depends(get_db)):
    goal_service.delete_goal(db, goal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Schedule edits
# ---------------------------------------------------------------------------

@router.post(
    "/{goal_id}/toggle-date",
    response_model=GoalResponse,
    responses=_SCHEDULE_ONLY,
    summary="Flip one calendar date",
)
def toggle_date(goal_id: int, body: ToggleDateRequest, db: Session = Depends(get_db)):
    """
    A scheduled date becomes unscheduled and the other way round. Dates
    outside the goal period are ignored. Afterwards the weekday is
    reconciled: a weekday with no scheduled date left leaves the weekly
    pattern, and a weekday that gains a scheduled date joins it, its other
    dates excluded so the set of scheduled dates does not change.
    """
    return _goal_to_response(goal_service.toggle_goal_date(db, goal_id, body.date))


@router.post(
    "/{goal_id}/toggle-weekday",
    response_model=GoalResponse,
    responses=_SCHEDULE_ONLY,
    summary="Turn a whole weekday on or off",
)
def toggle_weekday(goal_id: int, body: ToggleWeekdayRequest, db: Session = Depends(get_db)):
    return _goal_to_response(goal_service.toggle_goal_weekday(db, goal_id, body.weekday))


@router.put(
    "/{goal_id}/weekdays/{weekday}/times",
    response_model=GoalResponse,
    responses=_SCHEDULE_ONLY,
    summary="Replace the times of one weekday",
)
def set_weekday_times(
    body: WeekdayTimesRequest,
    goal_id: int,
    weekday: int = Path(ge=0, le=6, description="0=Sunday to 6=Saturday."),
    db: Session = Depends(get_db),
):
    return _goal_to_response(
        goal_service.set_goal_weekday_times(db, goal_id, weekday, body.times)
    )


@router.post(
    "/{goal_id}/calendar-events",
    response_model=CalendarEventResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_SCHEDULE_ONLY,
    summary="Add a timed session to one date",
)
def add_calendar_event(goal_id: int, body: CalendarEventCreate, db: Session = Depends(get_db)):
    """
    `source="override"` sessions add their time to the date's requirement.
    `source="weekly"` rows mirror the weekly pattern and never change it.
    """
    event = goal_service.add_calendar_event(
        db, goal_id, body.date, body.time, body.source, body.group_id,
    )
    return _event_to_response(event)


@router.delete(
    "/{goal_id}/calendar-events/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Goal or event not found."}},
    summary="Remove a calendar event",
)
def delete_calendar_event(goal_id: int, event_id: int, db: Session = Depends(get_db)):
    goal_service.delete_calendar_event(db, goal_id, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{goal_id}/schedule",
    response_model=ScheduleResponse,
    responses=_SCHEDULE_ONLY,
    summary="Materialized schedule and complete-week requirement",
)
def get_schedule(goal_id: int, db: Session = Depends(get_db)):
    """
    `sessions` lists every scheduled date of the period. `required_total`
    and `weeks` only count complete 7-day weeks from the start date; a
    period shorter than 7 days has `required_total=0`.
    """
    view = goal_service.get_schedule(db, goal_id)
    partition = view.partition
    return ScheduleResponse(
        goal_id=view.goal.id,
        start_date=format_day(view.goal.start_date),
        end_date=format_day(view.goal.end_date),
        sessions=[
            SessionRow(date=format_day(d), count=s.count, times=list(s.times))
            for d, s in view.sessions.items()
        ],
        required_total=partition.required_total,
        per_date_required={
            format_day(d): n for d, n in sorted(partition.per_date_required.items())
        },
        weeks=[
            WeekRow(
                index=w.index,
                start=format_day(w.start),
                end=format_day(w.end),
                dates=[format_day(d) for d in w.dates],
                total=w.total,
            )
            for w in partition.weeks
        ],
        partial_days=partition.partial_days,
    )


# ---------------------------------------------------------------------------
# Verification + achievement
# ---------------------------------------------------------------------------

@router.post(
    "/{goal_id}/verifications",
    response_model=VerificationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse, "description": "Goal or quest not found."}},
    summary="Record a verification event",
)
def record_verification(goal_id: int, body: VerificationCreate, db: Session = Depends(get_db)):
    row = goal_service.record_verification(
        db, goal_id, body.timestamp, body.status, body.quest_id,
    )
    return _verification_to_response(row)


@router.get(
    "/{goal_id}/achievement",
    response_model=AchievementResponse,
    responses=_NOT_FOUND,
    summary="Required sessions vs verified successes",
)
def get_achievement(
    goal_id: int,
    policy: Optional[DuplicatePolicy] = Query(
        default=None,
        description='"count_each" (every success counts) or "one_per_date". '
                    "Defaults to the server setting.",
    ),
    db: Session = Depends(get_db),
):
    """
    Successes on a date never count for more than that date requires.
    Frequency goals report per-week results under `frequency`.
    """
    view = goal_service.get_achievement(db, goal_id, policy)
    days = []
    if view.result is not None:
        days = [
            DayAchievementRow(
                date=format_day(d.day),
                required=d.required,
                success=d.success,
                fail=d.fail,
                achieved=d.achieved,
            )
            for d in view.result.days
        ]
    frequency = None
    if view.frequency is not None:
        frequency = FrequencySummary(
            total_weeks=view.frequency.total_weeks,
            passed_weeks=view.frequency.passed_weeks,
            overall_pass=view.frequency.overall_pass,
            reason=view.frequency.reason,
            weeks=[
                FrequencyWeekRow(
                    index=w.index,
                    start=format_day(w.start),
                    end=format_day(w.end),
                    count=w.count,
                    target=w.target,
                    passed=w.passed,
                    verification_days=[format_day(d) for d in w.verification_days],
                )
                for w in view.frequency.weeks
            ],
        )
    return AchievementResponse(
        goal_id=view.goal.id,
        goal_type=_ev(view.goal.goal_type),
        policy=view.policy.value,
        required_total=view.required_total,
        total_achieved=view.total_achieved,
        achievement_percent=view.achievement_percent,
        days=days,
        frequency=frequency,
    )


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------

@router.get(
    "/{goal_id}/quests",
    response_model=QuestListResponse,
    responses=_NOT_FOUND,
    summary="List a goal's quests, earliest first",
)
def list_quests(goal_id: int, db: Session = Depends(get_db)):
    quests = goal_service.list_quests(db, goal_id)
    return QuestListResponse(total=len(quests), items=[quest_to_response(q) for q in quests])


@router.post(
    "/{goal_id}/quests/regenerate",
    response_model=QuestRegenerateResponse,
    responses={
        **_NOT_FOUND,
        422: {"model": ErrorResponse, "description": "Stored definition no longer validates."},
    },
    summary="Align stored quests with the current goal definition",
)
def regenerate_quests(goal_id: int, db: Session = Depends(get_db)):
    """
    Stored quests are matched to fresh occurrences by date / week / sequence.
    Missing occurrences are created, pending quests that no longer match are
    marked `skipped`, and completed or failed quests are never touched.
    """
    result = goal_service.regenerate_quests(db, goal_id)
    return QuestRegenerateResponse(
        created=[quest_to_response(q) for q in result.created],
        retired=[quest_to_response(q) for q in result.retired],
        kept=result.kept,
    )
