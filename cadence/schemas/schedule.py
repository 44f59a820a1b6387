"""
Schedule, calendar and achievement schemas.

POST   /goals/{id}/toggle-date                  → ToggleDateRequest
POST   /goals/{id}/toggle-weekday               → ToggleWeekdayRequest
PUT    /goals/{id}/weekdays/{weekday}/times     → WeekdayTimesRequest
POST   /goals/{id}/calendar-events              → CalendarEventCreate → CalendarEventResponse
GET    /goals/{id}/schedule                     → ScheduleResponse
GET    /goals/{id}/achievement                  → AchievementResponse
POST   /goals/{id}/verifications                → VerificationCreate → VerificationResponse
"""
import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cadence.schemas.common import strict_day
from cadence.services.achievement import VerificationStatus
from cadence.services.overrides import EventSource, is_valid_time


def _check_time(v: str) -> str:
    if not is_valid_time(v):
        raise ValueError("expected an HH:MM (24h) time")
    return v


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------

class ToggleDateRequest(BaseModel):
    date: dt.date = Field(description="Calendar cell to flip (YYYY-MM-DD).", examples=["2025-01-13"])

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v):
        return strict_day(v)


class ToggleWeekdayRequest(BaseModel):
    weekday: int = Field(ge=0, le=6, description="0=Sunday to 6=Saturday.")


class WeekdayTimesRequest(BaseModel):
    times: list[str] = Field(
        default_factory=list,
        description="HH:MM times. An empty list keeps the weekday as a manual check-in day.",
        examples=[["07:00", "19:00"]],
    )

    @field_validator("times")
    @classmethod
    def check_times(cls, v: list[str]) -> list[str]:
        return [_check_time(t) for t in v]


class CalendarEventCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    date: dt.date = Field(examples=["2025-01-08"])
    time: str = Field(examples=["18:00"])
    source: EventSource = EventSource.override
    group_id: Optional[str] = Field(default=None, max_length=64)

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v):
        return strict_day(v)

    @field_validator("time")
    @classmethod
    def check_time(cls, v: str) -> str:
        return _check_time(v)


class CalendarEventResponse(BaseModel):
    id: int
    goal_id: int
    date: str
    time: str
    source: str
    group_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Materialized schedule
# ---------------------------------------------------------------------------

class SessionRow(BaseModel):
    date: str
    count: int
    times: list[str]


class OccurrenceRow(BaseModel):
    date: str
    time: Optional[str] = None
    day_name: str
    week_number: int


class WeekRow(BaseModel):
    index: int
    start: str
    end: str
    dates: list[str]
    total: int


class ScheduleResponse(BaseModel):
    goal_id: int
    start_date: str
    end_date: str
    sessions: list[SessionRow] = Field(description="Every scheduled date of the range.")
    required_total: int = Field(
        description="Sessions required inside complete 7-day weeks. 0 for ranges under 7 days."
    )
    per_date_required: dict[str, int]
    weeks: list[WeekRow]
    partial_days: int = Field(description="Days of the trailing partial week left out.")


# ---------------------------------------------------------------------------
# Achievement
# ---------------------------------------------------------------------------

class VerificationCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    timestamp: dt.datetime = Field(
        description="When the proof happened. Naive timestamps are read as UTC.",
        examples=["2025-01-06T07:05:00+09:00"],
    )
    status: VerificationStatus
    quest_id: Optional[int] = None


class VerificationResponse(BaseModel):
    id: int
    goal_id: int
    quest_id: Optional[int] = None
    timestamp: str
    status: str


class DayAchievementRow(BaseModel):
    date: str
    required: int
    success: int
    fail: int
    achieved: int


class FrequencyWeekRow(BaseModel):
    index: int
    start: str
    end: str
    count: int
    target: int
    passed: bool
    verification_days: list[str]


class FrequencySummary(BaseModel):
    total_weeks: int
    passed_weeks: int
    overall_pass: bool
    reason: str
    weeks: list[FrequencyWeekRow]


class AchievementResponse(BaseModel):
    goal_id: int
    goal_type: str
    policy: str
    required_total: int
    total_achieved: int
    achievement_percent: int = Field(ge=0, le=100)
    days: list[DayAchievementRow] = Field(default_factory=list)
    frequency: Optional[FrequencySummary] = None
