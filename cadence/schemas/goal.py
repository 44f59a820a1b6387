"""
Goal request / response schemas.

POST /goals/preview → GoalCreateRequest → GoalPreviewResponse
POST /goals         → GoalCreateRequest → GoalCreateResponse
GET  /goals/{id}    → GoalResponse

Dates arrive as strings and are checked by the quest expander's
validation, so a malformed period comes back as a list of reasons
(INVALID_GOAL_DEFINITION) rather than a field error.
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from cadence.schemas.quest import QuestPreview, QuestResponse
from cadence.schemas.schedule import OccurrenceRow
from cadence.services.quest_expander import GoalDraft, GoalType


class GoalCreateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: Annotated[str, Field(
        max_length=256,
        description="Goal title shown on every generated quest.",
        examples=["Morning run"],
    )]
    goal_type: GoalType = Field(examples=["schedule"])
    start_date: Optional[str] = Field(default=None, examples=["2025-01-06"])
    end_date: Optional[str] = Field(default=None, examples=["2025-01-19"])

    weekdays: list[int] = Field(
        default_factory=list,
        description="Schedule goals: weekday indices, 0=Sunday to 6=Saturday.",
        examples=[[1, 3, 5]],
    )
    time: Optional[str] = Field(
        default=None,
        description="Schedule goals: default HH:MM time for weekdays without their own times.",
        examples=["07:00"],
    )
    weekly_time_settings: dict[str, list[str]] = Field(
        default_factory=dict,
        description='Per-weekday times, keyed by weekday string: {"1": ["07:00"]}.',
    )
    include_dates: list[str] = Field(default_factory=list)
    exclude_dates: list[str] = Field(default_factory=list)

    per_week: Optional[int] = Field(
        default=None, description="Frequency goals: sessions per 7-day week.",
    )
    allowed_days: list[int] = Field(
        default_factory=list,
        description="Frequency goals: weekdays quests may land on. Empty = any day.",
    )
    milestones: list[str] = Field(
        default_factory=list,
        description='Milestone goals: ordered milestone labels, e.g. ["kickoff", "mid", "finish"].',
    )

    verification_methods: list[str] = Field(
        default_factory=list,
        description="manual | time | location | camera | screenshot | screentime | partner. "
                    "manual is always added as a fallback.",
        examples=[["time"]],
    )
    location_name: Optional[str] = Field(default=None, max_length=256)

    def to_draft(self) -> GoalDraft:
        return GoalDraft(
            title=self.title,
            start_date=self.start_date,
            end_date=self.end_date,
            weekdays=list(self.weekdays),
            time=self.time,
            weekly_time_settings={k: list(v) for k, v in self.weekly_time_settings.items()},
            include_dates=list(self.include_dates),
            exclude_dates=list(self.exclude_dates),
            per_week=self.per_week,
            allowed_days=list(self.allowed_days),
            milestones=list(self.milestones),
            verification_methods=list(self.verification_methods),
            location_name=self.location_name,
        )


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    goal_type: str
    start_date: str
    end_date: str
    weekly_weekdays: list[int]
    weekly_time_settings: dict[str, list[str]]
    include_dates: list[str]
    exclude_dates: list[str]
    default_time: Optional[str] = None
    per_week: Optional[int] = None
    allowed_days: list[int]
    milestones: list[str]
    verification_methods: list[str]
    location_name: Optional[str] = None
    created_at: str


class GoalCreateResponse(BaseModel):
    goal: GoalResponse
    quests: list[QuestResponse]
    truncated: bool = Field(
        description="True when more occurrences existed than the quest limit allows."
    )


class GoalPreviewResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    quests: list[QuestPreview] = Field(default_factory=list)
    occurrences: list[OccurrenceRow] = Field(
        default_factory=list,
        description="Schedule goals: one row per (date, time), earliest first.",
    )
