"""
Quest schemas.

GET   /goals/{id}/quests             → QuestListResponse
POST  /goals/{id}/quests/regenerate  → QuestRegenerateResponse
PATCH /quests/{id}                   → QuestStatusUpdate → QuestResponse
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from cadence.services.quest_expander import QuestStatus


class VerificationRuleOut(BaseModel):
    type: str
    required: bool
    config: dict[str, Any] = Field(default_factory=dict)


class QuestPreview(BaseModel):
    """A quest occurrence that has not been written yet."""
    occurrence_key: str
    title: str
    description: str
    target_date: Optional[str] = None
    week_number: Optional[int] = None
    sequence: int
    time: Optional[str] = None
    verification_rules: list[VerificationRuleOut]


class QuestResponse(QuestPreview):
    model_config = ConfigDict(from_attributes=True)

    id: int
    goal_id: int
    status: str = Field(description='"pending" | "completed" | "failed" | "skipped"')


class QuestListResponse(BaseModel):
    total: int
    items: list[QuestResponse]


class QuestStatusUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: QuestStatus


class QuestRegenerateResponse(BaseModel):
    created: list[QuestResponse]
    retired: list[QuestResponse] = Field(
        description="Pending quests whose occurrence left the schedule; now skipped."
    )
    kept: int = Field(description="Stored quests left untouched.")
