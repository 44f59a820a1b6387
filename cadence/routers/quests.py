"""
Quests router.

PATCH /quests/{quest_id}   report a status change (completed / failed / skipped)
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cadence.db.base import get_db
from cadence.routers.goals import quest_to_response
from cadence.schemas.common import ErrorResponse
from cadence.schemas.quest import QuestResponse, QuestStatusUpdate
from cadence.services import goal_service

router = APIRouter(prefix="/quests", tags=["quests"])


@router.patch(
    "/{quest_id}",
    response_model=QuestResponse,
    responses={404: {"model": ErrorResponse, "description": "Quest not found."}},
    summary="Update a quest's status",
)
def update_quest(quest_id: int, body: QuestStatusUpdate, db: Session = Depends(get_db)):
    """Quest status is owned by the caller; the schedule never rewrites it."""
    return quest_to_response(goal_service.update_quest_status(db, quest_id, body.status))
