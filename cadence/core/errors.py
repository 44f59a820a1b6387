"""
Custom exception hierarchy for the Cadence API.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

The schedule engine itself never raises these: invalid goal definitions
come back from `validate_quest_generation` as a reason list, and the
service layer decides whether to turn that list into an error.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CadenceException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class GoalNotFoundError(CadenceException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "GOAL_NOT_FOUND"

    def __init__(self, goal_id: int):
        super().__init__(
            message=f"Goal {goal_id} does not exist.",
            details={"goal_id": goal_id},
        )


class QuestNotFoundError(CadenceException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "QUEST_NOT_FOUND"

    def __init__(self, quest_id: int):
        super().__init__(
            message=f"Quest {quest_id} does not exist.",
            details={"quest_id": quest_id},
        )


class CalendarEventNotFoundError(CadenceException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "CALENDAR_EVENT_NOT_FOUND"

    def __init__(self, goal_id: int, event_id: int):
        super().__init__(
            message=f"Calendar event {event_id} does not belong to goal {goal_id}.",
            details={"goal_id": goal_id, "event_id": event_id},
        )


class InvalidGoalDefinitionError(CadenceException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_GOAL_DEFINITION"

    def __init__(self, reasons: list[str]):
        super().__init__(
            message="Goal definition is incomplete: " + "; ".join(reasons),
            details={"reasons": list(reasons)},
        )


class NotAScheduleGoalError(CadenceException):
    http_status = status.HTTP_409_CONFLICT
    code = "NOT_A_SCHEDULE_GOAL"

    def __init__(self, goal_id: int, goal_type: str):
        super().__init__(
            message=f"Goal {goal_id} is a {goal_type} goal; schedule edits need a schedule goal.",
            details={"goal_id": goal_id, "goal_type": goal_type},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def cadence_exception_handler(request: Request, exc: CadenceException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
