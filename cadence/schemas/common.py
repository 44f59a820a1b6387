"""
Shared schema primitives used across the API.
"""
from datetime import date
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict

from cadence.services.date_ranges import parse_day


class ErrorResponse(BaseModel):
    """Standard error envelope returned for all 4xx/5xx responses."""
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    details: Optional[dict[str, Any]] = None


def strict_day(v: Any) -> date:
    """`before` validator body: only YYYY-MM-DD strings (or dates) are accepted."""
    if isinstance(v, date):
        return v
    if not isinstance(v, str):
        raise ValueError("expected a YYYY-MM-DD string")
    return parse_day(v)
