from .goal import Goal
from .calendar_event import CalendarEvent
from .quest import Quest
from .verification import Verification

__all__ = [
    "Goal",
    "CalendarEvent",
    "Quest",
    "Verification",
]
