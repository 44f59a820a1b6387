"""
CalendarEvent: a timed session attached to one date of a goal.

source values:
  "weekly"    mirror of the weekly pattern, read-only, ignored when
              computing requirements
  "override"  one-off session; its time is added to that date's requirement
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, DateTime, Date, ForeignKey, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from cadence.db.base import Base
from cadence.services.overrides import EventSource


class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    goal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    day: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    source: Mapped[str] = mapped_column(
        Enum(EventSource, name="calendar_event_source_enum"),
        nullable=False,
        default=EventSource.override,
    )
    group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
