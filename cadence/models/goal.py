"""
Goal: one habit or objective with its schedule definition.

List and mapping fields are JSON-encoded and stored as Text:
  weekly_weekdays       [1, 3, 5]                 (0=Sunday to 6=Saturday)
  weekly_time_settings  {"1": ["07:00"], ...}     keys are weekday strings
  include_dates         ["2025-01-07", ...]
  exclude_dates         ["2025-01-13", ...]
  allowed_days          [1, 3, 5]                 frequency goals only
  milestones            ["kickoff", "mid", ...]   milestone goals only
  verification_methods  ["manual", "time", ...]

The materialized schedule is never stored; it is recomputed from these
fields on demand.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from cadence.db.base import Base
from cadence.services.quest_expander import GoalType


class Goal(Base):
    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    goal_type: Mapped[str] = mapped_column(
        Enum(GoalType, name="goal_type_enum"), nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    weekly_weekdays: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    weekly_time_settings: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    include_dates: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    exclude_dates: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    default_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    allowed_days: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    milestones: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    verification_methods: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    location_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
