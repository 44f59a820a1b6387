"""
Quest: one concrete occurrence generated from a goal.

occurrence_key identifies the occurrence inside its goal
("date:2025-01-06", "week:2:1", "milestone:3"); the unique constraint
keeps regeneration from writing the same occurrence twice.
verification_rules is a JSON-encoded list of {type, required, config}.
"""
from datetime import datetime, date
from sqlalchemy import (
    Integer, String, Text, DateTime, Date, ForeignKey, Enum, func, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from cadence.db.base import Base
from cadence.services.quest_expander import QuestStatus


class Quest(Base):
    __tablename__ = "quests"
    __table_args__ = (
        UniqueConstraint("goal_id", "occurrence_key", name="uq_quest_goal_occurrence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    goal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    occurrence_key: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    verification_rules: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    status: Mapped[str] = mapped_column(
        Enum(QuestStatus, name="quest_status_enum"),
        nullable=False,
        default=QuestStatus.pending,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
