"""goal schedule schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

goals, calendar_events, quests, verifications.
Child rows cascade on goal delete. The materialized schedule is never
stored, so there is no table for it.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ENUMS = {
    "goal_type_enum": ("schedule", "frequency", "milestone"),
    "calendar_event_source_enum": ("weekly", "override"),
    "quest_status_enum": ("pending", "completed", "failed", "skipped"),
    "verification_status_enum": ("success", "fail"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*_ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # --- ENUM types ---
    for name, values in _ENUMS.items():
        sa.Enum(*values, name=name).create(op.get_bind(), checkfirst=True)

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("goal_type", _enum("goal_type_enum"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("weekly_weekdays", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("weekly_time_settings", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("include_dates", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("exclude_dates", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("default_time", sa.String(5), nullable=True),
        sa.Column("per_week", sa.Integer(), nullable=True),
        sa.Column("allowed_days", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("milestones", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("verification_methods", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("location_name", sa.String(256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "calendar_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("source", _enum("calendar_event_source_enum"), nullable=False),
        sa.Column("group_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_calendar_events_goal_id", "calendar_events", ["goal_id"])
    op.create_index("ix_calendar_events_date", "calendar_events", ["date"])

    op.create_table(
        "quests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("occurrence_key", sa.String(64), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("week_number", sa.Integer(), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("time", sa.String(5), nullable=True),
        sa.Column("verification_rules", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("status", _enum("quest_status_enum"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("goal_id", "occurrence_key", name="uq_quest_goal_occurrence"),
    )
    op.create_index("ix_quests_goal_id", "quests", ["goal_id"])
    op.create_index("ix_quests_target_date", "quests", ["target_date"])

    op.create_table(
        "verifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quest_id", sa.Integer(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", _enum("verification_status_enum"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_verifications_goal_id", "verifications", ["goal_id"])
    op.create_index("ix_verifications_quest_id", "verifications", ["quest_id"])


def downgrade() -> None:
    op.drop_table("verifications")
    op.drop_table("quests")
    op.drop_table("calendar_events")
    op.drop_table("goals")
    for name, values in _ENUMS.items():
        sa.Enum(*values, name=name).drop(op.get_bind(), checkfirst=True)
