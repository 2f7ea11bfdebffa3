"""Story content and progress tables.

Revision ID: 20250101_0001
Revises:
Create Date: 2025-01-01 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250101_0001"
down_revision = None
branch_labels = None
depends_on = None

_EVENT_TYPES = ("DIALOG", "TASK", "GUIDE", "REWARD", "MULTI_CHOICE")
_PROGRESS_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "COMPLETED")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "story_plot",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("cover_image", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_main_story", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("requirement", sa.JSON(), nullable=False),
        sa.Column("reward", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "story_chapter",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("plot_id", sa.Uuid(), sa.ForeignKey("story_plot.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("requirement", sa.JSON(), nullable=False),
        sa.Column("reward", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_story_chapter_plot_sort", "story_chapter", ["plot_id", "sort_order"])

    op.create_table(
        "story_event",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "chapter_id", sa.Uuid(), sa.ForeignKey("story_chapter.id"), nullable=False
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column(
            "event_type",
            sa.Enum(*_EVENT_TYPES, name="storyeventtype", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("trigger_condition", sa.JSON(), nullable=False),
        sa.Column("next_event_id", sa.Uuid(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_story_event_chapter_sort", "story_event", ["chapter_id", "sort_order"])
    op.create_index("ix_story_event_next_event_id", "story_event", ["next_event_id"])

    op.create_table(
        "user_story_progress",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("plot_id", sa.Uuid(), sa.ForeignKey("story_plot.id"), nullable=False),
        sa.Column("current_chapter_id", sa.Uuid(), nullable=True),
        sa.Column("current_event_id", sa.Uuid(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*_PROGRESS_STATUSES, name="progressstatus", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_choices", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "plot_id", name="uq_progress_user_plot"),
    )
    for column in ("user_id", "plot_id", "current_chapter_id", "current_event_id"):
        op.create_index(f"ix_user_story_progress_{column}", "user_story_progress", [column])

    op.create_table(
        "story_progress_chapter",
        sa.Column(
            "progress_id",
            sa.Uuid(),
            sa.ForeignKey("user_story_progress.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("chapter_id", sa.Uuid(), primary_key=True),
    )
    op.create_index(
        "ix_story_progress_chapter_chapter_id", "story_progress_chapter", ["chapter_id"]
    )
    op.create_table(
        "story_progress_event",
        sa.Column(
            "progress_id",
            sa.Uuid(),
            sa.ForeignKey("user_story_progress.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("event_id", sa.Uuid(), primary_key=True),
    )
    op.create_index("ix_story_progress_event_event_id", "story_progress_event", ["event_id"])


def downgrade() -> None:
    op.drop_table("story_progress_event")
    op.drop_table("story_progress_chapter")
    op.drop_table("user_story_progress")
    op.drop_table("story_event")
    op.drop_table("story_chapter")
    op.drop_table("story_plot")
