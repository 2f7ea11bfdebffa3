# src/petstory/models/sqlalchemy_models.py
"""SQLAlchemy ORM models for the content and progress stores."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, relationship

from .base import Base
from .enums import ProgressStatus, StoryEventType


def utcnow() -> datetime:
    return datetime.now(UTC)


class PlotSQL(Base):
    """A top-level story unit.

    ``requirement`` and ``reward`` are free-form documents that the engine
    stores and returns but never interprets. ``sort_order`` drives both the
    player listing and the order in which chapters are offered.
    """

    __tablename__ = "story_plot"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    cover_image = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    is_main_story = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    requirement = Column(JSON, nullable=False, default=dict)
    reward = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ChapterSQL(Base):
    """An ordered subdivision of a plot.

    ``requirement.previousChapter`` is a soft back-reference to another
    chapter of the same plot. It only feeds the ``isAvailable`` flag shown to
    players; automatic advancement ignores it.
    """

    __tablename__ = "story_chapter"
    __table_args__ = (Index("ix_story_chapter_plot_sort", "plot_id", "sort_order"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    plot_id = Column(Uuid, ForeignKey("story_plot.id"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    requirement = Column(JSON, nullable=False, default=dict)
    reward = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def previous_chapter_id(self) -> uuid.UUID | None:
        value = (self.requirement or {}).get("previousChapter")
        return uuid.UUID(str(value)) if value else None


class EventSQL(Base):
    """An atomic narrative unit.

    Successors are stored as bare ids (``next_event_id`` and the
    ``nextEventId`` of each entry in ``content["choices"]``) and resolved by
    lookup at traversal time.
    """

    __tablename__ = "story_event"
    __table_args__ = (Index("ix_story_event_chapter_sort", "chapter_id", "sort_order"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chapter_id = Column(Uuid, ForeignKey("story_chapter.id"), nullable=False)
    title = Column(Text, nullable=False)
    event_type = Column(
        SAEnum(StoryEventType, native_enum=False, length=20),
        nullable=False,
        default=StoryEventType.DIALOG,
    )
    content = Column(JSON, nullable=False, default=dict)
    trigger_condition = Column(JSON, nullable=False, default=lambda: {"type": "AUTO"})
    next_event_id = Column(Uuid, nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def choices(self) -> list[dict]:
        return list((self.content or {}).get("choices") or [])

    def choice_target(self, choice_index: int | None) -> uuid.UUID | None:
        """Return the ``nextEventId`` of a valid choice, else ``None``."""
        if self.event_type != StoryEventType.MULTI_CHOICE or choice_index is None:
            return None
        choices = self.choices
        if not 0 <= choice_index < len(choices):
            return None
        target = choices[choice_index].get("nextEventId")
        return uuid.UUID(str(target)) if target else None


class ProgressChapterSQL(Base):
    """Membership row of a progress record's completed-chapter set."""

    __tablename__ = "story_progress_chapter"
    progress_id = Column(
        Uuid, ForeignKey("user_story_progress.id", ondelete="CASCADE"), primary_key=True
    )
    chapter_id = Column(Uuid, primary_key=True, index=True)


class ProgressEventSQL(Base):
    """Membership row of a progress record's completed-event set."""

    __tablename__ = "story_progress_event"
    progress_id = Column(
        Uuid, ForeignKey("user_story_progress.id", ondelete="CASCADE"), primary_key=True
    )
    event_id = Column(Uuid, primary_key=True, index=True)


class UserStoryProgressSQL(Base):
    """Per-user, per-plot cursor into the event graph plus completion history."""

    __tablename__ = "user_story_progress"
    __table_args__ = (UniqueConstraint("user_id", "plot_id", name="uq_progress_user_plot"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    plot_id = Column(Uuid, ForeignKey("story_plot.id"), nullable=False, index=True)
    current_chapter_id = Column(Uuid, nullable=True, index=True)
    current_event_id = Column(Uuid, nullable=True, index=True)
    status = Column(
        SAEnum(ProgressStatus, native_enum=False, length=20),
        nullable=False,
        default=ProgressStatus.NOT_STARTED,
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    user_choices = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    completed_chapter_links: Mapped[list[ProgressChapterSQL]] = relationship(
        ProgressChapterSQL, cascade="all, delete-orphan", lazy="selectin"
    )
    completed_event_links: Mapped[list[ProgressEventSQL]] = relationship(
        ProgressEventSQL, cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def completed_chapters(self) -> list[uuid.UUID]:
        return [link.chapter_id for link in self.completed_chapter_links]

    @property
    def completed_events(self) -> list[uuid.UUID]:
        return [link.event_id for link in self.completed_event_links]

    def mark_chapter_completed(self, chapter_id: uuid.UUID) -> None:
        if chapter_id not in set(self.completed_chapters):
            self.completed_chapter_links.append(ProgressChapterSQL(chapter_id=chapter_id))

    def mark_event_completed(self, event_id: uuid.UUID) -> None:
        if event_id not in set(self.completed_events):
            self.completed_event_links.append(ProgressEventSQL(event_id=event_id))

    def clear_completion(self) -> None:
        self.completed_chapter_links.clear()
        self.completed_event_links.clear()

    def record_choice(self, event_id: uuid.UUID, choice_index: int) -> None:
        # Reassign so the JSON column is flagged dirty
        self.user_choices = [
            *(self.user_choices or []),
            {
                "eventId": str(event_id),
                "choiceIndex": choice_index,
                "timestamp": utcnow().isoformat(),
            },
        ]


__all__ = [
    "ChapterSQL",
    "EventSQL",
    "PlotSQL",
    "ProgressChapterSQL",
    "ProgressEventSQL",
    "UserStoryProgressSQL",
    "utcnow",
]
