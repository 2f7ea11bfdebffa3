# src/petstory/models/story.py
"""Pydantic models for plots, chapters, events and progress."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from .base_model import PetstoryBaseModel as BaseModel
from .enums import ProgressStatus, StoryEventType, TriggerType


class Dialogue(BaseModel):
    speaker: str = ""
    content: str = ""
    avatar: str = ""


class GuideInfo(BaseModel):
    target_page: str = ""
    target_element: str = ""
    guide_text: str = ""


class Choice(BaseModel):
    """One branch of a MULTI_CHOICE event."""

    text: str = ""
    next_event_id: UUID | None = None


class EventContent(BaseModel):
    """Event payload; which parts are meaningful depends on ``eventType``."""

    dialogues: list[Dialogue] = Field(default_factory=list)
    task_objective: str = ""
    guide_info: GuideInfo | None = None
    choices: list[Choice] = Field(default_factory=list)


class TriggerCondition(BaseModel):
    type: TriggerType = TriggerType.AUTO
    page_id: str | None = None
    element_id: str | None = None
    delay: int | None = Field(default=None, ge=0)


class ChapterRequirement(BaseModel):
    user_level: int = 0
    previous_chapter: UUID | None = None
    custom_condition: dict[str, Any] = Field(default_factory=dict)


class RewardItem(BaseModel):
    item_type: str = ""
    item_id: str = ""
    quantity: int = 0


class ChapterReward(BaseModel):
    experience: int = 0
    items: list[RewardItem] = Field(default_factory=list)


class Plot(BaseModel):
    """Representation of a top-level story unit."""

    id: UUID
    title: str
    description: str
    cover_image: str = ""
    is_active: bool = True
    is_main_story: bool = False
    sort_order: int = 0
    requirement: dict[str, Any] = Field(default_factory=dict)
    reward: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Chapter(BaseModel):
    """Representation of a chapter within a plot."""

    id: UUID
    plot_id: UUID
    title: str
    description: str
    sort_order: int = 0
    is_active: bool = True
    requirement: ChapterRequirement = Field(default_factory=ChapterRequirement)
    reward: ChapterReward = Field(default_factory=ChapterReward)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Event(BaseModel):
    """Representation of a narrative event."""

    id: UUID
    chapter_id: UUID
    title: str
    event_type: StoryEventType = StoryEventType.DIALOG
    content: EventContent = Field(default_factory=EventContent)
    trigger_condition: TriggerCondition = Field(default_factory=TriggerCondition)
    next_event_id: UUID | None = None
    is_active: bool = True
    sort_order: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserChoice(BaseModel):
    event_id: UUID
    choice_index: int
    timestamp: datetime | None = None


class UserStoryProgress(BaseModel):
    """A user's persisted position in one plot."""

    id: UUID
    user_id: str
    plot_id: UUID
    current_chapter_id: UUID | None = None
    current_event_id: UUID | None = None
    completed_chapters: list[UUID] = Field(default_factory=list)
    completed_events: list[UUID] = Field(default_factory=list)
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    user_choices: list[UserChoice] = Field(default_factory=list)


__all__ = [
    "Chapter",
    "ChapterRequirement",
    "ChapterReward",
    "Choice",
    "Dialogue",
    "Event",
    "EventContent",
    "GuideInfo",
    "Plot",
    "RewardItem",
    "TriggerCondition",
    "UserChoice",
    "UserStoryProgress",
]
