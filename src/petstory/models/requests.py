# src/petstory/models/requests.py
"""Request payloads accepted by the authoring and player surfaces."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, Field

from .base_model import PetstoryBaseModel as BaseModel
from .enums import StoryEventType
from .story import ChapterRequirement, ChapterReward, EventContent, TriggerCondition


class PlotCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    cover_image: str = ""
    is_active: bool = True
    is_main_story: bool = False
    sort_order: int = 0
    requirement: dict[str, Any] = Field(default_factory=dict)
    reward: dict[str, Any] = Field(default_factory=dict)


class PlotUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    cover_image: str | None = None
    is_active: bool | None = None
    is_main_story: bool | None = None
    sort_order: int | None = None
    requirement: dict[str, Any] | None = None
    reward: dict[str, Any] | None = None


class ChapterCreate(BaseModel):
    plot_id: UUID
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    sort_order: int = 0
    is_active: bool = True
    requirement: ChapterRequirement = Field(default_factory=ChapterRequirement)
    reward: ChapterReward = Field(default_factory=ChapterReward)


class ChapterUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    sort_order: int | None = None
    is_active: bool | None = None
    requirement: ChapterRequirement | None = None
    reward: ChapterReward | None = None


class EventCreate(BaseModel):
    chapter_id: UUID
    title: str = Field(..., min_length=1)
    event_type: StoryEventType = StoryEventType.DIALOG
    content: EventContent = Field(default_factory=EventContent)
    trigger_condition: TriggerCondition = Field(default_factory=TriggerCondition)
    next_event_id: UUID | None = None
    is_active: bool = True
    sort_order: int = 0


class EventUpdate(BaseModel):
    """Partial update; an explicit ``nextEventId: null`` clears the successor."""

    title: str | None = Field(default=None, min_length=1)
    event_type: StoryEventType | None = None
    content: EventContent | None = None
    trigger_condition: TriggerCondition | None = None
    next_event_id: UUID | None = None
    is_active: bool | None = None
    sort_order: int | None = None


class CompleteEventRequest(BaseModel):
    plot_id: UUID
    event_id: UUID
    choice_index: int | None = None


class SnapshotPlot(BaseModel):
    """Plot document inside an imported snapshot.

    Snapshot ids are opaque strings; they only serve as keys of the
    old-to-new id maps built during import.
    """

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    cover_image: str = ""
    is_active: bool = True
    is_main_story: bool = False
    sort_order: int = 0
    requirement: dict[str, Any] = Field(default_factory=dict)
    reward: dict[str, Any] = Field(default_factory=dict)


class SnapshotChapter(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    sort_order: int = 0
    is_active: bool = True
    requirement: dict[str, Any] = Field(default_factory=dict)
    reward: dict[str, Any] = Field(default_factory=dict)


class SnapshotEvent(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    chapter_id: str
    title: str = Field(..., min_length=1)
    event_type: StoryEventType = StoryEventType.DIALOG
    content: dict[str, Any] = Field(default_factory=dict)
    trigger_condition: dict[str, Any] = Field(default_factory=lambda: {"type": "AUTO"})
    next_event_id: str | None = None
    is_active: bool = True
    sort_order: int = 0


class StorySnapshotInput(BaseModel):
    """A plot graph as produced by export, accepted by import."""

    plot: SnapshotPlot
    chapters: list[SnapshotChapter] = Field(default_factory=list)
    events: list[SnapshotEvent] = Field(default_factory=list)
    exported_at: datetime | None = None


class ImportRequest(BaseModel):
    story_config: StorySnapshotInput


__all__ = [
    "ChapterCreate",
    "ChapterUpdate",
    "CompleteEventRequest",
    "EventCreate",
    "EventUpdate",
    "ImportRequest",
    "PlotCreate",
    "PlotUpdate",
    "SnapshotChapter",
    "SnapshotEvent",
    "SnapshotPlot",
    "StorySnapshotInput",
]
