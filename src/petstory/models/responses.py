# src/petstory/models/responses.py
"""Response documents returned by the player and authoring surfaces."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from .base_model import PetstoryBaseModel as BaseModel
from .enums import ProgressStatus, StoryEventType
from .story import Chapter, Event, EventContent, Plot, TriggerCondition


class ProgressSummary(BaseModel):
    """Progress counters merged into the player's plot listing."""

    current_chapter_id: UUID | None = None
    current_event_id: UUID | None = None
    completed_chapters: int = 0
    completed_events: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_updated_at: datetime | None = None

    @classmethod
    def from_progress(cls, progress: Any) -> ProgressSummary:
        return cls(
            current_chapter_id=progress.current_chapter_id,
            current_event_id=progress.current_event_id,
            completed_chapters=len(progress.completed_chapters),
            completed_events=len(progress.completed_events),
            started_at=progress.started_at,
            completed_at=progress.completed_at,
            last_updated_at=progress.updated_at,
        )


class PlayerPlot(BaseModel):
    id: UUID
    title: str
    description: str
    cover_image: str = ""
    is_main_story: bool = False
    sort_order: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    progress: ProgressSummary | None = None


class PlotBrief(BaseModel):
    id: UUID
    title: str
    description: str
    cover_image: str = ""


class ChapterBrief(BaseModel):
    id: UUID
    title: str


class ChapterStatusView(BaseModel):
    id: UUID
    title: str
    description: str
    sort_order: int = 0
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    is_available: bool = True


class ProgressBrief(BaseModel):
    status: ProgressStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None


class PlotChaptersView(BaseModel):
    plot: PlotBrief
    chapters: list[ChapterStatusView] = Field(default_factory=list)
    progress: ProgressBrief


class TaskView(BaseModel):
    description: str = ""


class OptionView(BaseModel):
    text: str = ""
    next_event_id: UUID | None = None


class EventView(BaseModel):
    """Client-facing event.

    ``type`` mirrors ``eventType``; ``task`` is only set for TASK events and
    ``options`` only for MULTI_CHOICE events.
    """

    id: UUID
    title: str
    type: StoryEventType
    event_type: StoryEventType
    content: EventContent = Field(default_factory=EventContent)
    task: TaskView | None = None
    options: list[OptionView] | None = None
    trigger_condition: TriggerCondition = Field(default_factory=TriggerCondition)

    @classmethod
    def from_event(cls, event: Any) -> EventView:
        content = EventContent.model_validate(event.content or {})
        task = None
        options = None
        if event.event_type == StoryEventType.TASK:
            task = TaskView(description=content.task_objective)
        if event.event_type == StoryEventType.MULTI_CHOICE:
            options = [
                OptionView(text=choice.text, next_event_id=choice.next_event_id)
                for choice in content.choices
            ]
        return cls(
            id=event.id,
            title=event.title,
            type=event.event_type,
            event_type=event.event_type,
            content=content,
            task=task,
            options=options,
            trigger_condition=TriggerCondition.model_validate(
                event.trigger_condition or {}
            ),
        )


class StartResult(BaseModel):
    plot: PlotBrief
    chapter: ChapterBrief | None = None
    current_event: EventView | None = None
    progress: ProgressBrief
    is_completed: bool = False


class CurrentEventView(BaseModel):
    plot_id: UUID
    chapter_id: UUID | None = None
    chapter_title: str = ""
    current_event: EventView


class NextEventResult(BaseModel):
    """The cursor moved to a successor inside the same chapter."""

    next_event: EventView


class ChapterAdvanceResult(BaseModel):
    """The cursor moved into another chapter."""

    chapter_id: UUID
    chapter_title: str
    next_event: EventView


class PlotCompletedResult(BaseModel):
    status: Literal["COMPLETED"] = "COMPLETED"
    completed_at: datetime


class EventCompletedResult(BaseModel):
    """The event is done but nothing follows it; the cursor is now stalled."""

    status: Literal["EVENT_COMPLETED"] = "EVENT_COMPLETED"
    remaining_events_count: int


CompletionResult = (
    NextEventResult | ChapterAdvanceResult | PlotCompletedResult | EventCompletedResult
)


class PlotStats(BaseModel):
    plot_id: UUID
    plot_title: str
    total_users: int = 0
    completed_users: int = 0
    in_progress_users: int = 0
    not_started_users: int = 0
    completion_rate: float = 0.0


class PlotDetail(Plot):
    chapters: list[Chapter] = Field(default_factory=list)


class ChapterDetail(Chapter):
    events: list[Event] = Field(default_factory=list)


class StorySnapshot(BaseModel):
    """Export document for one plot graph."""

    plot: Plot
    chapters: list[Chapter] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    exported_at: datetime


class ImportResult(BaseModel):
    plot_id: UUID


__all__ = [
    "ChapterAdvanceResult",
    "ChapterBrief",
    "ChapterDetail",
    "ChapterStatusView",
    "CompletionResult",
    "CurrentEventView",
    "EventCompletedResult",
    "EventView",
    "ImportResult",
    "NextEventResult",
    "OptionView",
    "PlayerPlot",
    "PlotBrief",
    "PlotChaptersView",
    "PlotCompletedResult",
    "PlotDetail",
    "PlotStats",
    "ProgressBrief",
    "ProgressSummary",
    "StartResult",
    "StorySnapshot",
    "TaskView",
]
