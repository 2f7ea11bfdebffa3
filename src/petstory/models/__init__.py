# src/petstory/models/__init__.py
"""Pydantic and ORM models for the story graph and player progress."""

from .base import Base  # Import SQLAlchemy Base
from .base_model import PetstoryBaseModel
from .enums import ProgressStatus, StoryEventType, TriggerType
from .requests import (
    ChapterCreate,
    ChapterUpdate,
    CompleteEventRequest,
    EventCreate,
    EventUpdate,
    ImportRequest,
    PlotCreate,
    PlotUpdate,
    SnapshotChapter,
    SnapshotEvent,
    SnapshotPlot,
    StorySnapshotInput,
)
from .responses import (
    ChapterAdvanceResult,
    ChapterBrief,
    ChapterDetail,
    ChapterStatusView,
    CompletionResult,
    CurrentEventView,
    EventCompletedResult,
    EventView,
    ImportResult,
    NextEventResult,
    OptionView,
    PlayerPlot,
    PlotBrief,
    PlotChaptersView,
    PlotCompletedResult,
    PlotDetail,
    PlotStats,
    ProgressBrief,
    ProgressSummary,
    StartResult,
    StorySnapshot,
    TaskView,
)
from .sqlalchemy_models import (
    ChapterSQL,
    EventSQL,
    PlotSQL,
    ProgressChapterSQL,
    ProgressEventSQL,
    UserStoryProgressSQL,
)
from .story import (
    Chapter,
    ChapterRequirement,
    ChapterReward,
    Choice,
    Dialogue,
    Event,
    EventContent,
    GuideInfo,
    Plot,
    RewardItem,
    TriggerCondition,
    UserChoice,
    UserStoryProgress,
)

__all__ = [
    "Base",
    "PetstoryBaseModel",
    "ProgressStatus",
    "StoryEventType",
    "TriggerType",
    # Content graph
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
    # Requests
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
    # Responses
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
    # ORM
    "ChapterSQL",
    "EventSQL",
    "PlotSQL",
    "ProgressChapterSQL",
    "ProgressEventSQL",
    "UserStoryProgressSQL",
]
