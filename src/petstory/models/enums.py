# src/petstory/models/enums.py
"""Enumerations shared by the ORM and API models."""

from __future__ import annotations

from enum import Enum


class StoryEventType(str, Enum):
    """Kind of narrative unit an event represents."""

    DIALOG = "DIALOG"
    TASK = "TASK"
    GUIDE = "GUIDE"
    REWARD = "REWARD"
    MULTI_CHOICE = "MULTI_CHOICE"


class TriggerType(str, Enum):
    """What causes the client to present an event."""

    ENTER_PAGE = "ENTER_PAGE"
    CLICK_ELEMENT = "CLICK_ELEMENT"
    COMPLETE_TASK = "COMPLETE_TASK"
    AUTO = "AUTO"
    MANUAL = "MANUAL"


class ProgressStatus(str, Enum):
    """Lifecycle of a user's progress through one plot."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


__all__ = ["ProgressStatus", "StoryEventType", "TriggerType"]
