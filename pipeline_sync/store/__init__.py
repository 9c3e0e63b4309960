"""PR State Store, its events, persistence and read-side helpers."""

from .events import (
    LifecycleEvent,
    PullRequestEvent,
    PushEvent,
    ReviewEvent,
    ScheduledUpdateEvent,
    parse_event,
)
from .persistence import JsonStateFile, StateDocument
from .queries import PRFilter, filter_values
from .state_store import PRStateStore
from .statistics import Stats, aggregate

__all__ = [
    "JsonStateFile",
    "LifecycleEvent",
    "PRFilter",
    "PRStateStore",
    "PullRequestEvent",
    "PushEvent",
    "ReviewEvent",
    "ScheduledUpdateEvent",
    "StateDocument",
    "Stats",
    "aggregate",
    "filter_values",
    "parse_event",
]
