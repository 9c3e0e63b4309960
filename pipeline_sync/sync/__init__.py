"""Reconciliation core: differ, identity index, resolver.

The cycles live in ``pipeline_sync.sync.reconciler``.
"""

from .differ import diff
from .index import (
    DatabaseTrackingIssueIndex,
    InMemoryTrackingIssueIndex,
    TrackingIssueIndex,
)
from .locks import KeyedLock
from .pipelines import PipelineDirectory
from .resolver import TrackingIssueResolver

__all__ = [
    "DatabaseTrackingIssueIndex",
    "InMemoryTrackingIssueIndex",
    "KeyedLock",
    "PipelineDirectory",
    "TrackingIssueIndex",
    "TrackingIssueResolver",
    "diff",
]
