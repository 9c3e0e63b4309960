"""Domain records, enums and the SQLAlchemy tracking-issue table."""

from .base import Base, BaseModel
from .enums import EventKind, PipelineStage, PRState
from .records import (
    Commit,
    CommitRef,
    CommitUnit,
    PRRecord,
    PullRequestUnit,
    Review,
    TrackingIssue,
    UnitOfWork,
    extract_source_unit_id,
    source_unit_marker,
)
from .tracking_issue import TrackingIssueRecord

__all__ = [
    "Base",
    "BaseModel",
    "Commit",
    "CommitRef",
    "CommitUnit",
    "EventKind",
    "PRRecord",
    "PRState",
    "PipelineStage",
    "PullRequestUnit",
    "Review",
    "TrackingIssue",
    "TrackingIssueRecord",
    "UnitOfWork",
    "extract_source_unit_id",
    "source_unit_marker",
]
