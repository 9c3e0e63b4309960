"""Repository layer over the SQLAlchemy models."""

from .base import BaseRepository
from .tracking_issue import TrackingIssueRepository

__all__ = ["BaseRepository", "TrackingIssueRepository"]
