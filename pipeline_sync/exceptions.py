"""Error taxonomy shared by adapters, resolver, dispatcher and store.

Adapters classify transport failures into ``AdapterError`` subclasses before
returning; nothing above the adapter layer sees a raw aiohttp exception.
"""

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models.records import TrackingIssue


class PipelineSyncError(Exception):
    """Base exception for all pipeline-sync errors."""


class AdapterError(PipelineSyncError):
    """Failure talking to an external system.

    Always recoverable by retrying on a later cycle.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        """Initialize adapter error.

        Args:
            message: Error message
            status_code: HTTP status code, if a response was received
            response_data: Decoded response body, if any
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class ResolverErrorKind(str, Enum):
    """Ways the tracking-issue resolver can fail."""

    CREATION_FAILED = "creation_failed"
    MOVE_FAILED = "move_failed"


class ResolverError(PipelineSyncError):
    """Raised when a unit of work could not be fully resolved.

    For ``MOVE_FAILED`` the found or created issue is attached with its
    pre-move stage, so the move can be retried without re-creating it.
    """

    def __init__(
        self,
        kind: ResolverErrorKind,
        source_unit_id: str,
        message: str,
        issue: "TrackingIssue | None" = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.source_unit_id = source_unit_id
        self.issue = issue
        self.cause = cause


class DispatchErrorKind(str, Enum):
    """Ways an inbound event can be rejected."""

    MALFORMED_EVENT = "malformed_event"


class DispatchError(PipelineSyncError):
    """Raised when an inbound event is rejected before touching the store."""

    def __init__(
        self,
        message: str,
        kind: DispatchErrorKind = DispatchErrorKind.MALFORMED_EVENT,
        details: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.details = details or []


class PersistenceError(PipelineSyncError):
    """Failure reading or writing the durable PR state file."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path
