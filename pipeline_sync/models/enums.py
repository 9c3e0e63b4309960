"""Enums shared by the store, the resolver and the adapters."""

import enum


class PRState(str, enum.Enum):
    """Pull request state as recorded in the PR State Store."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"
    DRAFT = "draft"

    @property
    def label(self) -> str:
        """Display label used by the read endpoints' status filter."""
        return self.value.capitalize()


class PipelineStage(str, enum.Enum):
    """Stable keys for tracking-board pipelines.

    The value is the identity; the display name lives in configuration and
    may change without breaking stage identity.
    """

    NEW_ISSUE = "new_issue"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    CLOSED = "closed"
    SYNC_PENDING = "sync_pending"

    @property
    def default_name(self) -> str:
        return _DEFAULT_STAGE_NAMES[self]

    @classmethod
    def for_pr_state(cls, state: PRState) -> "PipelineStage":
        """Stage a pull request's tracking issue belongs in."""
        return _PR_STATE_STAGES[state]


_DEFAULT_STAGE_NAMES = {
    PipelineStage.NEW_ISSUE: "New Issues",
    PipelineStage.IN_PROGRESS: "In Progress",
    PipelineStage.REVIEW: "Review",
    PipelineStage.DONE: "Done",
    PipelineStage.CLOSED: "Closed",
    PipelineStage.SYNC_PENDING: "Sync Pending",
}

_PR_STATE_STAGES = {
    PRState.DRAFT: PipelineStage.IN_PROGRESS,
    PRState.OPEN: PipelineStage.REVIEW,
    PRState.MERGED: PipelineStage.DONE,
    PRState.CLOSED: PipelineStage.CLOSED,
}


class EventKind(str, enum.Enum):
    """Discriminant of inbound lifecycle events (``event_type``)."""

    PULL_REQUEST = "pull_request"
    PULL_REQUEST_REVIEW = "pull_request_review"
    PUSH = "push"
    SCHEDULED_UPDATE = "scheduled_update"
