"""Inbound lifecycle events as a tagged union on ``event_type``.

Payloads are validated here, at the dispatcher boundary, so the state store
only ever sees well-formed events. Which optional fields an event actually
carried is read from ``model_fields_set``: a field left out of the payload
never overwrites stored data.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter

from ..models.enums import PRState

RepositoryName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class BaseEvent(BaseModel):
    """Fields every event carries; together they name the PR record."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    pr_number: int = Field(gt=0)
    repository: RepositoryName
    timestamp: datetime | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.repository, self.pr_number)


class PullRequestEvent(BaseEvent):
    """PR opened, edited, closed, merged or otherwise changed."""

    event_type: Literal["pull_request"] = "pull_request"
    action: str | None = None
    pr_title: str | None = None
    pr_state: Literal["open", "closed", "merged", "draft"] | None = None
    pr_merged: bool | None = None
    draft: bool | None = None
    author: str | None = None
    organization: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    merged_at: datetime | None = None
    html_url: str | None = None
    external_tracking_ref: str | None = None
    zenhub_data: dict[str, Any] | None = None

    def resolved_state(self) -> PRState | None:
        """State declared by the event, or None if it declares none.

        ``pr_merged`` wins over ``pr_state``; an open PR flagged ``draft`` is
        a draft.
        """
        if self.pr_merged:
            return PRState.MERGED
        if self.pr_state is not None:
            state = PRState(self.pr_state)
            if state is PRState.OPEN and self.draft:
                return PRState.DRAFT
            return state
        if self.draft is not None:
            return PRState.DRAFT if self.draft else PRState.OPEN
        return None

    def tracking_ref(self) -> str | None:
        """Explicit tracking ref, else the issue id inside ``zenhub_data``."""
        if self.external_tracking_ref:
            return self.external_tracking_ref
        if self.zenhub_data:
            ref = self.zenhub_data.get("issueId") or self.zenhub_data.get("id")
            return str(ref) if ref else None
        return None


class ScheduledUpdateEvent(PullRequestEvent):
    """Periodic refresh from the host; merged exactly like ``pull_request``."""

    event_type: Literal["scheduled_update"] = "scheduled_update"


class ReviewEvent(BaseEvent):
    """A review submitted on the PR."""

    event_type: Literal["pull_request_review"] = "pull_request_review"
    reviewer: str = Field(min_length=1)
    review_state: str = Field(min_length=1)
    review_body: str | None = None


class PushEvent(BaseEvent):
    """A commit pushed to the PR's head branch."""

    event_type: Literal["push"] = "push"
    commit_sha: str = Field(min_length=1)
    commit_message: str | None = None
    author: str | None = None


LifecycleEvent = Annotated[
    PullRequestEvent | ScheduledUpdateEvent | ReviewEvent | PushEvent,
    Field(discriminator="event_type"),
]

_event_adapter: TypeAdapter[LifecycleEvent] = TypeAdapter(LifecycleEvent)


def parse_event(raw: Any) -> LifecycleEvent:
    """Validate a raw payload into one of the event models.

    Raises:
        pydantic.ValidationError: On an unknown ``event_type`` or missing or
            invalid fields
    """
    return _event_adapter.validate_python(raw)
