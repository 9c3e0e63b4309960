"""Domain records for commits, units of work, tracking issues and PRs.

These are plain dataclasses. ``PRRecord`` round-trips through the persisted
JSON document with ``to_dict``/``from_dict``; everything else is either
immutable once observed (``Commit``) or rebuilt on every cycle.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from .enums import PipelineStage, PRState

_MARKER_PATTERN = re.compile(r"<!-- pipeline-sync:source-unit=(\S+) -->")


def source_unit_marker(source_unit_id: str) -> str:
    """Hidden body line carrying the source unit id as durable metadata."""
    return f"<!-- pipeline-sync:source-unit={source_unit_id} -->"


def extract_source_unit_id(body: str | None) -> str | None:
    """Read the source unit id back out of an issue body."""
    if not body:
        return None
    match = _MARKER_PATTERN.search(body)
    return match.group(1) if match else None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Commit:
    """A commit observed on a branch. Identity is the hash."""

    hash: str
    message: str = ""
    author_email: str = ""

    def __str__(self) -> str:
        return f"Commit({self.short_hash}: {self.summary[:50]})"

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]


class UnitOfWork(ABC):
    """Something that gets exactly one tracking issue on the board."""

    repository: str
    labels: tuple[str, ...]

    @property
    @abstractmethod
    def source_unit_id(self) -> str:
        """Stable identifier derived from the unit, e.g. ``owner/repo#<sha>``."""

    @abstractmethod
    def issue_title(self) -> str:
        """Title of the tracking issue created for this unit."""

    @abstractmethod
    def issue_body(self) -> str:
        """Body of the tracking issue, ending with the source unit marker."""


@dataclass(frozen=True)
class CommitUnit(UnitOfWork):
    """A commit on the primary branch that has not reached the secondary one."""

    repository: str
    commit: Commit
    primary_branch: str = "main"
    secondary_branch: str = "practice"
    labels: tuple[str, ...] = ("Cross-Branch Sync",)

    @property
    def source_unit_id(self) -> str:
        return f"{self.repository}#{self.commit.hash}"

    def issue_title(self) -> str:
        return f"[SYNC NEEDED] {self.commit.summary}"

    def issue_body(self) -> str:
        lines = [
            f"**Commit:** {self.commit.hash}",
            f"**Repository:** {self.repository}",
            f"**Author:** {self.commit.author_email or 'unknown'}",
            "",
            f"Present on `{self.primary_branch}` but missing from "
            f"`{self.secondary_branch}`.",
            "",
            f"**Message:**\n{self.commit.message}",
            "",
            source_unit_marker(self.source_unit_id),
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class PullRequestUnit(UnitOfWork):
    """A pull request tracked on the board for its review/merge lifecycle."""

    repository: str
    number: int
    title: str = ""
    author: str = ""
    state: PRState = PRState.OPEN
    url: str | None = None
    body: str | None = None
    labels: tuple[str, ...] = ("Pull Request",)

    @property
    def source_unit_id(self) -> str:
        return f"{self.repository}#{self.number}"

    def issue_title(self) -> str:
        return f"[PR #{self.number}] {self.title}"

    def issue_body(self) -> str:
        lines = [
            f"**Pull Request:** #{self.number}",
            "",
            f"**Description:** {self.body or 'No description'}",
            "",
            f"**Author:** @{self.author}",
            "",
            f"**Status:** {self.state.value}",
        ]
        if self.url:
            lines += ["", f"**Link:** {self.url}"]
        lines += ["", source_unit_marker(self.source_unit_id)]
        return "\n".join(lines)


@dataclass(frozen=True)
class TrackingIssue:
    """An issue on the tracking board representing one unit of work.

    ``pipeline_stage`` is None when the issue sits in a pipeline that no
    configured stage maps to.
    """

    external_id: str
    source_unit_id: str
    pipeline_stage: PipelineStage | None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    number: int | None = None

    def __str__(self) -> str:
        stage = self.pipeline_stage.value if self.pipeline_stage else "unmapped"
        return f"TrackingIssue({self.source_unit_id} -> {self.external_id}, {stage})"

    def with_stage(self, stage: PipelineStage) -> "TrackingIssue":
        return replace(self, pipeline_stage=stage)


@dataclass(frozen=True)
class Review:
    """A review appended to a PR record, in arrival order."""

    reviewer: str | None = None
    state: str | None = None
    body: str | None = None
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reviewer": self.reviewer,
            "state": self.state,
            "body": self.body,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Review":
        return cls(
            reviewer=data.get("reviewer"),
            state=data.get("state"),
            body=data.get("body"),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


@dataclass(frozen=True)
class CommitRef:
    """A pushed commit appended to a PR record, in arrival order."""

    sha: str
    message: str | None = None
    author: str | None = None
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sha": self.sha,
            "message": self.message,
            "author": self.author,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommitRef":
        return cls(
            sha=data["sha"],
            message=data.get("message"),
            author=data.get("author"),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


@dataclass
class PRRecord:
    """Single source of truth for one pull request, keyed by (repository, number)."""

    pr_number: int
    repository: str
    title: str = ""
    state: PRState = PRState.OPEN
    author: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    merged_at: datetime | None = None
    external_tracking_ref: str | None = None
    organization: str | None = None
    html_url: str | None = None
    last_action: str | None = None
    reviews: list[Review] = field(default_factory=list)
    commits: list[CommitRef] = field(default_factory=list)
    last_event_at: datetime | None = None

    def __str__(self) -> str:
        return (
            f"PRRecord({self.repository}#{self.pr_number}: {self.title[:50]}, "
            f"state={self.state.value})"
        )

    @property
    def key(self) -> tuple[str, int]:
        return (self.repository, self.pr_number)

    @property
    def status_label(self) -> str:
        return self.state.label

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return {
            "pr_number": self.pr_number,
            "repository": self.repository,
            "title": self.title,
            "state": self.state.value,
            "author": self.author,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "merged_at": format_timestamp(self.merged_at),
            "external_tracking_ref": self.external_tracking_ref,
            "organization": self.organization,
            "html_url": self.html_url,
            "last_action": self.last_action,
            "reviews": [review.to_dict() for review in self.reviews],
            "commits": [commit.to_dict() for commit in self.commits],
            "last_event_at": format_timestamp(self.last_event_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PRRecord":
        """Rebuild a record from the persisted JSON shape."""
        return cls(
            pr_number=int(data["pr_number"]),
            repository=data["repository"],
            title=data.get("title") or "",
            state=PRState(data.get("state") or PRState.OPEN.value),
            author=data.get("author") or "",
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            merged_at=parse_timestamp(data.get("merged_at")),
            external_tracking_ref=data.get("external_tracking_ref"),
            organization=data.get("organization"),
            html_url=data.get("html_url"),
            last_action=data.get("last_action"),
            reviews=[Review.from_dict(item) for item in data.get("reviews") or []],
            commits=[CommitRef.from_dict(item) for item in data.get("commits") or []],
            last_event_at=parse_timestamp(data.get("last_event_at")),
        )
