"""Typed views over GitHub REST payloads."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models.enums import PRState
from ..models.records import Commit, parse_timestamp


def commit_from_api(data: dict[str, Any]) -> Commit:
    """Build a ``Commit`` from an item of ``GET /repos/{repo}/commits``."""
    commit = data.get("commit") or {}
    author = commit.get("author") or {}
    return Commit(
        hash=data["sha"],
        message=commit.get("message") or "",
        author_email=author.get("email") or "",
    )


@dataclass(frozen=True)
class RepositoryInfo:
    """Subset of ``GET /repos/{owner}/{repo}`` the board needs."""

    id: int
    full_name: str
    default_branch: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RepositoryInfo":
        return cls(
            id=int(data["id"]),
            full_name=data.get("full_name", ""),
            default_branch=data.get("default_branch"),
        )


@dataclass(frozen=True)
class PullRequestDetails:
    """A pull request as reported by the host."""

    repository: str
    number: int
    title: str
    state: PRState
    author: str
    html_url: str | None = None
    body: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    merged_at: datetime | None = None

    def __str__(self) -> str:
        return f"PullRequest({self.repository}#{self.number}, {self.state.value})"

    @property
    def organization(self) -> str:
        return self.repository.split("/", 1)[0]

    @classmethod
    def from_api(cls, repository: str, data: dict[str, Any]) -> "PullRequestDetails":
        """Build from a pull request payload.

        GitHub keeps reporting ``draft: true`` after a draft is closed, so the
        closed and merged checks come first.
        """
        if data.get("merged_at") or data.get("merged"):
            state = PRState.MERGED
        elif data.get("state") == "closed":
            state = PRState.CLOSED
        elif data.get("draft"):
            state = PRState.DRAFT
        else:
            state = PRState.OPEN

        user = data.get("user") or {}
        return cls(
            repository=repository,
            number=int(data["number"]),
            title=data.get("title") or "",
            state=state,
            author=user.get("login") or "",
            html_url=data.get("html_url"),
            body=data.get("body"),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            merged_at=parse_timestamp(data.get("merged_at")),
        )
