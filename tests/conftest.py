"""
Shared fixtures for the pipeline-sync test suite.

Provides configuration dictionaries, PR records and mocked adapters so unit
tests never talk to GitHub, the tracking board or a real state file unless
they ask for a temporary one.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pipeline_sync.config.models import Config
from pipeline_sync.github.models import RepositoryInfo
from pipeline_sync.models.enums import PRState
from pipeline_sync.models.records import Commit, PRRecord
from tests.fixtures.board import PIPELINES, board_issue


@pytest.fixture
def config_data() -> dict[str, Any]:
    """
    Minimal valid configuration dictionary.

    Why: Most config and context tests only vary one section
    What: Provides credentials, one repository and a memory-only index
    How: Plain dict, validated by each test through Config/ConfigurationLoader
    """
    return {
        "github": {"token": "ghp_test", "organization": "acme"},
        "zenhub": {"token": "zh_test", "workspace_id": "ws-1"},
        "repositories": [{"name": "mobile-app"}],
        "tracking_index": {"enabled": False},
    }


@pytest.fixture
def config(config_data: dict[str, Any], tmp_path: Any) -> Config:
    """Validated configuration with the state file under tmp_path."""
    config_data["store"] = {"path": str(tmp_path / "pr-data.json")}
    return Config.model_validate(config_data)


@pytest.fixture
def make_commit() -> Callable[..., Commit]:
    """Factory for commits with a readable default message."""

    def _make(hash: str, message: str | None = None) -> Commit:
        return Commit(
            hash=hash,
            message=message or f"Change {hash}",
            author_email="dev@example.com",
        )

    return _make


@pytest.fixture
def make_record() -> Callable[..., PRRecord]:
    """Factory for PR records."""

    def _make(
        pr_number: int,
        state: PRState = PRState.OPEN,
        repository: str = "acme/mobile-app",
        **kwargs: Any,
    ) -> PRRecord:
        kwargs.setdefault("title", f"PR {pr_number}")
        kwargs.setdefault("author", "alice")
        return PRRecord(
            pr_number=pr_number, repository=repository, state=state, **kwargs
        )

    return _make


@pytest.fixture
def mock_board() -> MagicMock:
    """
    Mock tracking-board client.

    Why: Resolver and reconciler tests count board calls
    What: Nothing is found; creates land in New Issues; moves succeed
    How: AsyncMock per typed operation used by the sync package
    """
    board = MagicMock()
    board.list_pipelines = AsyncMock(return_value=list(PIPELINES.values()))
    board.find_issue_by_source_unit = AsyncMock(return_value=None)
    board.create_issue = AsyncMock(return_value=board_issue("issue-1"))
    board.move_issue = AsyncMock(return_value=None)
    board.close = AsyncMock()
    return board


@pytest.fixture
def mock_github() -> MagicMock:
    """Mock host client returning a fixed repository id."""
    github = MagicMock()
    github.get_repository = AsyncMock(
        return_value=RepositoryInfo(id=4242, full_name="acme/mobile-app")
    )
    github.list_commits = AsyncMock(return_value=[])
    github.list_pull_requests = AsyncMock(return_value=[])
    github.get_pull_request = AsyncMock()
    github.close = AsyncMock()
    return github


@pytest.fixture
def fixed_time() -> datetime:
    return datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
