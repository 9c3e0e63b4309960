"""
Unit tests for TrackingIssueResolver.

Why: The resolver is the only writer of tracking issues; it must never
     create a second issue for a unit and must report partial progress
What: Tests idempotence under concurrency, lookup order, creation and move
      failures, and index failure handling
How: Drives the resolver against a mocked board and host client
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pipeline_sync.config.models import PipelineConfig
from pipeline_sync.exceptions import (
    PersistenceError,
    ResolverError,
    ResolverErrorKind,
)
from pipeline_sync.models.enums import PipelineStage
from pipeline_sync.models.records import (
    Commit,
    CommitUnit,
    TrackingIssue,
    source_unit_marker,
)
from pipeline_sync.sync.index import InMemoryTrackingIssueIndex, TrackingIssueIndex
from pipeline_sync.sync.pipelines import PipelineDirectory
from pipeline_sync.sync.resolver import TrackingIssueResolver
from pipeline_sync.zenhub.exceptions import (
    ZenHubGraphQLError,
    ZenHubServerError,
)
from pipeline_sync.zenhub.models import Pipeline
from tests.fixtures.board import PIPELINES, board_issue


def default_pipelines() -> dict[PipelineStage, PipelineConfig]:
    return {stage: PipelineConfig(name=stage.default_name) for stage in PipelineStage}


@pytest.fixture
def index() -> InMemoryTrackingIssueIndex:
    return InMemoryTrackingIssueIndex()


@pytest.fixture
def resolver(
    mock_board: MagicMock,
    mock_github: MagicMock,
    index: InMemoryTrackingIssueIndex,
) -> TrackingIssueResolver:
    return TrackingIssueResolver(
        board=mock_board,
        github=mock_github,
        pipelines=PipelineDirectory(mock_board, default_pipelines()),
        index=index,
    )


@pytest.fixture
def unit() -> CommitUnit:
    return CommitUnit(
        repository="acme/mobile-app",
        commit=Commit(hash="c2", message="Fix crash", author_email="a@b.c"),
    )


class TestResolveCreate:
    """Test resolution when no issue exists yet."""

    @pytest.mark.asyncio
    async def test_creates_then_moves_to_target(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
        mock_github: MagicMock,
    ) -> None:
        issue = await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert issue.external_id == "issue-1"
        assert issue.source_unit_id == "acme/mobile-app#c2"
        assert issue.pipeline_stage is PipelineStage.SYNC_PENDING

        create_kwargs = mock_board.create_issue.call_args.kwargs
        assert create_kwargs["title"] == "[SYNC NEEDED] Fix crash"
        assert source_unit_marker(unit.source_unit_id) in create_kwargs["body"]
        assert create_kwargs["labels"] == ["Cross-Branch Sync"]
        assert create_kwargs["repository_gh_id"] == 4242
        mock_board.move_issue.assert_awaited_once_with("issue-1", "p-sync", position=0)
        mock_github.get_repository.assert_awaited_once_with("acme/mobile-app")

    @pytest.mark.asyncio
    async def test_no_move_when_created_in_target_stage(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        issue = await resolver.resolve(unit, PipelineStage.NEW_ISSUE)

        assert issue.pipeline_stage is PipelineStage.NEW_ISSUE
        mock_board.move_issue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_created_without_pipeline_uses_default_stage(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        mock_board.create_issue.return_value = board_issue("issue-1", stage=None)

        issue = await resolver.resolve(unit, PipelineStage.NEW_ISSUE)

        assert issue.pipeline_stage is PipelineStage.NEW_ISSUE
        mock_board.move_issue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_repository_id_is_cached(
        self,
        resolver: TrackingIssueResolver,
        mock_board: MagicMock,
        mock_github: MagicMock,
    ) -> None:
        mock_board.create_issue.side_effect = [
            board_issue("issue-1"),
            board_issue("issue-2"),
        ]
        for sha in ("a", "b"):
            await resolver.resolve(
                CommitUnit("acme/mobile-app", Commit(hash=sha)),
                PipelineStage.NEW_ISSUE,
            )

        mock_github.get_repository.assert_awaited_once()
        assert mock_board.create_issue.await_count == 2


class TestResolveIdempotence:
    """Test that repeated and concurrent resolution creates one issue."""

    @pytest.mark.asyncio
    async def test_sequential_resolves_return_same_issue(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        first = await resolver.resolve(unit, PipelineStage.SYNC_PENDING)
        second = await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert first.external_id == second.external_id
        mock_board.create_issue.assert_awaited_once()
        mock_board.move_issue.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_resolves_create_once(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        """
        Why: Two tasks racing on one unit must not both see "missing"
        What: Five concurrent resolves yield one externalId, one create call
        How: The create call yields to the loop so the others pile up
        """

        async def slow_create(**kwargs: object) -> object:
            await asyncio.sleep(0.01)
            return board_issue("issue-1")

        mock_board.create_issue.side_effect = slow_create

        issues = await asyncio.gather(
            *(resolver.resolve(unit, PipelineStage.SYNC_PENDING) for _ in range(5))
        )

        assert {issue.external_id for issue in issues} == {"issue-1"}
        assert mock_board.create_issue.await_count == 1

    @pytest.mark.asyncio
    async def test_existing_board_issue_is_reused(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
        index: InMemoryTrackingIssueIndex,
    ) -> None:
        mock_board.find_issue_by_source_unit.return_value = board_issue(
            "issue-9",
            stage=PipelineStage.SYNC_PENDING,
            body=source_unit_marker(unit.source_unit_id),
        )

        issue = await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert issue.external_id == "issue-9"
        mock_board.create_issue.assert_not_awaited()
        mock_board.move_issue.assert_not_awaited()
        assert await index.get(unit.source_unit_id) == issue

    @pytest.mark.asyncio
    async def test_index_hit_skips_board_lookup(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
        index: InMemoryTrackingIssueIndex,
    ) -> None:
        await index.put(
            TrackingIssue("issue-5", unit.source_unit_id, PipelineStage.REVIEW)
        )

        issue = await resolver.resolve(unit, PipelineStage.DONE)

        assert issue.external_id == "issue-5"
        assert issue.pipeline_stage is PipelineStage.DONE
        mock_board.find_issue_by_source_unit.assert_not_awaited()
        mock_board.move_issue.assert_awaited_once_with("issue-5", "p-done", position=0)

    @pytest.mark.asyncio
    async def test_unmapped_pipeline_is_moved(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        mock_board.find_issue_by_source_unit.return_value = board_issue(
            "issue-3", pipeline=Pipeline(id="p-icebox", name="Icebox")
        )

        issue = await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert issue.pipeline_stage is PipelineStage.SYNC_PENDING
        mock_board.move_issue.assert_awaited_once()


class TestResolveFailures:
    """Test the resolver's error taxonomy."""

    @pytest.mark.asyncio
    async def test_lookup_failure_is_creation_failed(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        mock_board.find_issue_by_source_unit.side_effect = ZenHubServerError(
            "HTTP 502", 502
        )

        with pytest.raises(ResolverError) as exc_info:
            await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert exc_info.value.kind is ResolverErrorKind.CREATION_FAILED
        assert exc_info.value.source_unit_id == unit.source_unit_id
        mock_board.create_issue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_failure_is_creation_failed(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
        index: InMemoryTrackingIssueIndex,
    ) -> None:
        mock_board.create_issue.side_effect = ZenHubGraphQLError(
            "Repository not connected", [{"message": "Repository not connected"}]
        )

        with pytest.raises(ResolverError) as exc_info:
            await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert exc_info.value.kind is ResolverErrorKind.CREATION_FAILED
        assert exc_info.value.issue is None
        assert isinstance(exc_info.value.cause, ZenHubGraphQLError)
        assert len(index) == 0

    @pytest.mark.asyncio
    async def test_move_failure_carries_issue_and_retry_reuses_it(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        """
        Why: A failed move must not cause a duplicate on the next attempt
        What: MOVE_FAILED carries the created issue in its pre-move stage;
              a retry moves that same issue without creating another
        How: First move raises, second succeeds
        """
        mock_board.move_issue.side_effect = [
            ZenHubServerError("HTTP 500", 500),
            None,
        ]

        with pytest.raises(ResolverError) as exc_info:
            await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        error = exc_info.value
        assert error.kind is ResolverErrorKind.MOVE_FAILED
        assert error.issue is not None
        assert error.issue.external_id == "issue-1"
        assert error.issue.pipeline_stage is PipelineStage.NEW_ISSUE

        issue = await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert issue.external_id == "issue-1"
        assert issue.pipeline_stage is PipelineStage.SYNC_PENDING
        mock_board.create_issue.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_pipeline_is_move_failed(
        self,
        resolver: TrackingIssueResolver,
        unit: CommitUnit,
        mock_board: MagicMock,
    ) -> None:
        mock_board.list_pipelines.return_value = [
            PIPELINES[PipelineStage.NEW_ISSUE]
        ]

        with pytest.raises(ResolverError) as exc_info:
            await resolver.resolve(unit, PipelineStage.SYNC_PENDING)

        assert exc_info.value.kind is ResolverErrorKind.MOVE_FAILED
        mock_board.move_issue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_index_read_failure_falls_back_to_board(
        self,
        mock_board: MagicMock,
        mock_github: MagicMock,
        unit: CommitUnit,
    ) -> None:
        failing_index = MagicMock(spec=TrackingIssueIndex)
        failing_index.get = AsyncMock(side_effect=PersistenceError("disk gone"))
        failing_index.put = AsyncMock(side_effect=PersistenceError("disk gone"))
        resolver = TrackingIssueResolver(
            board=mock_board,
            github=mock_github,
            pipelines=PipelineDirectory(mock_board, default_pipelines()),
            index=failing_index,
        )

        issue = await resolver.resolve(unit, PipelineStage.NEW_ISSUE)

        assert issue.external_id == "issue-1"
        mock_board.find_issue_by_source_unit.assert_awaited_once_with(
            unit.source_unit_id
        )
