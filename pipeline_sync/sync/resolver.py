"""Tracking-issue resolver: one board issue per unit of work.

``resolve`` runs lookup, create-if-missing and move-to-stage for a unit while
holding a lock on its source unit id, so two tasks in one process can never
both decide the issue is missing. Processes do not share that lock; the
durable index and the marker embedded in the issue body narrow, but do not
close, that window.

No call is retried here. Failures come back as ``ResolverError`` and the
next reconciliation cycle tries again.
"""

import logging

from ..exceptions import (
    AdapterError,
    PersistenceError,
    ResolverError,
    ResolverErrorKind,
)
from ..github.client import GitHubClient
from ..models.enums import PipelineStage
from ..models.records import TrackingIssue, UnitOfWork
from ..zenhub.client import ZenHubClient
from ..zenhub.models import BoardIssue
from .index import InMemoryTrackingIssueIndex, TrackingIssueIndex
from .locks import KeyedLock
from .pipelines import PipelineDirectory

logger = logging.getLogger(__name__)


class TrackingIssueResolver:
    """Finds or creates the tracking issue of a unit and places it in a stage."""

    def __init__(
        self,
        board: ZenHubClient,
        github: GitHubClient,
        pipelines: PipelineDirectory,
        index: TrackingIssueIndex | None = None,
        default_stage: PipelineStage = PipelineStage.NEW_ISSUE,
    ):
        """Initialize the resolver.

        Args:
            board: Tracking-board adapter
            github: Host adapter, used for the numeric repository id
            pipelines: Stage to pipeline mapping
            index: Local identity index consulted before the board
            default_stage: Stage a new issue lands in before any move
        """
        self.board = board
        self.github = github
        self.pipelines = pipelines
        self.index = index or InMemoryTrackingIssueIndex()
        self.default_stage = default_stage
        self._locks = KeyedLock()
        self._repository_ids: dict[str, int] = {}

    async def resolve(
        self, unit: UnitOfWork, target_stage: PipelineStage
    ) -> TrackingIssue:
        """Return the unit's tracking issue, placed in ``target_stage``.

        Raises:
            ResolverError: ``CREATION_FAILED`` when no issue could be found or
                created; ``MOVE_FAILED`` when the move failed, with the issue
                attached in its pre-move stage
        """
        source_unit_id = unit.source_unit_id
        async with self._locks.hold(source_unit_id):
            issue = await self._find(source_unit_id)
            if issue is None:
                issue = await self._create(unit)

            if issue.pipeline_stage != target_stage:
                issue = await self._move(issue, target_stage)
            return issue

    async def _find(self, source_unit_id: str) -> TrackingIssue | None:
        try:
            issue = await self.index.get(source_unit_id)
        except PersistenceError as e:
            logger.error(f"Tracking index lookup failed, asking the board: {e}")
            issue = None
        if issue is not None:
            logger.debug(f"Index hit for {source_unit_id}: {issue.external_id}")
            return issue

        try:
            board_issue = await self.board.find_issue_by_source_unit(source_unit_id)
        except AdapterError as e:
            # Creating without a successful lookup could duplicate the issue
            raise ResolverError(
                ResolverErrorKind.CREATION_FAILED,
                source_unit_id,
                f"Lookup failed for {source_unit_id}: {e}",
                cause=e,
            ) from e

        if board_issue is None:
            return None

        issue = await self._to_tracking_issue(source_unit_id, board_issue)
        logger.info(f"Found existing board issue for {source_unit_id}: {issue}")
        await self._remember(issue)
        return issue

    async def _create(self, unit: UnitOfWork) -> TrackingIssue:
        source_unit_id = unit.source_unit_id
        try:
            repository_gh_id = await self._repository_id(unit.repository)
            board_issue = await self.board.create_issue(
                title=unit.issue_title(),
                body=unit.issue_body(),
                labels=list(unit.labels),
                repository_gh_id=repository_gh_id,
            )
        except AdapterError as e:
            logger.warning(f"Could not create tracking issue for {source_unit_id}: {e}")
            raise ResolverError(
                ResolverErrorKind.CREATION_FAILED,
                source_unit_id,
                f"Creation failed for {source_unit_id}: {e}",
                cause=e,
            ) from e

        issue = await self._to_tracking_issue(source_unit_id, board_issue)
        if issue.pipeline_stage is None and board_issue.pipeline is None:
            issue = issue.with_stage(self.default_stage)
        await self._remember(issue)
        return issue

    async def _move(
        self, issue: TrackingIssue, target_stage: PipelineStage
    ) -> TrackingIssue:
        try:
            pipeline_id = await self.pipelines.pipeline_id(target_stage)
            await self.board.move_issue(issue.external_id, pipeline_id, position=0)
        except AdapterError as e:
            logger.warning(
                f"Could not move {issue.external_id} to {target_stage.value}: {e}"
            )
            raise ResolverError(
                ResolverErrorKind.MOVE_FAILED,
                issue.source_unit_id,
                f"Move of {issue.external_id} to {target_stage.value} failed: {e}",
                issue=issue,
                cause=e,
            ) from e

        moved = issue.with_stage(target_stage)
        logger.info(f"Moved {issue.external_id} to {target_stage.value}")
        await self._remember(moved)
        return moved

    async def _to_tracking_issue(
        self, source_unit_id: str, board_issue: BoardIssue
    ) -> TrackingIssue:
        try:
            stage = await self.pipelines.stage_for(board_issue.pipeline)
        except AdapterError as e:
            logger.warning(f"Could not map pipeline of {board_issue.id}: {e}")
            stage = None
        return TrackingIssue(
            external_id=board_issue.id,
            source_unit_id=source_unit_id,
            pipeline_stage=stage,
            number=board_issue.number,
        )

    async def _remember(self, issue: TrackingIssue) -> None:
        # The body marker still identifies the issue if this write is lost
        try:
            await self.index.put(issue)
        except PersistenceError as e:
            logger.error(f"Failed to record {issue} in tracking index: {e}")

    async def _repository_id(self, repository: str) -> int:
        if repository not in self._repository_ids:
            info = await self.github.get_repository(repository)
            self._repository_ids[repository] = info.id
        return self._repository_ids[repository]
