"""Reconciliation cycles driving the resolver.

Two cycles share the same shape: for each configured repository, fetch
snapshots from the host, work out which units need a tracking issue in which
stage, and resolve them concurrently under a cap. A failure on one unit or
one repository is logged and recorded in the cycle report; the cycle always
runs to the end.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..config.models import ReconciliationConfig, RepositoryConfig
from ..exceptions import AdapterError, PersistenceError, ResolverError
from ..github.client import GitHubClient
from ..github.models import PullRequestDetails
from ..models.enums import PipelineStage
from ..models.records import CommitUnit, PullRequestUnit, TrackingIssue
from ..store.events import ScheduledUpdateEvent
from ..store.state_store import PRStateStore
from .differ import diff
from .resolver import TrackingIssueResolver

logger = logging.getLogger(__name__)


@dataclass
class ReconcileFailure:
    """One unit or repository that could not be reconciled this cycle."""

    source_unit_id: str | None
    kind: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class RepositoryReport:
    """Outcome of one cycle for one repository."""

    repository: str
    examined: int = 0
    resolved: list[TrackingIssue] = field(default_factory=list)
    failures: list[ReconcileFailure] = field(default_factory=list)
    processing_time_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.failures


@dataclass
class CycleReport:
    """Outcome of one cycle across repositories."""

    started_at: datetime
    repositories: list[RepositoryReport] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return sum(len(report.resolved) for report in self.repositories)

    @property
    def failure_count(self) -> int:
        return sum(len(report.failures) for report in self.repositories)


class _Reconciler(ABC):
    """Fan-out over repositories and units with bounded concurrency."""

    cycle_name = "reconciliation"

    def __init__(
        self,
        github: GitHubClient,
        resolver: TrackingIssueResolver,
        repositories: list[RepositoryConfig],
        settings: ReconciliationConfig | None = None,
        default_owner: str | None = None,
    ):
        self.github = github
        self.resolver = resolver
        self.repositories = repositories
        self.settings = settings or ReconciliationConfig()
        self.default_owner = default_owner

    @abstractmethod
    def _selected(self) -> list[RepositoryConfig]:
        """Repositories this cycle covers."""

    @abstractmethod
    async def reconcile_repository(self, repository: str) -> RepositoryReport:
        """Reconcile one repository; failures go into the report."""

    async def run_cycle(self) -> CycleReport:
        """Run one cycle over every selected repository."""
        report = CycleReport(started_at=datetime.now(UTC))
        selected = self._selected()
        if not selected:
            logger.info(f"No repositories selected for {self.cycle_name}")
            return report

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_repositories)

        async def limited(repository: str) -> RepositoryReport:
            async with semaphore:
                return await self.reconcile_repository(repository)

        names = [repo.full_name(self.default_owner) for repo in selected]
        results = await asyncio.gather(
            *(limited(name) for name in names), return_exceptions=True
        )

        for name, result in zip(names, results, strict=True):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(f"{self.cycle_name} of {name} failed: {result}")
                failed = RepositoryReport(repository=name)
                failed.failures.append(
                    ReconcileFailure(None, type(result).__name__, str(result))
                )
                report.repositories.append(failed)
            else:
                report.repositories.append(result)

        logger.info(
            f"{self.cycle_name.capitalize()} cycle finished: "
            f"{len(report.repositories)} repositories, "
            f"{report.resolved_count} resolved, {report.failure_count} failures"
        )
        return report

    async def _resolve_all(
        self,
        report: RepositoryReport,
        jobs: list[tuple[str, Callable[[], Awaitable[TrackingIssue]]]],
    ) -> None:
        """Run resolver jobs under the per-unit cap, collecting outcomes."""
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_units)

        async def run(
            source_unit_id: str, job: Callable[[], Awaitable[TrackingIssue]]
        ) -> None:
            async with semaphore:
                try:
                    report.resolved.append(await job())
                except ResolverError as e:
                    logger.warning(f"{e.kind.value} for {source_unit_id}: {e}")
                    report.failures.append(
                        ReconcileFailure(source_unit_id, e.kind.value, str(e))
                    )
                except (AdapterError, PersistenceError) as e:
                    logger.error(f"Failed to reconcile {source_unit_id}: {e}")
                    report.failures.append(
                        ReconcileFailure(source_unit_id, type(e).__name__, str(e))
                    )

        await asyncio.gather(*(run(unit_id, job) for unit_id, job in jobs))


class CrossBranchReconciler(_Reconciler):
    """Opens a sync issue for every commit missing from the secondary branch."""

    cycle_name = "cross-branch"

    def _selected(self) -> list[RepositoryConfig]:
        return [repo for repo in self.repositories if repo.track_commits]

    def _config_for(self, repository: str) -> RepositoryConfig:
        for repo in self.repositories:
            if repo.full_name(self.default_owner) == repository:
                return repo
        return RepositoryConfig(name=repository)

    async def reconcile_repository(self, repository: str) -> RepositoryReport:
        """Diff the branches of one repository and resolve the unsynced commits."""
        start_time = time.time()
        config = self._config_for(repository)
        report = RepositoryReport(repository=repository)

        try:
            primary, secondary = await asyncio.gather(
                self.github.list_commits(
                    repository, config.primary_branch, limit=config.commit_window
                ),
                self.github.list_commits(
                    repository, config.secondary_branch, limit=config.commit_window
                ),
            )
        except AdapterError as e:
            logger.error(f"Could not fetch branch snapshots for {repository}: {e}")
            report.failures.append(ReconcileFailure(None, type(e).__name__, str(e)))
            return report

        unsynced = diff(primary, secondary)
        report.examined = len(unsynced)
        logger.info(
            f"{repository}: {len(unsynced)} commits on {config.primary_branch} "
            f"missing from {config.secondary_branch}"
        )

        labels = tuple(self.settings.commit_labels)
        jobs = []
        for commit in unsynced:
            unit = CommitUnit(
                repository=repository,
                commit=commit,
                primary_branch=config.primary_branch,
                secondary_branch=config.secondary_branch,
                labels=labels,
            )
            jobs.append((unit.source_unit_id, self._job(unit)))

        await self._resolve_all(report, jobs)
        report.processing_time_ms = (time.time() - start_time) * 1000
        return report

    def _job(self, unit: CommitUnit) -> Callable[[], Awaitable[TrackingIssue]]:
        return lambda: self.resolver.resolve(unit, PipelineStage.SYNC_PENDING)


class PullRequestReconciler(_Reconciler):
    """Keeps one board issue per pull request in the stage matching its state.

    Each tracked PR is also written to the state store as a
    ``scheduled_update`` event carrying the issue id as tracking ref.
    """

    cycle_name = "pull-request"

    def __init__(
        self,
        github: GitHubClient,
        resolver: TrackingIssueResolver,
        store: PRStateStore,
        repositories: list[RepositoryConfig],
        settings: ReconciliationConfig | None = None,
        default_owner: str | None = None,
    ):
        super().__init__(github, resolver, repositories, settings, default_owner)
        self.store = store

    def _selected(self) -> list[RepositoryConfig]:
        return [repo for repo in self.repositories if repo.track_pull_requests]

    async def reconcile_repository(self, repository: str) -> RepositoryReport:
        """Track every recently updated pull request of one repository."""
        start_time = time.time()
        report = RepositoryReport(repository=repository)

        try:
            pulls = await self.github.list_pull_requests(
                repository, state="all", limit=self.settings.pull_request_limit
            )
        except AdapterError as e:
            logger.error(f"Could not list pull requests for {repository}: {e}")
            report.failures.append(ReconcileFailure(None, type(e).__name__, str(e)))
            return report

        report.examined = len(pulls)
        jobs = [(f"{repository}#{pr.number}", self._job(pr)) for pr in pulls]
        await self._resolve_all(report, jobs)
        report.processing_time_ms = (time.time() - start_time) * 1000
        return report

    def _job(self, pr: PullRequestDetails) -> Callable[[], Awaitable[TrackingIssue]]:
        return lambda: self.track(pr)

    async def track(self, pr: PullRequestDetails) -> TrackingIssue:
        """Resolve the PR's issue, then record the PR in the store.

        A failed move still records the PR with the issue it already has.
        """
        unit = PullRequestUnit(
            repository=pr.repository,
            number=pr.number,
            title=pr.title,
            author=pr.author,
            state=pr.state,
            url=pr.html_url,
            body=pr.body,
            labels=tuple(self.settings.pull_request_labels),
        )
        try:
            target_stage = PipelineStage.for_pr_state(pr.state)
            issue = await self.resolver.resolve(unit, target_stage)
        except ResolverError as e:
            if e.issue is not None:
                await self._record(pr, e.issue)
            raise
        await self._record(pr, issue)
        return issue

    async def refresh(self, repository: str, number: int) -> TrackingIssue:
        """Fetch one pull request from the host and track it.

        Raises:
            AdapterError: If the pull request could not be fetched
            ResolverError: If its issue could not be resolved
        """
        pr = await self.github.get_pull_request(repository, number)
        return await self.track(pr)

    async def _record(self, pr: PullRequestDetails, issue: TrackingIssue) -> None:
        event = ScheduledUpdateEvent(
            pr_number=pr.number,
            repository=pr.repository,
            timestamp=datetime.now(UTC),
            action="scheduled_update",
            pr_title=pr.title,
            pr_state=pr.state.value,
            pr_merged=pr.merged_at is not None,
            author=pr.author,
            organization=pr.organization,
            created_at=pr.created_at,
            updated_at=pr.updated_at,
            merged_at=pr.merged_at,
            html_url=pr.html_url,
            external_tracking_ref=issue.external_id,
        )
        await self.store.apply(event)
