"""Application context wiring every component from one ``Config``.

The context is built explicitly and passed to whoever needs it (HTTP app,
CLI commands); there is no process-wide instance.
"""

import logging
import time
from dataclasses import dataclass, field

from .config.models import Config
from .database.connection import DatabaseConnectionManager
from .dispatcher import EventDispatcher
from .github.auth import PersonalAccessTokenAuth, TokenAuth
from .github.client import GitHubClient, GitHubClientConfig
from .store.persistence import JsonStateFile
from .store.state_store import PRStateStore
from .sync.index import (
    DatabaseTrackingIssueIndex,
    InMemoryTrackingIssueIndex,
    TrackingIssueIndex,
)
from .sync.pipelines import PipelineDirectory
from .sync.reconciler import CrossBranchReconciler, PullRequestReconciler
from .sync.resolver import TrackingIssueResolver
from .zenhub.client import ZenHubClient, ZenHubClientConfig

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a running process needs, built once at startup."""

    config: Config
    github: GitHubClient
    board: ZenHubClient
    store: PRStateStore
    dispatcher: EventDispatcher
    resolver: TrackingIssueResolver
    cross_branch: CrossBranchReconciler
    pull_requests: PullRequestReconciler
    database: DatabaseConnectionManager | None = None
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_config(cls, config: Config) -> "AppContext":
        """Build all components; no I/O happens until ``start``."""
        if config.github.token_type.lower() == "token":
            github_auth = PersonalAccessTokenAuth(config.github.token)
        else:
            github_auth = TokenAuth(config.github.token, config.github.token_type)

        github = GitHubClient(
            github_auth,
            GitHubClientConfig(
                base_url=config.github.base_url,
                timeout=config.github.timeout,
                max_retries=config.github.max_retries,
                max_concurrent_requests=config.github.max_concurrent_requests,
            ),
        )
        board = ZenHubClient(
            TokenAuth(config.zenhub.token),
            ZenHubClientConfig(
                workspace_id=config.zenhub.workspace_id,
                endpoint=config.zenhub.endpoint,
                timeout=config.zenhub.timeout,
            ),
        )

        database: DatabaseConnectionManager | None = None
        index: TrackingIssueIndex
        if config.tracking_index.enabled:
            database = DatabaseConnectionManager(config.tracking_index)
            index = DatabaseTrackingIssueIndex(database)
        else:
            index = InMemoryTrackingIssueIndex()

        store = PRStateStore(JsonStateFile(config.store.path))
        resolver = TrackingIssueResolver(
            board=board,
            github=github,
            pipelines=PipelineDirectory(board, config.pipelines),
            index=index,
        )
        owner = config.github.organization

        return cls(
            config=config,
            github=github,
            board=board,
            store=store,
            dispatcher=EventDispatcher(store),
            resolver=resolver,
            cross_branch=CrossBranchReconciler(
                github, resolver, config.repositories, config.reconciliation, owner
            ),
            pull_requests=PullRequestReconciler(
                github,
                resolver,
                store,
                config.repositories,
                config.reconciliation,
                owner,
            ),
            database=database,
        )

    async def start(self) -> None:
        """Create the index tables and load the persisted PR state.

        Raises:
            PersistenceError: If the state file is unreadable
        """
        if self.database is not None:
            await self.database.create_all()
        count = await self.store.load()
        logger.info(f"Context started with {count} PR records")

    async def close(self) -> None:
        """Close HTTP sessions and database connections."""
        await self.github.close()
        await self.board.close()
        if self.database is not None:
            await self.database.close()
        logger.info("Context closed")

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_at
