"""Local identity index from source unit id to tracking issue.

The resolver consults the index before asking the board. The database-backed
index survives restarts; the in-memory one only spans the process lifetime.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy.exc import SQLAlchemyError

from ..database.connection import DatabaseConnectionManager
from ..exceptions import PersistenceError
from ..models.records import TrackingIssue
from ..repositories.tracking_issue import TrackingIssueRepository

logger = logging.getLogger(__name__)


class TrackingIssueIndex(ABC):
    """Remembers which issue was found or created for a source unit."""

    @abstractmethod
    async def get(self, source_unit_id: str) -> TrackingIssue | None:
        """Return the remembered issue, if any."""

    @abstractmethod
    async def put(self, issue: TrackingIssue) -> None:
        """Remember ``issue`` (or its new stage) for its source unit."""


class InMemoryTrackingIssueIndex(TrackingIssueIndex):
    def __init__(self) -> None:
        self._issues: dict[str, TrackingIssue] = {}

    async def get(self, source_unit_id: str) -> TrackingIssue | None:
        return self._issues.get(source_unit_id)

    async def put(self, issue: TrackingIssue) -> None:
        existing = self._issues.get(issue.source_unit_id)
        if existing is not None and existing.external_id != issue.external_id:
            logger.warning(
                f"Keeping issue {existing.external_id} for {issue.source_unit_id}, "
                f"ignoring {issue.external_id}"
            )
            return
        self._issues[issue.source_unit_id] = issue

    def __len__(self) -> int:
        return len(self._issues)


class DatabaseTrackingIssueIndex(TrackingIssueIndex):
    """Index stored in the ``tracking_issues`` table.

    Database failures surface as ``PersistenceError``.
    """

    def __init__(self, connection_manager: DatabaseConnectionManager):
        self.connection_manager = connection_manager

    async def get(self, source_unit_id: str) -> TrackingIssue | None:
        try:
            async with self.connection_manager.get_session() as session:
                record = await TrackingIssueRepository(session).get_by_source_unit(
                    source_unit_id
                )
                return record.to_domain() if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to read tracking index for {source_unit_id}: {e}"
            ) from e

    async def put(self, issue: TrackingIssue) -> None:
        try:
            async with self.connection_manager.get_session() as session:
                record = await TrackingIssueRepository(session).upsert(issue)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to record {issue.external_id} for {issue.source_unit_id}: {e}"
            ) from e

        if record.external_id != issue.external_id:
            logger.warning(
                f"Keeping issue {record.external_id} for {issue.source_unit_id}, "
                f"ignoring {issue.external_id}"
            )
