"""Repository for the tracking-issue identity index."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.records import TrackingIssue
from ..models.tracking_issue import TrackingIssueRecord
from .base import BaseRepository


class TrackingIssueRepository(BaseRepository[TrackingIssueRecord]):
    """Lookups and upserts keyed by ``source_unit_id``."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, TrackingIssueRecord)

    async def get_by_source_unit(
        self, source_unit_id: str
    ) -> TrackingIssueRecord | None:
        query = select(TrackingIssueRecord).where(
            TrackingIssueRecord.source_unit_id == source_unit_id
        )
        return await self._execute_single_query(query)

    async def upsert(self, issue: TrackingIssue) -> TrackingIssueRecord:
        """Insert the issue, or refresh the stored stage of an existing row.

        An existing row keeps its ``external_id``; a different issue for the
        same unit is not recorded.
        """
        stage = issue.pipeline_stage.value if issue.pipeline_stage else None
        existing = await self.get_by_source_unit(issue.source_unit_id)
        if existing is None:
            return await self.create(
                source_unit_id=issue.source_unit_id,
                external_id=issue.external_id,
                issue_number=issue.number,
                pipeline_stage=stage,
            )
        if existing.external_id != issue.external_id:
            return existing
        return await self.update(existing, pipeline_stage=stage)
