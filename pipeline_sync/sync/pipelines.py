"""Mapping between stable pipeline stages and board pipeline ids."""

import asyncio
import logging

from ..config.models import PipelineConfig
from ..models.enums import PipelineStage
from ..zenhub.client import ZenHubClient
from ..zenhub.exceptions import ZenHubPipelineNotFoundError
from ..zenhub.models import Pipeline

logger = logging.getLogger(__name__)


class PipelineDirectory:
    """Resolves ``PipelineStage`` keys to board pipeline ids and back.

    A configured id is used as is. Otherwise the workspace pipelines are
    listed once and matched by display name (case-insensitive), so renaming a
    column only needs a configuration change.
    """

    def __init__(
        self, board: ZenHubClient, pipelines: dict[PipelineStage, PipelineConfig]
    ):
        self.board = board
        self.pipelines = pipelines
        self._ids: dict[PipelineStage, str] | None = None
        self._lock = asyncio.Lock()

    async def _load(self) -> dict[PipelineStage, str]:
        if self._ids is not None:
            return self._ids

        async with self._lock:
            if self._ids is not None:
                return self._ids

            ids = {
                stage: config.id
                for stage, config in self.pipelines.items()
                if config.id
            }
            if len(ids) < len(self.pipelines):
                by_name = {
                    pipeline.name.strip().lower(): pipeline.id
                    for pipeline in await self.board.list_pipelines()
                }
                for stage, config in self.pipelines.items():
                    if stage in ids:
                        continue
                    pipeline_id = by_name.get(config.name.strip().lower())
                    if pipeline_id:
                        ids[stage] = pipeline_id
                    else:
                        logger.warning(
                            f"No board pipeline named '{config.name}' "
                            f"for stage {stage.value}"
                        )
            self._ids = ids
            return ids

    def invalidate(self) -> None:
        """Forget looked-up ids; the next call lists the pipelines again."""
        self._ids = None

    async def pipeline_id(self, stage: PipelineStage) -> str:
        """Board pipeline id for ``stage``.

        Raises:
            ZenHubPipelineNotFoundError: If the stage has no matching pipeline
        """
        ids = await self._load()
        pipeline_id = ids.get(stage)
        if pipeline_id is None:
            config = self.pipelines.get(stage)
            name = config.name if config else stage.default_name
            raise ZenHubPipelineNotFoundError(
                f"Pipeline '{name}' for stage {stage.value} not found"
            )
        return pipeline_id

    async def stage_for(self, pipeline: Pipeline | None) -> PipelineStage | None:
        """Stage whose pipeline is ``pipeline``, or None if unmapped."""
        if pipeline is None:
            return None
        ids = await self._load()
        for stage, pipeline_id in ids.items():
            if pipeline_id == pipeline.id:
                return stage
        for stage, config in self.pipelines.items():
            if config.name.strip().lower() == pipeline.name.strip().lower():
                return stage
        return None
