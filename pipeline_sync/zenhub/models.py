"""Typed views over tracking-board GraphQL payloads."""

from dataclasses import dataclass
from typing import Any

from ..models.records import extract_source_unit_id


@dataclass(frozen=True)
class Pipeline:
    """A board column."""

    id: str
    name: str


@dataclass(frozen=True)
class BoardIssue:
    """An issue as the board reports it, with its current pipeline."""

    id: str
    number: int | None
    title: str
    body: str | None
    pipeline: Pipeline | None

    @property
    def source_unit_id(self) -> str | None:
        return extract_source_unit_id(self.body)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "BoardIssue":
        pipeline_data = (data.get("pipelineIssue") or {}).get("pipeline")
        return cls(
            id=data["id"],
            number=data.get("number"),
            title=data.get("title") or "",
            body=data.get("body"),
            pipeline=(
                Pipeline(id=pipeline_data["id"], name=pipeline_data.get("name", ""))
                if pipeline_data
                else None
            ),
        )
