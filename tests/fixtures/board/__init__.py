"""
Board fixtures shared by resolver, reconciler and client tests.

Provides the workspace pipelines every test board exposes and helpers to
build board issues and raw GraphQL issue payloads.
"""

from typing import Any

from pipeline_sync.models.enums import PipelineStage
from pipeline_sync.models.records import source_unit_marker
from pipeline_sync.zenhub.models import BoardIssue, Pipeline

PIPELINES = {
    PipelineStage.NEW_ISSUE: Pipeline(id="p-new", name="New Issues"),
    PipelineStage.IN_PROGRESS: Pipeline(id="p-progress", name="In Progress"),
    PipelineStage.REVIEW: Pipeline(id="p-review", name="Review"),
    PipelineStage.DONE: Pipeline(id="p-done", name="Done"),
    PipelineStage.CLOSED: Pipeline(id="p-closed", name="Closed"),
    PipelineStage.SYNC_PENDING: Pipeline(id="p-sync", name="Sync Pending"),
}


def board_issue(
    issue_id: str,
    stage: PipelineStage | None = PipelineStage.NEW_ISSUE,
    body: str | None = None,
    number: int = 1,
    pipeline: Pipeline | None = None,
) -> BoardIssue:
    """Board issue in the pipeline of ``stage`` (or an explicit pipeline)."""
    return BoardIssue(
        id=issue_id,
        number=number,
        title=f"Issue {issue_id}",
        body=body,
        pipeline=pipeline or (PIPELINES[stage] if stage else None),
    )


def issue_payload(
    issue_id: str,
    source_unit_id: str | None = None,
    pipeline: Pipeline | None = PIPELINES[PipelineStage.NEW_ISSUE],
    number: int = 1,
) -> dict[str, Any]:
    """Issue node as returned by the board's GraphQL API."""
    body = "Tracking issue"
    if source_unit_id:
        body += f"\n\n{source_unit_marker(source_unit_id)}"
    return {
        "id": issue_id,
        "number": number,
        "title": f"Issue {issue_id}",
        "body": body,
        "pipelineIssue": (
            {"pipeline": {"id": pipeline.id, "name": pipeline.name}}
            if pipeline
            else None
        ),
    }


__all__ = ["PIPELINES", "board_issue", "issue_payload"]
