"""HTTP routes: inbound events, read endpoints and health."""

import json
import logging
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from ..context import AppContext
from ..exceptions import AdapterError, DispatchError, ResolverError
from ..models.records import PRRecord, format_timestamp
from ..store.queries import PRFilter, filter_values
from ..store.statistics import aggregate

logger = logging.getLogger(__name__)

router = APIRouter()


def get_context(request: Request) -> AppContext:
    """Dependency returning the context the app was created with."""
    context: AppContext = request.app.state.context
    return context


ContextDep = Annotated[AppContext, Depends(get_context)]


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _failure(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "timestamp": _now(), **extra},
    )


def _serialize(record: PRRecord) -> dict[str, Any]:
    data = record.to_dict()
    data["status"] = record.status_label
    return data


@router.get("/health")
async def health(context: ContextDep) -> dict[str, Any]:
    """Liveness with uptime in seconds."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "uptime": round(context.uptime, 3),
        "pullRequests": len(context.store),
    }


@router.post("/webhook")
async def receive_event(request: Request, context: ContextDep) -> JSONResponse:
    """Apply one lifecycle event.

    Responds 200 on success, 400 for a malformed event (nothing is changed)
    and 500 when the event could not be applied.
    """
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Rejected webhook with invalid JSON body: {e}")
        return _failure(status.HTTP_400_BAD_REQUEST, "Request body is not valid JSON")

    try:
        record = await context.dispatcher.dispatch(raw)
    except DispatchError as e:
        return _failure(
            status.HTTP_400_BAD_REQUEST,
            str(e),
            kind=e.kind.value,
            details=e.details,
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "success": True,
            "message": "Webhook processed successfully",
            "key": {"repository": record.repository, "pr_number": record.pr_number},
            "timestamp": _now(),
        },
    )


@router.get("/api/prs")
async def list_prs(
    context: ContextDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    author: str | None = None,
    repository: str | None = None,
    repo: str | None = None,
    search: str | None = None,
) -> dict[str, Any]:
    """Filtered PR records plus statistics over all records.

    ``repo`` is accepted as an alias of ``repository``; ``all`` disables a
    filter.
    """
    records = context.store.list_records()
    pr_filter = PRFilter(
        status=status_filter,
        author=author,
        repository=repository or repo,
        search=search,
    )
    return {
        "success": True,
        "data": {
            "pullRequests": [_serialize(record) for record in pr_filter.apply(records)],
            "statistics": aggregate(records).to_dict(),
            "lastUpdated": format_timestamp(context.store.last_updated),
        },
    }


@router.get("/api/statistics")
async def statistics(context: ContextDep) -> dict[str, Any]:
    return {"success": True, "data": aggregate(context.store.list_records()).to_dict()}


@router.get("/api/filters")
async def filters(context: ContextDep) -> dict[str, Any]:
    """Distinct values to populate filter drop-downs."""
    return {"success": True, "data": filter_values(context.store.list_records())}


@router.post("/api/prs/{owner}/{name}/{number}/refresh")
async def refresh_pr(
    owner: str, name: str, number: int, context: ContextDep
) -> JSONResponse:
    """Re-fetch one pull request from the host and track it on the board."""
    repository = f"{owner}/{name}"
    try:
        issue = await context.pull_requests.refresh(repository, number)
    except ResolverError as e:
        return _failure(
            status.HTTP_502_BAD_GATEWAY,
            str(e),
            kind=e.kind.value,
            issue=e.issue.external_id if e.issue else None,
        )
    except AdapterError as e:
        code = (
            status.HTTP_404_NOT_FOUND
            if e.status_code == status.HTTP_404_NOT_FOUND
            else status.HTTP_502_BAD_GATEWAY
        )
        return _failure(code, str(e))

    record = context.store.get(repository, number)
    return JSONResponse(
        content={
            "success": True,
            "data": {
                "issue": issue.external_id,
                "stage": issue.pipeline_stage.value if issue.pipeline_stage else None,
                "pullRequest": _serialize(record) if record else None,
            },
        }
    )
