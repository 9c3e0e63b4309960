"""Tracking-board (ZenHub GraphQL) client.

Every call goes to one endpoint with a ``{query, variables}`` envelope; the
``{data, errors}`` response is checked for ``errors`` before ``data`` is
trusted. Read queries are retried on transient failures, mutations never are:
a retried ``createIssue`` whose first attempt did land would duplicate the
issue.
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

import aiohttp

from ..github.auth import AuthProvider
from .exceptions import (
    ZenHubAuthenticationError,
    ZenHubConnectionError,
    ZenHubError,
    ZenHubGraphQLError,
    ZenHubRateLimitError,
    ZenHubServerError,
    ZenHubTimeoutError,
)
from .models import BoardIssue, Pipeline
from .queries import CREATE_ISSUE, MOVE_ISSUE, SEARCH_ISSUES, WORKSPACE_PIPELINES

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (ZenHubServerError, ZenHubConnectionError, ZenHubTimeoutError)


@dataclass
class ZenHubClientConfig:
    """Configuration for the tracking-board client."""

    workspace_id: str
    endpoint: str = "https://api.zenhub.com/public/graphql"
    timeout: int = 30
    max_retries: int = 2
    retry_backoff_factor: float = 2.0
    search_page_size: int = 25
    user_agent: str = "pipeline-sync/0.1"


class ZenHubClient:
    """Async client for the tracking board's GraphQL API."""

    def __init__(self, auth: AuthProvider, config: ZenHubClientConfig) -> None:
        """Initialize the client.

        Args:
            auth: Bearer token provider
            config: Client configuration, including the workspace id
        """
        self.auth = auth
        self.config = config
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def __aenter__(self) -> "ZenHubClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(
                        timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Content-Type": "application/json",
                        },
                    )

    async def close(self) -> None:
        """Close HTTP session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        retry: bool = False,
    ) -> dict[str, Any]:
        """Send one GraphQL document and return its ``data``.

        Args:
            query: GraphQL query or mutation
            variables: Variables for the document
            retry: Retry transient failures; only safe for read queries

        Returns:
            The ``data`` member of the response envelope

        Raises:
            ZenHubGraphQLError: If the envelope carries ``errors``
            ZenHubError: Transport or HTTP failure
        """
        correlation_id = str(uuid.uuid4())[:8]
        attempts = self.config.max_retries + 1 if retry else 1

        last_exception: ZenHubError | None = None
        for attempt in range(attempts):
            try:
                return await self._post(query, variables or {}, correlation_id)
            except _RETRYABLE_ERRORS as e:
                last_exception = e

            if attempt < attempts - 1:
                backoff_time = self.config.retry_backoff_factor**attempt
                logger.warning(
                    f"ZenHub request [{correlation_id}] failed "
                    f"(attempt {attempt + 1}), "
                    f"retrying in {backoff_time:.1f}s: {last_exception}"
                )
                await asyncio.sleep(backoff_time)

        if last_exception:
            raise last_exception
        raise ZenHubError(f"Request failed after {attempts} attempts")

    async def _post(
        self, query: str, variables: dict[str, Any], correlation_id: str
    ) -> dict[str, Any]:
        await self._ensure_session()
        if not self._session:
            raise ZenHubConnectionError("Failed to initialize HTTP session")

        auth_token = await self.auth.get_token()
        start_time = time.time()
        logger.debug(f"ZenHub request [{correlation_id}] {_operation_name(query)}")

        try:
            async with self._session.post(
                self.config.endpoint,
                json={"query": query, "variables": variables},
                headers=auth_token.to_header(),
            ) as response:
                logger.debug(
                    f"ZenHub response [{correlation_id}] {response.status} "
                    f"in {time.time() - start_time:.2f}s"
                )
                if response.status != 200:
                    await self._handle_error_response(response, correlation_id)
                try:
                    envelope = await response.json(content_type=None)
                except json.JSONDecodeError as e:
                    raise ZenHubError(f"Invalid JSON from board: {e}") from e
        except TimeoutError as e:
            raise ZenHubTimeoutError(
                f"Request timeout for {_operation_name(query)}"
            ) from e
        except aiohttp.ClientError as e:
            raise ZenHubConnectionError(f"Connection error: {e}") from e

        if not isinstance(envelope, dict):
            raise ZenHubError("Unexpected response envelope from board")

        errors = envelope.get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            logger.warning(f"ZenHub GraphQL errors [{correlation_id}]: {messages}")
            raise ZenHubGraphQLError(messages, errors)

        data = envelope.get("data")
        if data is None:
            raise ZenHubError("Response envelope carries neither data nor errors")
        result: dict[str, Any] = data
        return result

    async def _handle_error_response(
        self, response: aiohttp.ClientResponse, correlation_id: str
    ) -> None:
        text = await response.text()
        message = f"HTTP {response.status}: {text[:200]}"
        logger.warning(f"ZenHub API error [{correlation_id}] {message}")

        if response.status in (401, 403):
            raise ZenHubAuthenticationError(message, response.status)
        if response.status == 429:
            retry_after = response.headers.get("Retry-After")
            raise ZenHubRateLimitError(
                message,
                retry_after=float(retry_after) if retry_after else None,
            )
        if 500 <= response.status < 600:
            raise ZenHubServerError(message, response.status)
        raise ZenHubError(message, response.status)

    # Typed operations

    async def list_pipelines(self) -> list[Pipeline]:
        """List the pipelines of the configured workspace, in board order."""
        data = await self.execute(
            WORKSPACE_PIPELINES,
            {"workspaceId": self.config.workspace_id},
            retry=True,
        )
        workspace = data.get("workspace")
        if not workspace:
            raise ZenHubError(f"Workspace {self.config.workspace_id} not found")
        return [
            Pipeline(id=item["id"], name=item.get("name", ""))
            for item in workspace.get("pipelines") or []
        ]

    async def find_issue_by_source_unit(self, source_unit_id: str) -> BoardIssue | None:
        """Find the issue whose body carries the marker for ``source_unit_id``.

        The search is full-text, so candidates are filtered on the exact
        marker before one is returned.
        """
        data = await self.execute(
            SEARCH_ISSUES,
            {
                "workspaceId": self.config.workspace_id,
                "query": source_unit_id,
                "first": self.config.search_page_size,
            },
            retry=True,
        )
        nodes = (data.get("searchIssues") or {}).get("nodes") or []
        for node in nodes:
            issue = BoardIssue.from_api(node)
            if issue.source_unit_id == source_unit_id:
                return issue
        return None

    async def create_issue(
        self,
        title: str,
        body: str,
        labels: list[str],
        repository_gh_id: int,
    ) -> BoardIssue:
        """Create an issue; it lands in the workspace's default pipeline."""
        data = await self.execute(
            CREATE_ISSUE,
            {
                "workspaceId": self.config.workspace_id,
                "input": {
                    "repositoryGhId": repository_gh_id,
                    "title": title,
                    "body": body,
                    "labels": labels,
                },
            },
        )
        issue_data = (data.get("createIssue") or {}).get("issue")
        if not issue_data:
            raise ZenHubError("createIssue returned no issue")
        issue = BoardIssue.from_api(issue_data)
        logger.info(f"Created board issue #{issue.number} ({issue.id}): {title}")
        return issue

    async def move_issue(
        self, issue_id: str, pipeline_id: str, position: int = 0
    ) -> Pipeline | None:
        """Move an issue to a pipeline; returns the pipeline it ended up in."""
        data = await self.execute(
            MOVE_ISSUE,
            {
                "workspaceId": self.config.workspace_id,
                "input": {
                    "pipelineId": pipeline_id,
                    "issueId": issue_id,
                    "position": position,
                },
            },
        )
        issue_data = (data.get("moveIssue") or {}).get("issue")
        if not issue_data:
            raise ZenHubError(f"moveIssue returned no issue for {issue_id}")
        return BoardIssue.from_api(issue_data).pipeline


def _operation_name(query: str) -> str:
    """First line of a document, e.g. ``mutation createIssue(...)``."""
    for line in query.strip().splitlines():
        return line.split("(", 1)[0].strip()
    return "<empty>"
