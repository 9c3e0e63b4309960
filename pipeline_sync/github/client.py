"""GitHub API client with authentication, rate limiting, and pagination."""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import aiohttp

from ..models.records import Commit
from .auth import AuthProvider
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)
from .models import PullRequestDetails, RepositoryInfo, commit_from_api
from .pagination import AsyncPaginator, PaginatedResponse
from .rate_limiting import CircuitBreaker, RateLimitManager

logger = logging.getLogger(__name__)

# Failures worth another attempt inside a single call
_RETRYABLE_ERRORS = (GitHubServerError, GitHubConnectionError, GitHubTimeoutError)


@dataclass
class GitHubClientConfig:
    """Configuration for GitHub client."""

    base_url: str = "https://api.github.com"
    timeout: int = 30
    max_retries: int = 3
    retry_backoff_factor: float = 2.0
    rate_limit_buffer: int = 100
    user_agent: str = "pipeline-sync/0.1"
    max_concurrent_requests: int = 10


@dataclass
class GitHubResponse:
    """Status, headers and decoded body of a completed request."""

    status: int
    headers: dict[str, str]
    data: Any


class GitHubClient:
    """Async GitHub REST client.

    Only the calls the reconciler needs are exposed as typed methods; ``get``
    stays available for anything else. Repositories are addressed as
    ``"owner/name"`` strings throughout.
    """

    def __init__(
        self,
        auth: AuthProvider,
        config: GitHubClientConfig | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            auth: Authentication provider
            config: Client configuration
        """
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = RateLimitManager(buffer=self.config.rate_limit_buffer)
        self.circuit_breaker = CircuitBreaker()

        # HTTP session will be initialized on first use
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self._request_semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

    async def __aenter__(self) -> "GitHubClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    timeout = aiohttp.ClientTimeout(total=self.config.timeout)
                    self._session = aiohttp.ClientSession(
                        timeout=timeout,
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Accept": "application/vnd.github.v3+json",
                        },
                    )

    async def close(self) -> None:
        """Close HTTP session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _generate_correlation_id(self) -> str:
        return str(uuid.uuid4())[:8]

    async def _make_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> GitHubResponse:
        """Make HTTP request with retry logic and error handling.

        Server errors, timeouts and connection failures are retried with
        exponential backoff; every other error is raised on first sight.

        Args:
            method: HTTP method
            url: Request URL
            params: Query parameters
            data: Request body data
            correlation_id: Request correlation ID

        Returns:
            The decoded response

        Raises:
            GitHubError: Classified failure once retries are exhausted
        """
        if not correlation_id:
            correlation_id = self._generate_correlation_id()

        if not self.circuit_breaker.can_attempt_request():
            wait_time = self.circuit_breaker.get_wait_time()
            raise GitHubConnectionError(
                f"Circuit breaker open. Wait {wait_time:.1f}s before retry."
            )

        self.rate_limiter.check_rate_limit()

        auth_token = await self.auth.get_token()
        request_kwargs: dict[str, Any] = {
            "params": params,
            "headers": auth_token.to_header(),
        }
        if data is not None:
            request_kwargs["json"] = data

        await self._ensure_session()
        if not self._session:
            raise GitHubConnectionError("Failed to initialize HTTP session")

        last_exception: GitHubError | None = None
        for attempt in range(self.config.max_retries + 1):
            try:
                async with self._request_semaphore:
                    start_time = time.time()
                    logger.debug(
                        f"GitHub API request [{correlation_id}] {method} {url} "
                        f"(attempt {attempt + 1})"
                    )

                    async with self._session.request(
                        method, url, **request_kwargs
                    ) as response:
                        request_time = time.time() - start_time
                        self.rate_limiter.update_rate_limit(dict(response.headers))
                        logger.debug(
                            f"GitHub API response [{correlation_id}] "
                            f"{response.status} in {request_time:.2f}s"
                        )

                        if response.status in (200, 201, 204):
                            self.circuit_breaker.record_success()
                            body = (
                                None
                                if response.status == 204
                                else await response.json(content_type=None)
                            )
                            return GitHubResponse(
                                response.status, dict(response.headers), body
                            )

                        await self._handle_error_response(response, correlation_id)

            except _RETRYABLE_ERRORS as e:
                last_exception = e

            except TimeoutError:
                last_exception = GitHubTimeoutError(
                    f"Request timeout for {method} {url}"
                )
                self.circuit_breaker.record_failure()

            except aiohttp.ClientError as e:
                last_exception = GitHubConnectionError(
                    f"Connection error for {method} {url}: {e}"
                )
                self.circuit_breaker.record_failure()

            except json.JSONDecodeError as e:
                raise GitHubError(f"Invalid JSON from {method} {url}: {e}") from e

            if attempt < self.config.max_retries:
                backoff_time = self.config.retry_backoff_factor**attempt
                logger.warning(
                    f"Request [{correlation_id}] failed (attempt {attempt + 1}), "
                    f"retrying in {backoff_time:.1f}s: {last_exception}"
                )
                await asyncio.sleep(backoff_time)

        if last_exception:
            raise last_exception
        raise GitHubError(f"Request failed after {self.config.max_retries} retries")

    async def _handle_error_response(
        self, response: aiohttp.ClientResponse, correlation_id: str
    ) -> None:
        """Raise the exception matching an error response.

        Raises:
            GitHubError: Appropriate error based on status code
        """
        try:
            error_data = await response.json(content_type=None)
        except (json.JSONDecodeError, aiohttp.ContentTypeError):
            error_data = None
        if not isinstance(error_data, dict):
            error_data = {"message": await response.text()}

        error_message = error_data.get("message") or f"HTTP {response.status}"

        logger.warning(
            f"GitHub API error [{correlation_id}] {response.status}: {error_message}"
        )

        if response.status == 401:
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status == 403:
            if "rate limit" in error_message.lower():
                reset_time = response.headers.get("X-RateLimit-Reset")
                raise GitHubRateLimitError(
                    error_message,
                    reset_time=int(reset_time) if reset_time else None,
                    remaining=int(response.headers.get("X-RateLimit-Remaining", "0")),
                    limit=int(response.headers.get("X-RateLimit-Limit", "0")),
                )
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status == 404:
            raise GitHubNotFoundError(error_message, response.status, error_data)
        elif response.status == 422:
            raise GitHubValidationError(error_message, response.status, error_data)
        elif 500 <= response.status < 600:
            self.circuit_breaker.record_failure()
            raise GitHubServerError(error_message, response.status, error_data)
        else:
            raise GitHubError(error_message, response.status, error_data)

    def _url(self, path: str) -> str:
        return urljoin(self.config.base_url.rstrip("/") + "/", path.lstrip("/"))

    async def get(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Make GET request to GitHub API.

        Args:
            path: API path (e.g., '/repos/owner/repo/pulls')
            params: Query parameters

        Returns:
            JSON response data
        """
        response = await self._make_request("GET", self._url(path), params)
        json_data: dict[str, Any] = response.data
        return json_data

    async def _fetch_paginated(
        self, url: str, params: dict[str, Any] | None = None
    ) -> PaginatedResponse:
        """Fetch one page (used by AsyncPaginator)."""
        response = await self._make_request("GET", url, params)
        return PaginatedResponse(response.data or [], response.headers, url)

    def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        per_page: int = 100,
        max_pages: int | None = None,
        max_items: int | None = None,
    ) -> AsyncPaginator:
        """Create async paginator for a list endpoint.

        Args:
            path: API path
            params: Query parameters
            per_page: Items per page (max 100)
            max_pages: Maximum pages to fetch
            max_items: Maximum items to yield

        Returns:
            AsyncPaginator for iterating through results
        """
        return AsyncPaginator(
            client=self,
            initial_url=self._url(path),
            params=params,
            per_page=per_page,
            max_pages=max_pages,
            max_items=max_items,
        )

    # Typed endpoints used by the reconciler

    async def list_commits(
        self, repository: str, branch: str, limit: int | None = None
    ) -> list[Commit]:
        """List commits reachable from a branch, newest first.

        Args:
            repository: ``owner/name``
            branch: Branch name
            limit: Maximum number of commits to return

        Returns:
            Branch snapshot as an ordered list of commits
        """
        paginator = self.paginate(
            f"/repos/{repository}/commits",
            params={"sha": branch},
            per_page=min(limit, 100) if limit else 100,
            max_items=limit,
        )
        commits = [commit_from_api(item) async for item in paginator]
        logger.debug(f"Fetched {len(commits)} commits from {repository}@{branch}")
        return commits

    async def get_pull_request(
        self, repository: str, number: int
    ) -> PullRequestDetails:
        """Get one pull request.

        Raises:
            GitHubNotFoundError: If the pull request does not exist
        """
        data = await self.get(f"/repos/{repository}/pulls/{number}")
        return PullRequestDetails.from_api(repository, data)

    async def list_pull_requests(
        self, repository: str, state: str = "all", limit: int | None = None
    ) -> list[PullRequestDetails]:
        """List pull requests of a repository.

        Args:
            repository: ``owner/name``
            state: ``open``, ``closed`` or ``all``
            limit: Maximum number of pull requests to return
        """
        paginator = self.paginate(
            f"/repos/{repository}/pulls",
            params={"state": state, "sort": "updated", "direction": "desc"},
            max_items=limit,
        )
        return [
            PullRequestDetails.from_api(repository, item) async for item in paginator
        ]

    async def get_repository(self, repository: str) -> RepositoryInfo:
        """Get repository metadata; ``id`` is the board's ``repositoryGhId``."""
        data = await self.get(f"/repos/{repository}")
        return RepositoryInfo.from_api(data)
