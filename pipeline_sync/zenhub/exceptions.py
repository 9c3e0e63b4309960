"""Tracking-board adapter exceptions."""

from typing import Any

from ..exceptions import AdapterError


class ZenHubError(AdapterError):
    """Base exception for tracking-board API errors."""


class ZenHubAuthenticationError(ZenHubError):
    """Raised when the board rejects the token (401/403)."""


class ZenHubRateLimitError(ZenHubError):
    """Raised on 429 responses."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ZenHubGraphQLError(ZenHubError):
    """Raised when the response envelope carries an ``errors`` array."""

    def __init__(self, message: str, errors: list[dict[str, Any]]):
        super().__init__(message, status_code=200, response_data={"errors": errors})
        self.errors = errors


class ZenHubServerError(ZenHubError):
    """Raised when the board returns a 5xx."""


class ZenHubConnectionError(ZenHubError):
    """Raised when the connection fails."""


class ZenHubTimeoutError(ZenHubError):
    """Raised when a request exceeds the configured timeout."""


class ZenHubPipelineNotFoundError(ZenHubError):
    """Raised when no workspace pipeline carries the configured name."""
