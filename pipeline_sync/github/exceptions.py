"""Version-control host adapter exceptions."""

from ..exceptions import AdapterError


class GitHubError(AdapterError):
    """Base exception for GitHub API errors."""


class GitHubAuthenticationError(GitHubError):
    """Raised when the token is rejected."""


class GitHubRateLimitError(GitHubError):
    """Raised when the rate limit is exhausted or nearly so."""

    def __init__(
        self,
        message: str,
        reset_time: int | None = None,
        remaining: int = 0,
        limit: int = 0,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            reset_time: Unix timestamp when rate limit resets
            remaining: Remaining API calls
            limit: Total rate limit
        """
        super().__init__(message, status_code=403)
        self.reset_time = reset_time
        self.remaining = remaining
        self.limit = limit


class GitHubNotFoundError(GitHubError):
    """Raised when a repository, branch or pull request does not exist."""


class GitHubValidationError(GitHubError):
    """Raised on 422 responses."""


class GitHubServerError(GitHubError):
    """Raised when GitHub returns a 5xx."""


class GitHubConnectionError(GitHubError):
    """Raised when the connection fails or the circuit breaker is open."""


class GitHubTimeoutError(GitHubError):
    """Raised when a request exceeds the configured timeout."""
