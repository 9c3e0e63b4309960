"""Version-control host adapter (GitHub REST API)."""

from .auth import AuthProvider, AuthToken, PersonalAccessTokenAuth, TokenAuth
from .client import GitHubClient, GitHubClientConfig
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
from .models import PullRequestDetails, RepositoryInfo

__all__ = [
    "AuthProvider",
    "AuthToken",
    "GitHubAuthenticationError",
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubConnectionError",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubServerError",
    "GitHubTimeoutError",
    "GitHubValidationError",
    "PersonalAccessTokenAuth",
    "PullRequestDetails",
    "RepositoryInfo",
    "TokenAuth",
]
