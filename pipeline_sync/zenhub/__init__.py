"""Tracking-board adapter (ZenHub GraphQL API)."""

from .client import ZenHubClient, ZenHubClientConfig
from .exceptions import (
    ZenHubAuthenticationError,
    ZenHubConnectionError,
    ZenHubError,
    ZenHubGraphQLError,
    ZenHubPipelineNotFoundError,
    ZenHubRateLimitError,
    ZenHubServerError,
    ZenHubTimeoutError,
)
from .models import BoardIssue, Pipeline

__all__ = [
    "BoardIssue",
    "Pipeline",
    "ZenHubAuthenticationError",
    "ZenHubClient",
    "ZenHubClientConfig",
    "ZenHubConnectionError",
    "ZenHubError",
    "ZenHubGraphQLError",
    "ZenHubPipelineNotFoundError",
    "ZenHubRateLimitError",
    "ZenHubServerError",
    "ZenHubTimeoutError",
]
