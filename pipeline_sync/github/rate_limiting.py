"""Rate limit tracking and circuit breaking for external API calls."""

import time
from dataclasses import dataclass, field

from .exceptions import GitHubRateLimitError


@dataclass
class RateLimitInfo:
    """Rate limit state reported by ``X-RateLimit-*`` headers."""

    limit: int
    remaining: int
    reset: int
    used: int = 0
    resource: str = "core"

    @property
    def seconds_until_reset(self) -> float:
        """Get seconds until rate limit resets."""
        return max(0, self.reset - time.time())


@dataclass
class RateLimitManager:
    """Refuses requests once the remaining budget drops into the buffer.

    The refusal is raised as ``GitHubRateLimitError`` so the caller's cycle
    skips the repository instead of sleeping until the window resets.
    """

    buffer: int = 100
    _rate_limits: dict[str, RateLimitInfo] = field(default_factory=dict)

    def get_rate_limit(self, resource: str = "core") -> RateLimitInfo | None:
        """Get current rate limit info for resource."""
        return self._rate_limits.get(resource)

    def update_rate_limit(self, headers: dict[str, str]) -> None:
        """Update rate limit info from response headers.

        Args:
            headers: HTTP response headers
        """
        if "X-RateLimit-Limit" not in headers:
            return

        try:
            rate_limit = RateLimitInfo(
                limit=int(headers.get("X-RateLimit-Limit", 5000)),
                remaining=int(headers.get("X-RateLimit-Remaining", 0)),
                reset=int(headers.get("X-RateLimit-Reset", 0)),
                used=int(headers.get("X-RateLimit-Used", 0)),
                resource=headers.get("X-RateLimit-Resource", "core"),
            )
        except (ValueError, TypeError):
            # Malformed headers leave the previous state in place
            return
        self._rate_limits[rate_limit.resource] = rate_limit

    def check_rate_limit(self, resource: str = "core") -> None:
        """Raise if the remaining budget is inside the reserved buffer.

        Raises:
            GitHubRateLimitError: If the request should not be attempted
        """
        rate_limit = self.get_rate_limit(resource)
        if not rate_limit:
            return

        if rate_limit.remaining <= self.buffer and rate_limit.seconds_until_reset > 0:
            raise GitHubRateLimitError(
                f"Rate limit approaching for {resource}. "
                f"Remaining: {rate_limit.remaining}, "
                f"Reset in {rate_limit.seconds_until_reset:.0f} seconds",
                reset_time=rate_limit.reset,
                remaining=rate_limit.remaining,
                limit=rate_limit.limit,
            )


class CircuitBreaker:
    """Stops calling an external API after repeated failures."""

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before attempting recovery
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._state = "closed"  # closed, open, half_open

    @property
    def is_open(self) -> bool:
        return self._state == "open"

    @property
    def is_closed(self) -> bool:
        return self._state == "closed"

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = "closed"

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.time()

        if self._failure_count >= self.failure_threshold:
            self._state = "open"

    def can_attempt_request(self) -> bool:
        """Check if request can be attempted."""
        if self.is_closed:
            return True

        if (
            self.is_open
            and self._last_failure_time
            and time.time() - self._last_failure_time >= self.recovery_timeout
        ):
            self._state = "half_open"
            return True

        return not self.is_open

    def get_wait_time(self) -> float:
        """Get time to wait before next attempt."""
        if not self.is_open or not self._last_failure_time:
            return 0

        elapsed = time.time() - self._last_failure_time
        return max(0, self.recovery_timeout - elapsed)
