"""Token providers for the version-control host and tracking board."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..exceptions import AdapterError


@dataclass
class AuthToken:
    """Authentication token and the scheme it is sent with."""

    token: str
    token_type: str = "Bearer"

    def to_header(self) -> dict[str, str]:
        """Convert to authorization header."""
        return {"Authorization": f"{self.token_type} {self.token}"}


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    async def get_token(self) -> AuthToken:
        """Get authentication token."""


class PersonalAccessTokenAuth(AuthProvider):
    """GitHub personal access token, sent as ``Authorization: token <pat>``."""

    def __init__(self, token: str):
        if not token:
            raise AdapterError("Personal Access Token is required")
        self._token = AuthToken(token=token, token_type="token")  # nosec B106

    async def get_token(self) -> AuthToken:
        return self._token


class TokenAuth(AuthProvider):
    """Plain bearer token, used for the tracking board."""

    DEFAULT_TOKEN_TYPE = "Bearer"  # nosec B105

    def __init__(self, token: str, token_type: str | None = None):
        """Initialize token authentication.

        Args:
            token: Authentication token
            token_type: Scheme to send the token with. Uses Bearer by default.
        """
        if not token:
            raise AdapterError("Authentication token is required")
        self._token = AuthToken(
            token=token, token_type=token_type or self.DEFAULT_TOKEN_TYPE
        )

    async def get_token(self) -> AuthToken:
        return self._token
