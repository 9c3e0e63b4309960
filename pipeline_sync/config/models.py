"""Pydantic configuration models for pipeline-sync.

The hierarchy is:
- Config: root, passed whole into ``AppContext``
- SystemConfig: logging and environment
- GitHubConfig / ZenHubConfig: the two external systems
- PipelineConfig: display name and optional board id per ``PipelineStage``
- RepositoryConfig: what to reconcile for one repository
- ReconciliationConfig, StoreConfig, TrackingIndexConfig, ServerConfig

String values may reference environment variables as ``${VAR_NAME}`` or
``${VAR_NAME:default}``.
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.enums import PipelineStage

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def substitute_value(value: Any) -> Any:
    """Recursively replace ``${VAR}`` / ``${VAR:default}`` in strings.

    Raises:
        ValueError: If a variable without default is not set
    """
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Required environment variable '{var_name}' not found")

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: substitute_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_value(item) for item in value]
    return value


class BaseConfigModel(BaseModel):
    """Base configuration model with environment variable substitution."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @model_validator(mode="before")
    @classmethod
    def substitute_env_vars(cls, values: Any) -> Any:
        """Substitute environment variables in raw string values."""
        if not isinstance(values, dict):
            return values
        return substitute_value(values)


class SystemConfig(BaseConfigModel):
    """Core system configuration settings."""

    log_level: LogLevel = Field(
        default=LogLevel.INFO, description="System-wide logging level"
    )
    environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )


class GitHubConfig(BaseConfigModel):
    """Version-control host connection settings."""

    token: str = Field(description="Personal access token")
    token_type: str = Field(
        default="token", description="Authorization scheme (token or Bearer)"
    )
    organization: str | None = Field(
        default=None, description="Owner used for repositories given without one"
    )
    base_url: str = Field(default="https://api.github.com")
    timeout: int = Field(default=30, ge=1, le=300, description="Seconds per request")
    max_retries: int = Field(default=3, ge=0, le=10)
    max_concurrent_requests: int = Field(default=10, ge=1, le=100)

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        if not v or v.strip() == "":
            raise ValueError("GitHub token cannot be empty")
        return v.strip()


class ZenHubConfig(BaseConfigModel):
    """Tracking-board connection settings."""

    token: str = Field(description="Board API bearer token")
    workspace_id: str = Field(description="Workspace holding the pipelines")
    endpoint: str = Field(default="https://api.zenhub.com/public/graphql")
    timeout: int = Field(default=30, ge=1, le=300, description="Seconds per request")

    @field_validator("token", "workspace_id")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or v.strip() == "":
            raise ValueError("Value cannot be empty")
        return v.strip()


class PipelineConfig(BaseConfigModel):
    """Board pipeline backing one stage.

    Without an ``id`` the pipeline is looked up by ``name`` in the workspace.
    """

    name: str
    id: str | None = None


def _default_pipelines() -> dict[PipelineStage, PipelineConfig]:
    return {stage: PipelineConfig(name=stage.default_name) for stage in PipelineStage}


class RepositoryConfig(BaseConfigModel):
    """What to reconcile for one repository."""

    name: str = Field(description="Repository name, or owner/name")
    owner: str | None = Field(
        default=None, description="Overrides github.organization for this repository"
    )
    primary_branch: str = Field(default="main")
    secondary_branch: str = Field(default="practice")
    track_commits: bool = Field(
        default=True, description="Open sync issues for unpropagated commits"
    )
    track_pull_requests: bool = Field(
        default=True, description="Track pull requests on the board"
    )
    commit_window: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Newest commits fetched per branch and cycle",
    )

    def full_name(self, default_owner: str | None = None) -> str:
        """``owner/name`` for API paths and source unit ids."""
        if "/" in self.name:
            return self.name
        owner = self.owner or default_owner
        if not owner:
            raise ValueError(f"Repository '{self.name}' has no owner configured")
        return f"{owner}/{self.name}"


class ReconciliationConfig(BaseConfigModel):
    """Polling cycle settings."""

    interval: int = Field(
        default=300, ge=10, le=86400, description="Seconds between cycles"
    )
    max_concurrent_repositories: int = Field(default=4, ge=1, le=50)
    max_concurrent_units: int = Field(
        default=5, ge=1, le=50, description="Units resolved in parallel per repository"
    )
    commit_labels: list[str] = Field(default_factory=lambda: ["Cross-Branch Sync"])
    pull_request_labels: list[str] = Field(default_factory=lambda: ["Pull Request"])
    pull_request_limit: int = Field(
        default=100, ge=1, le=1000, description="Most recently updated PRs per cycle"
    )


class StoreConfig(BaseConfigModel):
    """Location of the persisted PR state document."""

    path: Path = Field(default=Path("data/pr-data.json"))


class TrackingIndexConfig(BaseConfigModel):
    """Durable source-unit to tracking-issue index."""

    enabled: bool = Field(default=True)
    url: str = Field(default="sqlite+aiosqlite:///data/tracking-index.db")
    echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if "://" not in v:
            raise ValueError("Tracking index URL must include a scheme")
        return v


class ServerConfig(BaseConfigModel):
    """HTTP server binding."""

    host: str = Field(default="0.0.0.0")  # nosec B104
    port: int = Field(default=3000, ge=1, le=65535)


class Config(BaseConfigModel):
    """Root configuration containing all subsystem configurations."""

    system: SystemConfig = Field(default_factory=SystemConfig)
    github: GitHubConfig
    zenhub: ZenHubConfig
    pipelines: dict[PipelineStage, PipelineConfig] = Field(
        default_factory=_default_pipelines
    )
    repositories: list[RepositoryConfig] = Field(default_factory=list)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    tracking_index: TrackingIndexConfig = Field(default_factory=TrackingIndexConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @field_validator("pipelines")
    @classmethod
    def fill_missing_pipelines(
        cls, v: dict[PipelineStage, PipelineConfig]
    ) -> dict[PipelineStage, PipelineConfig]:
        """Stages left out of the file keep their default display name."""
        return {**_default_pipelines(), **v}

    @model_validator(mode="after")
    def validate_repository_owners(self) -> "Config":
        """Every repository must resolve to ``owner/name``."""
        for repository in self.repositories:
            repository.full_name(self.github.organization)
        return self

    def repository_names(self) -> list[str]:
        return [repo.full_name(self.github.organization) for repo in self.repositories]
