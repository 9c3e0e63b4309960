"""Configuration models and YAML loading."""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
)
from .loader import ConfigurationLoader
from .models import (
    Config,
    GitHubConfig,
    LogLevel,
    PipelineConfig,
    ReconciliationConfig,
    RepositoryConfig,
    ServerConfig,
    StoreConfig,
    SystemConfig,
    TrackingIndexConfig,
    ZenHubConfig,
)

__all__ = [
    "Config",
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationValidationError",
    "GitHubConfig",
    "LogLevel",
    "PipelineConfig",
    "ReconciliationConfig",
    "RepositoryConfig",
    "ServerConfig",
    "StoreConfig",
    "SystemConfig",
    "TrackingIndexConfig",
    "ZenHubConfig",
]
