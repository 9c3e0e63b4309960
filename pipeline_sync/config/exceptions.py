"""Configuration-related exceptions."""

from typing import Any

from ..exceptions import PipelineSyncError


class ConfigurationError(PipelineSyncError):
    """Base exception for all configuration-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize configuration error.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.details = details or {}


class ConfigurationFileError(ConfigurationError):
    """Raised when a configuration file cannot be found, read or parsed."""

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.file_path = file_path


class ConfigurationValidationError(ConfigurationError):
    """Raised when configuration values fail validation."""

    def __init__(
        self,
        message: str,
        validation_errors: list[Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize configuration validation error.

        Args:
            message: Human-readable error message
            validation_errors: Pydantic error dicts, one per failing field
            details: Optional dictionary with additional error details
        """
        super().__init__(message, details)
        self.validation_errors = validation_errors or []
