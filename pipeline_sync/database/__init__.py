"""Database access for the tracking-issue identity index."""

from .connection import DatabaseConnectionManager

__all__ = ["DatabaseConnectionManager"]
