"""Pull request tracking and tracking-board reconciliation service."""

__version__ = "0.1.0"
