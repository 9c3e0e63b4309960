"""HTTP surface: inbound event endpoint, read endpoints, health."""

from .app import create_app

__all__ = ["create_app"]
