"""Continuous library monitoring."""

from .service import WatchService

__all__ = ["WatchService"]
