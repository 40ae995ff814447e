"""Custom exceptions for configuration management."""

from reelshelf.errors import ReelshelfError


class ConfigError(ReelshelfError):
    """Raised when configuration data cannot be processed."""
