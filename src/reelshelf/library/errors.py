"""Catalog persistence errors."""

from reelshelf.errors import ReelshelfError


class CatalogError(ReelshelfError):
    """Raised when the catalog file cannot be written."""
