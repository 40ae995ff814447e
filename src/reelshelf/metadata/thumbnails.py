"""Key-to-file storage for downloaded cover images."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from reelshelf.paths import PathContext

LOGGER = logging.getLogger(__name__)

DEFAULT_THUMBNAIL_DIRNAME = "cache"


def normalize_extension(extension: str | None) -> str:
    """Return ``extension`` with a leading dot, defaulting to ``.jpg``."""
    if extension is None or not extension.strip():
        return ".jpg"
    cleaned = extension.strip()
    return cleaned if cleaned.startswith(".") else f".{cleaned}"


def sanitize_key(key: str | None) -> str:
    """Replace every character that is not a letter or digit with ``_``."""
    if key is None or not key.strip():
        return "thumb"
    return "".join(char if char.isalnum() else "_" for char in key)


class ThumbnailCache:
    """Write thumbnail bytes under the cache directory and return library paths."""

    def __init__(self, context: PathContext, dirname: str = DEFAULT_THUMBNAIL_DIRNAME) -> None:
        self._context = context
        self._directory = context.base_directory / dirname

    @property
    def directory(self) -> Path:
        """Return the directory cached images are written to."""
        return self._directory

    def save(self, data: bytes, extension: str | None, key: str | None) -> str:
        """Persist ``data`` and return its path relative to the base directory.

        Args:
            data: Raw image bytes.
            extension: Extension with or without the leading dot.
            key: Cache key, usually the enrichment query.

        Returns:
            str: Library path such as ``./cache/ABP123_20240101_120000123.jpg``.

        Raises:
            ValueError: If ``data`` is empty.
        """
        if not data:
            raise ValueError("Thumbnail data must not be empty.")

        self._directory.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        stamp = now.strftime("%Y%m%d_%H%M%S") + f"{now.microsecond // 1000:03d}"
        stem = f"{sanitize_key(key)}_{stamp}"
        suffix = normalize_extension(extension)

        target = self._directory / f"{stem}{suffix}"
        counter = 1
        while target.exists():
            target = self._directory / f"{stem}_{counter}{suffix}"
            counter += 1

        target.write_bytes(data)
        LOGGER.debug("Cached thumbnail %s (%d bytes).", target, len(data))
        return self._context.to_library_path(target)


__all__ = ["ThumbnailCache", "normalize_extension", "sanitize_key"]
