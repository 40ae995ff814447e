"""Results produced by metadata sources."""

from __future__ import annotations

from dataclasses import dataclass

from reelshelf.library.models import VideoMeta


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Metadata fetched by a source plus the optional cover image.

    Attributes:
        meta: Parsed metadata; empty fields mean "unknown".
        thumbnail_bytes: Raw cover image, if one was downloaded.
        thumbnail_extension: File extension for the cover, such as ``.jpg``.
    """

    meta: VideoMeta
    thumbnail_bytes: bytes | None = None
    thumbnail_extension: str | None = None


__all__ = ["FetchResult"]
