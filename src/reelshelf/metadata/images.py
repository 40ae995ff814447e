"""Image inspection for downloaded and imported thumbnails."""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
    "GIF": ".gif",
    "BMP": ".bmp",
    "TIFF": ".tif",
}


@dataclass(frozen=True, slots=True)
class ImageInfo:
    """Basic facts about an image payload."""

    format: str
    extension: str
    width: int
    height: int


def inspect_image(data: bytes) -> ImageInfo:
    """Identify an image payload.

    Args:
        data: Raw image bytes.

    Returns:
        ImageInfo: Detected format, preferred extension, and dimensions.

    Raises:
        ValueError: If ``data`` is empty or not a readable image.
    """
    if not data:
        raise ValueError("Image data must not be empty.")
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            fmt = (image.format or "").upper()
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError(f"Not a readable image: {exc}") from exc
    return ImageInfo(format=fmt, extension=_EXTENSIONS.get(fmt, ".jpg"), width=width, height=height)


def guess_extension(data: bytes, fallback: str | None = None) -> str | None:
    """Return the extension implied by ``data``, or ``fallback`` if unreadable."""
    try:
        return inspect_image(data).extension
    except ValueError:
        return fallback


__all__ = ["ImageInfo", "guess_extension", "inspect_image"]
