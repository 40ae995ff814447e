"""Library path normalization and code fingerprint helpers.

Library paths are the catalog's identity keys. They always use forward
slashes, and relative paths always carry an explicit ``./`` or ``../``
prefix so the same file is spelled the same way no matter where it was
discovered from.
"""

from __future__ import annotations

import ntpath
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path

_PPV_PATTERN = re.compile(r"(?<![A-Z0-9])([A-Z0-9]+)[\s_-]*PPV[\s_-]*(\d+)")
_LABEL_PATTERN = re.compile(r"(?<![A-Z0-9-])([A-Z]{2,8})[\s_-]*(\d{2,7})(?![0-9])")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def _is_rooted(path: str) -> bool:
    return path.startswith("/") or bool(ntpath.splitdrive(path)[0]) or path.startswith("\\")


def normalize_library_path(path: str | None) -> str:
    """Return the canonical library form of ``path``.

    Args:
        path: User-supplied or discovered path in any separator style.

    Returns:
        str: Forward-slash path; relative inputs gain a ``./`` prefix, rooted
        inputs and ``./`` or ``../`` prefixed inputs are kept as written.
        Blank input yields an empty string.
    """
    if path is None or not path.strip():
        return ""

    trimmed = path.strip()
    normalized = trimmed.replace("\\", "/")
    if _is_rooted(trimmed) or normalized.startswith("./") or normalized.startswith("../"):
        return normalized
    return "./" + normalized.lstrip("/")


def combine(root: str | None, relative: str | None) -> str:
    """Join a declared target root and a relative path into a library path."""
    if root is None or not root.strip():
        return normalize_library_path(relative)
    if relative is None or not relative.strip():
        return normalize_library_path(root)

    relative_text = relative.replace("\\", "/")
    if _is_rooted(relative_text):
        return normalize_library_path(relative_text)
    joined = posixpath.join(root.strip().replace("\\", "/"), relative_text)
    return normalize_library_path(joined)


def library_key(path: str | None) -> str:
    """Return the case-insensitive comparison key for a library path."""
    return normalize_library_path(path).casefold()


def file_stem(path: str | None) -> str:
    """Return the filename without extension for a library path."""
    if not path:
        return ""
    name = posixpath.basename(path.replace("\\", "/"))
    stem, _ = posixpath.splitext(name)
    return stem


def normalize_code(value: str | None) -> str:
    """Derive the canonical product code used for searches and cache keys.

    Recognizes ``PREFIX-PPV-NNN`` and ``ABC-123`` identifiers anywhere in the
    text; otherwise keeps every letter and digit.

    Args:
        value: Title or filename stem.

    Returns:
        str: Upper-case alphanumeric token, empty when nothing usable remains.

    Examples:
        ``"FC2-PPV-12345"`` becomes ``"FC2PPV12345"`` and ``"abp-123"``
        becomes ``"ABP123"``.
    """
    if value is None:
        return ""
    text = value.strip().upper()
    if not text:
        return ""

    match = _PPV_PATTERN.search(text)
    if match:
        return f"{match.group(1)}PPV{match.group(2)}"

    match = _LABEL_PATTERN.search(text)
    if match:
        return f"{match.group(1)}{match.group(2)}"

    return _NON_ALNUM.sub("", text)


@dataclass(frozen=True, slots=True)
class PathContext:
    """Resolve library paths against an explicit base directory.

    Attributes:
        base_directory: Directory that ``./`` prefixed library paths hang off.
    """

    base_directory: Path

    @classmethod
    def from_directory(cls, directory: Path | str | None) -> "PathContext":
        """Build a context, defaulting to the current working directory."""
        base = Path(directory).expanduser() if directory else Path.cwd()
        return cls(base_directory=base.resolve())

    def resolve(self, library_path: str | None) -> Path | None:
        """Return the absolute filesystem path for a library path.

        Args:
            library_path: Normalized or raw library path.

        Returns:
            Path | None: Absolute path, or ``None`` for blank input.
        """
        if library_path is None or not library_path.strip():
            return None

        text = library_path.strip()
        if _is_rooted(text):
            return Path(text).expanduser().resolve()
        if text.startswith("./"):
            text = text[2:]
        return (self.base_directory / text).resolve()

    def to_library_path(self, absolute: Path) -> str:
        """Express an absolute path relative to the base directory when possible."""
        try:
            relative = absolute.resolve().relative_to(self.base_directory)
        except ValueError:
            return normalize_library_path(absolute.as_posix())
        return normalize_library_path(relative.as_posix())


__all__ = [
    "PathContext",
    "combine",
    "file_stem",
    "library_key",
    "normalize_code",
    "normalize_library_path",
]
