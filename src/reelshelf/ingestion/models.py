"""Data structures exchanged between the scanner and the diff engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from reelshelf.library.models import VideoEntry


@dataclass(frozen=True, slots=True)
class FileSnapshot:
    """A file observed during one scan.

    Attributes:
        library_path: Normalized library path (target root + relative path).
        absolute_path: Resolved filesystem path.
        size_bytes: File size at scan time.
        last_write_utc: Modification time in UTC.
        created_utc: Creation time in UTC (birth time where available).
    """

    library_path: str
    absolute_path: Path
    size_bytes: int
    last_write_utc: datetime
    created_utc: datetime


@dataclass(frozen=True, slots=True)
class UpdatedFile:
    """A catalog entry paired with the fresh snapshot that changed it."""

    entry: VideoEntry
    snapshot: FileSnapshot


@dataclass(slots=True)
class CatalogDiff:
    """Classification of a scan against the catalog.

    Attributes:
        snapshots: Every file the scanner produced.
        new_files: Snapshots with no catalog entry, in discovery order.
        missing_entries: Entries whose file was not observed.
        updated_entries: Entries whose size or modification time changed.
        unchanged: Number of files present in both with identical stamps.
    """

    snapshots: list[FileSnapshot] = field(default_factory=list)
    new_files: list[FileSnapshot] = field(default_factory=list)
    missing_entries: list[VideoEntry] = field(default_factory=list)
    updated_entries: list[UpdatedFile] = field(default_factory=list)
    unchanged: int = 0


@dataclass(slots=True)
class AppliedDiff:
    """Outcome of folding a :class:`CatalogDiff` into the catalog."""

    added: list[VideoEntry] = field(default_factory=list)
    missing: list[VideoEntry] = field(default_factory=list)
    updated: list[VideoEntry] = field(default_factory=list)
    pruned: int = 0


__all__ = ["AppliedDiff", "CatalogDiff", "FileSnapshot", "UpdatedFile"]
