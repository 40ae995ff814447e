"""Classify scan results against the catalog and fold them back in."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from reelshelf.library.models import CatalogData, VideoEntry, VideoMeta
from reelshelf.paths import file_stem, library_key

from .discovery import SnapshotScanner
from .models import AppliedDiff, CatalogDiff, FileSnapshot, UpdatedFile

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_THUMBNAIL = "./resources/noimage.jpg"


class CatalogDiffEngine:
    """Run the scanner and partition files into new, missing, updated, unchanged."""

    def __init__(self, scanner: SnapshotScanner) -> None:
        self._scanner = scanner

    def run(
        self,
        catalog: CatalogData,
        cancel_event: threading.Event | None = None,
    ) -> CatalogDiff:
        """Scan the catalog's targets and classify every path.

        The catalog is not modified.

        Args:
            catalog: Catalog whose targets and entries are compared.
            cancel_event: Optional cancellation event forwarded to the scanner.

        Returns:
            CatalogDiff: Disjoint classification keyed by library path.

        Raises:
            OperationCancelled: If the scan is cancelled.
        """
        LOGGER.info("Starting library scan.")
        snapshots = self._scanner.scan(catalog.targets, cancel_event)
        diff = classify(catalog.videos, snapshots)
        LOGGER.info(
            "Scan completed. New: %d, Missing: %d, Updated: %d.",
            len(diff.new_files),
            len(diff.missing_entries),
            len(diff.updated_entries),
        )
        return diff


def classify(entries: list[VideoEntry], snapshots: list[FileSnapshot]) -> CatalogDiff:
    """Partition ``snapshots`` and ``entries`` by case-insensitive library path.

    When several snapshots or entries share a key, the first one wins.
    """
    snapshot_map: dict[str, FileSnapshot] = {}
    for snapshot in snapshots:
        snapshot_map.setdefault(library_key(snapshot.library_path), snapshot)

    entry_map: dict[str, VideoEntry] = {}
    for entry in entries:
        entry_map.setdefault(library_key(entry.path), entry)

    diff = CatalogDiff(snapshots=list(snapshots))
    for key, snapshot in snapshot_map.items():
        entry = entry_map.get(key)
        if entry is None:
            diff.new_files.append(snapshot)
        elif (
            entry.size_bytes != snapshot.size_bytes
            or entry.last_modified_utc != snapshot.last_write_utc
        ):
            diff.updated_entries.append(UpdatedFile(entry=entry, snapshot=snapshot))
        else:
            diff.unchanged += 1

    diff.missing_entries = [entry for key, entry in entry_map.items() if key not in snapshot_map]
    return diff


def new_entry(snapshot: FileSnapshot, placeholder: str = PLACEHOLDER_THUMBNAIL) -> VideoEntry:
    """Build the catalog entry seeded for a newly discovered file."""
    return VideoEntry(
        path=snapshot.library_path,
        meta=VideoMeta(title=file_stem(snapshot.library_path) or "Untitled", thumbnail=placeholder),
        size_bytes=snapshot.size_bytes,
        last_modified_utc=snapshot.last_write_utc,
        created_utc=snapshot.created_utc,
    )


def apply_diff(
    catalog: CatalogData,
    diff: CatalogDiff,
    *,
    retain_missing: bool,
    placeholder: str = PLACEHOLDER_THUMBNAIL,
    scanned_at: datetime | None = None,
) -> AppliedDiff:
    """Fold a diff into ``catalog`` in place.

    Updated entries only refresh file attributes. Missing entries are kept
    when ``retain_missing`` is true and dropped otherwise. Every target is
    stamped with the scan time.

    Args:
        catalog: Catalog to mutate; callers run this on the catalog owner.
        diff: Result of :meth:`CatalogDiffEngine.run`.
        retain_missing: Keep entries whose file vanished.
        placeholder: Thumbnail reference for new entries.
        scanned_at: Scan completion time; defaults to now.

    Returns:
        AppliedDiff: Entries added, reported missing, refreshed, and the
        number pruned.
    """
    outcome = AppliedDiff(missing=list(diff.missing_entries))

    for item in diff.updated_entries:
        refreshed = item.entry.model_copy(
            update={
                "size_bytes": item.snapshot.size_bytes,
                "last_modified_utc": item.snapshot.last_write_utc,
                "created_utc": item.snapshot.created_utc,
            }
        )
        if catalog.replace(refreshed):
            outcome.updated.append(refreshed)

    for snapshot in diff.new_files:
        if catalog.find(library_key(snapshot.library_path)) is not None:
            continue
        entry = new_entry(snapshot, placeholder)
        catalog.videos.append(entry)
        outcome.added.append(entry)

    if not retain_missing and diff.missing_entries:
        missing_keys = {library_key(entry.path) for entry in diff.missing_entries}
        before = len(catalog.videos)
        catalog.videos = [
            entry for entry in catalog.videos if library_key(entry.path) not in missing_keys
        ]
        outcome.pruned = before - len(catalog.videos)

    stamp = scanned_at or datetime.now(timezone.utc)
    catalog.targets = [
        target.model_copy(update={"last_scan_utc": stamp}) for target in catalog.targets
    ]
    return outcome


__all__ = ["CatalogDiffEngine", "PLACEHOLDER_THUMBNAIL", "apply_diff", "classify", "new_entry"]
