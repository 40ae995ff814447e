"""File discovery for configured target folders."""

from __future__ import annotations

import logging
import os
import re
import stat as stat_module
import threading
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator

from reelshelf.errors import OperationCancelled
from reelshelf.library.models import TargetFolder
from reelshelf.paths import PathContext, combine

from .models import FileSnapshot

LOGGER = logging.getLogger(__name__)

_SKIP_ATTRIBUTES = getattr(stat_module, "FILE_ATTRIBUTE_HIDDEN", 0x2) | getattr(
    stat_module, "FILE_ATTRIBUTE_SYSTEM", 0x4
)


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def matches_glob(pattern: str, filename: str) -> bool:
    """Return whether ``filename`` matches a case-insensitive ``*``/``?`` glob."""
    return _compile_glob(pattern).fullmatch(filename) is not None


def _is_hidden(name: str, info: os.stat_result) -> bool:
    if name.startswith("."):
        return True
    return bool(getattr(info, "st_file_attributes", 0) & _SKIP_ATTRIBUTES)


def _created_at(info: os.stat_result) -> datetime:
    birth = getattr(info, "st_birthtime", None)
    return datetime.fromtimestamp(birth if birth is not None else info.st_ctime, tz=timezone.utc)


class SnapshotScanner:
    """Walk target folders and produce file snapshots that pass their filters."""

    def __init__(self, context: PathContext) -> None:
        """Initialize the scanner.

        Args:
            context: Path context relative roots are resolved against.
        """
        self._context = context

    def resolve_root(self, root: str) -> Path:
        """Return the absolute directory for a declared target root."""
        if not root or not root.strip():
            return self._context.base_directory
        resolved = self._context.resolve(root)
        return resolved if resolved is not None else self._context.base_directory

    def scan(
        self,
        targets: Iterable[TargetFolder],
        cancel_event: threading.Event | None = None,
    ) -> list[FileSnapshot]:
        """Scan every target and return the surviving files.

        Targets whose root does not exist are logged and skipped. Files seen
        through overlapping targets are reported once per target.

        Args:
            targets: Target folders to walk.
            cancel_event: Optional event; once set the scan stops.

        Returns:
            list[FileSnapshot]: Snapshots in discovery order.

        Raises:
            OperationCancelled: If ``cancel_event`` is set during the scan.
        """
        results: list[FileSnapshot] = []
        for target in targets:
            _check_cancelled(cancel_event)
            if target is None:
                continue

            root_path = self.resolve_root(target.root)
            if not root_path.is_dir():
                LOGGER.info(
                    "Skipping target %r; directory not found (%s).", target.root, root_path
                )
                continue

            LOGGER.info("Scanning target %r (resolved path: %s).", target.root, root_path)
            results.extend(self._scan_target(target, root_path, cancel_event))
        return results

    def _scan_target(
        self,
        target: TargetFolder,
        root_path: Path,
        cancel_event: threading.Event | None,
    ) -> Iterator[FileSnapshot]:
        include = target.include_patterns or ["*"]
        exclude = target.exclude_patterns

        for path, info in self._walk(root_path, cancel_event):
            name = path.name
            if not any(matches_glob(pattern, name) for pattern in include):
                continue
            if any(matches_glob(pattern, name) for pattern in exclude):
                continue

            relative = path.relative_to(root_path).as_posix()
            library_path = combine(target.root, relative)
            LOGGER.debug("Discovered file: %s", library_path)
            yield FileSnapshot(
                library_path=library_path,
                absolute_path=path,
                size_bytes=info.st_size,
                last_write_utc=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
                created_utc=_created_at(info),
            )

    def _walk(
        self,
        root_path: Path,
        cancel_event: threading.Event | None,
    ) -> Iterator[tuple[Path, os.stat_result]]:
        def _on_error(exc: OSError) -> None:
            LOGGER.debug("Skipping inaccessible path %s: %s", exc.filename, exc)

        for directory, dirnames, filenames in os.walk(root_path, onerror=_on_error):
            _check_cancelled(cancel_event)
            kept = []
            for dirname in sorted(dirnames):
                try:
                    info = os.stat(os.path.join(directory, dirname))
                except OSError:
                    continue
                if not _is_hidden(dirname, info):
                    kept.append(dirname)
            dirnames[:] = kept

            for filename in sorted(filenames):
                _check_cancelled(cancel_event)
                path = Path(directory) / filename
                try:
                    info = path.stat()
                except OSError:
                    continue
                if not stat_module.S_ISREG(info.st_mode) or _is_hidden(filename, info):
                    continue
                yield path, info


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled("Scan cancelled.")


__all__ = ["SnapshotScanner", "matches_glob"]
