"""Filesystem watch service that rescans the library when target folders change."""

from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from reelshelf.config import WatchSettings
from reelshelf.ingestion import matches_glob

if TYPE_CHECKING:
    from reelshelf.controller import LibraryController, ScanReport

LOGGER = logging.getLogger(__name__)

ScanCallback = Callable[["ScanReport | None"], None]


class WatchService:
    """Monitor target folders and trigger debounced library scans."""

    def __init__(
        self,
        controller: "LibraryController",
        settings: WatchSettings | None = None,
        *,
        debounce_override: Optional[float] = None,
    ) -> None:
        """Initialize the watch service.

        Args:
            controller: Controller whose scan is triggered.
            settings: Watch settings; defaults are used when omitted.
            debounce_override: Optional debounce interval override in seconds.
        """
        settings = settings or WatchSettings()
        self._controller = controller
        self._observer: BaseObserver | None = None
        self._queue: queue.Queue[Path | None] = queue.Queue()
        self._stop_event = threading.Event()
        self._debounce_seconds = (
            max(0.1, debounce_override)
            if debounce_override and debounce_override > 0
            else max(0.1, settings.debounce_seconds)
        )
        self._max_batch_interval = (
            settings.max_batch_interval_seconds if settings.max_batch_interval_seconds > 0 else None
        )
        self._initial_backoff = max(0.1, settings.error_backoff_seconds)
        self._max_backoff = max(self._initial_backoff, settings.max_error_backoff_seconds)
        self._backoff = self._initial_backoff

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_seconds

    def watch(self, callback: ScanCallback) -> None:
        """Block while processing filesystem events until :meth:`stop` is called.

        Args:
            callback: Callable invoked with each scan report.

        Raises:
            RuntimeError: If the service is already running or there is nothing to watch.
        """
        if self._observer is not None:
            raise RuntimeError("WatchService is already running.")

        roots = self._controller.target_roots()
        if not roots:
            raise RuntimeError("No target folders exist to watch.")

        self._stop_event.clear()
        self._observer = Observer()
        for root, patterns in roots.items():
            handler = _WatchEventHandler(patterns, self._queue)
            self._observer.schedule(handler, str(root), recursive=True)
            LOGGER.info("Watching %s for %s.", root, ", ".join(patterns))

        self._observer.start()
        try:
            self._run_loop(callback)
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop the observer and unblock the processing loop."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._queue.put(None)

    def _run_loop(self, callback: ScanCallback) -> None:
        pending: set[Path] = set()
        batch_started_at: Optional[float] = None
        flush_deadline: Optional[float] = None

        while not self._stop_event.is_set():
            timeout: Optional[float] = None
            if flush_deadline is not None:
                timeout = max(0.0, flush_deadline - time.monotonic())

            try:
                path = self._queue.get(timeout=timeout)
            except queue.Empty:
                if pending:
                    self._flush(pending, callback)
                    pending.clear()
                    batch_started_at = None
                    flush_deadline = None
                continue

            if path is None:
                break

            pending.add(path)
            now = time.monotonic()
            if batch_started_at is None:
                batch_started_at = now
            flush_deadline = now + self._debounce_seconds

            if (
                self._max_batch_interval is not None
                and (now - batch_started_at) >= self._max_batch_interval
            ):
                self._flush(pending, callback)
                pending.clear()
                batch_started_at = None
                flush_deadline = None

    def _flush(self, pending: set[Path], callback: ScanCallback) -> None:
        LOGGER.info("Filesystem changes detected (%d paths); rescanning.", len(pending))
        try:
            report = self._controller.run_scan(self._stop_event)
        except Exception:
            LOGGER.exception("Watch-triggered scan failed; retrying after %.1fs.", self._backoff)
            self._stop_event.wait(self._backoff)
            self._backoff = min(self._backoff * 2, self._max_backoff)
            return

        self._backoff = self._initial_backoff
        callback(report)


class _WatchEventHandler(FileSystemEventHandler):
    """Forward events for matching files into the service queue."""

    def __init__(self, patterns: list[str], queue_handle: queue.Queue[Path | None]) -> None:
        self._patterns = patterns
        self._queue = queue_handle

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._enqueue(event.src_path, False)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._enqueue(event.src_path, False)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)
        self._enqueue(getattr(event, "dest_path", ""), event.is_directory)

    def _enqueue(self, raw_path: str | bytes, is_directory: bool) -> None:
        if not raw_path:
            return
        path = Path(raw_path.decode() if isinstance(raw_path, bytes) else raw_path)
        # Directory moves and deletions can hide whole subtrees of videos.
        if is_directory or any(matches_glob(pattern, path.name) for pattern in self._patterns):
            self._queue.put(path)


__all__ = ["WatchService"]
