"""Deduplicated FIFO queue drained by a single background worker."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Optional

from reelshelf.errors import OperationCancelled
from reelshelf.paths import library_key, normalize_library_path

LOGGER = logging.getLogger(__name__)

Processor = Callable[[str], None]
BusyCallback = Callable[[bool], None]


class EnrichmentQueue:
    """Queue library paths for enrichment and drain them one at a time.

    A path is accepted at most once while it is pending or being processed.
    At most one worker thread exists; it exits when the queue is empty and is
    restarted by :meth:`request_processing`.
    """

    def __init__(
        self,
        processor: Processor,
        *,
        on_busy_changed: Optional[BusyCallback] = None,
        thread_name: str = "reelshelf-enrichment",
    ) -> None:
        """Initialize the queue.

        Args:
            processor: Callable that enriches one normalized library path.
                Exceptions it raises are logged and the worker moves on.
            on_busy_changed: Optional observer for the "fetching metadata" flag.
            thread_name: Name given to worker threads.
        """
        self._processor = processor
        self._on_busy_changed = on_busy_changed
        self._thread_name = thread_name
        self._lock = threading.Lock()
        self._notify_lock = threading.Lock()
        self._pending: deque[str] = deque()
        self._members: set[str] = set()
        self._running = False
        self._reported_busy = False
        self._worker: threading.Thread | None = None
        self._idle = threading.Event()
        self._idle.set()

    @property
    def busy(self) -> bool:
        """Return whether a worker is currently draining the queue."""
        with self._lock:
            return self._running

    def pending(self) -> list[str]:
        """Return the paths waiting to be processed, in order."""
        with self._lock:
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def enqueue(self, path: str) -> bool:
        """Add ``path`` unless it is already pending or in flight.

        Returns:
            bool: ``True`` when the path was added.
        """
        normalized = normalize_library_path(path)
        if not normalized:
            return False
        key = library_key(normalized)
        with self._lock:
            if key in self._members:
                return False
            self._members.add(key)
            self._pending.append(normalized)
            return True

    def remove(self, path: str) -> bool:
        """Withdraw a pending ``path``.

        Returns:
            bool: ``True`` when the path was pending.
        """
        key = library_key(path)
        with self._lock:
            before = len(self._pending)
            self._pending = deque(item for item in self._pending if library_key(item) != key)
            removed = len(self._pending) != before
            if removed:
                self._members.discard(key)
            return removed

    def request_processing(self) -> bool:
        """Start a worker if work is pending and none is running.

        Returns:
            bool: ``True`` when a new worker was started.
        """
        with self._lock:
            if not self._pending or self._running:
                return False
            self._running = True
            self._idle.clear()
            worker = threading.Thread(target=self._drain, name=self._thread_name, daemon=True)
            self._worker = worker
        self._report_busy()
        worker.start()
        return True

    def process_now(self, path: str) -> None:
        """Withdraw ``path`` from the queue and process it on the calling thread."""
        normalized = normalize_library_path(path)
        self.remove(normalized)
        self._processor(normalized)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no worker is running.

        Returns:
            bool: ``False`` if the timeout elapsed first.
        """
        return self._idle.wait(timeout)

    def _drain(self) -> None:
        current: str | None = None
        while True:
            with self._lock:
                if current is not None:
                    self._members.discard(library_key(current))
                if not self._pending:
                    # Cleared together with the emptiness check so a racing
                    # enqueue plus request_processing always starts a worker.
                    self._running = False
                    self._worker = None
                    self._idle.set()
                    break
                current = self._pending.popleft()

            try:
                self._processor(current)
            except OperationCancelled:
                LOGGER.info("Enrichment cancelled for %s.", current)
            except Exception:
                LOGGER.exception("Metadata enrichment failed for %s.", current)

        self._report_busy()

    def _report_busy(self) -> None:
        if self._on_busy_changed is None:
            return
        with self._notify_lock:
            with self._lock:
                busy = self._running
            if busy == self._reported_busy:
                return
            self._reported_busy = busy
            try:
                self._on_busy_changed(busy)
            except Exception:
                LOGGER.exception("Busy-state observer failed.")


__all__ = ["EnrichmentQueue"]
