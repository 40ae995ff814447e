"""Single-owner executor for catalog mutations."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_Job = tuple[Callable[[], Any], "Future[Any] | None"]


class CatalogDispatcher:
    """Run submitted callables one at a time on a dedicated owner thread.

    Everything that mutates the in-memory catalog goes through
    :meth:`invoke` or :meth:`post`, so mutations are serialized without the
    catalog itself needing a lock.
    """

    def __init__(self, name: str = "reelshelf-catalog") -> None:
        self._jobs: queue.Queue[_Job | None] = queue.Queue()
        self._closed = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def on_owner_thread(self) -> bool:
        """Return whether the caller is running on the owner thread."""
        return threading.current_thread() is self._thread

    def invoke(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` on the owner thread and return its result.

        Runs inline when already on the owner thread.

        Raises:
            RuntimeError: If the dispatcher has been closed.
        """
        if self.on_owner_thread:
            return fn(*args, **kwargs)
        if self._closed.is_set():
            raise RuntimeError("Catalog dispatcher is closed.")
        future: Future[T] = Future()
        self._jobs.put((lambda: fn(*args, **kwargs), future))
        return future.result()

    def post(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Queue ``fn`` without waiting; failures are logged."""
        if self._closed.is_set():
            raise RuntimeError("Catalog dispatcher is closed.")
        self._jobs.put((lambda: fn(*args, **kwargs), None))

    def close(self, timeout: float | None = 5.0) -> None:
        """Finish queued work and stop the owner thread."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._jobs.put(None)
        if not self.on_owner_thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                break
            action, future = job
            if future is not None and not future.set_running_or_notify_cancel():
                continue
            try:
                result = action()
            except Exception as exc:
                if future is None:
                    LOGGER.exception("Posted catalog job failed.")
                else:
                    future.set_exception(exc)
                continue
            if future is not None:
                future.set_result(result)


__all__ = ["CatalogDispatcher"]
