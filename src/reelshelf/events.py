"""Synchronous observer hub for library state changes."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

STATUS = "status"
SCANNING = "scanning"
FETCHING_METADATA = "fetching_metadata"
CRAWLER_RUNNING = "crawler_running"
ENTRIES_ADDED = "entries_added"
ENTRIES_MISSING = "entries_missing"
ENTRY_UPDATED = "entry_updated"
SESSION_ENDED = "session_ended"


@dataclass(frozen=True, slots=True)
class LibraryEvent:
    """A state change published to subscribers.

    Attributes:
        kind: Event identifier such as ``status`` or ``entry_updated``.
        payload: Event-specific data (a message, a flag, or entries).
    """

    kind: str
    payload: Any = None
    details: dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[LibraryEvent], None]


class EventHub:
    """Deliver events to subscribers on the emitting thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def emit(self, kind: str, payload: Any = None, **details: Any) -> LibraryEvent:
        """Publish an event; a failing subscriber does not affect the others."""
        event = LibraryEvent(kind=kind, payload=payload, details=details)
        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                LOGGER.exception("Event subscriber failed for %s.", kind)
        return event


__all__ = [
    "CRAWLER_RUNNING",
    "ENTRIES_ADDED",
    "ENTRIES_MISSING",
    "ENTRY_UPDATED",
    "EventHub",
    "FETCHING_METADATA",
    "LibraryEvent",
    "SCANNING",
    "SESSION_ENDED",
    "STATUS",
]
