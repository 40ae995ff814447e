"""Catalog dispatcher and event hub tests."""

from __future__ import annotations

import threading

import pytest

from reelshelf import events
from reelshelf.dispatch import CatalogDispatcher


def test_invoke_runs_on_owner_thread_and_returns_result() -> None:
    dispatcher = CatalogDispatcher(name="test-owner")
    try:
        name = dispatcher.invoke(lambda: threading.current_thread().name)
        assert name == "test-owner"
        assert dispatcher.invoke(lambda a, b=0: a + b, 2, b=3) == 5
        assert dispatcher.on_owner_thread is False
    finally:
        dispatcher.close()


def test_invoke_is_reentrant_on_owner_thread() -> None:
    dispatcher = CatalogDispatcher()
    try:
        assert dispatcher.invoke(lambda: dispatcher.invoke(lambda: "inner")) == "inner"
    finally:
        dispatcher.close()


def test_invoke_propagates_exceptions() -> None:
    dispatcher = CatalogDispatcher()
    try:
        with pytest.raises(ZeroDivisionError):
            dispatcher.invoke(lambda: 1 / 0)
        assert dispatcher.invoke(lambda: "still alive") == "still alive"
    finally:
        dispatcher.close()


def test_mutations_are_serialized() -> None:
    dispatcher = CatalogDispatcher()
    counter = {"value": 0}

    def bump() -> None:
        current = counter["value"]
        threading.Event().wait(0.0001)
        counter["value"] = current + 1

    def worker() -> None:
        for _ in range(50):
            dispatcher.invoke(bump)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    dispatcher.close()

    assert counter["value"] == 200


def test_closed_dispatcher_rejects_work() -> None:
    dispatcher = CatalogDispatcher()
    ran = threading.Event()
    dispatcher.post(ran.set)
    dispatcher.close()

    assert ran.is_set()
    with pytest.raises(RuntimeError):
        dispatcher.invoke(lambda: None)
    with pytest.raises(RuntimeError):
        dispatcher.post(lambda: None)


def test_event_hub_delivers_and_isolates_failures() -> None:
    hub = events.EventHub()
    received: list[events.LibraryEvent] = []

    def broken(event: events.LibraryEvent) -> None:
        raise RuntimeError("subscriber bug")

    hub.subscribe(broken)
    unsubscribe = hub.subscribe(received.append)

    emitted = hub.emit(events.STATUS, "hello", source="test")

    assert received == [emitted]
    assert emitted.payload == "hello"
    assert emitted.details == {"source": "test"}

    unsubscribe()
    hub.emit(events.STATUS, "ignored")
    assert len(received) == 1
