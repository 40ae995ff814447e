"""Enrichment queue tests."""

from __future__ import annotations

import threading

from reelshelf.enrichment import EnrichmentQueue
from reelshelf.errors import OperationCancelled


def test_enqueue_deduplicates_case_insensitively() -> None:
    queue = EnrichmentQueue(lambda path: None)

    assert queue.enqueue("Videos/a.mp4") is True
    assert queue.enqueue("./videos/A.MP4") is False
    assert queue.enqueue("./Videos/b.mp4") is True
    assert queue.enqueue("  ") is False

    assert queue.pending() == ["./Videos/a.mp4", "./Videos/b.mp4"]
    assert len(queue) == 2


def test_worker_drains_in_fifo_order() -> None:
    processed: list[str] = []
    queue = EnrichmentQueue(processed.append)
    for name in ("c", "a", "b"):
        queue.enqueue(f"./Videos/{name}.mp4")

    assert queue.request_processing() is True
    assert queue.wait_idle(5)

    assert processed == ["./Videos/c.mp4", "./Videos/a.mp4", "./Videos/b.mp4"]
    assert queue.busy is False
    assert queue.pending() == []


def test_request_processing_without_work_is_a_no_op() -> None:
    queue = EnrichmentQueue(lambda path: None)

    assert queue.request_processing() is False
    assert queue.busy is False


def test_in_flight_path_is_not_accepted_again() -> None:
    started = threading.Event()
    release = threading.Event()
    processed: list[str] = []

    def processor(path: str) -> None:
        processed.append(path)
        started.set()
        release.wait(5)

    queue = EnrichmentQueue(processor)
    queue.enqueue("./Videos/a.mp4")
    queue.request_processing()
    assert started.wait(5)

    assert queue.enqueue("./Videos/a.mp4") is False
    assert queue.request_processing() is False
    release.set()
    assert queue.wait_idle(5)

    assert queue.enqueue("./Videos/a.mp4") is True
    assert processed == ["./Videos/a.mp4"]


def test_processor_errors_do_not_stop_the_worker() -> None:
    processed: list[str] = []

    def processor(path: str) -> None:
        if path.endswith("bad.mp4"):
            raise RuntimeError("boom")
        if path.endswith("cancel.mp4"):
            raise OperationCancelled("stop")
        processed.append(path)

    queue = EnrichmentQueue(processor)
    for name in ("bad", "cancel", "good"):
        queue.enqueue(f"./Videos/{name}.mp4")
    queue.request_processing()

    assert queue.wait_idle(5)
    assert processed == ["./Videos/good.mp4"]


def test_busy_observer_sees_each_transition_once() -> None:
    transitions: list[bool] = []
    queue = EnrichmentQueue(lambda path: None, on_busy_changed=transitions.append)
    queue.enqueue("./Videos/a.mp4")
    queue.enqueue("./Videos/b.mp4")

    queue.request_processing()
    assert queue.wait_idle(5)
    # The busy=False notification is sent right after the idle flag is set.
    for _ in range(100):
        if transitions == [True, False]:
            break
        threading.Event().wait(0.01)

    assert transitions == [True, False]


def test_remove_and_process_now() -> None:
    processed: list[str] = []
    queue = EnrichmentQueue(processed.append)
    queue.enqueue("./Videos/a.mp4")
    queue.enqueue("./Videos/b.mp4")

    assert queue.remove("videos/A.mp4") is True
    assert queue.remove("./Videos/missing.mp4") is False
    queue.process_now("Videos/b.mp4")

    assert processed == ["./Videos/b.mp4"]
    assert queue.pending() == []
    assert queue.enqueue("./Videos/a.mp4") is True
