"""Watch service tests."""

from __future__ import annotations

import queue
import threading
from pathlib import Path

import pytest
from watchdog.events import (
    DirDeletedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileMovedEvent,
)

from reelshelf.config import LibrarySettings, ReelshelfConfig, WatchSettings
from reelshelf.controller import LibraryController
from reelshelf.metadata import MetadataService, ThumbnailCache
from reelshelf.paths import PathContext
from reelshelf.watch import WatchService
from reelshelf.watch.service import _WatchEventHandler


class FakeController:
    """Controller double counting scan requests."""

    def __init__(self, roots: dict[Path, list[str]], failures: int = 0) -> None:
        self._roots = roots
        self.failures = failures
        self.scans = 0

    def target_roots(self) -> dict[Path, list[str]]:
        return self._roots

    def run_scan(self, cancel_event: threading.Event | None = None):
        self.scans += 1
        if self.failures:
            self.failures -= 1
            raise RuntimeError("scan exploded")
        return f"report-{self.scans}"


def _drain(events: queue.Queue) -> list[Path]:
    items = []
    while not events.empty():
        items.append(events.get_nowait())
    return items


def test_handler_filters_by_pattern_and_event_type(tmp_path: Path) -> None:
    events: queue.Queue = queue.Queue()
    handler = _WatchEventHandler(["*.mp4"], events)

    handler.on_created(FileCreatedEvent(str(tmp_path / "a.MP4")))
    handler.on_created(FileCreatedEvent(str(tmp_path / "notes.txt")))
    handler.on_modified(DirModifiedEvent(str(tmp_path / "cache")))
    handler.on_deleted(DirDeletedEvent(str(tmp_path / "Season 1")))
    handler.on_moved(FileMovedEvent(str(tmp_path / "b.tmp"), str(tmp_path / "b.mp4")))

    assert _drain(events) == [
        tmp_path / "a.MP4",
        tmp_path / "Season 1",
        tmp_path / "b.mp4",
    ]


def test_debounce_override_and_minimum() -> None:
    controller = FakeController({})

    assert WatchService(controller, WatchSettings(debounce_seconds=3.0)).debounce_seconds == 3.0
    assert WatchService(controller, debounce_override=0.01).debounce_seconds == 0.1


def test_watch_requires_existing_roots() -> None:
    service = WatchService(FakeController({}))

    with pytest.raises(RuntimeError):
        service.watch(lambda report: None)


def test_events_are_batched_into_one_scan(tmp_path: Path) -> None:
    controller = FakeController({tmp_path: ["*.mp4"]})
    service = WatchService(controller, WatchSettings(debounce_seconds=0.1))
    reports: list[object] = []
    scanned = threading.Event()

    def _callback(report: object) -> None:
        reports.append(report)
        scanned.set()

    worker = threading.Thread(target=service._run_loop, args=(_callback,), daemon=True)
    worker.start()
    for name in ("a.mp4", "b.mp4", "c.mp4"):
        service._queue.put(tmp_path / name)

    assert scanned.wait(5)
    service.stop()
    worker.join(5)

    assert controller.scans == 1
    assert reports == ["report-1"]


def test_failed_scan_backs_off_and_recovers(tmp_path: Path) -> None:
    controller = FakeController({tmp_path: ["*.mp4"]}, failures=1)
    service = WatchService(
        controller,
        WatchSettings(debounce_seconds=0.1, error_backoff_seconds=0.1),
    )
    reports: list[object] = []
    scanned = threading.Event()

    def _callback(report: object) -> None:
        reports.append(report)
        scanned.set()

    worker = threading.Thread(target=service._run_loop, args=(_callback,), daemon=True)
    worker.start()
    service._queue.put(tmp_path / "a.mp4")
    for _ in range(100):
        if controller.scans:
            break
        threading.Event().wait(0.02)
    service._queue.put(tmp_path / "b.mp4")

    assert scanned.wait(5)
    service.stop()
    worker.join(5)

    assert controller.scans == 2
    assert reports == ["report-2"]


def test_watch_triggers_scan_for_new_file(tmp_path: Path) -> None:
    controller = FakeController({tmp_path: ["*.mp4"]})
    service = WatchService(controller, WatchSettings(debounce_seconds=0.1))
    reports: list[object] = []

    def _callback(report: object) -> None:
        reports.append(report)
        service.stop()

    def _touch() -> None:
        threading.Event().wait(0.5)
        (tmp_path / "new.mp4").write_bytes(b"video")

    threading.Thread(target=_touch, daemon=True).start()
    timer = threading.Timer(10, service.stop)
    timer.start()
    try:
        service.watch(_callback)
    finally:
        timer.cancel()

    assert reports == ["report-1"]


def test_library_scan_failure_backs_off_until_save_succeeds(tmp_path: Path) -> None:
    context = PathContext.from_directory(tmp_path)
    controller = LibraryController(
        ReelshelfConfig(library=LibrarySettings(base_directory=str(tmp_path))),
        context=context,
        metadata_service=MetadataService([], ThumbnailCache(context)),
    )
    service = WatchService(
        controller,
        WatchSettings(
            debounce_seconds=0.1,
            error_backoff_seconds=0.1,
            max_error_backoff_seconds=1.0,
        ),
    )
    reports: list[object] = []
    catalog_file = tmp_path / "videos.json"
    video = tmp_path / "Videos" / "abp-123.mp4"
    try:
        controller.initialize()
        catalog_file.unlink()
        catalog_file.mkdir()
        video.parent.mkdir(parents=True, exist_ok=True)
        video.write_bytes(b"video")

        service._flush({video}, reports.append)
        service._flush({video}, reports.append)

        assert reports == []
        assert service._backoff == pytest.approx(0.4)

        catalog_file.rmdir()
        service._flush({video}, reports.append)
    finally:
        controller.close()

    assert len(reports) == 1
    assert reports[0].added == ["./Videos/abp-123.mp4"]
    assert service._backoff == pytest.approx(0.1)
