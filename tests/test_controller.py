"""Library controller integration tests."""

from __future__ import annotations

import io
import threading
from datetime import date
from pathlib import Path

import httpx
import pytest
from PIL import Image

from reelshelf import events
from reelshelf.config import CrawlerSettings, LibrarySettings, ReelshelfConfig
from reelshelf.controller import AVAILABLE, MISSING, LibraryController
from reelshelf.errors import DriverError, ScanError
from reelshelf.ingestion import CatalogDiffEngine
from reelshelf.library import MetadataEdit, VideoMeta
from reelshelf.metadata import FetchResult, MetadataService, ThumbnailCache
from reelshelf.paths import PathContext

VIDEO = "./Videos/abp-123.mp4"
SEARCH_URL = "https://www.141jav.com/search/ABP123"
RESULT_PAGE = """
<div class="card mb-3">
  <div class="card-content">
    <p class="subtitle is-6"><a href="/date/2024/03/05">Mar 5, 2024</a></p>
    <div class="tags"><a class="tag">Drama</a></div>
    <div class="panel"><a class="panel-block">Actor One</a></div>
    <div class="level">Crawler description</div>
  </div>
  <img class="image" src="https://img.example/cover.jpg">
</div>
"""


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 3), color=(10, 200, 10)).save(buffer, format="PNG")
    return buffer.getvalue()


class StubSource:
    name = "stub"

    def __init__(self, result: FetchResult | None) -> None:
        self.result = result
        self.queries: list[str] = []

    def can_handle(self, query: str) -> bool:
        return True

    def fetch(self, query: str, cancel_event: threading.Event | None = None) -> FetchResult | None:
        self.queries.append(query)
        return self.result


class FakeDriver:
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages
        self.windows = 1
        self._current = ""

    def navigate(self, url: str) -> None:
        if url not in self.pages and not url.startswith("https://example.com"):
            raise DriverError(f"unexpected url {url}")
        self._current = self.pages.get(url, "<h1>Example Domain</h1>")

    def page_source(self) -> str:
        return self._current

    def window_count(self) -> int:
        return self.windows

    def close(self) -> None:
        self.windows = 0


def _write_video(tmp_path: Path, name: str = "abp-123.mp4", size: int = 16) -> Path:
    path = tmp_path / "Videos" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"0" * size)
    return path


def _controller(
    tmp_path: Path,
    *,
    policy: str = "release",
    result: FetchResult | None = None,
    driver: FakeDriver | None = None,
) -> tuple[LibraryController, StubSource, list[events.LibraryEvent]]:
    config = ReelshelfConfig(
        library=LibrarySettings(base_directory=str(tmp_path), policy=policy),
        crawler=CrawlerSettings(poll_interval_seconds=0.02, start_timeout_seconds=5.0),
    )
    context = PathContext.from_directory(tmp_path)
    source = StubSource(result)
    service = MetadataService([source], ThumbnailCache(context))

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "img.example":
            return httpx.Response(200, content=_png_bytes())
        return httpx.Response(404)

    controller = LibraryController(
        config,
        context=context,
        metadata_service=service,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        driver_factory=(lambda: driver) if driver is not None else None,
    )
    received: list[events.LibraryEvent] = []
    controller.events.subscribe(received.append)
    return controller, source, received


def _statuses(received: list[events.LibraryEvent]) -> list[str]:
    return [event.payload for event in received if event.kind == events.STATUS]


def test_initialize_creates_default_catalog(tmp_path: Path) -> None:
    controller, _, received = _controller(tmp_path)
    try:
        catalog = controller.initialize()
    finally:
        controller.close()

    assert (tmp_path / "videos.json").exists()
    assert [target.root for target in catalog.targets] == ["./Videos"]
    assert catalog.videos == []
    assert _statuses(received) == ["0 videos. Missing metadata 0."]


def test_scan_adds_entries_and_persists(tmp_path: Path) -> None:
    _write_video(tmp_path)
    _write_video(tmp_path, "notes.txt")
    controller, _, received = _controller(tmp_path)
    try:
        controller.initialize()
        report = controller.run_scan(enrich=False)

        assert report is not None
        assert report.added == [VIDEO]
        assert report.summary() == "Scan complete: 1 added, 0 missing, 0 updated."
        entry = controller.find("videos/ABP-123.MP4")
        assert entry is not None
        assert entry.meta.title == "abp-123"
        assert entry.meta.thumbnail == "./resources/noimage.jpg"
        assert controller.presence(VIDEO) == AVAILABLE
        assert controller.summary() == "1 videos. Missing metadata 1."
        assert controller.queue.pending() == []
        assert controller.target_roots() == {
            tmp_path.resolve() / "Videos": ["*.mp4", "*.mkv", "*.avi", "*.wmv"]
        }
    finally:
        controller.close()

    kinds = [event.kind for event in received]
    assert kinds.count(events.SCANNING) == 2
    assert events.ENTRIES_ADDED in kinds
    assert "Scan complete: 1 added, 0 missing, 0 updated." in _statuses(received)
    assert VIDEO in (tmp_path / "videos.json").read_text(encoding="utf-8")


def test_rescan_refreshes_changed_files(tmp_path: Path) -> None:
    video = _write_video(tmp_path)
    controller, _, _ = _controller(tmp_path)
    try:
        controller.initialize()
        controller.run_scan(enrich=False)
        video.write_bytes(b"1" * 64)

        report = controller.run_scan(enrich=False)

        assert report is not None
        assert report.updated == [VIDEO]
        entry = controller.find(VIDEO)
        assert entry is not None and entry.size_bytes == 64
    finally:
        controller.close()


def test_missing_files_are_pruned_under_release(tmp_path: Path) -> None:
    video = _write_video(tmp_path)
    controller, _, _ = _controller(tmp_path)
    try:
        controller.initialize()
        controller.run_scan(enrich=False)
        video.unlink()

        report = controller.run_scan(enrich=False)

        assert report is not None
        assert report.missing == [VIDEO]
        assert report.pruned == 1
        assert controller.entries() == []
    finally:
        controller.close()


def test_missing_files_are_retained_under_debug(tmp_path: Path) -> None:
    video = _write_video(tmp_path)
    controller, _, received = _controller(tmp_path, policy="debug")
    try:
        controller.initialize()
        controller.run_scan(enrich=False)
        video.unlink()

        report = controller.run_scan(enrich=False)

        assert report is not None
        assert VIDEO in report.missing
        assert report.pruned == 0
        assert controller.find(VIDEO) is not None
        assert controller.presence(VIDEO) == MISSING
    finally:
        controller.close()

    assert any(event.kind == events.ENTRIES_MISSING for event in received)


def test_scan_enqueues_and_enriches_new_entries(tmp_path: Path) -> None:
    _write_video(tmp_path)
    result = FetchResult(
        meta=VideoMeta(title="ABP-123 Summer", actors=["Actor One"]),
        thumbnail_bytes=_png_bytes(),
        thumbnail_extension=".png",
    )
    controller, source, received = _controller(tmp_path, result=result)
    try:
        controller.initialize()
        controller.run_scan()
        assert controller.wait_for_enrichment(5)

        entry = controller.find(VIDEO)
        assert entry is not None
        assert entry.meta.title == "ABP-123 Summer"
        assert entry.meta.thumbnail.startswith("./cache/ABP123_")
        assert controller.missing_metadata() == []
    finally:
        controller.close()

    assert source.queries == ["ABP123"]
    statuses = _statuses(received)
    assert "Fetching metadata for abp-123.mp4..." in statuses
    assert "Metadata updated for abp-123.mp4." in statuses
    assert any(event.kind == events.ENTRY_UPDATED for event in received)


def test_enrich_now_reports_no_metadata(tmp_path: Path) -> None:
    _write_video(tmp_path)
    controller, _, received = _controller(tmp_path)
    try:
        controller.initialize()
        controller.run_scan(enrich=False)

        assert controller.enrich_now(VIDEO) is None
        assert controller.enrich_now("./Videos/unknown.mp4") is None
    finally:
        controller.close()

    assert "No metadata found for abp-123.mp4." in _statuses(received)


def test_cancelled_scan_reports_and_changes_nothing(tmp_path: Path) -> None:
    _write_video(tmp_path)
    controller, _, received = _controller(tmp_path)
    cancel = threading.Event()
    cancel.set()
    try:
        controller.initialize()
        assert controller.run_scan(cancel) is None
        assert controller.entries() == []
    finally:
        controller.close()

    assert "Scan cancelled." in _statuses(received)


def test_apply_metadata_edit_imports_thumbnail(tmp_path: Path) -> None:
    _write_video(tmp_path)
    cover = tmp_path / "cover.png"
    cover.write_bytes(_png_bytes())
    controller, _, received = _controller(tmp_path)
    try:
        controller.initialize()
        controller.run_scan(enrich=False)

        edited = controller.apply_metadata_edit(
            VIDEO,
            MetadataEdit(
                title="Edited",
                release_date=date(2024, 1, 2),
                tags="Drama, Comedy",
                thumbnail_file=cover,
            ),
        )

        assert edited.meta.title == "Edited"
        assert edited.meta.tags == ["Drama", "Comedy"]
        assert edited.meta.thumbnail.startswith("./cache/ABP123_")
        assert edited.meta.thumbnail.endswith(".png")
        assert controller.is_metadata_missing(edited) is False

        reset = controller.apply_metadata_edit(VIDEO, MetadataEdit(title="Edited", reset_thumbnail=True))
        assert reset.meta.thumbnail == "./resources/noimage.jpg"
        assert controller.find(VIDEO) == reset

        with pytest.raises(KeyError):
            controller.apply_metadata_edit("./Videos/none.mp4", MetadataEdit(title="x"))
    finally:
        controller.close()

    assert "Metadata saved for Edited." in _statuses(received)


def test_apply_metadata_edit_rejects_non_image(tmp_path: Path) -> None:
    _write_video(tmp_path)
    bogus = tmp_path / "cover.png"
    bogus.write_text("not an image", encoding="utf-8")
    controller, _, _ = _controller(tmp_path)
    try:
        controller.initialize()
        controller.run_scan(enrich=False)

        with pytest.raises(ValueError):
            controller.apply_metadata_edit(VIDEO, MetadataEdit(title="x", thumbnail_file=bogus))
    finally:
        controller.close()


def test_crawler_fetch_requires_running_session(tmp_path: Path) -> None:
    controller, _, received = _controller(tmp_path)
    try:
        report = controller.fetch_missing_with_crawler()
    finally:
        controller.close()

    assert report.total == 0
    assert "Crawler is not running. Start the crawler to fetch metadata." in _statuses(received)


def test_crawler_fetch_fills_missing_metadata(tmp_path: Path) -> None:
    _write_video(tmp_path)
    driver = FakeDriver({SEARCH_URL: RESULT_PAGE})
    controller, _, received = _controller(tmp_path, driver=driver)
    try:
        controller.initialize()
        controller.run_scan(enrich=False)

        start = controller.start_crawler()
        assert start.started is True
        report = controller.fetch_missing_with_crawler()

        assert (report.total, report.updated, report.failed) == (1, 1, 0)
        entry = controller.find(VIDEO)
        assert entry is not None
        assert entry.meta.release_date == date(2024, 3, 5)
        assert entry.meta.tags == ["Drama"]
        assert entry.meta.actors == ["Actor One"]
        assert entry.meta.description == "Crawler description"
        assert entry.meta.thumbnail.startswith("./cache/ABP123_")
        assert entry.meta.thumbnail.endswith(".jpg")
        assert controller.summary() == "1 videos. Missing metadata 0."
    finally:
        controller.close()

    statuses = _statuses(received)
    assert start.message in statuses
    assert "[1/1] Fetching metadata for abp-123..." in statuses
    assert "[1/1] Metadata updated for abp-123." in statuses
    assert any(event.kind == events.CRAWLER_RUNNING and event.payload for event in received)


def test_failed_catalog_save_leaves_catalog_unchanged(tmp_path: Path) -> None:
    controller, source, received = _controller(
        tmp_path, result=FetchResult(meta=VideoMeta(title="ABP-123 Summer"))
    )
    catalog_file = tmp_path / "videos.json"
    try:
        controller.initialize()
        catalog_file.unlink()
        catalog_file.mkdir()
        _write_video(tmp_path)

        with pytest.raises(ScanError, match="Unable to write catalog"):
            controller.run_scan()
        assert controller.entries() == []
        assert controller.presence(VIDEO) == AVAILABLE
        assert controller.queue.pending() == []

        catalog_file.rmdir()
        report = controller.run_scan()
        assert report is not None
        assert report.added == [VIDEO]
        assert controller.wait_for_enrichment(5)
        entry = controller.find(VIDEO)
        assert entry is not None
        assert entry.meta.title == "ABP-123 Summer"
    finally:
        controller.close()

    assert source.queries == ["ABP123"]
    statuses = _statuses(received)
    assert any(status.startswith("Scan failed: Unable to write catalog") for status in statuses)
    assert "Scan complete: 1 added, 0 missing, 0 updated." in statuses


def test_unreadable_target_raises_scan_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_video(tmp_path)
    controller, _, received = _controller(tmp_path)

    def _fail(self, catalog, cancel_event=None):
        raise OSError("disk unavailable")

    monkeypatch.setattr(CatalogDiffEngine, "run", _fail)
    try:
        controller.initialize()
        with pytest.raises(ScanError, match="disk unavailable"):
            controller.run_scan(enrich=False)
        assert controller.entries() == []
    finally:
        controller.close()

    assert "Scan failed: disk unavailable" in _statuses(received)
    scanning = [event.payload for event in received if event.kind == events.SCANNING]
    assert scanning == [True, False]


def test_background_scan_resolves_with_report(tmp_path: Path) -> None:
    _write_video(tmp_path)
    controller, _, _ = _controller(tmp_path)
    try:
        controller.initialize()
        future = controller.start_background_scan(enrich=False)

        report = future.result(timeout=5)
        assert report is not None
        assert report.added == [VIDEO]
        assert controller.find(VIDEO) is not None
    finally:
        controller.close()


def test_background_scan_carries_failure(tmp_path: Path) -> None:
    _write_video(tmp_path)
    controller, _, _ = _controller(tmp_path)
    catalog_file = tmp_path / "videos.json"
    try:
        controller.initialize()
        catalog_file.unlink()
        catalog_file.mkdir()

        future = controller.start_background_scan(enrich=False)

        assert isinstance(future.exception(timeout=5), ScanError)
        assert controller.entries() == []
    finally:
        controller.close()


def test_cancelled_background_scan_resolves_to_none(tmp_path: Path) -> None:
    _write_video(tmp_path)
    controller, _, received = _controller(tmp_path)
    cancel = threading.Event()
    cancel.set()
    try:
        controller.initialize()
        assert controller.start_background_scan(cancel).result(timeout=5) is None
    finally:
        controller.close()

    assert "Scan cancelled." in _statuses(received)
