"""Provider chain tests."""

from __future__ import annotations

import threading
from datetime import date
from pathlib import Path

import pytest

from reelshelf.errors import OperationCancelled
from reelshelf.library import VideoEntry, VideoMeta
from reelshelf.metadata import FetchResult, MetadataService, ThumbnailCache, merge_meta
from reelshelf.paths import PathContext


class StubSource:
    """Metadata source returning a canned result and recording queries."""

    def __init__(self, name: str, result: FetchResult | None = None, error: Exception | None = None):
        self.name = name
        self._result = result
        self._error = error
        self.queries: list[str] = []

    def can_handle(self, query: str) -> bool:
        return bool(query)

    def fetch(self, query: str, cancel_event: threading.Event | None = None) -> FetchResult | None:
        self.queries.append(query)
        if self._error is not None:
            raise self._error
        return self._result


class UpperTranslator:
    enabled = True

    def translate(self, text, source_language, target_language, cancel_event=None):
        return text.upper()


def _entry() -> VideoEntry:
    return VideoEntry(
        path="./Videos/abp-123.mp4",
        meta=VideoMeta(title="abp-123", thumbnail="./resources/noimage.jpg", tags=["old"]),
        size_bytes=10,
    )


def _service(tmp_path: Path, *sources, **kwargs) -> tuple[MetadataService, PathContext]:
    context = PathContext.from_directory(tmp_path)
    return MetadataService(list(sources), ThumbnailCache(context), **kwargs), context


def test_enrich_merges_result_and_stores_thumbnail(tmp_path: Path) -> None:
    """A successful source fills metadata and writes the thumbnail to disk."""
    stub = StubSource(
        "stub",
        FetchResult(
            meta=VideoMeta(title="Stub Title", actors=["A", "B"]),
            thumbnail_bytes=b"jpeg",
            thumbnail_extension=".jpg",
        ),
    )
    service, context = _service(tmp_path, stub)

    updated = service.enrich(_entry(), "abp-123")

    assert updated is not None
    assert updated.meta.title == "Stub Title"
    assert updated.meta.actors == ["A", "B"]
    assert updated.meta.tags == ["old"]
    assert updated.path == "./Videos/abp-123.mp4"
    stored = context.resolve(updated.meta.thumbnail)
    assert stored is not None and stored.is_file()
    assert stored.name.startswith("ABP123_")
    assert stub.queries == ["ABP123"]


def test_enrich_continues_after_source_failure(tmp_path: Path) -> None:
    broken = StubSource("broken", error=RuntimeError("boom"))
    empty = StubSource("empty", None)
    working = StubSource("working", FetchResult(meta=VideoMeta(title="Found")))
    service, _ = _service(tmp_path, broken, empty, working)

    updated = service.enrich(_entry(), "abp-123")

    assert updated is not None
    assert updated.meta.title == "Found"
    assert updated.meta.thumbnail == "./resources/noimage.jpg"
    assert broken.queries == empty.queries == working.queries == ["ABP123"]


def test_enrich_returns_none_when_no_source_matches(tmp_path: Path) -> None:
    service, _ = _service(tmp_path, StubSource("empty", None))

    assert service.enrich(_entry(), "abp-123") is None


def test_enrich_skips_blank_queries(tmp_path: Path) -> None:
    stub = StubSource("stub", FetchResult(meta=VideoMeta(title="x")))
    service, _ = _service(tmp_path, stub)

    assert service.enrich(_entry(), " -- ") is None
    assert stub.queries == []


def test_enrich_rejects_missing_entry(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)

    with pytest.raises(TypeError):
        service.enrich(None, "abp-123")  # type: ignore[arg-type]


def test_enrich_propagates_cancellation(tmp_path: Path) -> None:
    first = StubSource("first", error=OperationCancelled("stop"))
    second = StubSource("second", FetchResult(meta=VideoMeta(title="late")))
    service, _ = _service(tmp_path, first, second)

    with pytest.raises(OperationCancelled):
        service.enrich(_entry(), "abp-123")
    assert second.queries == []

    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelled):
        service.enrich(_entry(), "abp-123", cancel)


def test_enrich_translates_description(tmp_path: Path) -> None:
    stub = StubSource("stub", FetchResult(meta=VideoMeta(title="t", description="quiet night")))
    service, _ = _service(tmp_path, stub, translator=UpperTranslator(), target_language="EN")

    updated = service.enrich(_entry(), "abp-123")

    assert updated is not None
    assert updated.meta.description == "QUIET NIGHT"


def test_merge_meta_prefers_non_empty_incoming_values() -> None:
    original = VideoMeta(
        title="old",
        release_date=date(2020, 1, 1),
        actors=["A"],
        thumbnail="./t.jpg",
        tags=["x"],
        description="keep",
    )
    incoming = VideoMeta(title="new", actors=[], tags=["y"], description="")

    merged = merge_meta(original, incoming)

    assert merged.title == "new"
    assert merged.release_date == date(2020, 1, 1)
    assert merged.actors == ["A"]
    assert merged.tags == ["y"]
    assert merged.thumbnail == "./t.jpg"
    assert merged.description == "keep"
