"""Orchestration of scanning, enrichment, and the automation session."""

from __future__ import annotations

import logging
import posixpath
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote, urlparse

import httpx

from reelshelf import events
from reelshelf.config import ReelshelfConfig
from reelshelf.crawler import AutomationSessionManager, CrawlerMetadata, StartResult
from reelshelf.crawler.driver import DriverFactory, playwright_factory
from reelshelf.crawler.session import SessionState
from reelshelf.dispatch import CatalogDispatcher
from reelshelf.enrichment import EnrichmentQueue
from reelshelf.errors import OperationCancelled, ReelshelfError, ScanError
from reelshelf.ingestion import (
    AppliedDiff,
    CatalogDiff,
    CatalogDiffEngine,
    SnapshotScanner,
    apply_diff,
)
from reelshelf.library import CatalogData, CatalogStore, MetadataEdit, VideoEntry
from reelshelf.metadata import (
    MetadataService,
    ThumbnailCache,
    build_http_client,
    build_sources,
    build_translator,
    guess_extension,
    inspect_image,
)
from reelshelf.paths import PathContext, file_stem, library_key, normalize_code

LOGGER = logging.getLogger(__name__)

AVAILABLE = "available"
MISSING = "missing"


@dataclass(slots=True)
class ScanReport:
    """Counts describing one completed scan cycle."""

    added: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    pruned: int = 0
    scanned_at: datetime | None = None

    def summary(self) -> str:
        return (
            f"Scan complete: {len(self.added)} added, {len(self.missing)} missing, "
            f"{len(self.updated)} updated."
        )


@dataclass(slots=True)
class CrawlReport:
    """Counts describing one crawler bulk fetch."""

    total: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class LibraryController:
    """Own the catalog and coordinate the components that change it.

    All catalog reads and writes run on the :class:`CatalogDispatcher` owner
    thread; background work (scanning, enrichment, crawling) only performs I/O
    and hands results to the owner.
    """

    def __init__(
        self,
        config: ReelshelfConfig,
        *,
        context: PathContext | None = None,
        store: CatalogStore | None = None,
        metadata_service: MetadataService | None = None,
        http_client: httpx.Client | None = None,
        driver_factory: DriverFactory | None = None,
        hub: events.EventHub | None = None,
    ) -> None:
        """Initialize the controller from configuration.

        Args:
            config: Effective configuration.
            context: Path context; derived from ``library.base_directory`` when omitted.
            store: Catalog store override.
            metadata_service: Provider chain override.
            http_client: HTTP client shared by sources and thumbnail downloads.
            driver_factory: Browser launcher for the automation session.
            hub: Event hub observers subscribe to.
        """
        self._config = config
        self._context = context or PathContext.from_directory(config.library.base_directory)
        library = config.library
        self._store = store or CatalogStore(
            self._context,
            catalog_file=library.catalog_file,
            policy=library.policy,
            prune_missing_on_load=library.prune_missing_on_load,
            default_root=library.default_root,
            default_include=library.default_include,
        )
        self._placeholder = config.metadata.placeholder_thumbnail
        self._owns_client = http_client is None
        self._http = http_client or build_http_client(config.metadata)
        self._thumbnails = ThumbnailCache(self._context, config.metadata.thumbnail_dirname)
        translator = build_translator(config.translation)
        self._metadata = metadata_service or MetadataService(
            build_sources(config.metadata, self._http),
            self._thumbnails,
            translator=translator,
            source_language=config.translation.source_language,
            target_language=config.translation.target_language,
        )
        self.events = hub or events.EventHub()
        self._dispatcher = CatalogDispatcher()
        self._scanner = SnapshotScanner(self._context)
        self._diff_engine = CatalogDiffEngine(self._scanner)

        self._queue = EnrichmentQueue(self._process_path, on_busy_changed=self._on_fetching)
        crawler = config.crawler
        self._session = AutomationSessionManager(
            driver_factory
            or playwright_factory(
                headless=crawler.headless,
                page_load_timeout_seconds=crawler.page_load_timeout_seconds,
                user_agent=config.metadata.user_agent,
            ),
            seed_url=crawler.seed_url,
            poll_interval_seconds=crawler.poll_interval_seconds,
            start_timeout_seconds=crawler.start_timeout_seconds,
            translator=translator,
            target_language=config.translation.target_language,
            on_state_changed=self._on_session_state,
            on_session_ended=self._on_session_ended,
        )

        self._catalog = CatalogData()
        self._missing_keys: set[str] = set()
        self._scan_lock = threading.Lock()
        self._crawl_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Accessors                                                          #
    # ------------------------------------------------------------------ #

    @property
    def context(self) -> PathContext:
        return self._context

    @property
    def store(self) -> CatalogStore:
        return self._store

    @property
    def queue(self) -> EnrichmentQueue:
        """Return the enrichment queue."""
        return self._queue

    @property
    def session(self) -> AutomationSessionManager:
        return self._session

    def entries(self) -> list[VideoEntry]:
        """Return a snapshot of the catalog entries."""
        return self._dispatcher.invoke(lambda: list(self._catalog.videos))

    def catalog(self) -> CatalogData:
        """Return a deep copy of the catalog."""
        return self._dispatcher.invoke(lambda: self._catalog.model_copy(deep=True))

    def find(self, path: str) -> VideoEntry | None:
        """Return the entry for ``path`` (case-insensitive), if any."""
        key = library_key(path)
        return self._dispatcher.invoke(lambda: self._catalog.find(key))

    def presence(self, path: str) -> str:
        """Return ``missing`` if the last scan did not see ``path``."""
        key = library_key(path)
        return self._dispatcher.invoke(lambda: MISSING if key in self._missing_keys else AVAILABLE)

    def target_roots(self) -> dict[Path, list[str]]:
        """Return existing target directories mapped to their include patterns."""
        roots: dict[Path, list[str]] = {}
        for target in self.catalog().targets:
            root = self._scanner.resolve_root(target.root)
            if root.is_dir():
                roots.setdefault(root, []).extend(target.include_patterns or ["*"])
        return roots

    def is_metadata_missing(self, entry: VideoEntry) -> bool:
        """Return whether ``entry`` still lacks a usable thumbnail."""
        thumbnail = entry.meta.thumbnail.strip()
        if not thumbnail or library_key(thumbnail) == library_key(self._placeholder):
            return True
        resolved = self._context.resolve(thumbnail)
        return resolved is None or not resolved.is_file()

    def missing_metadata(self) -> list[VideoEntry]:
        """Return entries whose metadata has not been fetched yet."""
        return [entry for entry in self.entries() if self.is_metadata_missing(entry)]

    def summary(self) -> str:
        """Return the library summary status line."""
        entries = self.entries()
        missing = sum(1 for entry in entries if self.is_metadata_missing(entry))
        return f"{len(entries)} videos. Missing metadata {missing}."

    # ------------------------------------------------------------------ #
    # Catalog lifecycle                                                  #
    # ------------------------------------------------------------------ #

    def initialize(self) -> CatalogData:
        """Load the catalog and publish the summary status."""
        catalog = self._dispatcher.invoke(self._load)
        self._status(self.summary())
        return catalog

    def save(self) -> None:
        """Persist the catalog from the owner thread."""
        self._dispatcher.invoke(lambda: self._store.save(self._catalog))

    def run_scan(
        self,
        cancel_event: threading.Event | None = None,
        *,
        enrich: bool = True,
    ) -> ScanReport | None:
        """Scan the targets, apply the diff, persist, and queue new entries.

        The diff is applied to a copy of the catalog that replaces the live one
        only after it has been saved, so a failed save leaves memory untouched.

        Args:
            cancel_event: Optional event that aborts the scan.
            enrich: Whether added entries are queued for metadata enrichment.

        Returns:
            ScanReport | None: Scan counts, or ``None`` if a scan was already
            running or the scan was cancelled.

        Raises:
            ScanError: If the targets could not be read or the catalog could
                not be saved. The ``Scan failed`` status is published first.
        """
        if not self._scan_lock.acquire(blocking=False):
            LOGGER.info("Scan already in progress; request ignored.")
            return None
        self.events.emit(events.SCANNING, True)
        try:
            snapshot = self.catalog()
            try:
                diff = self._diff_engine.run(snapshot, cancel_event)
                scanned_at = datetime.now(timezone.utc)
                applied = self._dispatcher.invoke(self._apply_scan, diff, scanned_at)
            except OperationCancelled:
                LOGGER.info("Library scan cancelled.")
                self._status("Scan cancelled.")
                return None
            except (ReelshelfError, OSError) as exc:
                LOGGER.exception("Library scan failed.")
                self._status(f"Scan failed: {exc}")
                raise ScanError(str(exc)) from exc

            report = ScanReport(
                added=[entry.path for entry in applied.added],
                missing=[entry.path for entry in applied.missing],
                updated=[entry.path for entry in applied.updated],
                pruned=applied.pruned,
                scanned_at=scanned_at,
            )
            if enrich:
                for path in report.added:
                    self._queue.enqueue(path)

            if applied.added:
                self.events.emit(events.ENTRIES_ADDED, list(applied.added))
            if applied.missing:
                self.events.emit(events.ENTRIES_MISSING, list(applied.missing))
            self._status(report.summary())
            self._queue.request_processing()
            return report
        finally:
            self.events.emit(events.SCANNING, False)
            self._scan_lock.release()

    def start_background_scan(
        self,
        cancel_event: threading.Event | None = None,
        *,
        enrich: bool = True,
    ) -> Future[ScanReport | None]:
        """Run :meth:`run_scan` on a background thread.

        Returns:
            Future: Resolves to the scan report, or raises the scan's ``ScanError``.
        """
        future: Future[ScanReport | None] = Future()

        def _target() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.run_scan(cancel_event, enrich=enrich))
            except Exception as exc:
                future.set_exception(exc)

        threading.Thread(target=_target, name="reelshelf-scan", daemon=True).start()
        return future

    # ------------------------------------------------------------------ #
    # Enrichment                                                         #
    # ------------------------------------------------------------------ #

    def enqueue(self, path: str) -> bool:
        """Queue ``path`` for enrichment and make sure a worker is draining."""
        added = self._queue.enqueue(path)
        self._queue.request_processing()
        return added

    def wait_for_enrichment(self, timeout: float | None = None) -> bool:
        """Block until the enrichment worker is idle."""
        return self._queue.wait_idle(timeout)

    def enrich_now(self, path: str) -> VideoEntry | None:
        """Enrich one entry on the calling thread, bypassing the queue.

        Returns:
            VideoEntry | None: The updated entry, or ``None`` when nothing changed.
        """
        self._queue.remove(path)
        return self._enrich(path)

    def _process_path(self, path: str) -> None:
        self._enrich(path)

    def _enrich(self, path: str, cancel_event: threading.Event | None = None) -> VideoEntry | None:
        entry = self.find(path)
        if entry is None:
            LOGGER.debug("Skipping enrichment for %s; entry no longer exists.", path)
            return None

        display_name = posixpath.basename(entry.path)
        self._status(f"Fetching metadata for {display_name}...")
        query = entry.meta.title.strip() or file_stem(entry.path)
        updated = self._metadata.enrich(entry, query, cancel_event)
        if updated is None:
            self._status(f"No metadata found for {display_name}.")
            return None

        if not self._dispatcher.invoke(self._commit, updated):
            return None
        self._status(f"Metadata updated for {display_name}.")
        return updated

    # ------------------------------------------------------------------ #
    # Manual edits                                                       #
    # ------------------------------------------------------------------ #

    def apply_metadata_edit(self, path: str, edit: MetadataEdit) -> VideoEntry:
        """Replace an entry's metadata with user-supplied values.

        Raises:
            KeyError: If no entry exists for ``path``.
            ValueError: If the thumbnail file is not a readable image.
            OSError: If the thumbnail file cannot be read.
        """
        entry = self.find(path)
        if entry is None:
            raise KeyError(path)

        thumbnail: str | None = None
        if edit.reset_thumbnail:
            thumbnail = self._placeholder
        elif edit.thumbnail_file is not None:
            data = Path(edit.thumbnail_file).expanduser().read_bytes()
            info = inspect_image(data)
            thumbnail = self._thumbnails.save(data, info.extension, self._thumbnail_key(entry))

        updated = entry.model_copy(update={"meta": edit.apply(entry.meta, thumbnail)})
        if not self._dispatcher.invoke(self._commit, updated):
            raise KeyError(path)
        self._status(f"Metadata saved for {updated.meta.title}.")
        return updated

    # ------------------------------------------------------------------ #
    # Automation session                                                 #
    # ------------------------------------------------------------------ #

    def start_crawler(self) -> StartResult:
        """Start the automation browser and publish the resulting status."""
        result = self._session.start()
        self._status(result.message)
        return result

    def stop_crawler(self) -> None:
        self._session.stop()
        self._session.wait_stopped(self._config.crawler.start_timeout_seconds)

    def fetch_missing_with_crawler(self, cancel_event: threading.Event | None = None) -> CrawlReport:
        """Fill in entries that lack metadata using the automation browser.

        Returns:
            CrawlReport: Counts for the run; empty when the crawler is not
            running or another fetch is active.
        """
        report = CrawlReport()
        if not self._session.is_running:
            self._status("Crawler is not running. Start the crawler to fetch metadata.")
            return report
        if not self._crawl_lock.acquire(blocking=False):
            self._status("Metadata fetch already in progress.")
            return report

        try:
            missing = self.missing_metadata()
            report.total = len(missing)
            if not missing:
                self._status("No videos require crawler metadata.")
                return report

            self.events.emit(events.FETCHING_METADATA, True)
            self._status(f"Crawler metadata fetch starting for {report.total} videos.")
            for index, entry in enumerate(missing, start=1):
                if cancel_event is not None and cancel_event.is_set():
                    LOGGER.info("[Crawler] Metadata fetch cancelled.")
                    break
                if not self._session.is_running:
                    LOGGER.info("[Crawler] Session ended; stopping metadata fetch.")
                    break
                outcome = self._crawl_one(entry, index, report.total, cancel_event)
                if outcome is True:
                    report.updated += 1
                elif outcome is None:
                    report.skipped += 1
                else:
                    report.failed += 1
            return report
        finally:
            self.events.emit(events.FETCHING_METADATA, False)
            self._status(self.summary())
            LOGGER.info("[Crawler] Metadata fetch completed.")
            self._crawl_lock.release()

    def _crawl_one(
        self,
        entry: VideoEntry,
        index: int,
        total: int,
        cancel_event: threading.Event | None,
    ) -> bool | None:
        prefix = f"[{index}/{total}]"
        current = self.find(entry.path)
        if current is None:
            LOGGER.info("[Crawler] Skipping %s; no library entry found.", entry.path)
            return None

        query = self._crawler_query(current)
        display_name = current.meta.title or posixpath.basename(current.path)
        if not query:
            LOGGER.info("[Crawler] Skipping %s; unable to build crawler query.", current.path)
            self._status(f"{prefix} Skipped {display_name}: query unavailable.")
            return None

        self._status(f"{prefix} Fetching metadata for {display_name}...")
        url = self._config.crawler.search_url_template.format(query=quote(query, safe=""))
        if not self._session.navigate(url):
            self._status(f"{prefix} Crawler navigation failed for {display_name}.")
            return False

        metadata = self._session.get_metadata(cancel_event)
        if metadata is None:
            LOGGER.info("[Crawler] No metadata returned for %s.", display_name)
            self._status(f"{prefix} No crawler metadata for {display_name}.")
            return False

        thumbnail_url = self._session.get_thumbnail_url()
        updated = self._apply_crawler_metadata(current, metadata, thumbnail_url, query)
        if updated is None:
            self._status(f"{prefix} No new metadata for {display_name}.")
            return None

        if not self._dispatcher.invoke(self._commit, updated):
            return None
        self._status(f"{prefix} Metadata updated for {display_name}.")
        return True

    def _apply_crawler_metadata(
        self,
        entry: VideoEntry,
        metadata: CrawlerMetadata,
        thumbnail_url: str | None,
        cache_key: str,
    ) -> VideoEntry | None:
        changes: dict[str, object] = {}
        if metadata.release_date is not None:
            changes["release_date"] = metadata.release_date
        if metadata.tags:
            changes["tags"] = list(metadata.tags)
        if metadata.actors:
            changes["actors"] = list(metadata.actors)
        if metadata.description.strip():
            changes["description"] = metadata.description.strip()
        if thumbnail_url:
            stored = self._download_thumbnail(thumbnail_url, cache_key)
            if stored:
                changes["thumbnail"] = stored

        if not changes:
            return None
        return entry.model_copy(update={"meta": entry.meta.model_copy(update=changes)})

    def _download_thumbnail(self, url: str, cache_key: str) -> str | None:
        try:
            response = self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPError:
            LOGGER.exception("[Crawler] Failed to download thumbnail from %s.", url)
            return None

        data = response.content
        if not data:
            return None
        extension = posixpath.splitext(urlparse(url).path)[1] or guess_extension(data, ".jpg")
        return self._thumbnails.save(data, extension, cache_key)

    def _crawler_query(self, entry: VideoEntry) -> str:
        return normalize_code(entry.meta.title) or normalize_code(file_stem(entry.path))

    def _thumbnail_key(self, entry: VideoEntry) -> str:
        return self._crawler_query(entry) or file_stem(entry.path) or "thumb"

    # ------------------------------------------------------------------ #
    # Owner-thread operations                                            #
    # ------------------------------------------------------------------ #

    def _load(self) -> CatalogData:
        self._catalog = self._store.load()
        self._missing_keys = set()
        return self._catalog.model_copy(deep=True)

    def _apply_scan(self, diff: CatalogDiff, scanned_at: datetime) -> AppliedDiff:
        candidate = self._catalog.model_copy(deep=True)
        applied = apply_diff(
            candidate,
            diff,
            retain_missing=self._store.policy == "debug",
            placeholder=self._placeholder,
            scanned_at=scanned_at,
        )
        self._store.save(candidate)
        self._catalog = candidate
        self._missing_keys = {library_key(entry.path) for entry in applied.missing}
        return applied

    def _commit(self, entry: VideoEntry) -> bool:
        if not self._catalog.replace(entry):
            LOGGER.info("Entry %s disappeared before it could be updated.", entry.path)
            return False
        self._store.save(self._catalog)
        self.events.emit(events.ENTRY_UPDATED, entry)
        return True

    # ------------------------------------------------------------------ #
    # Notifications                                                      #
    # ------------------------------------------------------------------ #

    def _status(self, message: str) -> None:
        self.events.emit(events.STATUS, message)

    def _on_fetching(self, busy: bool) -> None:
        self.events.emit(events.FETCHING_METADATA, busy)
        if not busy:
            self._status(self.summary())

    def _on_session_state(self, state: SessionState) -> None:
        self.events.emit(events.CRAWLER_RUNNING, state is not SessionState.STOPPED)

    def _on_session_ended(self) -> None:
        self.events.emit(events.SESSION_ENDED)
        self._status(self.summary())

    def close(self) -> None:
        """Stop the session, wait briefly for enrichment, and release resources."""
        if self._session.state is not SessionState.STOPPED:
            self.stop_crawler()
        self._queue.wait_idle(5.0)
        self._dispatcher.close()
        if self._owns_client:
            self._http.close()


__all__ = ["AVAILABLE", "CrawlReport", "LibraryController", "MISSING", "ScanReport"]
