"""Ordered metadata provider chain."""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from reelshelf.errors import OperationCancelled
from reelshelf.library.models import VideoEntry, VideoMeta
from reelshelf.paths import normalize_code

from .sources import MetadataSource
from .thumbnails import ThumbnailCache
from .translation import NullTranslator, TextTranslator

LOGGER = logging.getLogger(__name__)


def merge_meta(original: VideoMeta, incoming: VideoMeta) -> VideoMeta:
    """Overlay ``incoming`` on ``original``; empty incoming fields keep the original."""
    return VideoMeta(
        title=incoming.title.strip() or original.title,
        release_date=incoming.release_date or original.release_date,
        actors=list(incoming.actors) if incoming.actors else list(original.actors),
        thumbnail=incoming.thumbnail.strip() or original.thumbnail,
        tags=list(incoming.tags) if incoming.tags else list(original.tags),
        description=incoming.description.strip() or original.description,
    )


class MetadataService:
    """Try each source in order and merge the first successful result."""

    def __init__(
        self,
        sources: Sequence[MetadataSource],
        thumbnail_cache: ThumbnailCache,
        *,
        translator: TextTranslator | None = None,
        source_language: str | None = None,
        target_language: str | None = None,
    ) -> None:
        """Initialize the chain.

        Args:
            sources: Sources in the order they are consulted.
            thumbnail_cache: Storage for downloaded cover bytes.
            translator: Optional description translator.
            source_language: Source language passed to the translator.
            target_language: Target language; translation is skipped when unset.
        """
        self._sources = list(sources)
        self._thumbnails = thumbnail_cache
        self._translator = translator or NullTranslator()
        self._source_language = source_language
        self._target_language = target_language

    @property
    def sources(self) -> list[MetadataSource]:
        """Return the configured sources."""
        return list(self._sources)

    def enrich(
        self,
        entry: VideoEntry,
        query: str,
        cancel_event: threading.Event | None = None,
    ) -> VideoEntry | None:
        """Return ``entry`` with fetched metadata merged in.

        Args:
            entry: Entry to enrich; it is not modified.
            query: Title or filename stem; normalized to a product code first.
            cancel_event: Optional cancellation event.

        Returns:
            VideoEntry | None: Updated copy, or ``None`` when the query is empty
            or no source produced a result.

        Raises:
            TypeError: If ``entry`` is ``None``.
            OperationCancelled: If cancellation is requested.
        """
        if entry is None:
            raise TypeError("entry must not be None")

        normalized = normalize_code(query)
        if not normalized:
            LOGGER.info("Metadata enrichment skipped: query is empty after normalization.")
            return None

        for source in self._sources:
            if cancel_event is not None and cancel_event.is_set():
                LOGGER.info("Metadata enrichment cancelled for %r.", normalized)
                raise OperationCancelled("Metadata enrichment cancelled.")
            if not source.can_handle(normalized):
                continue

            try:
                LOGGER.info("Requesting metadata from %s for %r.", source.name, normalized)
                result = source.fetch(normalized, cancel_event)
                if result is None:
                    continue

                meta = merge_meta(entry.meta, result.meta)
                if result.thumbnail_bytes:
                    stored = self._thumbnails.save(
                        result.thumbnail_bytes, result.thumbnail_extension or ".jpg", normalized
                    )
                    meta = meta.model_copy(update={"thumbnail": stored or meta.thumbnail})
                meta = self._translate_description(meta, cancel_event)
            except OperationCancelled:
                LOGGER.info("Metadata enrichment cancelled for %r.", normalized)
                raise
            except Exception:
                LOGGER.exception("Metadata enrichment failed via %s for %r.", source.name, query)
                continue

            LOGGER.info("Metadata enrichment succeeded via %s for %r.", source.name, normalized)
            return entry.model_copy(update={"meta": meta})

        LOGGER.info("No metadata providers returned results for %r.", normalized)
        return None

    def _translate_description(
        self, meta: VideoMeta, cancel_event: threading.Event | None
    ) -> VideoMeta:
        if not meta.description or not self._translator.enabled or not self._target_language:
            return meta
        translated = self._translator.translate(
            meta.description, self._source_language, self._target_language, cancel_event
        )
        return meta.model_copy(update={"description": translated or meta.description})


__all__ = ["MetadataService", "merge_meta"]
