"""Web metadata sources consulted by the provider chain."""

from __future__ import annotations

import logging
import posixpath
import threading
from typing import Callable, Protocol
from urllib.parse import quote, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag

from reelshelf.config import MetadataSettings
from reelshelf.errors import OperationCancelled
from reelshelf.library.models import VideoMeta

from .models import FetchResult
from .parsing import collapse_whitespace, distinct, node_text, parse_release_date

LOGGER = logging.getLogger(__name__)


class MetadataSource(Protocol):
    """Capability contract shared by every metadata source."""

    name: str

    def can_handle(self, query: str) -> bool: ...

    def fetch(
        self, query: str, cancel_event: threading.Event | None = None
    ) -> FetchResult | None: ...


def _has_class(node: Tag, name: str) -> bool:
    return name in (node.get("class") or [])


class NanoJavSource:
    """Search nanojav.com and parse the first result card."""

    name = "NanoJav"
    base_url = "https://www.nanojav.com/"

    def __init__(self, client: httpx.Client) -> None:
        """Initialize the source.

        Args:
            client: HTTP client carrying the user agent and timeout.
        """
        self._client = client

    def can_handle(self, query: str) -> bool:
        return bool(query and query.strip())

    def search_url(self, query: str) -> str:
        """Return the search page URL for ``query``."""
        return urljoin(self.base_url, f"jav/search/?q={quote(query.strip(), safe='')}")

    def fetch(self, query: str, cancel_event: threading.Event | None = None) -> FetchResult | None:
        """Fetch and parse metadata for ``query``.

        Args:
            query: Normalized product code.
            cancel_event: Optional cancellation event checked between requests.

        Returns:
            FetchResult | None: Parsed result, or ``None`` when the search failed
            or found nothing.

        Raises:
            OperationCancelled: If ``cancel_event`` is set.
            httpx.HTTPError: If the search request itself cannot be completed.
        """
        if not self.can_handle(query):
            return None

        url = self.search_url(query)
        LOGGER.info("[%s] Requesting %s", self.name, url)
        _raise_if_cancelled(cancel_event)
        response = self._client.get(url)
        if not response.is_success:
            LOGGER.error("[%s] Request failed with status %d", self.name, response.status_code)
            return None

        parsed = self.parse(response.text, query)
        if parsed is None:
            LOGGER.info("[%s] No search results for %r.", self.name, query)
            return None

        meta, image_url = parsed
        thumbnail: bytes | None = None
        extension: str | None = None
        if image_url:
            _raise_if_cancelled(cancel_event)
            absolute = urljoin(url, image_url)
            try:
                download = self._client.get(absolute)
                download.raise_for_status()
                thumbnail = download.content or None
                extension = posixpath.splitext(urlparse(absolute).path)[1] or None
            except httpx.HTTPError:
                LOGGER.exception("[%s] Failed to download thumbnail from %s", self.name, absolute)

        return FetchResult(meta=meta, thumbnail_bytes=thumbnail, thumbnail_extension=extension)

    @staticmethod
    def parse(html: str, query: str) -> tuple[VideoMeta, str | None] | None:
        """Parse a search results page.

        Returns:
            tuple[VideoMeta, str | None] | None: Metadata and the cover URL, or
            ``None`` when the page has no result card.
        """
        soup = BeautifulSoup(html, "html.parser")
        card = soup.find(lambda node: node.name == "div" and _has_class(node, "mb-5"))
        if not isinstance(card, Tag):
            return None

        title = node_text(card.select_one("div.card-content h3.title a")) or query.strip()

        cover = card.find("img", class_="cover")
        image_url = cover.get("src") if isinstance(cover, Tag) else None

        actor_blocks = soup.find_all(
            lambda node: node.name == "div" and node.get("class") == ["mb-2", "buttons", "are-small"]
        )
        actors = [node_text(link) for block in actor_blocks for link in block.find_all("a")]
        tags = [node_text(link) for link in card.select("div.card-content div.tags a")]

        release_date = None
        for paragraph in card.select("div.card-content p.subtitle"):
            label = paragraph.find(
                lambda node: node.name == "span"
                and _has_class(node, "has-text-info")
                and "release date" in node.get_text().lower()
            )
            if label is None:
                continue
            raw = node_text(paragraph)
            label_text = node_text(label)
            if label_text and raw.lower().startswith(label_text.lower()):
                raw = raw[len(label_text) :]
            release_date = parse_release_date(raw.strip().lstrip(":"))
            if release_date is not None:
                break

        meta = VideoMeta(
            title=collapse_whitespace(title),
            release_date=release_date,
            actors=distinct(actors),
            tags=[tag for tag in tags if tag],
        )
        return meta, image_url if isinstance(image_url, str) and image_url.strip() else None


def _raise_if_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled("Metadata fetch cancelled.")


SourceFactory = Callable[[httpx.Client], MetadataSource]

SOURCE_FACTORIES: dict[str, SourceFactory] = {
    "nanojav": NanoJavSource,
}


def build_http_client(settings: MetadataSettings) -> httpx.Client:
    """Return the HTTP client shared by sources and thumbnail downloads."""
    return httpx.Client(
        headers={"User-Agent": settings.user_agent},
        timeout=settings.request_timeout_seconds,
        follow_redirects=True,
    )


def build_sources(settings: MetadataSettings, client: httpx.Client) -> list[MetadataSource]:
    """Instantiate the configured sources in order, skipping unknown names."""
    sources: list[MetadataSource] = []
    for name in settings.sources:
        factory = SOURCE_FACTORIES.get(name.strip().lower())
        if factory is None:
            LOGGER.warning("Unknown metadata source %r; skipping.", name)
            continue
        sources.append(factory(client))
    return sources


__all__ = [
    "MetadataSource",
    "NanoJavSource",
    "SOURCE_FACTORIES",
    "build_http_client",
    "build_sources",
]
