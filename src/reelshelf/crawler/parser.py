"""Extract metadata from search result pages shown in the automation browser."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field, replace
from datetime import date

from bs4 import BeautifulSoup, Tag

from reelshelf.errors import OperationCancelled
from reelshelf.metadata.parsing import distinct, node_text, parse_release_date
from reelshelf.metadata.translation import TextTranslator

LOGGER = logging.getLogger(__name__)

_HREF_DATE = re.compile(r"(\d{4})/(\d{2})/(\d{2})")


@dataclass(frozen=True, slots=True)
class CrawlerMetadata:
    """Metadata read from the current page.

    Attributes:
        release_date: Release date, if the page shows one.
        tags: Genre tags in page order.
        actors: Distinct performer names in page order.
        description: First non-blank description line.
    """

    release_date: date | None = None
    tags: list[str] = field(default_factory=list)
    actors: list[str] = field(default_factory=list)
    description: str = ""


def _first_card(soup: BeautifulSoup) -> Tag | None:
    card = soup.select_one("div.card.mb-3")
    return card if isinstance(card, Tag) else None


def _date_from_href(href: object) -> date | None:
    if not isinstance(href, str):
        return None
    match = _HREF_DATE.search(href)
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_metadata(html: str) -> CrawlerMetadata | None:
    """Parse the first result card of a page.

    Returns:
        CrawlerMetadata | None: ``None`` when the page has no result card.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    card = _first_card(soup)
    if card is None:
        return None
    content = card.select_one("div.card-content")
    if content is None:
        return None

    release_date = None
    container = content.select_one("p.subtitle.is-6")
    if container is not None:
        anchor = container.find("a")
        target = anchor if isinstance(anchor, Tag) else container
        release_date = _date_from_href(target.get("href")) or parse_release_date(node_text(target))

    tags = distinct([node_text(node) for node in content.select("div.tags a.tag")])
    actors = distinct([node_text(node) for node in content.select("div.panel a.panel-block")])
    description = next(
        (text for text in (node_text(node) for node in content.select(".level")) if text), ""
    )
    return CrawlerMetadata(
        release_date=release_date, tags=tags, actors=actors, description=description
    )


def parse_thumbnail_url(html: str) -> str | None:
    """Return the cover image URL of the first result card, if any."""
    soup = BeautifulSoup(html or "", "html.parser")
    card = _first_card(soup)
    if card is None:
        return None
    image = card.select_one("img.image")
    if image is None:
        return None

    for attribute in ("src", "data-src"):
        value = image.get(attribute)
        if isinstance(value, str) and value.strip():
            return value.strip()

    srcset = image.get("srcset")
    if isinstance(srcset, str):
        for token in re.split(r"[\s,]+", srcset):
            if token.lower().startswith("http"):
                return token
    return None


def page_highlight(html: str) -> str:
    """Return the first non-blank ``h1`` text, else the document title."""
    soup = BeautifulSoup(html or "", "html.parser")
    for heading in soup.find_all("h1"):
        text = node_text(heading)
        if text:
            return text
    return node_text(soup.title)


def translate_description(
    metadata: CrawlerMetadata,
    translator: TextTranslator,
    target_language: str | None,
    cancel_event: threading.Event | None = None,
) -> CrawlerMetadata:
    """Translate the description when a translator and target are configured.

    Translation failures keep the original description.

    Raises:
        OperationCancelled: If the translator reports cancellation.
    """
    if not metadata.description or not translator.enabled or not target_language:
        return metadata
    try:
        translated = translator.translate(metadata.description, None, target_language, cancel_event)
    except OperationCancelled:
        raise
    except Exception:
        LOGGER.exception("[Crawler] Failed to translate description.")
        return metadata
    if not translated or translated == metadata.description:
        return metadata
    return replace(metadata, description=translated)


__all__ = [
    "CrawlerMetadata",
    "page_highlight",
    "parse_metadata",
    "parse_thumbnail_url",
    "translate_description",
]
