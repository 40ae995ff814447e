"""Text helpers shared by HTML metadata parsers."""

from __future__ import annotations

import re
from datetime import date, datetime

from bs4 import Tag

_WHITESPACE = re.compile(r"\s+")
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b. %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%m/%d/%Y",
)


def collapse_whitespace(value: str | None) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def node_text(node: Tag | None) -> str:
    """Return the whitespace-collapsed text of ``node``."""
    if node is None:
        return ""
    return collapse_whitespace(node.get_text(" "))


def parse_release_date(value: str | None) -> date | None:
    """Parse the date formats commonly printed on listing pages."""
    text = collapse_whitespace(value)
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def distinct(values: list[str]) -> list[str]:
    """Drop blanks and case-insensitive duplicates while keeping order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        cleaned = collapse_whitespace(value)
        if cleaned and cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            result.append(cleaned)
    return result


__all__ = ["collapse_whitespace", "distinct", "node_text", "parse_release_date"]
