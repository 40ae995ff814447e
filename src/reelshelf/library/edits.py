"""Manual metadata edits."""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import VideoMeta

_LIST_SEPARATORS = re.compile(r"[\r\n,;]+")


def split_list(source: Union[str, List[str], None]) -> list[str]:
    """Split comma/semicolon/newline separated text into distinct trimmed items."""
    if source is None:
        return []
    raw = source if isinstance(source, list) else _LIST_SEPARATORS.split(source)
    seen: set[str] = set()
    items: list[str] = []
    for token in raw:
        for piece in _LIST_SEPARATORS.split(token):
            cleaned = piece.strip()
            if cleaned and cleaned.casefold() not in seen:
                seen.add(cleaned.casefold())
                items.append(cleaned)
    return items


class MetadataEdit(BaseModel):
    """User-supplied replacement metadata for one entry.

    Attributes:
        title: New title; required after trimming.
        release_date: New release date, or ``None`` to clear it.
        actors: Actor names as a list or separated text.
        tags: Tags as a list or separated text.
        description: New description.
        thumbnail_file: Local image to import as the new thumbnail.
        reset_thumbnail: Replace the thumbnail with the placeholder.
    """

    model_config = ConfigDict(extra="forbid")

    title: str
    release_date: Optional[date] = None
    actors: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    description: str = ""
    thumbnail_file: Optional[Path] = None
    reset_thumbnail: bool = False

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Title is required.")
        return cleaned

    @field_validator("actors", "tags", mode="before")
    @classmethod
    def _split(cls, value: object) -> object:
        if value is None or isinstance(value, (str, list)):
            return split_list(value)  # type: ignore[arg-type]
        return value

    def apply(self, meta: VideoMeta, thumbnail: str | None = None) -> VideoMeta:
        """Return ``meta`` with every edited field replaced."""
        return VideoMeta(
            title=self.title,
            release_date=self.release_date,
            actors=list(self.actors),
            tags=list(self.tags),
            description=self.description.strip(),
            thumbnail=meta.thumbnail if thumbnail is None else thumbnail,
        )


__all__ = ["MetadataEdit", "split_list"]
