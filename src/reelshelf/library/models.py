"""Catalog data models persisted to the library JSON file."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal

CURRENT_VERSION = 1


class CatalogModel(BaseModel):
    """Shared configuration for catalog models.

    Field names are snake_case in Python and PascalCase on disk.
    """

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, extra="ignore")

    def to_document(self) -> dict:
        """Return the JSON-ready mapping written to disk."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TargetFolder(CatalogModel):
    """Watched folder with its filename filters.

    Attributes:
        root: Declared root as a library path.
        include_patterns: Filename globs to include; empty means everything.
        exclude_patterns: Filename globs that override includes.
        last_scan_utc: Completion time of the last successful scan.
    """

    root: str = "./"
    include_patterns: List[str] = Field(default_factory=list)
    exclude_patterns: List[str] = Field(default_factory=list)
    last_scan_utc: Optional[datetime] = None

    @field_validator("include_patterns", "exclude_patterns", mode="before")
    @classmethod
    def _null_patterns(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("last_scan_utc")
    @classmethod
    def _scan_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class VideoMeta(CatalogModel):
    """Descriptive metadata for a catalog entry."""

    title: str = "Untitled"
    release_date: Optional[date] = Field(default=None, alias="Date")
    actors: List[str] = Field(default_factory=list)
    thumbnail: str = ""
    tags: List[str] = Field(default_factory=list)
    description: str = ""

    @field_validator("actors", "tags", mode="before")
    @classmethod
    def _null_lists(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str)]
        return value

    @field_validator("title", "thumbnail", "description", mode="before")
    @classmethod
    def _null_text(cls, value: object) -> object:
        return "" if value is None else value


class VideoEntry(CatalogModel):
    """A file known to the catalog, keyed by its library path."""

    path: str
    meta: VideoMeta
    size_bytes: int = 0
    last_modified_utc: Optional[datetime] = None
    created_utc: Optional[datetime] = None

    @field_validator("last_modified_utc", "created_utc")
    @classmethod
    def _stamp_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class CatalogData(CatalogModel):
    """The whole persisted catalog."""

    version: int = CURRENT_VERSION
    targets: List[TargetFolder] = Field(default_factory=list)
    videos: List[VideoEntry] = Field(default_factory=list)

    def find(self, key: str) -> VideoEntry | None:
        """Return the entry whose case-folded path equals ``key``."""
        for entry in self.videos:
            if entry.path.casefold() == key:
                return entry
        return None

    def replace(self, entry: VideoEntry) -> bool:
        """Swap in ``entry`` for the stored entry with the same path.

        Returns:
            bool: ``False`` when no entry with that path exists.
        """
        key = entry.path.casefold()
        for index, existing in enumerate(self.videos):
            if existing.path.casefold() == key:
                self.videos[index] = entry
                return True
        return False


__all__ = [
    "CURRENT_VERSION",
    "CatalogData",
    "CatalogModel",
    "TargetFolder",
    "VideoEntry",
    "VideoMeta",
]
