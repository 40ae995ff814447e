"""Versioned JSON persistence for the video catalog."""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Literal, Sequence

from pydantic import ValidationError

from reelshelf.paths import PathContext, normalize_library_path

from .errors import CatalogError
from .models import CURRENT_VERSION, CatalogData, TargetFolder, VideoEntry, VideoMeta

LOGGER = logging.getLogger(__name__)

DEFAULT_CATALOG_FILENAME = "videos.json"
DEFAULT_TARGET_ROOT = "./Videos"
DEFAULT_INCLUDE_PATTERNS = ("*.mp4", "*.mkv", "*.avi", "*.wmv")
SEED_THUMBNAIL = "./resources/noimage.jpg"

_SEED_VIDEOS: tuple[tuple[str, str, date, tuple[str, ...]], ...] = (
    ("forest-gump", "Forest Gump", date(1994, 7, 6), ("Tom Hanks",)),
    ("devil-wears-prada", "The Devil Wears Prada", date(2006, 6, 30), ("Meryl Streep",)),
    ("inception", "Inception", date(2010, 7, 16), ("Leonardo DiCaprio", "Tom Hardy")),
    ("black-widow", "Black Widow", date(2021, 7, 9), ("Scarlett Johansson", "Florence Pugh")),
    ("fight-club", "Fight Club", date(1999, 10, 15), ("Brad Pitt", "Edward Norton")),
)

Policy = Literal["release", "debug"]


class CatalogStore:
    """Load, repair, and save the catalog document.

    Loading never fails for the caller: a missing, unreadable, or corrupt
    file is replaced with a freshly persisted default catalog.
    """

    def __init__(
        self,
        context: PathContext,
        *,
        catalog_file: str | Path = DEFAULT_CATALOG_FILENAME,
        policy: Policy = "release",
        prune_missing_on_load: bool = False,
        default_root: str = DEFAULT_TARGET_ROOT,
        default_include: Sequence[str] = DEFAULT_INCLUDE_PATTERNS,
    ) -> None:
        """Initialize the store.

        Args:
            context: Path context used to resolve library paths.
            catalog_file: Catalog location, relative to the base directory
                unless absolute.
            policy: Persistence policy (``release`` or ``debug``).
            prune_missing_on_load: Drop entries for missing files while loading.
                Only honored under the ``release`` policy.
            default_root: Root of the fallback target folder.
            default_include: Include patterns of the fallback target folder.
        """
        self._context = context
        path = Path(catalog_file).expanduser()
        self._path = path if path.is_absolute() else context.base_directory / path
        self._policy: Policy = policy
        self._prune_on_load = prune_missing_on_load and policy == "release"
        self._default_root = normalize_library_path(default_root) or DEFAULT_TARGET_ROOT
        self._default_include = list(default_include)

    @property
    def path(self) -> Path:
        """Return the catalog file location."""
        return self._path

    @property
    def policy(self) -> Policy:
        """Return the persistence policy."""
        return self._policy

    def default_target(self) -> TargetFolder:
        """Return a fresh copy of the fallback target folder."""
        return TargetFolder(root=self._default_root, include_patterns=list(self._default_include))

    def load(self) -> CatalogData:
        """Load and normalize the catalog, creating or resetting it when needed.

        Returns:
            CatalogData: Normalized catalog.
        """
        if not self._path.exists():
            LOGGER.info("Catalog file not found; creating a new catalog at %s.", self._path)
            return self._reset()

        LOGGER.info("Loading catalog from %s.", self._path)
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            LOGGER.exception("Failed to load catalog; resetting to defaults.")
            return self._reset()

        if not isinstance(raw, dict):
            LOGGER.error("Catalog document is not an object; resetting to defaults.")
            return self._reset()

        return self.normalize(self._parse(raw))

    def save(self, catalog: CatalogData) -> None:
        """Write the catalog as indented JSON, stamping the current version.

        Raises:
            CatalogError: If the file cannot be written.
        """
        catalog.version = CURRENT_VERSION
        LOGGER.info("Saving catalog to %s (videos: %d).", self._path, len(catalog.videos))
        text = json.dumps(catalog.to_document(), indent=2, ensure_ascii=False)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(text + "\n", encoding="utf-8")
        except OSError as exc:
            raise CatalogError(f"Unable to write catalog to {self._path}: {exc}") from exc

    def normalize(self, catalog: CatalogData) -> CatalogData:
        """Repair a parsed catalog in place and return it."""
        if catalog.version <= 0:
            catalog.version = CURRENT_VERSION

        targets = [normalize_target(target) for target in catalog.targets]
        catalog.targets = targets or [self.default_target()]

        videos = [normalize_entry(entry) for entry in catalog.videos]
        if self._prune_on_load:
            kept = [entry for entry in videos if self.exists(entry.path)]
            removed = len(videos) - len(kept)
            if removed:
                LOGGER.info("Removed %d entries referencing missing files.", removed)
            videos = kept
        catalog.videos = videos

        LOGGER.info(
            "Catalog normalization complete. Targets: %d, Videos: %d.",
            len(catalog.targets),
            len(catalog.videos),
        )
        return catalog

    def exists(self, library_path: str) -> bool:
        """Return whether the file behind ``library_path`` is present on disk."""
        resolved = self._context.resolve(library_path)
        return resolved is not None and resolved.is_file()

    def create_default(self) -> CatalogData:
        """Build the default catalog, with sample entries under ``debug``."""
        catalog = CatalogData(version=CURRENT_VERSION, targets=[self.default_target()])
        if self._policy == "debug":
            LOGGER.info("Creating debug sample entries.")
            catalog.videos.extend(_seed_entries(self._default_root))
        return catalog

    # Internal helpers -------------------------------------------------

    def _reset(self) -> CatalogData:
        LOGGER.info("Resetting catalog to default state.")
        catalog = self.normalize(self.create_default())
        self.save(catalog)
        return catalog

    def _parse(self, raw: dict[str, Any]) -> CatalogData:
        version = raw.get("Version")
        catalog = CatalogData(version=version if isinstance(version, int) else 0)
        catalog.targets = list(_validate_each(TargetFolder, raw.get("Targets"), "target"))
        catalog.videos = [
            entry
            for entry in _validate_each(VideoEntry, raw.get("Videos"), "video")
            if entry.path.strip()
        ]
        return catalog


def normalize_target(target: TargetFolder) -> TargetFolder:
    """Return ``target`` with its root normalized and pattern lists cleaned."""
    return target.model_copy(
        update={
            "root": normalize_library_path(target.root) or "./",
            "include_patterns": [p.strip() for p in target.include_patterns if p.strip()],
            "exclude_patterns": [p.strip() for p in target.exclude_patterns if p.strip()],
        }
    )


def normalize_meta(meta: VideoMeta) -> VideoMeta:
    """Trim text fields, drop blank list items, and default the title."""
    title = meta.title.strip() or "Untitled"
    actors: list[str] = []
    seen: set[str] = set()
    for name in meta.actors:
        cleaned = name.strip()
        if cleaned and cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            actors.append(cleaned)
    tags = [tag.strip() for tag in meta.tags if tag.strip()]
    thumbnail = normalize_library_path(meta.thumbnail) if meta.thumbnail.strip() else ""
    return meta.model_copy(
        update={
            "title": title,
            "actors": actors,
            "tags": tags,
            "thumbnail": thumbnail,
            "description": meta.description.strip(),
        }
    )


def normalize_entry(entry: VideoEntry) -> VideoEntry:
    """Return ``entry`` with a normalized path, metadata, size, and timestamps."""
    created = entry.created_utc or entry.last_modified_utc
    return entry.model_copy(
        update={
            "path": normalize_library_path(entry.path),
            "meta": normalize_meta(entry.meta),
            "size_bytes": max(0, entry.size_bytes),
            "created_utc": created,
        }
    )


def _validate_each(model: type, items: object, label: str) -> Iterable[Any]:
    if not isinstance(items, list):
        return
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            LOGGER.warning("Dropping %s #%d: expected an object.", label, index)
            continue
        try:
            yield model.model_validate(item)
        except ValidationError as exc:
            LOGGER.warning("Dropping incomplete %s #%d: %s", label, index, exc.errors()[0]["msg"])


def _seed_entries(root: str) -> list[VideoEntry]:
    return [
        VideoEntry(
            path=f"{root.rstrip('/')}/{slug}.mp4",
            meta=VideoMeta(
                title=title,
                release_date=released,
                actors=list(actors),
                thumbnail=SEED_THUMBNAIL,
            ),
        )
        for slug, title, released, actors in _SEED_VIDEOS
    ]


__all__ = [
    "CatalogStore",
    "DEFAULT_CATALOG_FILENAME",
    "DEFAULT_INCLUDE_PATTERNS",
    "DEFAULT_TARGET_ROOT",
    "normalize_entry",
    "normalize_meta",
    "normalize_target",
]
