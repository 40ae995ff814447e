"""Catalog models and persistence."""

from .edits import MetadataEdit, split_list
from .errors import CatalogError
from .models import CURRENT_VERSION, CatalogData, TargetFolder, VideoEntry, VideoMeta
from .store import CatalogStore, normalize_entry, normalize_meta

__all__ = [
    "CURRENT_VERSION",
    "CatalogData",
    "CatalogError",
    "CatalogStore",
    "MetadataEdit",
    "TargetFolder",
    "VideoEntry",
    "VideoMeta",
    "normalize_entry",
    "normalize_meta",
    "split_list",
]
