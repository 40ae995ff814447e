"""Scanning and catalog reconciliation."""

from .diff import CatalogDiffEngine, apply_diff, classify
from .discovery import SnapshotScanner, matches_glob
from .models import AppliedDiff, CatalogDiff, FileSnapshot, UpdatedFile

__all__ = [
    "AppliedDiff",
    "CatalogDiff",
    "CatalogDiffEngine",
    "FileSnapshot",
    "SnapshotScanner",
    "UpdatedFile",
    "apply_diff",
    "classify",
    "matches_glob",
]
