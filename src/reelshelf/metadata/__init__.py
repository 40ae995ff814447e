"""Metadata sources, provider chain, thumbnail storage, and translation."""

from .images import ImageInfo, guess_extension, inspect_image
from .models import FetchResult
from .service import MetadataService, merge_meta
from .sources import MetadataSource, NanoJavSource, build_http_client, build_sources
from .thumbnails import ThumbnailCache
from .translation import DeepLTranslator, NullTranslator, TextTranslator, build_translator

__all__ = [
    "DeepLTranslator",
    "FetchResult",
    "ImageInfo",
    "MetadataService",
    "MetadataSource",
    "NanoJavSource",
    "NullTranslator",
    "TextTranslator",
    "ThumbnailCache",
    "build_http_client",
    "build_sources",
    "build_translator",
    "guess_extension",
    "inspect_image",
    "merge_meta",
]
