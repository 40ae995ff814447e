"""Configuration models describing Reelshelf settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReelshelfBaseModel(BaseModel):
    """Shared configuration for Reelshelf settings models."""

    model_config = ConfigDict(extra="forbid")


class LibrarySettings(ReelshelfBaseModel):
    """Catalog location and persistence policy.

    Attributes:
        base_directory: Directory that relative library paths resolve against.
            Defaults to the current working directory when unset.
        catalog_file: Catalog JSON file, relative to the base directory.
        policy: ``release`` drops entries for vanished files after a scan;
            ``debug`` keeps them and seeds sample entries into new catalogs.
        prune_missing_on_load: Whether loading also drops entries whose file is
            gone (only honored under the ``release`` policy).
        default_root: Root of the target folder created for new catalogs.
        default_include: Include patterns of the default target folder.
    """

    base_directory: Optional[str] = None
    catalog_file: str = "videos.json"
    policy: Literal["release", "debug"] = "release"
    prune_missing_on_load: bool = False
    default_root: str = "./Videos"
    default_include: List[str] = Field(
        default_factory=lambda: ["*.mp4", "*.mkv", "*.avi", "*.wmv"]
    )


class MetadataSettings(ReelshelfBaseModel):
    """Web metadata source options.

    Attributes:
        sources: Ordered names of the metadata sources to consult.
        request_timeout_seconds: Timeout applied to every HTTP request.
        user_agent: User-Agent header sent by sources and downloads.
        thumbnail_dirname: Directory under the base directory for cached covers.
        placeholder_thumbnail: Library path of the "no image" placeholder.
    """

    sources: List[str] = Field(default_factory=lambda: ["nanojav"])
    request_timeout_seconds: float = 20.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )
    thumbnail_dirname: str = "cache"
    placeholder_thumbnail: str = "./resources/noimage.jpg"


class TranslationSettings(ReelshelfBaseModel):
    """Description translation options.

    Attributes:
        enabled: Whether descriptions are translated at all.
        api_key: DeepL authentication key.
        endpoint: DeepL REST endpoint.
        source_language: Optional source language code.
        target_language: Target language code; translation is skipped when unset.
    """

    enabled: bool = False
    api_key: Optional[str] = None
    endpoint: str = "https://api-free.deepl.com/v2/translate"
    source_language: Optional[str] = None
    target_language: Optional[str] = None


class CrawlerSettings(ReelshelfBaseModel):
    """Automation browser options.

    Attributes:
        seed_url: Page opened when a session starts.
        search_url_template: Search page pattern; ``{query}`` is substituted.
        headless: Whether to launch the browser without a window.
        page_load_timeout_seconds: Navigation timeout.
        poll_interval_seconds: Delay between window liveness checks.
        start_timeout_seconds: Maximum wait for the browser to come up.
    """

    seed_url: str = "https://example.com/"
    search_url_template: str = "https://www.141jav.com/search/{query}"
    headless: bool = False
    page_load_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 1.0
    start_timeout_seconds: float = 60.0


class WatchSettings(ReelshelfBaseModel):
    """Filesystem watch behavior.

    Attributes:
        debounce_seconds: Quiet period after the last event before rescanning.
        max_batch_interval_seconds: Upper bound on how long events may keep
            postponing a rescan; ``0`` disables the bound.
        error_backoff_seconds: Initial delay after a failed rescan.
        max_error_backoff_seconds: Ceiling for the exponential backoff.
    """

    debounce_seconds: float = 2.0
    max_batch_interval_seconds: float = 30.0
    error_backoff_seconds: float = 1.0
    max_error_backoff_seconds: float = 60.0


class LoggingSettings(ReelshelfBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file_enabled: Whether to also write rotating log files.
        directory: Log directory, relative to the base directory.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file_enabled: bool = False
    directory: str = "log"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(ReelshelfBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class ReelshelfConfig(ReelshelfBaseModel):
    """Top-level configuration struct for Reelshelf."""

    library: LibrarySettings = Field(default_factory=LibrarySettings)
    metadata: MetadataSettings = Field(default_factory=MetadataSettings)
    translation: TranslationSettings = Field(default_factory=TranslationSettings)
    crawler: CrawlerSettings = Field(default_factory=CrawlerSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "ReelshelfBaseModel",
    "LibrarySettings",
    "MetadataSettings",
    "TranslationSettings",
    "CrawlerSettings",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "ReelshelfConfig",
]
