"""Interactive browser automation used as a manual metadata source."""

from .driver import BrowserDriver, DriverFactory, PlaywrightDriver, playwright_factory
from .parser import CrawlerMetadata, parse_metadata, parse_thumbnail_url
from .session import AutomationSessionManager, SessionState, StartResult

__all__ = [
    "AutomationSessionManager",
    "BrowserDriver",
    "CrawlerMetadata",
    "DriverFactory",
    "PlaywrightDriver",
    "SessionState",
    "StartResult",
    "parse_metadata",
    "parse_thumbnail_url",
    "playwright_factory",
]
