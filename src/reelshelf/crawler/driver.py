"""Browser drivers used by the automation session."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from reelshelf.errors import DriverError

LOGGER = logging.getLogger(__name__)


class BrowserDriver(Protocol):
    """Operations the session manager needs from a controlled browser.

    Every method may raise :class:`DriverError` when the browser process or
    its protocol connection fails. All calls happen on one thread.
    """

    def navigate(self, url: str) -> None: ...

    def page_source(self) -> str: ...

    def window_count(self) -> int: ...

    def close(self) -> None: ...


DriverFactory = Callable[[], BrowserDriver]


class PlaywrightDriver:
    """Chromium controlled through Playwright's synchronous API."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        *,
        page_load_timeout_seconds: float = 30.0,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._timeout_ms = page_load_timeout_seconds * 1000

    @classmethod
    def launch(
        cls,
        *,
        headless: bool = False,
        page_load_timeout_seconds: float = 30.0,
        user_agent: str | None = None,
    ) -> "PlaywrightDriver":
        """Start Playwright, launch Chromium, and open one page.

        Raises:
            DriverError: If the browser cannot be started.
        """
        playwright = sync_playwright().start()
        try:
            browser = playwright.chromium.launch(
                headless=headless,
                args=["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"],
            )
            context = browser.new_context(user_agent=user_agent) if user_agent else browser.new_context()
            page = context.new_page()
        except PlaywrightError as exc:
            playwright.stop()
            raise DriverError(f"Unable to launch browser: {exc}") from exc

        LOGGER.info("Launched Chromium (headless=%s).", headless)
        return cls(
            playwright,
            browser,
            context,
            page,
            page_load_timeout_seconds=page_load_timeout_seconds,
        )

    def _active_page(self) -> Page:
        if not self._page.is_closed():
            return self._page
        for page in reversed(self._context.pages):
            if not page.is_closed():
                self._page = page
                return page
        raise DriverError("No open browser window.")

    def navigate(self, url: str) -> None:
        try:
            self._active_page().goto(url, timeout=self._timeout_ms, wait_until="domcontentloaded")
        except PlaywrightError as exc:
            raise DriverError(f"Navigation to {url} failed: {exc}") from exc

    def page_source(self) -> str:
        try:
            return self._active_page().content()
        except PlaywrightError as exc:
            raise DriverError(f"Unable to read page content: {exc}") from exc

    def window_count(self) -> int:
        try:
            if not self._browser.is_connected():
                return 0
            return sum(1 for page in self._context.pages if not page.is_closed())
        except PlaywrightError as exc:
            raise DriverError(f"Unable to query browser windows: {exc}") from exc

    def close(self) -> None:
        for step in (self._context.close, self._browser.close, self._playwright.stop):
            try:
                step()
            except PlaywrightError as exc:
                # The process is often already gone when the user closed it.
                LOGGER.debug("Ignoring browser shutdown error: %s", exc)


def playwright_factory(
    *,
    headless: bool,
    page_load_timeout_seconds: float,
    user_agent: str | None = None,
) -> DriverFactory:
    """Return a factory launching :class:`PlaywrightDriver` with fixed options."""

    def _factory() -> BrowserDriver:
        return PlaywrightDriver.launch(
            headless=headless,
            page_load_timeout_seconds=page_load_timeout_seconds,
            user_agent=user_agent,
        )

    return _factory


__all__ = ["BrowserDriver", "DriverFactory", "PlaywrightDriver", "playwright_factory"]
