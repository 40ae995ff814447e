"""Lifecycle management for the interactive automation browser."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from reelshelf.errors import DriverError, SessionError
from reelshelf.metadata.translation import NullTranslator, TextTranslator

from .driver import BrowserDriver, DriverFactory
from .parser import (
    CrawlerMetadata,
    page_highlight,
    parse_metadata,
    parse_thumbnail_url,
    translate_description,
)

LOGGER = logging.getLogger(__name__)

ALREADY_RUNNING_MESSAGE = (
    "Crawler already running. Close the browser window to start a new session."
)


class SessionState(str, Enum):
    """Lifecycle states of the automation session."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


@dataclass(frozen=True, slots=True)
class StartResult:
    """Outcome of a start request.

    Attributes:
        started: Whether a new session is now running.
        message: Status line suitable for display.
    """

    started: bool
    message: str


_Command = tuple[Callable[[BrowserDriver], Any], "Future[Any]", bool]


class AutomationSessionManager:
    """Own a single controlled browser and expose navigate/extract verbs.

    The driver lives on a dedicated session thread. Verbs are queued to that
    thread and awaited; when no command arrives within the poll interval the
    thread checks that the browser still has an open window and tears the
    session down when it does not.
    """

    def __init__(
        self,
        driver_factory: DriverFactory,
        *,
        seed_url: str = "https://example.com/",
        poll_interval_seconds: float = 1.0,
        start_timeout_seconds: float = 60.0,
        translator: TextTranslator | None = None,
        target_language: str | None = None,
        on_state_changed: Optional[Callable[[SessionState], None]] = None,
        on_session_ended: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            driver_factory: Callable launching a browser; invoked on the session thread.
            seed_url: Page opened right after launch.
            poll_interval_seconds: Delay between window liveness checks.
            start_timeout_seconds: Maximum wait for launch plus seed navigation.
            translator: Optional translator applied to extracted descriptions.
            target_language: Target language for description translation.
            on_state_changed: Observer invoked with every state transition.
            on_session_ended: Observer invoked after a running session is torn down.
        """
        self._driver_factory = driver_factory
        self._seed_url = seed_url
        self._poll_interval = max(0.01, poll_interval_seconds)
        self._start_timeout = start_timeout_seconds
        self._translator = translator or NullTranslator()
        self._target_language = target_language
        self._on_state_changed = on_state_changed
        self._on_session_ended = on_session_ended

        self._lock = threading.Lock()
        self._state = SessionState.STOPPED
        self._commands: queue.Queue[_Command | None] | None = None
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()
        self._stopped.set()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> SessionState:
        """Return the current lifecycle state."""
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        """Return whether a session is ready to accept verbs."""
        return self.state is SessionState.RUNNING

    def start(self) -> StartResult:
        """Launch the browser and open the seed page.

        Returns:
            StartResult: ``started`` is false when a session already exists or
            the launch failed; ``message`` explains the outcome.
        """
        with self._lock:
            if self._state is not SessionState.STOPPED:
                LOGGER.info("Start rejected: automation session already active.")
                return StartResult(False, ALREADY_RUNNING_MESSAGE)
            self._state = SessionState.STARTING
            self._stopped.clear()
            commands: queue.Queue[_Command | None] = queue.Queue()
            self._commands = commands
            ready: Future[str] = Future()
            thread = threading.Thread(
                target=self._run_session,
                args=(commands, ready),
                name="reelshelf-automation",
                daemon=True,
            )
            self._thread = thread
        self._notify_state(SessionState.STARTING)

        LOGGER.info("Starting automation session.")
        thread.start()
        try:
            summary = ready.result(timeout=self._start_timeout)
        except FutureTimeout:
            LOGGER.error("Automation session did not start within %.0fs.", self._start_timeout)
            self._detach(commands)
            commands.put(None)
            return StartResult(False, "Crawler failed: browser start timed out.")
        except Exception as exc:
            LOGGER.error("Automation session failed to start: %s", exc)
            self._stopped.wait(self._start_timeout)
            return StartResult(False, f"Crawler failed: {exc}")
        return StartResult(True, summary)

    def navigate(self, url: str) -> bool:
        """Load ``url`` in the browser.

        A driver failure is treated as fatal: the session is torn down.

        Returns:
            bool: ``True`` when navigation completed.
        """
        if not url or not url.strip():
            return False
        try:
            navigated = bool(self._submit(lambda driver: self._navigate(driver, url), fatal=True))
        except SessionError as exc:
            LOGGER.info("Navigation skipped: %s", exc)
            return False
        if not navigated:
            self._stopped.wait(self._start_timeout)
        return navigated

    def get_metadata(self, cancel_event: threading.Event | None = None) -> CrawlerMetadata | None:
        """Parse metadata from the current page; ``None`` when nothing is found."""
        html = self._page_source()
        if html is None:
            return None
        metadata = parse_metadata(html)
        if metadata is None:
            return None
        return translate_description(metadata, self._translator, self._target_language, cancel_event)

    def get_thumbnail_url(self) -> str | None:
        """Return the cover URL shown on the current page, if any."""
        html = self._page_source()
        if html is None:
            return None
        return parse_thumbnail_url(html)

    def stop(self) -> None:
        """Ask the session thread to close the browser."""
        with self._lock:
            commands = self._commands
        if commands is not None:
            commands.put(None)

    def wait_stopped(self, timeout: float | None = None) -> bool:
        """Block until the session is stopped.

        Returns:
            bool: ``False`` if the timeout elapsed first.
        """
        return self._stopped.wait(timeout)

    # ------------------------------------------------------------------ #
    # Session thread                                                     #
    # ------------------------------------------------------------------ #

    def _run_session(self, commands: queue.Queue[_Command | None], ready: Future[str]) -> None:
        driver: BrowserDriver | None = None
        was_running = False
        try:
            try:
                driver = self._driver_factory()
                driver.navigate(self._seed_url)
                highlight = page_highlight(driver.page_source())
            except Exception as exc:
                LOGGER.exception("Unexpected crawler failure during start.")
                ready.set_exception(exc)
                return

            LOGGER.info("Crawler visited %s (title: %s).", self._seed_url, highlight)
            with self._lock:
                if self._commands is commands:
                    self._state = SessionState.RUNNING
                    was_running = True
            if not was_running:
                ready.set_exception(SessionError("Session was stopped during start."))
                return
            self._notify_state(SessionState.RUNNING)
            ready.set_result(
                f'Crawler opened "{highlight}". Close the browser window when you are finished.'
                if highlight
                else "Crawler opened the page. Close the browser window when you are finished."
            )
            self._serve(driver, commands)
        finally:
            self._teardown(driver, commands, was_running)

    def _serve(self, driver: BrowserDriver, commands: queue.Queue[_Command | None]) -> None:
        while True:
            try:
                command = commands.get(timeout=self._poll_interval)
            except queue.Empty:
                if not self._is_alive(driver):
                    LOGGER.info("Browser window closed; ending automation session.")
                    return
                continue

            if command is None:
                LOGGER.info("Automation session stop requested.")
                return

            action, future, fatal = command
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(action(driver))
            except DriverError as exc:
                future.set_exception(exc)
                if fatal:
                    LOGGER.error("Fatal driver error; ending automation session: %s", exc)
                    return
            except Exception as exc:
                future.set_exception(exc)

    def _is_alive(self, driver: BrowserDriver) -> bool:
        try:
            return driver.window_count() > 0
        except DriverError as exc:
            LOGGER.info("Browser liveness check failed: %s", exc)
            return False

    def _teardown(
        self,
        driver: BrowserDriver | None,
        commands: queue.Queue[_Command | None],
        was_running: bool,
    ) -> None:
        if driver is not None:
            try:
                driver.close()
            except DriverError as exc:
                LOGGER.debug("Ignoring driver close failure: %s", exc)

        detached = self._detach(commands, notify=False)

        while True:
            try:
                leftover = commands.get_nowait()
            except queue.Empty:
                break
            if leftover is not None:
                leftover[1].set_exception(SessionError("Automation session closed."))

        # A session detached by a start timeout already reported STOPPED.
        if not detached:
            return
        self._notify_state(SessionState.STOPPED)
        if was_running and self._on_session_ended is not None:
            try:
                self._on_session_ended()
            except Exception:
                LOGGER.exception("Session-ended observer failed.")

    def _detach(self, commands: queue.Queue[_Command | None], *, notify: bool = True) -> bool:
        """Return the manager to ``STOPPED`` if ``commands`` is still the active session."""
        with self._lock:
            if self._commands is not commands:
                return False
            self._commands = None
            self._thread = None
            self._state = SessionState.STOPPED
            self._stopped.set()
        if notify:
            self._notify_state(SessionState.STOPPED)
        return True

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _navigate(self, driver: BrowserDriver, url: str) -> bool:
        LOGGER.info("Crawler navigating to %s.", url)
        driver.navigate(url)
        return True

    def _page_source(self) -> str | None:
        try:
            return self._submit(lambda driver: driver.page_source(), fatal=False)
        except SessionError as exc:
            LOGGER.info("Page extraction skipped: %s", exc)
        except DriverError as exc:
            LOGGER.error("[Crawler] Failed to read the current page: %s", exc)
        return None

    def _submit(self, action: Callable[[BrowserDriver], Any], *, fatal: bool) -> Any:
        future: Future[Any] = Future()
        with self._lock:
            if self._state is not SessionState.RUNNING or self._commands is None:
                raise SessionError("Crawler is not running. Start the crawler first.")
            if threading.current_thread() is self._thread:
                raise SessionError("Session verbs cannot be called from the session thread.")
            self._commands.put((action, future, fatal))
        try:
            return future.result()
        except DriverError:
            if fatal:
                return False
            raise

    def _notify_state(self, state: SessionState) -> None:
        if self._on_state_changed is None:
            return
        try:
            self._on_state_changed(state)
        except Exception:
            LOGGER.exception("Session state observer failed.")


__all__ = [
    "ALREADY_RUNNING_MESSAGE",
    "AutomationSessionManager",
    "SessionState",
    "StartResult",
]
