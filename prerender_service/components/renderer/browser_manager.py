"""
Owns the single headless browser shared by all renders.

This module provides the `BrowserManager` class. The browser is launched lazily
(or pre-warmed at startup), reused by every request, and closed once at
shutdown. Concurrent callers that arrive while a launch is in progress all wait
on that same launch instead of starting their own.
"""
import asyncio
from typing import List, Optional, TYPE_CHECKING

from playwright.async_api import async_playwright, Playwright, Browser

from prerender_service.core.exceptions import BrowserLaunchError
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class BrowserManager:
    """
    Lazily launches and hands out one shared Chromium instance.

    `acquire()` is idempotent: it returns the running browser, joins a launch
    already in progress, or starts a new launch. A failed launch is reported to
    every waiter and is not cached, so the next `acquire()` tries again. A
    browser that disconnects on its own is dropped and relaunched on the next
    `acquire()`.

    Can also be used as an async context manager: entering acquires the
    browser, exiting closes it.

    Attributes:
        headless (bool): Whether Chromium runs headless.
        executable_path (Optional[str]): Custom browser binary; None uses Playwright's bundled one.
        launch_args (List[str]): Command-line switches passed to Chromium.
    """
    DEFAULT_LAUNCH_ARGS = [
        '--no-sandbox',
        '--disable-setuid-sandbox',
        '--disable-dev-shm-usage',  # /dev/shm is tiny in most containers
        '--disable-accelerated-2d-canvas',
        '--disable-gpu',
    ]

    def __init__(self, config: Optional['ConfigurationManager'] = None):
        """
        Initializes the BrowserManager. Does not start the browser.

        Args:
            config (Optional[ConfigurationManager]): Source of the `browser.*` settings.
                If None, defaults are used.
        """
        if config:
            self.headless = bool(config.get('browser.headless', True))
            self.executable_path: Optional[str] = config.get('browser.executable_path') or None
            self.launch_args: List[str] = list(config.get('browser.launch_args', self.DEFAULT_LAUNCH_ARGS))
        else:
            self.headless = True
            self.executable_path = None
            self.launch_args = list(self.DEFAULT_LAUNCH_ARGS)

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_task: Optional["asyncio.Task[Browser]"] = None
        logger.info(
            f"BrowserManager configured (headless={self.headless}, "
            f"executable_path={self.executable_path or 'bundled'})"
        )

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    @property
    def is_launching(self) -> bool:
        return self._launch_task is not None

    async def acquire(self) -> Browser:
        """
        Returns the shared browser, launching it if needed.

        Returns:
            Browser: A connected Playwright browser.

        Raises:
            BrowserLaunchError: If the browser process could not be started.
        """
        if self._browser is not None:
            if self._browser.is_connected():
                return self._browser
            logger.warning("Browser is no longer connected; relaunching.")
            self._browser = None

        if self._launch_task is None:
            self._launch_task = asyncio.ensure_future(self._launch())
            self._launch_task.add_done_callback(self._on_launch_done)

        # A cancelled waiter must not cancel the launch the others are waiting on.
        return await asyncio.shield(self._launch_task)

    def _on_launch_done(self, task: "asyncio.Task[Browser]") -> None:
        if self._launch_task is task:
            self._launch_task = None
        if not task.cancelled():
            # Marks the exception as retrieved when every waiter has gone away.
            task.exception()

    async def _launch(self) -> Browser:
        # Stops a driver left behind by a browser that crashed.
        await self._stop_playwright()

        logger.info("Launching browser...")
        playwright: Optional[Playwright] = None
        try:
            playwright = await async_playwright().start()
            launch_options = {"headless": self.headless, "args": list(self.launch_args)}
            if self.executable_path:
                launch_options["executable_path"] = self.executable_path
            browser = await playwright.chromium.launch(**launch_options)
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}", exc_info=True)
            if playwright:
                try:
                    await playwright.stop()
                except Exception as stop_e:
                    logger.error(f"Error stopping Playwright after failed launch: {stop_e}", exc_info=True)
            raise BrowserLaunchError(f"Failed to launch browser: {e}", original_exception=e) from e

        browser.on("disconnected", self._on_disconnected)
        self._playwright = playwright
        self._browser = browser
        logger.info("Browser launched successfully.")
        return browser

    def _on_disconnected(self, browser: Browser) -> None:
        if self._browser is browser:
            logger.warning("Browser disconnected unexpectedly; it will be relaunched on next use.")
            self._browser = None

    async def _stop_playwright(self) -> None:
        playwright, self._playwright = self._playwright, None
        if playwright:
            try:
                await playwright.stop()
                logger.debug("Playwright stopped.")
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}", exc_info=True)

    async def close(self) -> None:
        """
        Closes the browser and stops the Playwright driver.

        Waits for an in-flight launch first so the freshly started process is
        not orphaned. Safe to call more than once; errors are logged, not raised.
        """
        launch_task = self._launch_task
        if launch_task is not None:
            try:
                await launch_task
            except BrowserLaunchError:
                pass  # Already logged by _launch.

        browser, self._browser = self._browser, None
        if browser:
            try:
                await browser.close()
                logger.info("Browser closed successfully.")
            except Exception as e:
                logger.error(f"Error closing browser: {e}", exc_info=True)
        await self._stop_playwright()

    async def __aenter__(self) -> 'BrowserManager':
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
