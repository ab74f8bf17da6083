"""
Renders one URL to static HTML in an isolated browser context.

This module provides the `PageRenderer` class. For each call it opens a fresh
context and page on the shared browser, installs the resource filter, navigates
and waits for the network to calm down, serializes the resulting DOM, and closes
the page and context again whatever happened.
"""
import asyncio
from typing import Optional, TYPE_CHECKING

from playwright.async_api import Browser, BrowserContext, Page, TimeoutError as PlaywrightTimeoutError

from prerender_service.components.renderer.network_idle import NetworkIdleWatcher
from prerender_service.components.renderer.resource_filter import ResourceFilter
from prerender_service.core.exceptions import RenderFailureError, RenderTimeoutError
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class PageRenderer:
    """
    Turns a URL into the serialized post-JavaScript DOM.

    The renderer borrows the browser for the duration of one call and never
    retries; retry policy belongs to the caller.

    Attributes:
        timeout (int): Navigation budget in milliseconds (navigation plus network calm).
        user_agent (str): User agent sent by rendered pages so target sites can recognise this traffic.
        resource_filter (ResourceFilter): Decides which subresources are aborted.
        max_inflight (int): In-flight request count still considered calm.
        idle_time (int): How long, in milliseconds, the network must stay calm.
    """
    DEFAULT_TIMEOUT = 30000  # Milliseconds
    DEFAULT_USER_AGENT = 'Mozilla/5.0 (compatible; SEOLovableBot/1.0; +https://seolovable.cloud)'
    DEFAULT_IDLE_TIME = 500  # Milliseconds

    def __init__(self, config: Optional['ConfigurationManager'] = None, resource_filter: Optional[ResourceFilter] = None):
        """
        Initializes the PageRenderer.

        Args:
            config (Optional[ConfigurationManager]): Source of the `render.*` settings.
                If None, defaults are used.
            resource_filter (Optional[ResourceFilter]): Overrides the filter built from config.
        """
        if config:
            self.timeout = int(float(config.get('render.timeout', self.DEFAULT_TIMEOUT)))
            self.user_agent = config.get('render.user_agent', self.DEFAULT_USER_AGENT)
            self.max_inflight = int(config.get('render.network_idle.max_inflight', NetworkIdleWatcher.DEFAULT_MAX_INFLIGHT))
            self.idle_time = int(config.get('render.network_idle.idle_time', self.DEFAULT_IDLE_TIME))
        else:
            self.timeout = self.DEFAULT_TIMEOUT
            self.user_agent = self.DEFAULT_USER_AGENT
            self.max_inflight = NetworkIdleWatcher.DEFAULT_MAX_INFLIGHT
            self.idle_time = self.DEFAULT_IDLE_TIME
        self.resource_filter = resource_filter or ResourceFilter.from_config(config)

    async def render(self, browser: Browser, url: str) -> str:
        """
        Renders `url` on `browser` and returns the page's HTML.

        Args:
            browser (Browser): The shared browser, borrowed for this call.
            url (str): Absolute URL to render.

        Returns:
            str: The fully serialized DOM after scripts ran and the network calmed down.

        Raises:
            RenderTimeoutError: If navigation plus network calm exceeded `timeout`.
            RenderFailureError: For any other failure while opening, navigating or extracting.
        """
        context: Optional[BrowserContext] = None
        page: Optional[Page] = None
        logger.info(f"Rendering {url}")

        try:
            context = await browser.new_context(user_agent=self.user_agent)
            page = await context.new_page()
            await page.route("**/*", self.resource_filter.handle_route)

            watcher = NetworkIdleWatcher(max_inflight=self.max_inflight, idle_time=self.idle_time / 1000)
            watcher.attach(page)
            await asyncio.wait_for(self._navigate(page, url, watcher), timeout=self.timeout / 1000)

            html = await page.content()
            logger.info(f"Render done for {url} ({len(html)} characters)")
            return html
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
            logger.error(f"Render timed out after {self.timeout}ms for {url}")
            raise RenderTimeoutError(url, f"Navigation exceeded {self.timeout}ms", original_exception=e) from e
        except Exception as e:
            logger.error(f"Failed to render {url}: {e}", exc_info=True)
            raise RenderFailureError(url, f"Failed to render page: {e}", original_exception=e) from e
        finally:
            await self._release(url, page, context)

    async def _navigate(self, page: Page, url: str, watcher: NetworkIdleWatcher) -> None:
        await page.goto(url, wait_until='domcontentloaded', timeout=self.timeout)
        # The document request alone counts as calm; settle time starts after DOMContentLoaded.
        watcher.restart()
        await watcher.wait_for_calm()

    async def _release(self, url: str, page: Optional[Page], context: Optional[BrowserContext]) -> None:
        if page:
            try:
                await page.close()
            except Exception as e:
                logger.error(f"Error closing page for URL '{url}': {e}", exc_info=True)
        if context:
            try:
                await context.close()
                logger.debug(f"Page session for {url} released.")
            except Exception as e:
                logger.error(f"Error closing browser context for URL '{url}': {e}", exc_info=True)
