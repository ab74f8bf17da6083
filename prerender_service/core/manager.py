"""
Orchestrates cache lookups and page renders for the Prerender Service.

`PrerenderManager` ties the components together: it serves from `RenderCache`
when it can, otherwise borrows the browser from `BrowserManager`, renders with
`PageRenderer` and stores the result.
"""
import asyncio
from enum import Enum
from typing import Dict, NamedTuple, Optional, TYPE_CHECKING

from prerender_service.components.cache.render_cache import RenderCache
from prerender_service.components.renderer.browser_manager import BrowserManager
from prerender_service.components.renderer.page_renderer import PageRenderer
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class CacheStatus(str, Enum):
    """Value of the `X-Prerender-Cache` response header."""
    HIT = "HIT"
    MISS = "MISS"


class RenderResult(NamedTuple):
    html: str
    cache_status: CacheStatus


class PrerenderManager:
    """
    Serves rendered HTML for a URL, from cache or from a fresh render.

    By default two concurrent misses for the same URL each render the page
    (a cache stampede) and both store the result. With `deduplicate_inflight`
    enabled, later misses join the render already running for that URL.

    Render and launch errors propagate unchanged; nothing is cached for them.
    """
    def __init__(
        self,
        config: Optional['ConfigurationManager'] = None,
        cache: Optional[RenderCache] = None,
        browser_manager: Optional[BrowserManager] = None,
        page_renderer: Optional[PageRenderer] = None,
        deduplicate_inflight: Optional[bool] = None,
    ):
        """
        Initializes the PrerenderManager and any component not passed in.

        Args:
            config (Optional[ConfigurationManager]): Used to build missing components
                and to read `render.deduplicate_inflight`.
            cache (Optional[RenderCache]): Cache store to use.
            browser_manager (Optional[BrowserManager]): Browser owner to borrow from.
            page_renderer (Optional[PageRenderer]): Renderer to use.
            deduplicate_inflight (Optional[bool]): Overrides the config setting.
        """
        self.config = config
        self.cache = cache if cache is not None else RenderCache.from_config(config)
        self.browser_manager = browser_manager if browser_manager is not None else BrowserManager(config=config)
        self.page_renderer = page_renderer if page_renderer is not None else PageRenderer(config=config)

        if deduplicate_inflight is None:
            deduplicate_inflight = bool(config.get('render.deduplicate_inflight', False)) if config else False
        self.deduplicate_inflight = deduplicate_inflight
        self._inflight: Dict[str, "asyncio.Future[str]"] = {}
        logger.info(f"PrerenderManager initialized (deduplicate_inflight={self.deduplicate_inflight}).")

    async def render(self, url: str) -> RenderResult:
        """
        Returns the HTML for `url` and whether it came from the cache.

        Args:
            url (str): Validated absolute URL; used verbatim as the cache key.

        Returns:
            RenderResult: The document and `CacheStatus.HIT` or `CacheStatus.MISS`.

        Raises:
            BrowserLaunchError: If the browser could not be started.
            RenderError: If rendering the page failed or timed out.
        """
        cached = self.cache.get(url)
        if cached is not None:
            logger.info(f"[CACHE HIT] {url}")
            return RenderResult(cached, CacheStatus.HIT)

        if self.deduplicate_inflight:
            html = await self._render_shared(url)
        else:
            html = await self._render_and_store(url)
        return RenderResult(html, CacheStatus.MISS)

    async def _render_and_store(self, url: str) -> str:
        browser = await self.browser_manager.acquire()
        html = await self.page_renderer.render(browser, url)
        self.cache.put(url, html)
        return html

    async def _render_shared(self, url: str) -> str:
        pending = self._inflight.get(url)
        if pending is None:
            pending = asyncio.ensure_future(self._render_and_store(url))
            self._inflight[url] = pending
            pending.add_done_callback(lambda fut: self._forget_inflight(url, fut))
        else:
            logger.info(f"Joining in-flight render for {url}")
        return await asyncio.shield(pending)

    def _forget_inflight(self, url: str, fut: "asyncio.Future[str]") -> None:
        if self._inflight.get(url) is fut:
            del self._inflight[url]
        if not fut.cancelled():
            fut.exception()

    async def startup(self) -> None:
        """Launches the browser ahead of the first request."""
        await self.browser_manager.acquire()

    async def shutdown(self) -> None:
        """Closes the browser. The cache is simply dropped with the process."""
        await self.browser_manager.close()
