"""
ASGI middleware that sends crawler traffic to the Prerender Service.

Mount `PrerenderMiddleware` on a Starlette/FastAPI site that renders its
content client-side. Requests from crawlers are answered with the HTML
returned by the render service; every other request, and any crawler request
the render service fails on, is served by the wrapped application as usual.
Calls to the render service share one pooled `httpx.AsyncClient`; `aclose()`
releases it on shutdown.
"""
import re
from typing import Iterable, Optional, TYPE_CHECKING

import httpx
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.types import ASGIApp

from prerender_service.components.renderer.page_renderer import PageRenderer
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)

# Declared crawler identifiers; deliberately broad rather than exact.
BOT_USER_AGENT_PATTERN = re.compile(
    r"bot|crawl|spider|slurp|mediapartners|facebookexternalhit|facebot|embedly|"
    r"quora link preview|outbrain|pinterest|vkshare|w3c_validator|whatsapp|"
    r"telegram|skypeuripreview|lighthouse|headlesschrome",
    re.IGNORECASE,
)

# Paths that are never worth rendering.
STATIC_ASSET_PATTERN = re.compile(
    r"\.(js|mjs|css|map|json|xml|txt|ico|png|jpe?g|gif|webp|avif|svg|woff2?|ttf|eot|otf|"
    r"mp4|webm|mp3|wav|pdf|zip|gz)$",
    re.IGNORECASE,
)


def is_bot(user_agent: Optional[str], pattern: "re.Pattern[str]" = BOT_USER_AGENT_PATTERN) -> bool:
    return bool(user_agent) and pattern.search(user_agent) is not None


class PrerenderMiddleware(BaseHTTPMiddleware):
    """
    Routes crawler GET requests through the render service.

    The renderer's own user agent is ignored, otherwise the headless browser
    fetching the page would itself be sent back to the render service.

    Attributes:
        service_url (str): Full URL of the service's `/render` endpoint.
        timeout (float): Seconds to wait for the render service before falling through.
    """
    DEFAULT_SERVICE_URL = "http://localhost:3000/render"
    DEFAULT_TIMEOUT = 35.0  # Seconds; a bit above the renderer's navigation budget

    def __init__(
        self,
        app: ASGIApp,
        service_url: Optional[str] = None,
        timeout: Optional[float] = None,
        ignored_user_agents: Optional[Iterable[str]] = None,
        config: Optional['ConfigurationManager'] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(app)
        if config:
            service_url = service_url or config.get('prerender_middleware.service_url')
            if timeout is None:
                timeout = config.get('prerender_middleware.timeout')
        self.service_url = service_url or self.DEFAULT_SERVICE_URL
        self.timeout = float(timeout) if timeout is not None else self.DEFAULT_TIMEOUT
        if ignored_user_agents is None:
            renderer_user_agent = PageRenderer.DEFAULT_USER_AGENT
            if config:
                renderer_user_agent = config.get('render.user_agent', renderer_user_agent)
            ignored_user_agents = [renderer_user_agent]
        self.ignored_user_agents = [ua.lower() for ua in ignored_user_agents]
        self._client = client
        self._owns_client = False

    def should_prerender(self, request: Request) -> bool:
        if request.method != "GET":
            return False
        user_agent = request.headers.get("user-agent", "")
        if user_agent.lower() in self.ignored_user_agents:
            return False
        if STATIC_ASSET_PATTERN.search(request.url.path):
            return False
        return is_bot(user_agent)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Closes the pooled client if this middleware created it. Injected clients are left open."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def fetch_rendered(self, full_url: str) -> Optional[str]:
        """
        Asks the render service for `full_url`.

        Connections are pooled across requests through one shared `httpx.AsyncClient`.

        Returns:
            Optional[str]: The HTML, or None when the service answered with a
            non-2xx status or could not be reached.
        """
        try:
            response = await self._get_client().get(self.service_url, params={"url": full_url}, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"Prerender error for {full_url}: {e}")
            return None
        if not response.is_success:
            logger.error(f"Prerender service returned {response.status_code} for {full_url}")
            return None
        return response.text

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.should_prerender(request):
            return await call_next(request)

        full_url = str(request.url)
        logger.info(f"[BOT DETECTED] {request.headers.get('user-agent')} -> prerendering {full_url}")
        html = await self.fetch_rendered(full_url)
        if html is None:
            # Serve the page normally rather than an error page.
            return await call_next(request)
        return HTMLResponse(html, headers={"X-Prerendered": "true"})
