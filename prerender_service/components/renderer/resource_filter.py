"""
Declarative request filtering for rendered pages.

A `ResourceFilter` is a predicate over Playwright resource types
(`document`, `script`, `stylesheet`, `image`, `media`, `font`, `xhr`, `fetch`, ...).
Blocked types are aborted before they leave the page; everything else continues.
"""
from typing import Iterable, Optional, FrozenSet, TYPE_CHECKING

from playwright.async_api import Route, Error as PlaywrightError

from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class ResourceFilter:
    """
    Allow/deny decision per resource category.

    Images, media and fonts are blocked by default: crawlers only need the DOM,
    while scripts and stylesheets are kept because client frameworks need them
    to finish rendering.
    """
    DEFAULT_BLOCKED_TYPES: FrozenSet[str] = frozenset({"image", "media", "font"})

    def __init__(self, blocked_types: Optional[Iterable[str]] = None):
        if blocked_types is None:
            blocked_types = self.DEFAULT_BLOCKED_TYPES
        self.blocked_types: FrozenSet[str] = frozenset(t.lower() for t in blocked_types)

    @classmethod
    def from_config(cls, config: Optional['ConfigurationManager'] = None) -> 'ResourceFilter':
        if config is None:
            return cls()
        return cls(config.get('render.blocked_resource_types', cls.DEFAULT_BLOCKED_TYPES))

    def allows(self, resource_type: str) -> bool:
        return resource_type.lower() not in self.blocked_types

    async def handle_route(self, route: Route) -> None:
        """Playwright route handler applying `allows` to the intercepted request."""
        request = route.request
        try:
            if self.allows(request.resource_type):
                await route.continue_()
            else:
                await route.abort()
        except PlaywrightError as e:
            # The page may already be closing; the request is moot then.
            logger.debug(f"Could not resolve route for {request.url}: {e}")

    def __repr__(self) -> str:
        return f"ResourceFilter(blocked_types={sorted(self.blocked_types)!r})"
