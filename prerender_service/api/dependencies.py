"""
FastAPI dependency providers.

The `PrerenderManager` owns the browser and the cache, so one instance serves
the whole process. Tests replace it through `app.dependency_overrides`.
"""
from typing import Optional

from prerender_service.core.config import config_manager
from prerender_service.core.manager import PrerenderManager

_prerender_manager: Optional[PrerenderManager] = None


def get_prerender_manager() -> PrerenderManager:
    """Returns the process-wide manager, creating it on first use. Does not launch the browser."""
    global _prerender_manager
    if _prerender_manager is None:
        _prerender_manager = PrerenderManager(config=config_manager)
    return _prerender_manager
