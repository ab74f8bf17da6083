"""
Components sub-package for the Prerender Service.

The `__all__` variable defines the public API of this sub-package,
making key components directly importable from `prerender_service.components`.
"""
from .cache.render_cache import RenderCache
from .renderer.browser_manager import BrowserManager
from .renderer.page_renderer import PageRenderer
from .renderer.resource_filter import ResourceFilter

__all__ = [
    "RenderCache",
    "BrowserManager",
    "PageRenderer",
    "ResourceFilter",
]
