"""
Renderer component for the Prerender Service.

This sub-package manages the shared headless browser and renders pages,
including JavaScript-generated content, to static HTML.
"""
from .browser_manager import BrowserManager
from .network_idle import NetworkIdleWatcher
from .page_renderer import PageRenderer
from .resource_filter import ResourceFilter

__all__ = [
    "BrowserManager",
    "NetworkIdleWatcher",
    "PageRenderer",
    "ResourceFilter",
]
