"""
Cache component for the Prerender Service.

Holds rendered HTML keyed by request URL so repeated crawler hits are served
without touching the browser.
"""
from .render_cache import RenderCache

__all__ = [
    "RenderCache",
]
