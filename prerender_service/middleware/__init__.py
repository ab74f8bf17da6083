"""
Middleware sub-package: the crawler-facing side of the Prerender Service,
mounted on the site being rendered rather than on the service itself.
"""
from .prerender_middleware import PrerenderMiddleware, is_bot

__all__ = [
    "PrerenderMiddleware",
    "is_bot",
]
