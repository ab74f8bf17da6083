"""
Prerender Service.

Renders JavaScript-driven pages in a headless browser so crawlers receive the
same HTML a user's browser would build.
"""

__version__ = "0.1.0"
