"""
API sub-package for the Prerender Service.

This package contains the FastAPI application, its routes, request models
and dependency providers. Import `prerender_service.api.main:app` directly.
"""

__all__ = []
