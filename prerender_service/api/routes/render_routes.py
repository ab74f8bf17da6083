"""
API routes for page rendering in the Prerender Service.

`GET /render?url=...` returns the rendered HTML with an `X-Prerender-Cache`
header; `GET /health` is a liveness probe that never touches the cache or the
browser. Errors are raised as service exceptions and turned into plain-text
responses by the handlers registered in `api/main.py`.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import ValidationError

from prerender_service.api.dependencies import get_prerender_manager
from prerender_service.api.models import RenderRequest
from prerender_service.core.exceptions import InvalidParameterError, MissingParameterError
from prerender_service.core.logger import get_logger
from prerender_service.core.manager import PrerenderManager

logger = get_logger(__name__)

CACHE_STATUS_HEADER = "X-Prerender-Cache"

router = APIRouter()


@router.get(
    "/render",
    response_class=HTMLResponse,
    summary="Render a page to static HTML",
    description="Renders the given absolute URL in a headless browser once network activity "
                "settles and returns the serialized DOM. Results are cached per exact URL.",
    responses={
        400: {"description": "The `url` query parameter is missing or malformed."},
        500: {"description": "The browser could not be started or the page failed to render."},
    },
)
async def render_endpoint(
    url: Optional[str] = Query(None, description="Absolute http(s) URL of the page to render."),
    manager: PrerenderManager = Depends(get_prerender_manager),
):
    """
    Handles render requests.

    Raises:
        MissingParameterError: If `url` is absent or empty (400).
        InvalidParameterError: If `url` is not an absolute http(s) URL (400).
        BrowserLaunchError / RenderError: On render failure (500).
    """
    if not url or not url.strip():
        raise MissingParameterError("url")
    try:
        request = RenderRequest(url=url)
    except ValidationError as e:
        raise InvalidParameterError("url", reason=str(e))

    result = await manager.render(request.url)
    return HTMLResponse(content=result.html, headers={CACHE_STATUS_HEADER: result.cache_status.value})


@router.get("/health", response_class=PlainTextResponse, summary="Liveness probe")
async def health_endpoint():
    return PlainTextResponse("OK")
