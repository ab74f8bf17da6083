"""
Main application file for the Prerender Service API.

This file initializes the FastAPI application, sets up logging, registers
global exception handlers, wires the browser lifecycle into the application
lifespan and includes the render routes.
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from prerender_service import __version__
from prerender_service.api.dependencies import get_prerender_manager
from prerender_service.api.models import ServiceInfo, CacheStats
from prerender_service.api.routes import render_router
from prerender_service.core.config import config_manager
from prerender_service.core.exceptions import (
    ComponentError,
    InvalidParameterError,
    MissingParameterError,
    PrerenderServiceError,
)
from prerender_service.core.lifecycle import LifecycleController
from prerender_service.core.logger import setup_logging, get_logger
from prerender_service.core.manager import PrerenderManager

# --- Logging Setup ---
try:
    setup_logging(config_manager)
    logger = get_logger(__name__)
except Exception as e:
    import logging as py_logging
    py_logging.basicConfig(level=py_logging.WARNING, format="%(asctime)s - %(levelname)s - CRITICAL - Failed to setup custom logging: %(message)s")
    py_logging.critical(f"Failed to initialize custom logging via ConfigurationManager: {e}", exc_info=True)
    logger = py_logging.getLogger(__name__)


RENDER_FAILED_MESSAGE = "Failed to render page"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Pre-launches the browser without delaying startup and closes it on shutdown.

    uvicorn translates SIGINT/SIGTERM into the shutdown half of this handler.
    """
    lifecycle = LifecycleController(get_prerender_manager())
    app.state.lifecycle = lifecycle
    await lifecycle.startup()
    try:
        yield
    finally:
        await lifecycle.shutdown()


# --- FastAPI Application Initialization ---
app = FastAPI(
    title="Prerender Service",
    description="Renders JavaScript-driven pages in a headless browser and returns static HTML "
                "for crawlers that cannot execute client-side scripts.",
    version=__version__,
    lifespan=lifespan,
)


# --- Global Exception Handlers ---
# Responses are plain text: the calling middleware only looks at the status code.

@app.exception_handler(MissingParameterError)
@app.exception_handler(InvalidParameterError)
async def bad_parameter_exception_handler(request: Request, exc: PrerenderServiceError):
    logger.warning(f"Rejected request {request.method} {request.url}: {exc.message}")
    return PlainTextResponse(exc.message, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(ComponentError)
async def component_exception_handler(request: Request, exc: ComponentError):
    """
    Handles browser launch and render failures.

    The error has already been logged with its traceback by the component;
    the client only learns that rendering failed.
    """
    logger.error(f"{exc.__class__.__name__} for request {request.method} {request.url}: {exc.message}")
    return PlainTextResponse(RENDER_FAILED_MESSAGE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(PrerenderServiceError)
async def prerender_service_exception_handler(request: Request, exc: PrerenderServiceError):
    logger.error(
        f"PrerenderServiceError caught: {exc.__class__.__name__} - {exc.message} "
        f"for request: {request.method} {request.url}",
        exc_info=True
    )
    return PlainTextResponse("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.critical(
        f"Generic unhandled exception caught: {exc.__class__.__name__} - {str(exc)} "
        f"for request: {request.method} {request.url}",
        exc_info=True
    )
    return PlainTextResponse("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# --- API Router Inclusion ---
app.include_router(render_router, tags=["Rendering"])


# --- Root Endpoint ---
@app.get("/", tags=["General"], summary="Service information", response_model=ServiceInfo)
async def read_root(manager: PrerenderManager = Depends(get_prerender_manager)):
    """Reports the version, whether the browser is up, and cache counters."""
    return ServiceInfo(
        message="Prerender Service",
        version=app.version,
        browser_running=manager.browser_manager.is_running,
        cache=CacheStats(**manager.cache.stats()),
    )


def run() -> None:
    """Runs the service with uvicorn on `server.host`/`server.port` (PORT overrides)."""
    import uvicorn

    host = config_manager.get("server.host", "0.0.0.0")
    port = int(config_manager.get("server.port", 3000))
    logger.info(f"Prerender server listening on port {port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
