"""
Process-wide startup and shutdown of the Prerender Service.

`LifecycleController` pre-warms the browser in the background when the server
starts, so traffic is accepted immediately; the first request simply joins the
launch if it is still running. On shutdown (uvicorn turns SIGINT/SIGTERM into a
lifespan shutdown) it closes the browser so no Chromium process is orphaned.
"""
import asyncio
from typing import Optional

from prerender_service.core.exceptions import BrowserLaunchError
from prerender_service.core.logger import get_logger
from prerender_service.core.manager import PrerenderManager

logger = get_logger(__name__)


class LifecycleController:
    def __init__(self, manager: PrerenderManager):
        self.manager = manager
        self._prewarm_task: Optional["asyncio.Task[None]"] = None

    async def startup(self) -> None:
        """Schedules the browser launch and returns without waiting for it."""
        logger.info("Pre-launching browser in the background.")
        self._prewarm_task = asyncio.ensure_future(self._prewarm())

    async def _prewarm(self) -> None:
        try:
            await self.manager.startup()
        except BrowserLaunchError as e:
            # Requests will retry the launch on demand.
            logger.error(f"Browser pre-launch failed: {e.message}")

    async def shutdown(self) -> None:
        """Stops a pending pre-warm and closes the browser if one exists."""
        logger.info("Shutting down: closing browser.")
        if self._prewarm_task is not None and not self._prewarm_task.done():
            self._prewarm_task.cancel()
            try:
                await self._prewarm_task
            except asyncio.CancelledError:
                pass
        self._prewarm_task = None
        await self.manager.shutdown()
