"""
"Network calmed down" detection for a Playwright page.

Playwright's own `networkidle` waits for zero connections. Client-side
frameworks often keep a long-poll or analytics beacon open, so the renderer
instead waits until no more than `max_inflight` requests have been in flight
for at least `idle_time` seconds.
"""
import asyncio
from typing import Any, Optional, Set

from playwright.async_api import Page, Request

class NetworkIdleWatcher:
    """
    Tracks in-flight requests of one page through its `request`,
    `requestfinished` and `requestfailed` events.

    The calm window starts whenever the in-flight count drops to
    `max_inflight` or below and is cancelled as soon as it rises above it.
    """
    DEFAULT_MAX_INFLIGHT = 2
    DEFAULT_IDLE_TIME = 0.5  # Seconds

    def __init__(self, max_inflight: int = DEFAULT_MAX_INFLIGHT, idle_time: float = DEFAULT_IDLE_TIME):
        self.max_inflight = max_inflight
        self.idle_time = idle_time
        self._inflight: Set[Any] = set()
        self._changed = asyncio.Event()
        self._loop = asyncio.get_running_loop()
        self._calm_since: Optional[float] = self._loop.time()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def attach(self, page: Page) -> None:
        page.on("request", self.on_request)
        page.on("requestfinished", self.on_request_done)
        page.on("requestfailed", self.on_request_done)

    def on_request(self, request: Request) -> None:
        self._inflight.add(request)
        self._update()

    def on_request_done(self, request: Request) -> None:
        self._inflight.discard(request)
        self._update()

    def restart(self) -> None:
        """Starts a fresh calm window from now, discarding any time already accumulated."""
        self._calm_since = self._loop.time() if len(self._inflight) <= self.max_inflight else None
        self._changed.set()

    def _update(self) -> None:
        if len(self._inflight) > self.max_inflight:
            self._calm_since = None
        elif self._calm_since is None:
            self._calm_since = self._loop.time()
        self._changed.set()

    async def _wait_for_change(self, timeout: Optional[float] = None) -> None:
        self._changed.clear()
        try:
            await asyncio.wait_for(self._changed.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    async def wait_for_calm(self) -> None:
        """Returns once the calm window has lasted `idle_time`. Never times out by itself."""
        while True:
            if self._calm_since is None:
                await self._wait_for_change()
                continue
            remaining = self._calm_since + self.idle_time - self._loop.time()
            if remaining <= 0:
                return
            await self._wait_for_change(timeout=remaining)
