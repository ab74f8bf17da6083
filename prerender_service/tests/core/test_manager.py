import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, sentinel

from prerender_service.components.cache.render_cache import RenderCache
from prerender_service.core.exceptions import BrowserLaunchError, RenderFailureError
from prerender_service.core.manager import CacheStatus, PrerenderManager, RenderResult


def make_manager(clock, render=None, deduplicate_inflight=False, max_entries=100, ttl=3600):
    browser_manager = MagicMock()
    browser_manager.acquire = AsyncMock(return_value=sentinel.browser)
    browser_manager.close = AsyncMock()

    page_renderer = MagicMock()
    if render is None:
        async def render(browser, url):
            return f"<html><body>{url}</body></html>"
    page_renderer.render = AsyncMock(side_effect=render)

    manager = PrerenderManager(
        config=None,
        cache=RenderCache(max_entries=max_entries, ttl=ttl, timer=clock),
        browser_manager=browser_manager,
        page_renderer=page_renderer,
        deduplicate_inflight=deduplicate_inflight,
    )
    return manager


@pytest.mark.asyncio
async def test_first_request_misses_then_hits_with_identical_html(clock):
    manager = make_manager(clock)

    first = await manager.render("https://example.com/a")
    second = await manager.render("https://example.com/a")

    assert first == RenderResult("<html><body>https://example.com/a</body></html>", CacheStatus.MISS)
    assert second.cache_status is CacheStatus.HIT
    assert second.html == first.html
    assert manager.page_renderer.render.await_count == 1
    manager.page_renderer.render.assert_awaited_once_with(sentinel.browser, "https://example.com/a")


@pytest.mark.asyncio
async def test_hit_does_not_touch_browser(clock):
    manager = make_manager(clock)
    manager.cache.put("https://example.com/cached", "<html>cached</html>")

    result = await manager.render("https://example.com/cached")

    assert result == RenderResult("<html>cached</html>", CacheStatus.HIT)
    manager.browser_manager.acquire.assert_not_awaited()
    manager.page_renderer.render.assert_not_awaited()


@pytest.mark.asyncio
async def test_expired_entry_is_rendered_again(clock):
    manager = make_manager(clock, ttl=3600)
    await manager.render("https://example.com/a")
    assert (await manager.render("https://example.com/a")).cache_status is CacheStatus.HIT

    clock.advance(3600)

    assert (await manager.render("https://example.com/a")).cache_status is CacheStatus.MISS
    assert manager.page_renderer.render.await_count == 2


@pytest.mark.asyncio
async def test_render_failure_propagates_and_is_not_cached(clock):
    manager = make_manager(clock)
    manager.page_renderer.render.side_effect = RenderFailureError("https://example.com/broken", "Failed to render page: 502")

    with pytest.raises(RenderFailureError):
        await manager.render("https://example.com/broken")
    assert len(manager.cache) == 0

    # The next request tries again rather than serving a cached failure.
    manager.page_renderer.render.side_effect = None
    manager.page_renderer.render.return_value = "<html>ok</html>"
    result = await manager.render("https://example.com/broken")
    assert result == RenderResult("<html>ok</html>", CacheStatus.MISS)


@pytest.mark.asyncio
async def test_launch_failure_propagates(clock):
    manager = make_manager(clock)
    manager.browser_manager.acquire.side_effect = BrowserLaunchError("Failed to launch browser: no binary")

    with pytest.raises(BrowserLaunchError):
        await manager.render("https://example.com/a")
    manager.page_renderer.render.assert_not_awaited()
    assert len(manager.cache) == 0


@pytest.mark.asyncio
async def test_concurrent_distinct_urls_are_independent(clock):
    async def render(browser, url):
        await asyncio.sleep(0.01)
        if "bad" in url:
            raise RenderFailureError(url, "Failed to render page: boom")
        return f"<html>{url}</html>"

    manager = make_manager(clock, render=render)

    good, bad = await asyncio.gather(
        manager.render("https://example.com/good"),
        manager.render("https://example.com/bad"),
        return_exceptions=True,
    )

    assert good == RenderResult("<html>https://example.com/good</html>", CacheStatus.MISS)
    assert isinstance(bad, RenderFailureError)
    assert "https://example.com/good" in manager.cache
    assert "https://example.com/bad" not in manager.cache


@pytest.mark.asyncio
async def test_concurrent_misses_for_same_url_render_twice_by_default(clock):
    async def render(browser, url):
        await asyncio.sleep(0.02)
        return "<html>same</html>"

    manager = make_manager(clock, render=render)

    results = await asyncio.gather(*(manager.render("https://example.com/a") for _ in range(2)))

    assert [r.cache_status for r in results] == [CacheStatus.MISS, CacheStatus.MISS]
    assert manager.page_renderer.render.await_count == 2
    assert manager.cache.get("https://example.com/a") == "<html>same</html>"


@pytest.mark.asyncio
async def test_deduplication_collapses_concurrent_misses(clock):
    async def render(browser, url):
        await asyncio.sleep(0.02)
        return "<html>once</html>"

    manager = make_manager(clock, render=render, deduplicate_inflight=True)

    results = await asyncio.gather(*(manager.render("https://example.com/a") for _ in range(5)))

    assert all(r == RenderResult("<html>once</html>", CacheStatus.MISS) for r in results)
    assert manager.page_renderer.render.await_count == 1
    assert manager._inflight == {}


@pytest.mark.asyncio
async def test_deduplicated_failure_reaches_all_waiters_and_clears(clock):
    async def render(browser, url):
        await asyncio.sleep(0.02)
        raise RenderFailureError(url, "Failed to render page: boom")

    manager = make_manager(clock, render=render, deduplicate_inflight=True)

    results = await asyncio.gather(
        *(manager.render("https://example.com/a") for _ in range(3)), return_exceptions=True
    )

    assert all(isinstance(r, RenderFailureError) for r in results)
    assert manager.page_renderer.render.await_count == 1
    assert manager._inflight == {}
    assert len(manager.cache) == 0


def test_deduplication_read_from_config(make_config, clock):
    config = make_config({"render": {"deduplicate_inflight": True}})
    manager = PrerenderManager(
        config=config,
        cache=RenderCache(timer=clock),
        browser_manager=MagicMock(),
        page_renderer=MagicMock(),
    )
    assert manager.deduplicate_inflight is True


def test_components_built_from_config(make_config):
    config = make_config({"cache": {"max_entries": 3, "ttl": 10}, "render": {"timeout": 1000}})
    manager = PrerenderManager(config=config)
    assert manager.cache.max_entries == 3
    assert manager.cache.ttl == 10
    assert manager.page_renderer.timeout == 1000
    assert manager.browser_manager.is_running is False
    assert manager.deduplicate_inflight is False


@pytest.mark.asyncio
async def test_startup_and_shutdown_delegate_to_browser_manager(clock):
    manager = make_manager(clock)
    await manager.startup()
    await manager.shutdown()
    manager.browser_manager.acquire.assert_awaited_once()
    manager.browser_manager.close.assert_awaited_once()
