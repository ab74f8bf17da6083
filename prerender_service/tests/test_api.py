import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, sentinel

from fastapi.testclient import TestClient

from prerender_service.api import main as api_main
from prerender_service.api.dependencies import get_prerender_manager
from prerender_service.api.main import app
from prerender_service.components.cache.render_cache import RenderCache
from prerender_service.core.exceptions import BrowserLaunchError, RenderFailureError, RenderTimeoutError
from prerender_service.core.manager import PrerenderManager

# TestClient is used without a `with` block, so the lifespan (and the real
# browser launch) is not triggered.
client = TestClient(app)

TARGET_URL = "https://example.com/a"


def rendered(url):
    return f"<html><head><title>{url}</title></head><body><div id=\"app\">rendered</div></body></html>"


@pytest.fixture
def prerender_manager(clock):
    """A real PrerenderManager with a fake browser and renderer, injected into the app."""
    browser_manager = MagicMock()
    browser_manager.acquire = AsyncMock(return_value=sentinel.browser)
    browser_manager.is_running = True

    page_renderer = MagicMock()
    page_renderer.render = AsyncMock(side_effect=lambda browser, url: rendered(url))

    manager = PrerenderManager(
        config=None,
        cache=RenderCache(max_entries=100, ttl=3600, timer=clock),
        browser_manager=browser_manager,
        page_renderer=page_renderer,
    )
    app.dependency_overrides[get_prerender_manager] = lambda: manager
    yield manager
    app.dependency_overrides.clear()


def test_render_miss_then_hit(prerender_manager):
    first = client.get("/render", params={"url": TARGET_URL})
    assert first.status_code == 200
    assert first.headers["X-Prerender-Cache"] == "MISS"
    assert first.headers["content-type"].startswith("text/html")
    assert first.text == rendered(TARGET_URL)

    second = client.get("/render", params={"url": TARGET_URL})
    assert second.status_code == 200
    assert second.headers["X-Prerender-Cache"] == "HIT"
    assert second.content == first.content
    assert prerender_manager.page_renderer.render.await_count == 1


def test_render_miss_again_after_ttl(prerender_manager, clock):
    assert client.get("/render", params={"url": TARGET_URL}).headers["X-Prerender-Cache"] == "MISS"
    assert client.get("/render", params={"url": TARGET_URL}).headers["X-Prerender-Cache"] == "HIT"

    clock.advance(3600)

    assert client.get("/render", params={"url": TARGET_URL}).headers["X-Prerender-Cache"] == "MISS"


def test_render_uses_exact_url_as_cache_key(prerender_manager):
    client.get("/render", params={"url": "https://example.com/a?b=1&c=2"})
    response = client.get("/render", params={"url": "https://example.com/a?c=2&b=1"})
    assert response.headers["X-Prerender-Cache"] == "MISS"


def test_missing_url_returns_400_without_touching_components():
    manager = MagicMock()
    manager.render = AsyncMock()
    app.dependency_overrides[get_prerender_manager] = lambda: manager
    try:
        response = client.get("/render")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 400
    assert response.text == 'Missing "url" query parameter'
    assert response.headers["content-type"].startswith("text/plain")
    manager.render.assert_not_awaited()
    manager.cache.get.assert_not_called()
    manager.browser_manager.acquire.assert_not_called()


@pytest.mark.parametrize("params", [{"url": ""}, {"url": "   "}])
def test_empty_url_returns_400(prerender_manager, params):
    response = client.get("/render", params=params)
    assert response.status_code == 400
    assert response.text == 'Missing "url" query parameter'
    assert prerender_manager.cache.stats()["misses"] == 0


@pytest.mark.parametrize("bad_url", ["not_a_valid_url", "example.com/a", "ftp://example.com/file", "/relative/path"])
def test_malformed_url_returns_400(prerender_manager, bad_url):
    response = client.get("/render", params={"url": bad_url})
    assert response.status_code == 400
    assert response.text == 'Invalid "url" query parameter'
    prerender_manager.page_renderer.render.assert_not_awaited()
    prerender_manager.browser_manager.acquire.assert_not_awaited()


def test_render_accepts_urls_longer_than_2083_characters(prerender_manager):
    long_url = "https://example.com/search?q=" + "a" * 2100

    response = client.get("/render", params={"url": long_url})

    assert response.status_code == 200
    assert response.headers["X-Prerender-Cache"] == "MISS"
    prerender_manager.page_renderer.render.assert_awaited_once_with(sentinel.browser, long_url)
    assert long_url in prerender_manager.cache


@pytest.mark.parametrize("error", [
    RenderFailureError(TARGET_URL, "Failed to render page: net::ERR_CONNECTION_REFUSED"),
    RenderTimeoutError(TARGET_URL, "Navigation exceeded 30000ms"),
])
def test_render_failure_returns_500_and_is_not_cached(prerender_manager, error):
    prerender_manager.page_renderer.render.side_effect = error

    response = client.get("/render", params={"url": TARGET_URL})

    assert response.status_code == 500
    assert response.text == "Failed to render page"
    assert "X-Prerender-Cache" not in response.headers
    assert TARGET_URL not in prerender_manager.cache

    # The process keeps serving; a later success is rendered and cached.
    prerender_manager.page_renderer.render.side_effect = lambda browser, url: rendered(url)
    retry = client.get("/render", params={"url": TARGET_URL})
    assert retry.status_code == 200
    assert retry.headers["X-Prerender-Cache"] == "MISS"


def test_browser_launch_failure_returns_500(prerender_manager):
    prerender_manager.browser_manager.acquire.side_effect = BrowserLaunchError("Failed to launch browser: missing binary")

    response = client.get("/render", params={"url": TARGET_URL})

    assert response.status_code == 500
    assert response.text == "Failed to render page"


def test_health_is_independent_of_state(prerender_manager):
    prerender_manager.browser_manager.acquire.side_effect = BrowserLaunchError("down")
    assert client.get("/render", params={"url": TARGET_URL}).status_code == 500

    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"


@pytest.mark.asyncio
async def test_health_answers_while_render_is_in_progress(prerender_manager):
    render_started = asyncio.Event()
    release_render = asyncio.Event()

    async def blocked_render(browser, url):
        render_started.set()
        await release_render.wait()
        return rendered(url)

    prerender_manager.page_renderer.render.side_effect = blocked_render

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        render_call = asyncio.ensure_future(async_client.get("/render", params={"url": TARGET_URL}))
        await asyncio.wait_for(render_started.wait(), timeout=1)

        health = await asyncio.wait_for(async_client.get("/health"), timeout=1)
        assert health.status_code == 200
        assert health.text == "OK"
        assert not render_call.done()

        release_render.set()
        response = await asyncio.wait_for(render_call, timeout=1)

    assert response.status_code == 200
    assert response.headers["X-Prerender-Cache"] == "MISS"


def test_health_without_any_manager():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"


def test_root_endpoint_reports_cache_stats(prerender_manager):
    client.get("/render", params={"url": TARGET_URL})
    client.get("/render", params={"url": TARGET_URL})

    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Prerender Service"
    assert data["version"] == app.version
    assert data["browser_running"] is True
    assert data["cache"]["entries"] == 1
    assert data["cache"]["hits"] == 1
    assert data["cache"]["misses"] == 1


def test_lifespan_prewarms_and_closes_browser(monkeypatch):
    manager = MagicMock()
    manager.startup = AsyncMock()
    manager.shutdown = AsyncMock()
    monkeypatch.setattr(api_main, "get_prerender_manager", lambda: manager)

    with TestClient(app) as lifespan_client:
        assert lifespan_client.get("/health").text == "OK"

    manager.startup.assert_awaited_once()
    manager.shutdown.assert_awaited_once()
