"""Tests for the HTTP page fetcher."""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from webmonitor.errors import FetchError
from webmonitor.ingest.fetcher import PageFetcher

ROBOTS = "User-agent: *\nDisallow: /privado\n"


def _app(with_robots: bool = True) -> web.Application:
    async def page(request):
        return web.Response(text="<html><body>Olá, mundo</body></html>", content_type="text/html")

    async def missing(request):
        return web.Response(status=404, text="not here")

    async def loop(request):
        raise web.HTTPFound("/loop")

    async def moved(request):
        raise web.HTTPFound("/noticias")

    async def agent(request):
        return web.Response(text=request.headers.get("User-Agent", ""))

    async def robots(request):
        return web.Response(text=ROBOTS)

    app = web.Application()
    app.router.add_get("/noticias", page)
    app.router.add_get("/missing", missing)
    app.router.add_get("/loop", loop)
    app.router.add_get("/moved", moved)
    app.router.add_get("/agent", agent)
    if with_robots:
        app.router.add_get("/robots.txt", robots)
    return app


@pytest.mark.asyncio
async def test_fetch_page(settings):
    async with TestServer(_app()) as server:
        async with PageFetcher(settings) as fetcher:
            result = await fetcher.fetch(str(server.make_url("/noticias")))

    assert result.status == 200
    assert "Olá, mundo" in result.text


@pytest.mark.asyncio
async def test_fetch_follows_redirect(settings):
    async with TestServer(_app()) as server:
        async with PageFetcher(settings) as fetcher:
            result = await fetcher.fetch(str(server.make_url("/moved")))

    assert result.url.endswith("/noticias")


@pytest.mark.asyncio
async def test_error_status_raises(settings):
    async with TestServer(_app()) as server:
        async with PageFetcher(settings) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch(str(server.make_url("/missing")))

    assert exc_info.value.status == 404
    assert "HTTP 404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_redirect_loop_raises(settings):
    async with TestServer(_app()) as server:
        async with PageFetcher(settings) as fetcher:
            with pytest.raises(FetchError, match="redirects"):
                await fetcher.fetch(str(server.make_url("/loop")))


@pytest.mark.asyncio
async def test_connection_refused_raises(settings):
    async with TestServer(_app()) as server:
        url = str(server.make_url("/noticias"))

    # Server is closed now
    async with PageFetcher(settings) as fetcher:
        with pytest.raises(FetchError):
            await fetcher.fetch(url)


@pytest.mark.asyncio
async def test_custom_user_agent_is_sent(settings):
    async with TestServer(_app()) as server:
        async with PageFetcher(settings, user_agent="FonteBot/2.0") as fetcher:
            result = await fetcher.fetch(str(server.make_url("/agent")))

    assert result.text == "FonteBot/2.0"


@pytest.mark.asyncio
async def test_robots_rules(settings):
    async with TestServer(_app()) as server:
        async with PageFetcher(settings) as fetcher:
            assert await fetcher.is_allowed(str(server.make_url("/noticias")))
            assert not await fetcher.is_allowed(str(server.make_url("/privado/pagina")))


@pytest.mark.asyncio
async def test_missing_robots_allows_everything(settings):
    async with TestServer(_app(with_robots=False)) as server:
        async with PageFetcher(settings) as fetcher:
            assert await fetcher.is_allowed(str(server.make_url("/privado/pagina")))


@pytest.mark.asyncio
async def test_fetch_requires_context_manager(settings):
    fetcher = PageFetcher(settings)

    with pytest.raises(RuntimeError):
        await fetcher.fetch("https://example.com")
