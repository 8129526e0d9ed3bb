# /tests/test_aiohttp_reader.py
from __future__ import annotations

import asyncio
import hashlib
from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from fetchpipe.adapters.readers.aiohttp_reader import AiohttpReader
from fetchpipe.domain.fetch_service import FetchService
from fetchpipe.errors import DigestIOError, NotFound, ResourceConnectionError

BIG = bytes(range(256)) * 40  # 10240 bytes


async def _ok(request: web.Request) -> web.Response:
    return web.Response(text=f"page {request.match_info['name']}")


async def _big(request: web.Request) -> web.Response:
    return web.Response(body=BIG)


async def _boom(request: web.Request) -> web.Response:
    return web.Response(status=500, text="boom")


async def _truncated(request: web.Request) -> web.StreamResponse:
    resp = web.StreamResponse(headers={"Content-Length": "5000"})
    await resp.prepare(request)
    await resp.write(b"x" * 100)
    request.transport.close()
    return resp


@pytest_asyncio.fixture
async def server() -> AsyncIterator[TestServer]:
    app = web.Application()
    app.router.add_get("/page/{name}", _ok)
    app.router.add_get("/big", _big)
    app.router.add_get("/boom", _boom)
    app.router.add_get("/truncated", _truncated)
    srv = TestServer(app)
    await srv.start_server()
    try:
        yield srv
    finally:
        await srv.close()


@pytest_asyncio.fixture
async def reader() -> AsyncIterator[AiohttpReader]:
    r = AiohttpReader(timeout_seconds=5, retries=0, verify_tls=False)
    try:
        yield r
    finally:
        await r.close()


@pytest.mark.asyncio
async def test_fetch_all_over_http(server: TestServer, reader: AiohttpReader) -> None:
    svc = FetchService(reader, timeout_seconds=5)
    urls = [str(server.make_url(f"/page/{i}")) for i in range(5)]
    urls.insert(1, str(server.make_url("/missing")))

    out = [r async for r in svc.fetch_all(urls, 2)]

    assert [r.content for r in out] == ["page 0", None, "page 1", "page 2", "page 3", "page 4"]
    assert isinstance(out[1].error, NotFound)


@pytest.mark.asyncio
async def test_server_error_is_connection_error(server: TestServer, reader: AiohttpReader) -> None:
    with pytest.raises(ResourceConnectionError):
        async with reader.open(str(server.make_url("/boom"))):
            pass


@pytest.mark.asyncio
async def test_digest_over_http(server: TestServer, reader: AiohttpReader) -> None:
    svc = FetchService(reader, chunk_size=2048)
    value = await svc.digest_resource(str(server.make_url("/big")), "sha256")
    assert value == hashlib.sha256(BIG).hexdigest().upper()


@pytest.mark.asyncio
async def test_truncated_body_fails_digest(server: TestServer, reader: AiohttpReader) -> None:
    svc = FetchService(reader)
    with pytest.raises(DigestIOError):
        await svc.digest_resource(str(server.make_url("/truncated")))


@pytest.mark.asyncio
async def test_connection_refused(reader: AiohttpReader) -> None:
    srv = TestServer(web.Application())
    await srv.start_server()
    url = str(srv.make_url("/gone"))
    await srv.close()

    with pytest.raises(ResourceConnectionError):
        async with reader.open(url):
            pass


def test_session_closed_when_loop_changes() -> None:
    reader = AiohttpReader(retries=0)
    first = asyncio.run(reader._ensure_session())

    async def _second() -> aiohttp.ClientSession:
        try:
            return await reader._ensure_session()
        finally:
            await reader.close()

    second = asyncio.run(_second())

    assert second is not first
    assert first.closed
    assert second.closed
