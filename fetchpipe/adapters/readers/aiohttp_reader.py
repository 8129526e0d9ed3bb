# /fetchpipe/adapters/readers/aiohttp_reader.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp

from fetchpipe.config import settings
from fetchpipe.errors import NotFound, ResourceConnectionError, ResourceTimeout

LOG = logging.getLogger("adapter.reader.http")

_GONE = (404, 410)


class _ResponseStream:
    """Body stream of an open response; maps aiohttp errors onto ResourceError."""

    def __init__(self, resp: aiohttp.ClientResponse, url: str) -> None:
        self._content = resp.content
        self._url = url

    async def read(self, size: int = -1) -> bytes:
        try:
            return await self._content.read(size)
        except TimeoutError as e:
            raise ResourceTimeout("read timed out", self._url) from e
        except aiohttp.ClientError as e:
            raise ResourceConnectionError(f"read failed: {e}", self._url) from e


class AiohttpReader:
    """
    Loop-aware aiohttp reader.
    The session is bound to the loop that created it; when called from a new
    loop (asyncio.run per call, TestClient portals) it is closed and rebuilt.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        retries: int | None = None,
        backoff_ms: int | None = None,
        verify_tls: bool | None = None,
    ) -> None:
        total = settings.TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self._timeout = aiohttp.ClientTimeout(total=total or None)
        self._retries = settings.RETRIES if retries is None else retries
        self._backoff_ms = settings.RETRY_BACKOFF_MS if backoff_ms is None else backoff_ms
        self._verify_tls = settings.VERIFY_TLS if verify_tls is None else verify_tls
        self._session: aiohttp.ClientSession | None = None
        self._loop: asyncio.AbstractEventLoop | None = None  # track owning loop

    async def _ensure_session(self) -> aiohttp.ClientSession:
        loop = asyncio.get_running_loop()
        if self._loop is not None and self._loop is not loop:
            # session belongs to another (likely closed) loop: close and reset
            try:
                if self._session and not self._session.closed:
                    await self._session.close()
            finally:
                self._session = None
                self._loop = None

        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=settings.CONNECTOR_LIMIT,
                limit_per_host=settings.PER_HOST_LIMIT,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout,
                raise_for_status=False,
            )
            self._loop = loop

        return self._session

    async def _get(self, url: str) -> aiohttp.ClientResponse:
        """GET with exponential backoff on transport errors. HTTP statuses are not retried."""
        sess = await self._ensure_session()
        attempt = 0
        while True:
            try:
                LOG.info("reader.fetching", extra={"extra": {"url": url, "attempt": attempt}})
                return await sess.get(url, ssl=self._verify_tls, allow_redirects=True)
            except (TimeoutError, aiohttp.ClientError) as e:
                if attempt >= self._retries:
                    if isinstance(e, TimeoutError):
                        raise ResourceTimeout("open timed out", url) from e
                    raise ResourceConnectionError(f"{type(e).__name__}: {e}", url) from e
                delay = (self._backoff_ms / 1000.0) * (2**attempt)
                LOG.warning(
                    "reader.retry",
                    extra={"extra": {"url": url, "error": type(e).__name__, "delay": delay}},
                )
                await asyncio.sleep(delay)
                attempt += 1

    @asynccontextmanager
    async def open(self, locator: str) -> AsyncIterator[_ResponseStream]:
        resp = await self._get(locator)
        try:
            if resp.status in _GONE:
                raise NotFound(f"HTTP {resp.status}", locator)
            if resp.status >= 400:
                raise ResourceConnectionError(f"HTTP {resp.status}", locator)
            yield _ResponseStream(resp, locator)
        finally:
            resp.release()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._loop = None
