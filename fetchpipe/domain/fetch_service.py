# /fetchpipe/domain/fetch_service.py
from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Iterable, Iterator
from dataclasses import dataclass

from fetchpipe.config import settings
from fetchpipe.domain.digest import digest
from fetchpipe.errors import (
    ContentDecodeError,
    DigestIOError,
    InvalidArgument,
    ResourceError,
    ResourceTimeout,
)
from fetchpipe.ports.resource_reader import ByteStream, ResourceReaderPort

LOG = logging.getLogger("fetch_service")

# ==== DTOs ====


@dataclass(slots=True)
class FetchResult:
    index: int
    locator: str
    content: str | None = None
    error: ResourceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        return self.content or ""


_Slot = tuple[int, str, asyncio.Task[str]]


async def read_text(stream: ByteStream, encoding: str = "utf-8", chunk_size: int = 2048) -> str:
    """Drain stream and decode it with `encoding`."""
    buf = bytearray()
    while chunk := await stream.read(chunk_size):
        buf.extend(chunk)
    try:
        return buf.decode(encoding)
    except UnicodeDecodeError as e:
        raise ContentDecodeError(f"content is not valid {encoding}: {e}") from e
    except LookupError as e:
        raise InvalidArgument(f"unknown encoding: {encoding!r}") from e


# ==== Service ====


class FetchService:
    """Throttled, order-preserving fetch and digest over an injected reader."""

    def __init__(
        self,
        reader: ResourceReaderPort,
        *,
        max_concurrent_streams: int | None = None,
        timeout_seconds: float | None = None,
        encoding: str | None = None,
        chunk_size: int | None = None,
        stop_on_first_error: bool | None = None,
    ) -> None:
        self.reader = reader
        self.max_concurrent_streams = (
            settings.MAX_CONCURRENT_STREAMS
            if max_concurrent_streams is None
            else max_concurrent_streams
        )
        self.timeout_seconds = (
            settings.TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        self.encoding = encoding or settings.DEFAULT_ENCODING
        self.chunk_size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
        if self.chunk_size < 1:
            raise InvalidArgument(f"chunk_size must be >= 1, got {self.chunk_size}")
        self.stop_on_first_error = (
            settings.STOP_ON_FIRST_ERROR if stop_on_first_error is None else stop_on_first_error
        )

    # --- single item ---

    async def _fetch_one(self, locator: str) -> str:
        # asyncio.timeout(None) never fires
        async with asyncio.timeout(self.timeout_seconds or None):
            async with self.reader.open(locator) as stream:
                return await read_text(stream, self.encoding, self.chunk_size)

    def _as_resource_error(self, locator: str, exc: OSError) -> ResourceError:
        if isinstance(exc, ResourceError):
            if exc.locator is None:
                exc.locator = locator
            return exc
        if isinstance(exc, TimeoutError):
            err: ResourceError = ResourceTimeout(
                f"timed out after {self.timeout_seconds}s", locator
            )
        else:
            err = ResourceError(f"{type(exc).__name__}: {exc}", locator)
        err.__cause__ = exc
        return err

    def _failed(self, index: int, locator: str, exc: OSError) -> FetchResult:
        err = self._as_resource_error(locator, exc)
        LOG.warning(
            "fetch.failed",
            extra={"extra": {"index": index, "locator": locator, "error": type(err).__name__}},
        )
        return FetchResult(index=index, locator=locator, error=err)

    async def fetch_text(self, locator: str) -> str:
        try:
            return await self._fetch_one(locator)
        except OSError as e:
            err = self._as_resource_error(locator, e)
            if err is e:
                raise
            raise err from e

    # --- sequences ---

    @staticmethod
    def _validate_cap(cap: object) -> int:
        if isinstance(cap, bool) or not isinstance(cap, int) or cap < 1:
            raise InvalidArgument(f"max_concurrent_streams must be an int >= 1, got {cap!r}")
        return cap

    def fetch_all(
        self,
        locators: Iterable[str],
        max_concurrent_streams: int | None = None,
        *,
        stop_on_first_error: bool | None = None,
    ) -> AsyncIterator[FetchResult]:
        """
        Yield one FetchResult per locator, in input order, with at most
        `max_concurrent_streams` fetches outstanding. Arguments are validated
        here, before the first fetch is scheduled.
        """
        cap = self._validate_cap(
            self.max_concurrent_streams if max_concurrent_streams is None else max_concurrent_streams
        )
        stop = self.stop_on_first_error if stop_on_first_error is None else stop_on_first_error
        return self._windowed(enumerate(iter(locators)), cap, stop)

    def _admit(self, pending: Iterator[tuple[int, str]], window: deque[_Slot]) -> bool:
        nxt = next(pending, None)
        if nxt is None:
            return False
        index, locator = nxt
        task = asyncio.create_task(self._fetch_one(locator), name=f"fetch[{index}]")
        window.append((index, locator, task))
        LOG.debug("fetch.admitted", extra={"extra": {"index": index, "locator": locator}})
        return True

    async def _windowed(
        self, pending: Iterator[tuple[int, str]], cap: int, stop: bool
    ) -> AsyncIterator[FetchResult]:
        window: deque[_Slot] = deque()
        for _ in range(cap):
            if not self._admit(pending, window):
                break

        try:
            while window:
                index, locator, task = window[0]
                try:
                    result = FetchResult(index=index, locator=locator, content=await task)
                except OSError as e:
                    result = self._failed(index, locator, e)
                window.popleft()
                # head slot is free again: admit before handing the result out
                self._admit(pending, window)

                if stop and result.error is not None:
                    raise result.error
                yield result
        finally:
            if window:
                LOG.info("fetch.window_cancelled", extra={"extra": {"in_flight": len(window)}})
                for _, _, task in window:
                    task.cancel()
                await asyncio.gather(*(t for _, _, t in window), return_exceptions=True)

    async def fetch_all_sequential(
        self,
        locators: Iterable[str],
        *,
        stop_on_first_error: bool | None = None,
    ) -> AsyncIterator[FetchResult]:
        """Baseline without concurrency: one fetch at a time, in order."""
        stop = self.stop_on_first_error if stop_on_first_error is None else stop_on_first_error
        for index, locator in enumerate(locators):
            try:
                result = FetchResult(
                    index=index, locator=locator, content=await self._fetch_one(locator)
                )
            except OSError as e:
                result = self._failed(index, locator, e)
            if stop and result.error is not None:
                raise result.error
            yield result

    # --- digest ---

    async def digest_resource(self, locator: str, algorithm: str | None = None) -> str:
        async with self.reader.open(locator) as stream:
            try:
                value = await digest(stream, algorithm=algorithm, chunk_size=self.chunk_size)
            except DigestIOError as e:
                e.locator = locator
                raise
        LOG.info("digest.resource", extra={"extra": {"locator": locator, "digest": value}})
        return value
