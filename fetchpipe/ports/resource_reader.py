# /fetchpipe/ports/resource_reader.py
from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol


class ByteStream(Protocol):
    async def read(self, size: int = -1) -> bytes:
        """Return up to `size` bytes; b"" signals end of data."""


class ResourceReaderPort(Protocol):
    def open(self, locator: str) -> AbstractAsyncContextManager[ByteStream]:
        """Open a byte stream for locator; the stream is released on context exit.

        Raises a ResourceError subclass (NotFound, ResourceConnectionError,
        ResourceTimeout, UnsupportedScheme) when the resource cannot be opened.
        """
