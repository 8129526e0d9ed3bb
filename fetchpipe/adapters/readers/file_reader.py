# /fetchpipe/adapters/readers/file_reader.py
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit
from urllib.request import url2pathname

import aiofiles

from fetchpipe.errors import NotFound, ResourceConnectionError

LOG = logging.getLogger("adapter.reader.file")


def locator_to_path(locator: str) -> Path:
    """Accept plain paths and file:// URLs."""
    parts = urlsplit(locator)
    if parts.scheme.lower() == "file":
        return Path(url2pathname(parts.path))
    return Path(locator)


class _FileStream:
    def __init__(self, fh: Any, locator: str) -> None:
        self._fh = fh
        self._locator = locator

    async def read(self, size: int = -1) -> bytes:
        try:
            return await self._fh.read(size)
        except OSError as e:
            raise ResourceConnectionError(f"read failed: {e}", self._locator) from e


class FileReader:
    @asynccontextmanager
    async def open(self, locator: str) -> AsyncIterator[_FileStream]:
        path = locator_to_path(locator)
        try:
            fh = await aiofiles.open(path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise NotFound("no such file", locator) from e
        except OSError as e:
            raise ResourceConnectionError(f"cannot open: {e}", locator) from e

        LOG.debug("reader.opened", extra={"extra": {"path": str(path)}})
        try:
            yield _FileStream(fh, locator)
        finally:
            await fh.close()
