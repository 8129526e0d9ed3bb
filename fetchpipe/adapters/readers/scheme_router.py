# /fetchpipe/adapters/readers/scheme_router.py
from __future__ import annotations

import logging
import string
from contextlib import AbstractAsyncContextManager
from urllib.parse import urlsplit

from fetchpipe.adapters.readers.aiohttp_reader import AiohttpReader
from fetchpipe.adapters.readers.file_reader import FileReader
from fetchpipe.errors import UnsupportedScheme
from fetchpipe.ports.resource_reader import ByteStream, ResourceReaderPort

LOG = logging.getLogger("adapter.reader.router")

_HTTP = frozenset({"http", "https"})
_FILE = frozenset({"", "file"})


class SchemeRouterReader:
    """Route each locator to the reader registered for its URL scheme."""

    def __init__(self, http: ResourceReaderPort, files: ResourceReaderPort) -> None:
        self.http = http
        self.files = files

    @staticmethod
    def _scheme(locator: str) -> str:
        scheme = urlsplit(locator).scheme.lower()
        # "C:\\data\\x.bin" parses with scheme "c"
        if len(scheme) == 1 and scheme in string.ascii_lowercase:
            return ""
        return scheme

    def open(self, locator: str) -> AbstractAsyncContextManager[ByteStream]:
        scheme = self._scheme(locator)
        if scheme in _HTTP:
            return self.http.open(locator)
        if scheme in _FILE:
            return self.files.open(locator)
        LOG.warning("reader.unsupported_scheme", extra={"extra": {"scheme": scheme}})
        raise UnsupportedScheme(f"unsupported scheme {scheme!r}", locator)

    async def close(self) -> None:
        close = getattr(self.http, "close", None)
        if close is not None:
            await close()


def default_reader() -> SchemeRouterReader:
    return SchemeRouterReader(http=AiohttpReader(), files=FileReader())
