# /tests/test_scheme_router.py
from __future__ import annotations

import pytest

from fetchpipe.adapters.readers.aiohttp_reader import AiohttpReader
from fetchpipe.adapters.readers.file_reader import FileReader
from fetchpipe.adapters.readers.scheme_router import SchemeRouterReader, default_reader
from fetchpipe.domain.fetch_service import FetchService
from fetchpipe.errors import UnsupportedScheme
from tests.fakes import FakeReader


def _router() -> tuple[SchemeRouterReader, FakeReader, FakeReader]:
    http = FakeReader(default=lambda loc: b"http")
    files = FakeReader(default=lambda loc: b"file")
    return SchemeRouterReader(http=http, files=files), http, files


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("locator", "expected"),
    [
        ("http://example.com/a", "http"),
        ("HTTPS://example.com/a", "http"),
        ("file:///tmp/a.txt", "file"),
        ("/tmp/a.txt", "file"),
        ("relative/a.txt", "file"),
        ("C:\\data\\a.txt", "file"),
    ],
)
async def test_routes_by_scheme(locator: str, expected: str) -> None:
    router, _, _ = _router()
    svc = FetchService(router, timeout_seconds=0)
    assert await svc.fetch_text(locator) == expected


def test_unsupported_scheme_raises() -> None:
    router, http, files = _router()
    with pytest.raises(UnsupportedScheme):
        router.open("ftp://example.com/a")
    assert http.opened == files.opened == []


@pytest.mark.asyncio
async def test_unsupported_scheme_is_per_item_failure() -> None:
    router, _, _ = _router()
    svc = FetchService(router, timeout_seconds=0)
    out = [r async for r in svc.fetch_all(["http://a", "ftp://b", "/c"], 2)]
    assert [r.content for r in out] == ["http", None, "file"]
    assert isinstance(out[1].error, UnsupportedScheme)


def test_default_reader_wiring() -> None:
    router = default_reader()
    assert isinstance(router.http, AiohttpReader)
    assert isinstance(router.files, FileReader)
