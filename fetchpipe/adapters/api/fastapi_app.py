# /fetchpipe/adapters/api/fastapi_app.py
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel

from fetchpipe.adapters.readers.scheme_router import default_reader
from fetchpipe.adapters.system.logging_cfg import configure_logger
from fetchpipe.config import settings
from fetchpipe.domain.digest import normalize_algorithm
from fetchpipe.domain.fetch_service import FetchResult, FetchService
from fetchpipe.errors import InvalidArgument, NotFound, ResourceError

LOG = logging.getLogger("adapter.api")
configure_logger()

_service: FetchService | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    global _service
    if _service is not None:
        close = getattr(_service.reader, "close", None)
        if close is not None:
            await close()
        _service = None
        LOG.info("service.closed")


app = FastAPI(title="fetchpipe", lifespan=lifespan)


def get_service() -> FetchService:
    """Build the service on first use; tests swap it via app.dependency_overrides."""
    global _service
    if _service is None:
        _service = FetchService(default_reader())
    return _service


def _check_key(x_api_key: str | None) -> None:
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="invalid api key")


class FetchRequestModel(BaseModel):
    locators: list[str]
    max_concurrent_streams: int | None = None
    stop_on_first_error: bool | None = None


class DigestRequestModel(BaseModel):
    locator: str
    algorithm: str | None = None


def _result_dict(r: FetchResult) -> dict:
    return {
        "index": r.index,
        "locator": r.locator,
        "ok": r.ok,
        "content": r.content,
        "error": None if r.error is None else {"type": type(r.error).__name__, "detail": str(r.error)},
    }


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/fetch")
async def fetch(
    payload: FetchRequestModel,
    x_api_key: str | None = Header(default=None),
    svc: FetchService = Depends(get_service),
) -> dict:
    _check_key(x_api_key)
    try:
        results = svc.fetch_all(
            payload.locators,
            payload.max_concurrent_streams,
            stop_on_first_error=payload.stop_on_first_error,
        )
        out = [_result_dict(r) async for r in results]
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ResourceError as e:
        LOG.warning("fetch.aborted", extra={"extra": {"locator": e.locator, "error": str(e)}})
        raise HTTPException(status_code=502, detail=str(e)) from e

    LOG.info("fetch.done", extra={"extra": {"count": len(out)}})
    return {"results": out}


@app.post("/digest")
async def digest(
    payload: DigestRequestModel,
    x_api_key: str | None = Header(default=None),
    svc: FetchService = Depends(get_service),
) -> dict:
    _check_key(x_api_key)
    try:
        value = await svc.digest_resource(payload.locator, payload.algorithm)
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ResourceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return {
        "locator": payload.locator,
        "algorithm": normalize_algorithm(payload.algorithm or settings.DIGEST_ALGORITHM),
        "digest": value,
    }
