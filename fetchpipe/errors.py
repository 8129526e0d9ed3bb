# /fetchpipe/errors.py
from __future__ import annotations


class FetchPipeError(Exception):
    """Base class for every error raised by fetchpipe."""


class InvalidArgument(FetchPipeError, ValueError):
    """Caller passed malformed input; raised before any I/O starts."""


class InvalidState(FetchPipeError, RuntimeError):
    """Object used after it reached a terminal state (e.g. a finalized digest)."""


class ResourceError(FetchPipeError, OSError):
    """Failure tied to a single locator. Recovered per item by the fetcher."""

    def __init__(self, message: str, locator: str | None = None) -> None:
        super().__init__(message)
        self.locator = locator

    def __str__(self) -> str:
        msg = self.args[0] if self.args else ""
        return f"{msg} ({self.locator})" if self.locator else str(msg)


class NotFound(ResourceError):
    pass


class ResourceConnectionError(ResourceError):
    pass


class ResourceTimeout(ResourceError, TimeoutError):
    pass


class UnsupportedScheme(ResourceError):
    pass


class ContentDecodeError(ResourceError):
    pass


class DigestIOError(ResourceError):
    """Stream read failed mid-transfer while digesting; no partial digest exists."""
