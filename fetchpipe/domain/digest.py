# /fetchpipe/domain/digest.py
from __future__ import annotations

import hashlib
import logging

from fetchpipe.config import settings
from fetchpipe.errors import DigestIOError, InvalidArgument, InvalidState
from fetchpipe.ports.resource_reader import ByteStream

LOG = logging.getLogger("digest")


def normalize_algorithm(name: str) -> str:
    """Map "MD5", "SHA-256", "sha1" ... onto a hashlib name."""
    algo = name.strip().lower().replace("-", "")
    if algo.startswith("shake_") or algo not in hashlib.algorithms_available:
        raise InvalidArgument(f"unsupported digest algorithm: {name!r}")
    return algo


class DigestAccumulator:
    """
    Folds byte chunks into a hash. Chunks must arrive in stream order.
    finalize() may be called once; the accumulator is dead afterwards.
    """

    def __init__(self, algorithm: str = "md5") -> None:
        self.algorithm = normalize_algorithm(algorithm)
        self._hash = hashlib.new(self.algorithm)
        self._value: str | None = None
        self.bytes_seen = 0

    @property
    def finalized(self) -> bool:
        return self._value is not None

    def update(self, chunk: bytes) -> None:
        if self.finalized:
            raise InvalidState("digest already finalized")
        self._hash.update(chunk)
        self.bytes_seen += len(chunk)

    def finalize(self) -> str:
        if self.finalized:
            raise InvalidState("digest already finalized")
        self._value = self._hash.hexdigest().upper()
        return self._value


async def digest(
    stream: ByteStream,
    *,
    algorithm: str | None = None,
    chunk_size: int | None = None,
) -> str:
    """Hash `stream` chunk by chunk; returns the uppercase hex digest."""
    size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
    if size < 1:
        raise InvalidArgument(f"chunk_size must be >= 1, got {size}")

    acc = DigestAccumulator(algorithm or settings.DIGEST_ALGORITHM)
    while True:
        try:
            chunk = await stream.read(size)
        except OSError as e:
            LOG.warning(
                "digest.read_failed",
                extra={"extra": {"bytes_seen": acc.bytes_seen, "error": type(e).__name__}},
            )
            raise DigestIOError(f"stream read failed after {acc.bytes_seen} bytes: {e}") from e
        if not chunk:
            break
        acc.update(chunk)

    value = acc.finalize()
    LOG.info(
        "digest.done",
        extra={"extra": {"algorithm": acc.algorithm, "bytes": acc.bytes_seen}},
    )
    return value
