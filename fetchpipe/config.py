# /fetchpipe/config.py
from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    API_KEY: str | None = os.getenv("API_KEY")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Fetch window
    MAX_CONCURRENT_STREAMS: int = int(os.getenv("MAX_CONCURRENT_STREAMS", "4"))
    TIMEOUT_SECONDS: float = float(os.getenv("TIMEOUT_SECONDS", "10.0"))  # 0 disables
    STOP_ON_FIRST_ERROR: bool = os.getenv("STOP_ON_FIRST_ERROR", "false").lower() == "true"

    # Streaming
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "2048"))
    DEFAULT_ENCODING: str = os.getenv("DEFAULT_ENCODING", "utf-8")
    DIGEST_ALGORITHM: str = os.getenv("DIGEST_ALGORITHM", "md5")

    # HTTP reader
    VERIFY_TLS: bool = os.getenv("VERIFY_TLS", "true").lower() == "true"
    CONNECTOR_LIMIT: int = int(os.getenv("CONNECTOR_LIMIT", "100"))
    PER_HOST_LIMIT: int = int(os.getenv("PER_HOST_LIMIT", "8"))  # sockets per host
    RETRIES: int = int(os.getenv("RETRIES", "1"))
    RETRY_BACKOFF_MS: int = int(os.getenv("RETRY_BACKOFF_MS", "250"))


settings = Settings()
