# /fetchpipe/adapters/system/logging_cfg.py
from __future__ import annotations

import json
import logging
import sys
from typing import IO, Any

from fetchpipe.config import settings


class JSONFormatter(logging.Formatter):
    """One JSON object per line; fields passed as extra={"extra": {...}} are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logger(level: int | str | None = None, stream: IO[str] | None = None) -> None:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level or settings.LOG_LEVEL.upper())
    root.addHandler(handler)
