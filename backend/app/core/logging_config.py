# backend/app/core/logging_config.py
"""
Root logger configuration.

LOG_FORMAT=json emits one JSON object per line (python-json-logger);
LOG_FORMAT=text (default) is human-readable. LOG_LEVEL takes a stdlib level name.
"""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

from app.core.config import settings

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _level(name: str | None) -> int:
    numeric = getattr(logging, (name or "INFO").strip().upper(), None)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric


def setup_logging() -> None:
    level = _level(settings.LOG_LEVEL)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid double handlers when the app factory runs more than once (tests)
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if settings.LOG_FORMAT.strip().lower() == "json":
        handler.setFormatter(
            JsonFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root.addHandler(handler)
