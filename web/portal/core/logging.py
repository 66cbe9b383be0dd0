# portal/core/logging.py
from __future__ import annotations

import logging

from portal.core.config import settings

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def _level(name: str) -> int:
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """
    Configure root logging once. Idempotent.
    LOG_LEVEL controls verbosity (default INFO).
    """
    root = logging.getLogger()
    level = _level(settings.LOG_LEVEL)
    if root.handlers:
        # already configured (pytest, uvicorn, etc.)
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    root.setLevel(level)
    root.addHandler(handler)
