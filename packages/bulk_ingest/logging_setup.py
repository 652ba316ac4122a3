"""Logging for ``bulk_ingest``.

Every module logs through a child of the ``"bulk_ingest"`` logger obtained
with :func:`get_logger`. Nothing is printed until an entrypoint calls
:func:`configure_logging`; before that the package logger only carries a
``NullHandler``.

The CLI configures logging from its root callback. A host service that embeds
the parser keeps its own logging setup and never needs this module beyond
:func:`get_logger`.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "bulk_ingest"
LEVEL_ENV = "BULK_INGEST_LOG_LEVEL"
# Batch ingestion parses files on worker threads.
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``BULK_INGEST_LOG_LEVEL`` when ``None``) into a number.

    Names are case-insensitive and digit strings are taken as numbers. Anything
    unrecognized means ``INFO``.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(level: int | str | None = None, *, stream: IO[str] = sys.stderr) -> logging.Handler:
    """Send package records to ``stream`` and return the installed handler.

    Only the first call installs a handler; later calls return it unchanged.
    Records stop at the package logger and never reach the root logger.
    """

    global _handler
    if _handler is not None:
        return _handler

    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pkg.addHandler(handler)
    pkg.setLevel(resolved)
    pkg.propagate = False

    _handler = handler
    return handler


def reset_logging() -> None:
    """Undo :func:`configure_logging` so the next call starts over."""

    global _handler
    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in list(pkg.handlers):
        pkg.removeHandler(h)
    pkg.setLevel(logging.NOTSET)
    pkg.propagate = True
    _handler = None


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a ``bulk_ingest`` module."""

    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging", "resolve_level"]
