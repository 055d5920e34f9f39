"""Centralized logging configuration for the ``finance_tracker`` package.

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  logger (``"finance_tracker"``). Called once by the CLI at startup.
- ``get_logger(name)``: acquire a logger, making sure the package logger has a
  ``NullHandler`` when nothing has been configured yet.

Library modules never attach their own handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "finance_tracker"
_CONFIGURED = False


def _parse_level(level: int | str | None, default: int = logging.WARNING) -> int:
    if level is None:
        # Env override when no explicit level is given
        level = os.getenv("FINANCE_TRACKER_LOG_LEVEL")
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    return default


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package logger exactly once.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level name. If ``None``, falls back to the
        ``FINANCE_TRACKER_LOG_LEVEL`` environment variable, then ``WARNING``.
    fmt:
        Optional format string. Defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Output stream for the handler (``sys.stderr`` by default).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s")
    )

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, silent until an application configures output."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
