"""Service‑wide logging configuration for **CrawlBridge**.

Highlights
----------
* One project logger (``CrawlBridge``) writing to stdout and, optionally, to
  a rotating log file.
* Components log through children of that logger::

      from crawl_bridge.logger import get_logger
      log = get_logger("supervisor")   # -> "CrawlBridge.supervisor"

* Output of crawl subprocesses goes to its own child logger
  (``CrawlBridge.child``) with a separate level, so the service can run at
  ``INFO`` while still echoing what the crawl engine prints.
* Re‑configurable at runtime via :func:`configure` (the CLI does this before
  the server starts).
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, List, Optional, Union

# --------------------------------------------------------------------------- #
# Constants & basic types                                                     #
# --------------------------------------------------------------------------- #

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "CrawlBridge"
CHILD_LOGGER: Final[str] = "child"

_LevelT = Union[int, str]

# 5 MiB per file, three backups
_ROTATE_BYTES: Final[int] = 5 * 1024 * 1024
_ROTATE_BACKUPS: Final[int] = 3


def _handlers(fmt: str, log_file: Optional[Union[str, Path]]) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(
                str(log_file), maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_BACKUPS, encoding="utf-8"
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
    child_level: Optional[_LevelT] = None,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the project logger.

    Parameters
    ----------
    level
        Level of the service itself (``"DEBUG"``, ``"INFO"``, ...).
    log_file
        Path to a logfile. *None* → stdout only.
    log_format
        Format string for :class:`logging.Formatter`.
    child_level
        Level of ``CrawlBridge.child``, which receives every stdout/stderr
        chunk of a crawl subprocess at ``DEBUG``. *None* → follow *level*.
    replace_handlers
        *True* – remove existing handlers; *False* – just append new one(s).
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)
    if replace_handlers:
        lg.handlers.clear()
    for handler in _handlers(log_format, log_file):
        lg.addHandler(handler)
    lg.propagate = False

    get_logger(CHILD_LOGGER).setLevel(child_level if child_level is not None else logging.NOTSET)
    return lg


def init_logging(level: _LevelT = "INFO", log_file: Union[str, Path, None] = None) -> logging.Logger:
    """Shortcut used at import time and by the tests."""
    return configure(level=level, log_file=log_file, replace_handlers=True)


def get_logger(component: str) -> logging.Logger:
    """Return the child logger for *component* (propagates to the project logger)."""
    return logging.getLogger(f"{LOGGER_NAME}.{component}")


# --------------------------------------------------------------------------- #
# Ready‑to‑use instance                                                       #
# --------------------------------------------------------------------------- #

logger: logging.Logger = init_logging()

__all__ = [
    "logger",
    "configure",
    "init_logging",
    "get_logger",
    "LOGGER_NAME",
    "CHILD_LOGGER",
    "DEFAULT_FORMAT",
]
