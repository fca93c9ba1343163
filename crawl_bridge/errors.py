# crawl_bridge/errors.py
"""
Error taxonomy of the crawl execution pipeline.

Only :class:`ConfigurationError`, :class:`SpawnError` and
:class:`CrawlTimeoutError` ever reach the HTTP layer. Logical crawl failures
and unreadable result artifacts are turned into ``success: false`` payloads
by the correlator and are not exceptions from the caller's point of view.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from crawl_bridge.models import ProcessHandle


class CrawlBridgeError(Exception):
    """Base class for every error raised by crawl_bridge."""


class ConfigurationError(CrawlBridgeError):
    """Workspace directory or arena could not be created, or bad config."""


class SpawnError(CrawlBridgeError):
    """The child process could not be started (missing binary, permissions)."""

    def __init__(self, message: str, argv: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.argv = argv or []


class CrawlTimeoutError(CrawlBridgeError):
    """The child outlived its bounded wait and was killed."""

    def __init__(self, message: str, handle: "ProcessHandle") -> None:
        super().__init__(message)
        self.handle = handle


class CorrelationFailure(CrawlBridgeError):
    """Result artifact missing or malformed after the child exited."""


class InvalidTransition(CrawlBridgeError, RuntimeError):
    """A lifecycle stage was advanced out of order."""


class CleanupWarning(UserWarning):
    """Category for artifacts that could not be removed."""


__all__ = [
    "CrawlBridgeError",
    "ConfigurationError",
    "SpawnError",
    "CrawlTimeoutError",
    "CorrelationFailure",
    "InvalidTransition",
    "CleanupWarning",
]
