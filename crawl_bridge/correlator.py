# crawl_bridge/correlator.py
"""
ResultCorrelator: turns a finished child process back into a crawl result.

A well-formed result artifact is returned exactly as the child wrote it.
Anything else (missing, truncated, wrong shape) becomes a fallback
``success: false`` result carrying the captured output and exit code, so
callers never see a raw I/O or parse error.
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from crawl_bridge.errors import CorrelationFailure
from crawl_bridge.logger import get_logger
from crawl_bridge.models import CrawlResult, ProcessHandle

__all__ = ("ResultCorrelator",)


class ResultCorrelator:
    """Reads and reconciles the result artifact of one execution."""

    def __init__(self) -> None:
        self.logger = get_logger("correlator")

    async def read(self, result_path: Path) -> Dict[str, Any]:
        """Load the artifact and check its shape. Raises CorrelationFailure."""
        try:
            raw = await asyncio.to_thread(Path(result_path).read_text, encoding="utf-8")
        except OSError as exc:
            raise CorrelationFailure(str(exc)) from exc
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorrelationFailure(f"invalid JSON ({exc})") from exc
        if not isinstance(payload, dict):
            raise CorrelationFailure(f"expected a JSON object, got {type(payload).__name__}")
        try:
            CrawlResult.model_validate(payload)
        except ValidationError as exc:
            raise CorrelationFailure(
                f"result does not match the crawl result shape ({exc.error_count()} errors)"
            ) from exc
        return payload

    def fallback(self, url: str, reason: str, handle: ProcessHandle) -> Dict[str, Any]:
        error = f"Failed to read result file: {reason}. Python process exited with code {handle.returncode}"
        return CrawlResult.failure(
            url,
            error,
            stdout=handle.stdout,
            stderr=handle.stderr,
            exitCode=handle.returncode,
        ).payload()

    async def correlate(self, url: str, result_path: Path, handle: ProcessHandle) -> Dict[str, Any]:
        """Return the child's payload verbatim, or a fallback result."""
        try:
            return await self.read(result_path)
        except CorrelationFailure as exc:
            self.logger.warning("No usable result for %s (exit code %s): %s", url, handle.returncode, exc)
            return self.fallback(url, str(exc), handle)
