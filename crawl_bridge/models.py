# crawl_bridge/models.py
"""
Data models for the crawl execution pipeline.

``CrawlRequest`` and ``CrawlResult`` are the wire types (camelCase JSON).
``ProcessHandle`` and ``Lifecycle`` only live for one execution.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from crawl_bridge.config import CrawlDefaults, Strategy
from crawl_bridge.errors import InvalidTransition


class CrawlRequest(BaseModel):
    """Incoming crawl request. Every option left as ``None`` is filled by :meth:`resolve`."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    url: str
    max_pages: Optional[int] = Field(None, ge=1)
    depth: Optional[int] = Field(None, ge=0)
    strategy: Optional[Strategy] = None
    query: Optional[str] = None
    capture_network_traffic: Optional[bool] = None
    capture_console: Optional[bool] = None
    capture_html: Optional[bool] = Field(None, alias="captureHTML")
    capture_screenshots: Optional[bool] = None
    wait_time: Optional[int] = Field(None, ge=0)

    @field_validator("url")
    def _url_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("URL is required")
        return v

    def resolve(self, defaults: CrawlDefaults) -> "CrawlRequest":
        """Return a copy where every unset option takes its configured default."""
        filled = {
            name: getattr(defaults, name)
            for name in CrawlDefaults.model_fields
            if getattr(self, name) is None
        }
        return self.model_copy(update=filled)

    def to_params(self) -> Dict[str, Any]:
        """Plain snake_case mapping written to the parameter artifact."""
        return self.model_dump(by_alias=False)


class CrawlResult(BaseModel):
    """Canonical crawl outcome. Unknown keys written by the artifact are kept."""

    model_config = ConfigDict(extra="allow", strict=True)

    success: bool
    url: str
    markdown: str
    text: str
    media: Dict[str, Any] = Field(default_factory=lambda: {"tables": []})
    error: Optional[str] = None
    traceback: Optional[str] = None

    @classmethod
    def failure(cls, url: str, error: str, **extra: Any) -> "CrawlResult":
        """Build a ``success: false`` result with the usual markdown/text placeholders."""
        return cls(
            success=False,
            url=url,
            error=error,
            markdown=f"# Error\n\nError occurred while crawling {url}: {error}",
            text=f"Error occurred while crawling {url}: {error}",
            **extra,
        )

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass(slots=True)
class ProcessHandle:
    """Everything observed about one child process."""

    argv: List[str]
    pid: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = None
    timed_out: bool = False
    started_at: float = field(default_factory=time.monotonic)
    duration: float = 0.0

    @property
    def exited(self) -> bool:
        return self.returncode is not None


class Stage(str, Enum):
    """Stages of one crawl execution."""

    PENDING = "pending"
    SPAWNING = "spawning"
    RUNNING = "running"
    DRAINING = "draining"
    CORRELATING = "correlating"
    CLEANING = "cleaning"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: Dict[Stage, frozenset[Stage]] = {
    Stage.PENDING: frozenset({Stage.SPAWNING}),
    Stage.SPAWNING: frozenset({Stage.RUNNING}),
    Stage.RUNNING: frozenset({Stage.DRAINING}),
    Stage.DRAINING: frozenset({Stage.CORRELATING}),
    Stage.CORRELATING: frozenset({Stage.CLEANING}),
    Stage.CLEANING: frozenset({Stage.DONE, Stage.FAILED}),
    Stage.DONE: frozenset(),
    Stage.FAILED: frozenset({Stage.CLEANING}),
}


@dataclass(slots=True)
class Lifecycle:
    """
    Explicit state machine for one execution.

    Happy path: PENDING → SPAWNING → RUNNING → DRAINING → CORRELATING →
    CLEANING → DONE. :meth:`fail` may interrupt any stage before cleaning;
    the record then goes FAILED → CLEANING → FAILED. A stage is never
    entered twice except the closing FAILED.
    """

    label: str = ""
    stage: Stage = Stage.PENDING
    history: List[Stage] = field(default_factory=lambda: [Stage.PENDING])
    failure: Optional[BaseException] = None

    def advance(self, target: Stage) -> None:
        if target not in _TRANSITIONS[self.stage] or (
            target in self.history and target is not Stage.FAILED
        ):
            raise InvalidTransition(f"{self.label or 'job'}: {self.stage.value} -> {target.value}")
        self.stage = target
        self.history.append(target)

    def fail(self, exc: Optional[BaseException]) -> None:
        """Interrupt the current stage; cleaning is still owed afterwards."""
        if self.stage in (Stage.CLEANING, Stage.DONE) or Stage.FAILED in self.history:
            raise InvalidTransition(f"{self.label or 'job'}: cannot fail from {self.stage.value}")
        self.failure = exc
        self.stage = Stage.FAILED
        self.history.append(Stage.FAILED)

    def finish(self) -> None:
        """Settle the closing stage after cleaning."""
        self.advance(Stage.FAILED if self.failed else Stage.DONE)

    @property
    def failed(self) -> bool:
        return Stage.FAILED in self.history

    @property
    def settled(self) -> bool:
        return self.stage in (Stage.DONE, Stage.FAILED) and Stage.CLEANING in self.history


__all__ = ["CrawlRequest", "CrawlResult", "ProcessHandle", "Stage", "Lifecycle"]
