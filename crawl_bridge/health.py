# crawl_bridge/health.py
"""
HealthProbe: checks that the crawl engine can be imported by the child interpreter.

Uses the same workspace / synthesizer / supervisor as a crawl, with a
one-line job and a shorter timeout.
"""
from __future__ import annotations

from dataclasses import dataclass

from crawl_bridge.errors import ConfigurationError, CrawlTimeoutError, SpawnError
from crawl_bridge.logger import get_logger
from crawl_bridge.supervisor import ProcessSupervisor
from crawl_bridge.synthesizer import ScriptSynthesizer
from crawl_bridge.workspace import Workspace

__all__ = ("HealthProbe", "HealthStatus")

log = get_logger("health")


@dataclass(frozen=True, slots=True)
class HealthStatus:
    healthy: bool
    detail: str

    @property
    def status_code(self) -> int:
        return 200 if self.healthy else 503

    @property
    def body(self) -> str:
        return "OK" if self.healthy else self.detail


class HealthProbe:
    def __init__(
        self,
        workspace: Workspace,
        synthesizer: ScriptSynthesizer,
        supervisor: ProcessSupervisor,
        timeout: float = 30.0,
    ) -> None:
        self.workspace = workspace
        self.synthesizer = synthesizer
        self.supervisor = supervisor
        self.timeout = timeout

    async def check(self) -> HealthStatus:
        try:
            arena = self.workspace.allocate(prefix="health-check")
        except ConfigurationError as exc:
            return HealthStatus(False, f"Service Unavailable: {exc}")
        try:
            args = self.synthesizer.write_probe(arena)
            handle = await self.supervisor.run(args, timeout=self.timeout)
        except (SpawnError, CrawlTimeoutError, OSError) as exc:
            log.error("Health probe failed: %s", exc)
            return HealthStatus(False, f"Service Unavailable: {exc}")
        finally:
            self.workspace.release(arena)

        if handle.returncode == 0:
            return HealthStatus(True, handle.stdout.strip())
        log.warning("Health probe exited with code %s", handle.returncode)
        return HealthStatus(
            False,
            "Service Unavailable: Crawl engine not working properly\n"
            f"Stdout: {handle.stdout}\nStderr: {handle.stderr}",
        )
