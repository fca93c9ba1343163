# File: crawl_bridge/pipeline.py
"""crawl_bridge.pipeline: оркестрация одного краулинга: арена, скрипт, подпроцесс, результат, очистка."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from crawl_bridge.config import ServiceConfig
from crawl_bridge.correlator import ResultCorrelator
from crawl_bridge.errors import ConfigurationError
from crawl_bridge.health import HealthProbe, HealthStatus
from crawl_bridge.logger import logger
from crawl_bridge.models import CrawlRequest, Lifecycle, Stage
from crawl_bridge.supervisor import ProcessSupervisor
from crawl_bridge.synthesizer import ScriptSynthesizer
from crawl_bridge.workspace import Workspace

__all__ = ["CrawlPipeline"]


class CrawlPipeline:
    """Фасад для HTTP-сервера, CLI и тестов. Все компоненты можно подменить."""

    def __init__(
        self,
        config: ServiceConfig,
        *,
        workspace: Optional[Workspace] = None,
        synthesizer: Optional[ScriptSynthesizer] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        correlator: Optional[ResultCorrelator] = None,
    ) -> None:
        self.config = config
        self.workspace = workspace or Workspace(config.workspace_dir)
        self.synthesizer = synthesizer or ScriptSynthesizer(config.engine_module)
        self.supervisor = supervisor or ProcessSupervisor(
            config.python_executable, python_path=config.python_path
        )
        self.correlator = correlator or ResultCorrelator()
        self.probe = HealthProbe(
            self.workspace, self.synthesizer, self.supervisor, timeout=config.health_timeout
        )
        # None: без ограничения числа одновременных подпроцессов
        limit = config.max_concurrent_crawls
        self._slots: Optional[asyncio.Semaphore] = asyncio.Semaphore(limit) if limit else None

    async def crawl(self, request: CrawlRequest) -> Dict[str, Any]:
        """Подставляет значения по умолчанию и выполняет запрос (с учётом лимита)."""
        resolved = request.resolve(self.config.defaults)
        logger.info("Crawling website: %s (depth=%s, max_pages=%s)", resolved.url, resolved.depth, resolved.max_pages)
        if self._slots is None:
            return await self.execute(resolved)
        async with self._slots:
            return await self.execute(resolved)

    async def execute(self, request: CrawlRequest, lifecycle: Optional[Lifecycle] = None) -> Dict[str, Any]:
        """
        Проводит уже разрешённый запрос через все стадии.
        Очистка арены выполняется на любом пути выхода, включая отмену и таймаут.
        """
        arena = self.workspace.allocate()
        job = lifecycle or Lifecycle()
        job.label = job.label or arena.stem
        try:
            try:
                args = self.synthesizer.write(request, arena)
            except OSError as exc:
                raise ConfigurationError(f"Cannot write crawl artifacts in {arena.directory}: {exc}") from exc
            handle = await self.supervisor.run(
                args, timeout=self.config.crawl_timeout, lifecycle=job, cwd=arena.directory
            )
            job.advance(Stage.CORRELATING)
            result = await self.correlator.correlate(request.url, arena.result_path, handle)
        except BaseException as exc:
            job.fail(exc)
            logger.error("Crawl %s failed at stage %s: %s", job.label, job.history[-2].value, exc)
            raise
        finally:
            job.advance(Stage.CLEANING)
            self.workspace.release(arena)
            job.finish()

        logger.info(
            "Crawl %s finished: success=%s exit_code=%s in %.2f s",
            job.label, result.get("success"), handle.returncode, handle.duration,
        )
        return result

    async def health(self) -> HealthStatus:
        """Запускает health-пробу движка."""
        return await self.probe.check()
