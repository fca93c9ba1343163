# crawl_bridge/server.py
"""
HTTP surface: ``POST /api/crawl`` and ``GET /health`` on aiohttp.web.

Status mapping:
    400  missing url / malformed body
    500  SpawnError, ConfigurationError
    504  CrawlTimeoutError
    200  any crawl result, including ``success: false``
"""
from __future__ import annotations

import json
from typing import Any, Dict

from aiohttp import web
from pydantic import ValidationError

from crawl_bridge.config import ServiceConfig
from crawl_bridge.errors import CrawlBridgeError, CrawlTimeoutError
from crawl_bridge.logger import get_logger
from crawl_bridge.models import CrawlRequest
from crawl_bridge.pipeline import CrawlPipeline

__all__ = ("create_app", "run_server", "PIPELINE_KEY")

log = get_logger("server")

PIPELINE_KEY: web.AppKey[CrawlPipeline] = web.AppKey("pipeline", CrawlPipeline)


def _error(status: int, message: str, **extra: Any) -> web.Response:
    body: Dict[str, Any] = {"success": False, "error": message, **extra}
    return web.json_response(body, status=status)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ())) or "body"
        parts.append(f"{where}: {err.get('msg')}")
    return "; ".join(parts)


async def handle_crawl(request: web.Request) -> web.Response:
    try:
        raw = await request.text()
        # empty body is an empty object, so it ends up as "URL is required"
        body = json.loads(raw) if raw.strip() else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Request body must be valid JSON")
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")
    url = body.get("url")
    if isinstance(url, str):
        url = body["url"] = url.strip()
    if not url:
        return _error(400, "URL is required")

    try:
        crawl_request = CrawlRequest.model_validate(body)
    except ValidationError as exc:
        return _error(400, _describe(exc))

    log.info("Received crawl request for %s", crawl_request.url)
    pipeline = request.app[PIPELINE_KEY]
    try:
        result = await pipeline.crawl(crawl_request)
    except CrawlTimeoutError as exc:
        log.error("Crawl timed out for %s: %s", crawl_request.url, exc)
        return _error(504, str(exc), url=crawl_request.url, timedOut=True)
    except CrawlBridgeError as exc:
        log.error("Error during crawling %s: %s", crawl_request.url, exc)
        return _error(500, str(exc) or "An unknown error occurred during crawling")

    log.info("Crawled %s (success=%s)", crawl_request.url, result.get("success"))
    return web.json_response(result)


async def handle_health(request: web.Request) -> web.Response:
    status = await request.app[PIPELINE_KEY].health()
    return web.Response(text=status.body, status=status.status_code)


async def _prepare_workspace(app: web.Application) -> None:
    app[PIPELINE_KEY].workspace.ensure()


def create_app(pipeline: CrawlPipeline) -> web.Application:
    app = web.Application()
    app[PIPELINE_KEY] = pipeline
    app.router.add_post("/api/crawl", handle_crawl)
    app.router.add_get("/health", handle_health)
    app.on_startup.append(_prepare_workspace)
    return app


def run_server(config: ServiceConfig) -> None:
    """Blocking entry point used by ``crawl_bridge serve``."""
    app = create_app(CrawlPipeline(config))
    log.info("Crawl service running on %s:%s (workspace %s)", config.host, config.port, config.workspace_dir)
    # a client disconnect cancels the handler, which kills the child process
    web.run_app(app, host=config.host, port=config.port, handler_cancellation=True, print=None)
