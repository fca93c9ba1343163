# File: tests/test_cli.py
"""Тесты для CLI (`crawl_bridge.cli`) с использованием click.testing.CliRunner.
Проверяют команды `crawl`, `health`, `serve`, `config`, `--version`, а также обработку ошибок.
"""
import json
import logging
import os

import pytest
from click.testing import CliRunner

from crawl_bridge.cli import cli
from crawl_bridge.errors import SpawnError
from crawl_bridge.health import HealthStatus
from crawl_bridge.logger import CHILD_LOGGER, get_logger, init_logging

QUIET = ["--log-level", "CRITICAL"]


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Без configs/default.yaml в cwd и без CRAWL_* переменных окружения."""
    monkeypatch.chdir(tmp_path)
    for name in [n for n in os.environ if n == "PORT" or n.startswith("CRAWL_")]:
        monkeypatch.delenv(name, raising=False)
    yield
    # CliRunner подменяет stdout, поэтому возвращаем обработчик на настоящий
    init_logging()


@pytest.fixture()
def fake_pipeline(monkeypatch):
    """Патчим pipeline_factory, чтобы не запускать дочерний интерпретатор."""
    calls = {}

    class FakePipeline:
        result = {"success": True, "url": "", "markdown": "# Fake", "text": "Fake", "media": {"tables": []}}
        status = HealthStatus(True, "stub_engine is installed and working")
        error = None

        def __init__(self, cfg):
            calls["config"] = cfg

        async def crawl(self, request):
            calls["request"] = request
            if FakePipeline.error is not None:
                raise FakePipeline.error
            return {**FakePipeline.result, "url": request.url}

        async def health(self):
            return FakePipeline.status

    monkeypatch.setattr(cli, "pipeline_factory", FakePipeline)
    FakePipeline.calls = calls
    return FakePipeline


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "CrawlBridge" in result.output


def test_show_config(tmp_path):
    cfg_file = tmp_path / "service.json"
    cfg_file.write_text(
        json.dumps({"port": 8181, "engine_module": "stub_engine", "defaults": {"max_pages": 4}}),
        encoding="utf-8",
    )
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "--config", str(cfg_file), "config"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["port"] == 8181
    assert data["engine_module"] == "stub_engine"
    assert data["defaults"]["max_pages"] == 4
    assert data["defaults"]["strategy"] == "bfs"


def test_bad_config_is_reported(tmp_path):
    cfg_file = tmp_path / "service.yaml"
    cfg_file.write_text("port: [unclosed", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "--config", str(cfg_file), "config"])
    assert result.exit_code == 1
    assert "Ошибка загрузки конфигурации" in result.output


def test_crawl_prints_result(fake_pipeline):
    runner = CliRunner()
    result = runner.invoke(
        cli, [*QUIET, "crawl", "https://example.com", "--depth", "2", "--max-pages", "5", "--strategy", "dfs"]
    )
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["success"] is True
    assert data["url"] == "https://example.com"

    request = fake_pipeline.calls["request"]
    assert request.depth == 2
    assert request.max_pages == 5
    assert request.strategy == "dfs"
    assert request.query is None


def test_crawl_pretty_output(fake_pipeline):
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "crawl", "https://example.com", "--pretty"])
    assert result.exit_code == 0
    assert '\n  "success": true' in result.stdout


def test_crawl_logical_failure_exits_2(fake_pipeline):
    fake_pipeline.result = {"success": False, "url": "", "markdown": "", "text": "", "error": "boom"}
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "crawl", "https://example.com"])
    assert result.exit_code == 2
    assert json.loads(result.stdout)["error"] == "boom"


def test_crawl_fatal_error_exits_1(fake_pipeline):
    fake_pipeline.error = SpawnError("Failed to start Python process: nope", ["python"])
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "crawl", "https://example.com"])
    assert result.exit_code == 1
    assert "Failed to start Python process" in result.output


def test_crawl_blank_url_is_rejected(fake_pipeline):
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "crawl", "   "])
    assert result.exit_code == 1
    assert "Некорректный запрос" in result.output
    assert "request" not in fake_pipeline.calls


def test_health_ok(fake_pipeline):
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "health"])
    assert result.exit_code == 0
    assert result.stdout.strip() == "OK"


def test_health_failure(fake_pipeline):
    fake_pipeline.status = HealthStatus(False, "Service Unavailable: Crawl engine not working properly")
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "health"])
    assert result.exit_code == 1
    assert "Crawl engine not working properly" in result.output


def test_serve_applies_overrides(monkeypatch):
    seen = {}
    monkeypatch.setattr(cli, "run_server", lambda cfg: seen.setdefault("config", cfg))
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "serve", "--port", "4321", "--host", "127.0.0.1"])
    assert result.exit_code == 0
    assert seen["config"].port == 4321
    assert seen["config"].host == "127.0.0.1"
    assert "127.0.0.1:4321" in result.stdout


def test_serve_honours_port_env(monkeypatch):
    seen = {}
    monkeypatch.setenv("PORT", "5055")
    monkeypatch.setattr(cli, "run_server", lambda cfg: seen.setdefault("config", cfg))
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "serve"])
    assert result.exit_code == 0
    assert seen["config"].port == 5055


def test_child_log_level_option():
    runner = CliRunner()
    result = runner.invoke(cli, [*QUIET, "--child-log-level", "DEBUG", "config"])
    assert result.exit_code == 0
    assert get_logger(CHILD_LOGGER).level == logging.DEBUG
