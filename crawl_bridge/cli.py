# === FILE: crawl_bridge/cli.py ===
#!/usr/bin/env python3
"""
Точка входа CrawlBridge через командную строку.

Команды:
  serve     Запустить HTTP-сервис (POST /api/crawl, GET /health)
  crawl     Выполнить один краулинг и вывести результат в JSON
  health    Проверить, что движок краулинга импортируется
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования
  --child-log-level   Уровень для stdout/stderr дочерних процессов

Дополнительно:
  --version, -v       Показать версию CrawlBridge

Пример:
  crawl_bridge crawl https://example.com --depth 1 --max-pages 5 --pretty
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from crawl_bridge import __version__
from crawl_bridge.config import load_config
from crawl_bridge.errors import CrawlBridgeError
from crawl_bridge.logger import DEFAULT_FORMAT, configure
from crawl_bridge.models import CrawlRequest
from crawl_bridge.pipeline import CrawlPipeline
from crawl_bridge.server import run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='CrawlBridge, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.option(
    '--child-log-level', 'child_log_level',
    default=None,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень для вывода дочерних процессов (DEBUG, чтобы видеть stdout/stderr движка)'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format, child_log_level):
    """Группа команд CrawlBridge CLI."""
    configure(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format,
        child_level=child_log_level,
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default=None, help='Адрес для прослушивания (override host)')
@click.option('--port', '-p', type=int, default=None, help='Порт (override port)')
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP-сервис."""
    cfg = ctx.obj['config']
    overrides = {k: v for k, v in (('host', host), ('port', port)) if v is not None}
    if overrides:
        cfg = cfg.model_copy(update=overrides)
    click.echo(f'Starting crawl service on {cfg.host}:{cfg.port}')
    cli.run_server(cfg)


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--max-pages', type=click.IntRange(min=1), default=None, help='Лимит страниц')
@click.option('--depth', type=click.IntRange(min=0), default=None, help='Глубина обхода')
@click.option(
    '--strategy', type=click.Choice(['bfs', 'dfs', 'best_first']), default=None,
    help='Стратегия обхода'
)
@click.option('--query', default=None, help='Ключевые слова для best_first')
@click.option('--wait-time', type=click.IntRange(min=0), default=None, help='Задержка перед снятием HTML (мс)')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def crawl(ctx, url, max_pages, depth, strategy, query, wait_time, pretty):
    """Выполнить один краулинг URL и напечатать результат."""
    cfg = ctx.obj['config']
    try:
        request = CrawlRequest(
            url=url, max_pages=max_pages, depth=depth, strategy=strategy, query=query, wait_time=wait_time
        )
    except ValidationError as e:
        print_error(f'Некорректный запрос: {e.errors()[0]["msg"]}')
    pipeline = cli.pipeline_factory(cfg)
    try:
        result = asyncio.run(pipeline.crawl(request))
    except CrawlBridgeError as e:
        print_error(f'Ошибка при краулинге: {e}')

    click.echo(json.dumps(result, ensure_ascii=False, indent=2 if pretty else None))
    if not result.get('success'):
        sys.exit(2)


@cli.command('health', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def health(ctx):
    """Проверить, что движок краулинга доступен дочернему интерпретатору."""
    pipeline = cli.pipeline_factory(ctx.obj['config'])
    status = asyncio.run(pipeline.health())
    if status.healthy:
        click.echo('OK')
        return
    print_error(status.detail)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


# expose these names at module level for test monkey-patching
cli.run_server = run_server
cli.pipeline_factory = CrawlPipeline

if __name__ == "__main__":
    cli()
