# === FILE: crawl_bridge/config.py ===
"""
Модуль для загрузки и валидации конфигурации сервиса CrawlBridge.
Используется Pydantic для описания схемы и проверки данных,
YAML/JSON-файл и переменные окружения как источники значений.
"""
from __future__ import annotations

import errno
import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

Strategy = Literal["bfs", "dfs", "best_first"]


class CrawlDefaults(BaseModel):
    """Значения по умолчанию для полей CrawlRequest, кроме url."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_pages: int = Field(1, ge=1, description="Лимит страниц для deep crawl.")
    depth: int = Field(0, ge=0, description="Глубина обхода (0 = только указанный URL).")
    strategy: Strategy = Field("bfs", description="Стратегия обхода.")
    query: str = Field("", description="Ключевые слова для best_first.")
    capture_network_traffic: bool = False
    capture_console: bool = False
    capture_html: bool = False
    capture_screenshots: bool = False
    wait_time: int = Field(2000, ge=0, description="Задержка перед снятием HTML (мс).")


class ServiceConfig(BaseModel):
    """Конфигурация сервиса: HTTP, рабочая директория, дочерний процесс."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field("0.0.0.0", min_length=1)
    port: int = Field(3000, ge=0, le=65535)
    workspace_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "crawl4ai-service",
        description="Общая директория для арен с артефактами.",
    )
    python_executable: str = Field(
        default_factory=lambda: sys.executable or "python",
        min_length=1,
        description="Интерпретатор, которым запускаются сгенерированные скрипты.",
    )
    engine_module: str = Field(
        "crawl4ai", pattern=r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$"
    )
    python_path: List[Path] = Field(
        default_factory=list, description="Дополнительные пути импорта для дочернего процесса."
    )
    crawl_timeout: float = Field(120.0, gt=0, description="Таймаут одного краулинга (секунд).")
    health_timeout: float = Field(30.0, gt=0, description="Таймаут health-проверки (секунд).")
    max_concurrent_crawls: Optional[int] = Field(
        None, ge=1, description="Лимит одновременных подпроцессов (None = без лимита)."
    )
    defaults: CrawlDefaults = Field(default_factory=CrawlDefaults)

    @field_validator("workspace_dir", mode="before")
    def _expand_workspace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


_DEFAULT_CFG = Path("configs/default.yaml")

# переменная окружения -> (секция или None, поле)
_ENV_OVERRIDES: Dict[str, tuple[Optional[str], str]] = {
    "CRAWL_HOST": (None, "host"),
    "PORT": (None, "port"),
    "CRAWL_WORKSPACE_DIR": (None, "workspace_dir"),
    "CRAWL_PYTHON": (None, "python_executable"),
    "CRAWL_ENGINE_MODULE": (None, "engine_module"),
    "CRAWL_TIMEOUT": (None, "crawl_timeout"),
    "CRAWL_MAX_CONCURRENT": (None, "max_concurrent_crawls"),
    "CRAWL_DEFAULT_MAX_PAGES": ("defaults", "max_pages"),
    "CRAWL_DEFAULT_DEPTH": ("defaults", "depth"),
    "CRAWL_DEFAULT_STRATEGY": ("defaults", "strategy"),
    "CRAWL_DEFAULT_WAIT_TIME": ("defaults", "wait_time"),
}


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Накладывает переменные окружения поверх данных из файла (пустые значения игнорируются)."""
    merged = dict(data)
    section = dict(merged.get("defaults") or {})
    for var, (group, name) in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        if group == "defaults":
            section[name] = value
        else:
            merged[name] = value
    if section:
        merged["defaults"] = section
    return merged


def load_config(
    path: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ServiceConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект ServiceConfig.
    Без path используется configs/default.yaml, а если его нет, то встроенные значения.
    Явно указанный, но отсутствующий файл: FileNotFoundError.
    """
    data: dict[str, Any] = {}
    if path is None:
        if _DEFAULT_CFG.is_file():
            data = _read_yaml(_DEFAULT_CFG)
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

        suffix = path_obj.suffix.lower()
        if suffix in (".yaml", ".yml"):
            data = _read_yaml(path_obj)
        elif suffix == ".json":
            data = _read_json(path_obj)
        else:
            raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    data = apply_env_overrides(data, os.environ if environ is None else environ)
    return ServiceConfig(**data)


__all__ = ["CrawlDefaults", "ServiceConfig", "Strategy", "load_config", "apply_env_overrides"]
