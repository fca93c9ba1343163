# File: crawl_bridge/workspace.py
"""crawl_bridge.workspace: общая временная директория, арены для артефактов и их очистка."""

from __future__ import annotations

import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

from crawl_bridge.errors import CleanupWarning, ConfigurationError
from crawl_bridge.logger import get_logger

__all__: Sequence[str] = ("Arena", "Workspace", "unique_stem", "remove_artifacts")

log = get_logger("workspace")

SCRIPT_SUFFIX = ".py"
RESULT_SUFFIX = ".json"
PARAMS_SUFFIX = ".params.json"


def unique_stem(prefix: str = "crawl") -> str:
    """Имя вида `{prefix}-{timestamp}-{random}`: миллисекунды + 8 hex-символов."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class Arena:
    """Отдельная поддиректория одного запуска и пути его артефактов (общий stem)."""

    directory: Path
    stem: str

    @property
    def script_path(self) -> Path:
        return self.directory / f"{self.stem}{SCRIPT_SUFFIX}"

    @property
    def result_path(self) -> Path:
        return self.directory / f"{self.stem}{RESULT_SUFFIX}"

    @property
    def params_path(self) -> Path:
        return self.directory / f"{self.stem}{PARAMS_SUFFIX}"

    def artifacts(self) -> List[Path]:
        return [self.script_path, self.result_path, self.params_path]


def remove_artifacts(*paths: Path) -> List[Path]:
    """Удаляет файлы, отсутствующие пропускает. Возвращает то, что удалить не удалось."""
    leaked: List[Path] = []
    for p in paths:
        try:
            p.unlink(missing_ok=True)
        except OSError as exc:
            log.warning("%s: could not remove %s: %s", CleanupWarning.__name__, p, exc)
            leaked.append(p)
    return leaked


class Workspace:
    """Управляет базовой директорией и выдаёт по арене на каждый запуск."""

    def __init__(self, base_dir: Union[str, Path]) -> None:
        self.base_dir = Path(base_dir)

    def ensure(self) -> bool:
        """Создаёт базовую директорию (идемпотентно). Ошибка логируется, возвращается False."""
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.error("%s: cannot create workspace %s: %s", ConfigurationError.__name__, self.base_dir, exc)
            return False
        return True

    def allocate(self, prefix: str = "crawl") -> Arena:
        """Создаёт новую арену. Если это невозможно, ConfigurationError."""
        self.ensure()
        stem = unique_stem(prefix)
        directory = self.base_dir / stem
        try:
            # exist_ok=False: одинаковое имя у двух запусков считается ошибкой, а не общая арена
            directory.mkdir(parents=False, exist_ok=False)
        except OSError as exc:
            raise ConfigurationError(f"Cannot create arena {directory}: {exc}") from exc
        log.debug("Allocated arena %s", directory)
        return Arena(directory=directory, stem=stem)

    def release(self, arena: Arena) -> bool:
        """
        Удаляет артефакты арены и саму арену. Ошибки только логируются
        (CleanupWarning) и никогда не пробрасываются. True, если ничего не осталось.
        """
        leaked = remove_artifacts(*arena.artifacts())
        try:
            shutil.rmtree(arena.directory)
        except FileNotFoundError:
            pass
        except OSError as exc:
            log.warning("%s: could not remove arena %s: %s", CleanupWarning.__name__, arena.directory, exc)
            return False
        return not leaked

    def leftovers(self) -> List[Path]:
        """Арены, которые всё ещё лежат в базовой директории."""
        if not self.base_dir.is_dir():
            return []
        return sorted(p for p in self.base_dir.iterdir() if p.is_dir())
