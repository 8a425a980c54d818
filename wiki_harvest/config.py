# === FILE: wiki_harvest/config.py ===
"""
Модуль для загрузки и валидации конфигурации WikiHarvest.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
    model_validator,
)

from wiki_harvest.crawler.models import CategoryKind

__all__ = ("HarvestConfig", "load_config", "select_categories", "select_languages", "ALL_CATEGORIES", "ALL_LANGUAGES")

ALL_CATEGORIES = "all"
ALL_LANGUAGES = "all"

# en, fr-fr, zh-hant-tw
_LANGUAGE_RE = re.compile(r"^[a-z]{2,3}(-[a-z0-9]{2,8})*$")


def _default_concurrency() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class HarvestConfig(BaseModel):
    """Конфигурация одного запуска конвейера."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    entry_points: Dict[CategoryKind, List[HttpUrl]] = Field(
        default_factory=dict, description="Стартовые URL для каждой категории."
    )
    languages: Dict[str, Dict[CategoryKind, List[HttpUrl]]] = Field(
        default_factory=dict,
        description="Стартовые URL по языкам; документы языка пишутся в <out_dir>/<код языка>/.",
    )
    out_dir: Path = Field(Path("generated_wiki_data"), description="Каталог для JSON-документов.")
    max_depth: int = Field(3, ge=0, description="Бюджет глубины обхода от стартовых URL.")
    concurrency: int = Field(
        default_factory=_default_concurrency, ge=1, description="Глобальный лимит одновременных запросов."
    )
    per_host_delay: float = Field(0.0, ge=0, description="Минимальный интервал между запросами к хосту (секунд).")
    timeout: float = Field(35.0, gt=0, description="Таймаут на один запрос (секунд).")
    connect_timeout: float = Field(20.0, gt=0, description="Таймаут установки соединения (секунд).")
    retry_times: int = Field(3, ge=0, description="Число повторных попыток при временных ошибках.")
    retry_backoff: float = Field(1.5, ge=0, description="База экспоненциальной задержки между попытками.")
    max_backoff: float = Field(60.0, ge=0, description="Верхняя граница задержки между попытками.")
    user_agent: str = Field("WikiHarvestBot/1.0", min_length=1, description="Заголовок User-Agent.")
    respect_robots: bool = Field(True, description="Учитывать robots.txt (Disallow и Crawl-delay).")
    keep_query_params: List[str] = Field(
        default_factory=list, description="Параметры query, значимые для идентичности страницы."
    )

    @field_validator("keep_query_params", mode="before")
    def _split_params(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("languages", mode="before")
    def _normalize_languages(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        normalized: Dict[str, Any] = {}
        for code, points in v.items():
            name = str(code).strip().lower()
            if not _LANGUAGE_RE.match(name):
                raise ValueError(f"languages: некорректный код языка {code!r}")
            if name in normalized:
                raise ValueError(f"languages: код {name!r} указан дважды")
            normalized[name] = points
        return normalized

    @model_validator(mode="after")
    def _check_entry_points(self) -> HarvestConfig:
        if self.entry_points and self.languages:
            raise ValueError("entry_points и languages взаимоисключающие: задайте что-то одно")
        groups = [self.entry_points] + list(self.languages.values())
        if not any(urls for points in groups for urls in points.values()):
            raise ValueError("entry_points: нужен хотя бы один стартовый URL")
        if self.max_backoff < self.retry_backoff:
            raise ValueError("max_backoff не может быть меньше retry_backoff")
        return self

    @property
    def language_codes(self) -> List[str]:
        return sorted(self.languages)

    def entry_urls(self, category: CategoryKind, language: Optional[str] = None) -> List[str]:
        """Стартовые URL категории в виде строк (в порядке конфига); *language* - для многоязычного конфига."""
        points = self.entry_points if language is None else self.languages.get(language, {})
        return [str(u) for u in points.get(category, [])]


_DEFAULT_CFG = Path("configs/default.yaml")


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


def load_config(path: Union[str, Path, None]) -> HarvestConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект HarvestConfig.
    При отсутствии файла бросает FileNotFoundError, при ошибках схемы - pydantic.ValidationError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
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

    return HarvestConfig(**data)


def select_categories(value: str) -> List[CategoryKind]:
    """
    Разбирает селектор категорий: ``all`` или имена через запятую.
    Неизвестное имя - ValueError.
    """
    value = value.strip().lower()
    if value == ALL_CATEGORIES:
        return list(CategoryKind)
    selected: List[CategoryKind] = []
    for name in value.split(","):
        name = name.strip()
        if not name:
            continue
        try:
            kind = CategoryKind(name)
        except ValueError:
            known = ", ".join([ALL_CATEGORIES] + [c.value for c in CategoryKind])
            raise ValueError(f"Неизвестная категория {name!r}; допустимо: {known}") from None
        if kind not in selected:
            selected.append(kind)
    if not selected:
        raise ValueError("Пустой селектор категорий")
    return selected



def select_languages(value: str, known: Sequence[str]) -> List[str]:
    """
    Разбирает селектор языков: ``all`` или коды через запятую (регистр не важен).
    Код, которого нет в конфиге, - ValueError.
    """
    if not known:
        raise ValueError("В конфиге нет секции languages: выбор языка недоступен")
    value = value.strip().lower()
    if value == ALL_LANGUAGES:
        return sorted(known)
    selected: List[str] = []
    for name in value.split(","):
        name = name.strip()
        if not name:
            continue
        if name not in known:
            raise ValueError(f"Неизвестный язык {name!r}; в конфиге: {', '.join(sorted(known))}")
        if name not in selected:
            selected.append(name)
    if not selected:
        raise ValueError("Пустой селектор языков")
    return selected
