# File: wiki_harvest/utils.py
"""wiki_harvest.utils: Утилиты для канонизации URL, отпечатков содержимого и работы со списками."""

from __future__ import annotations

import hashlib
import posixpath
from typing import Collection, Iterable, List, Sequence, TypeVar
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit, urlunsplit

from wiki_harvest.logger import logger

__all__: Sequence[str] = (
    "canonicalize_url",
    "is_http_url",
    "extract_domain",
    "sha256_hexdigest",
    "remove_duplicates",
)

_T = TypeVar("_T")

# символы пути, которые не нужно экранировать повторно
_PATH_SAFE = "/:@!$&'()*+,;=-._~"


def canonicalize_url(url: str, keep_params: Iterable[str] = ()) -> str:
    """Приводит URL к каноническому виду.

    Схема и хост в нижнем регистре, точечные сегменты пути схлопнуты, фрагмент
    отброшен, из query остаются только параметры из *keep_params* (отсортированные).
    Некорректный URL возвращается как есть (без пробелов по краям): решение о том,
    можно ли его загрузить, принимает Fetcher.
    """
    raw = url.strip()
    try:
        parts = urlsplit(raw)
        # обращение к port валидирует номер порта
        parts.port
    except ValueError:
        logger.debug("Malformed URL left as is: %r", raw)
        return raw

    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    if not scheme or not netloc:
        return raw

    path = unquote(parts.path or "/")
    norm = posixpath.normpath(path)
    if path.endswith("/") and not norm.endswith("/"):
        norm += "/"
    if not norm.startswith("/"):
        norm = "/" + norm
    norm = quote(norm, safe=_PATH_SAFE)

    keep = set(keep_params)
    query_pairs = sorted((k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k in keep)
    query = urlencode(query_pairs)
    return urlunsplit((scheme, netloc, norm, query, ""))


def is_http_url(url: str) -> bool:
    """Проверяет, что URL абсолютный и использует http(s)."""
    try:
        parsed = urlsplit(url)
        parsed.port
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def extract_domain(url: str) -> str:
    """Возвращает хост (netloc) из URL без дополнительных проверок."""
    return urlsplit(url).netloc.lower()


def sha256_hexdigest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def remove_duplicates(items: Collection[_T]) -> List[_T]:
    """Удаляет дубликаты, сохраняя порядок."""
    unique = list(dict.fromkeys(items))
    removed = len(items) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate items", removed)
    return unique
