# wiki_harvest/report/json_report.py

"""
Запись JSON-документов WikiHarvest.

Каждый файл пишется атомарно: сначала во временный файл в том же каталоге,
затем ``os.replace``. Категория записывается целиком или не записывается вовсе,
ошибка одного документа не мешает остальным.
"""
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from wiki_harvest.aggregator import MERGED_NAME, OutputDocument, dumps_document
from wiki_harvest.crawler.models import CategoryKind
from wiki_harvest.logger import logger

__all__ = ("WriteError", "render_json", "write_documents")


@dataclass(frozen=True, slots=True)
class WriteError:
    """Документ *target* не записан; прежний файл (если был) не тронут."""

    target: str
    path: str
    reason: str


def _atomic_write(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        # частичный файл не оставляем
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def render_json(data: Any, output_path: Union[Path, str]) -> Path:
    """
    Сохраняет data в детерминированном JSON по указанному пути.

    :param data: JSON-совместимые данные
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла

    Пример:
    ```python
    from wiki_harvest.report.json_report import render_json
    path = render_json(summary.as_dict(), 'reports/summary.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write(output, dumps_document(data))
    return output


def write_documents(
    document: OutputDocument,
    out_dir: Union[Path, str],
    categories: Iterable[CategoryKind],
    *,
    include_merged: bool = True,
) -> Dict[str, Union[Path, WriteError]]:
    """
    Пишет ``<out_dir>/<категория>.json`` для выбранных категорий и ``merged.json``.

    Возвращает словарь имя документа → путь или WriteError.
    """
    names = [c.value for c in sorted(set(categories), key=lambda c: c.value)]
    if include_merged:
        names.append(MERGED_NAME)

    results: Dict[str, Union[Path, WriteError]] = {}
    out = Path(out_dir)
    for name in names:
        path = out / f"{name}.json"
        try:
            results[name] = render_json(document.payload(name), path)
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            results[name] = WriteError(name, str(path), f"{type(exc).__name__}: {exc}")
        else:
            logger.info("Saved %s", path)
    return results
