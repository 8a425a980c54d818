# File: wiki_harvest/logger.py
"""
Логгер WikiHarvest.

Все модули пишут в один именованный логгер ``WikiHarvest``:

    from wiki_harvest.logger import logger

По умолчанию вывод идёт только в stdout. CLI вызывает :func:`configure` ещё раз,
когда известны опции ``--log-level``, ``--log-file`` и ``--log-format``.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

__all__ = ["logger", "configure", "DEFAULT_FORMAT"]

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_NAME = "WikiHarvest"
# ротация лог-файла: 5 МБ, три архива
_ROTATE_BYTES = 5 * 1024 * 1024
_ROTATE_KEEP = 3


def _build_handlers(log_file: Optional[Union[str, Path]], formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(path, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_KEEP, encoding="utf-8")
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure(
    *,
    level: Union[int, str] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """
    Настраивает логгер проекта и возвращает его.

    Старые обработчики закрываются, если ``replace_handlers`` истинно;
    иначе новые добавляются к ним. Сообщения не уходят в root-логгер.
    """
    lg = logging.getLogger(_NAME)
    lg.setLevel(level)
    if replace_handlers:
        while lg.handlers:
            old = lg.handlers[0]
            lg.removeHandler(old)
            old.close()
    for handler in _build_handlers(log_file, logging.Formatter(log_format)):
        lg.addHandler(handler)
    lg.propagate = False
    return lg


logger: logging.Logger = configure()
