# File: wiki_harvest/stats.py
"""wiki_harvest.stats: статистика запуска, итоговая таблица и код возврата."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from wiki_harvest.aggregator import UnresolvedRef
from wiki_harvest.builder import ValidationError
from wiki_harvest.crawler.models import FetchFailed, FrontierEntry
from wiki_harvest.parser.color import ColorParseError
from wiki_harvest.parser.html_parser import ExtractionError
from wiki_harvest.report.json_report import WriteError

__all__ = ("CategoryStats", "RunSummary", "EXIT_OK", "EXIT_DEGRADED", "EXIT_FAILED")

EXIT_OK = 0
EXIT_DEGRADED = 1
EXIT_FAILED = 2


@dataclass(slots=True)
class CategoryStats:
    """Счётчики по одной категории: записи приняты / пропущены / с ошибкой."""

    ok: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.ok + self.skipped + self.failed


@dataclass(slots=True)
class RunSummary:
    """Итог запуска: что записано и что пошло не так."""

    selected: List[str] = field(default_factory=list)
    categories_written: List[str] = field(default_factory=list)
    records: Dict[str, int] = field(default_factory=dict)
    per_category: Dict[str, CategoryStats] = field(default_factory=dict)
    fetch_failures: List[FetchFailed] = field(default_factory=list)
    extraction_failures: List[ExtractionError] = field(default_factory=list)
    color_errors: List[ColorParseError] = field(default_factory=list)
    validation_failures: List[ValidationError] = field(default_factory=list)
    unresolved: List[UnresolvedRef] = field(default_factory=list)
    truncations: List[FrontierEntry] = field(default_factory=list)
    write_errors: List[WriteError] = field(default_factory=list)
    cache: Dict[str, int] = field(default_factory=dict)
    pages: int = 0
    elapsed: float = 0.0

    def category(self, name: str) -> CategoryStats:
        return self.per_category.setdefault(name, CategoryStats())

    def absorb(self, other: RunSummary, prefix: str = "") -> None:
        """Добавляет итог другой части запуска (например, одного языка).

        Имена документов и категорий получают *prefix* (``"fr-fr/"``), счётчики
        кэша и число страниц суммируются.
        """
        self.categories_written.extend(prefix + name for name in other.categories_written)
        self.records.update({prefix + name: count for name, count in other.records.items()})
        self.per_category.update({prefix + name: s for name, s in other.per_category.items()})
        self.fetch_failures.extend(other.fetch_failures)
        self.extraction_failures.extend(other.extraction_failures)
        self.color_errors.extend(other.color_errors)
        self.validation_failures.extend(other.validation_failures)
        self.unresolved.extend(other.unresolved)
        self.truncations.extend(other.truncations)
        self.write_errors.extend(other.write_errors)
        for name, value in other.cache.items():
            self.cache[name] = self.cache.get(name, 0) + value
        self.pages += other.pages

    @property
    def unresolved_references(self) -> int:
        return len(self.unresolved)

    @property
    def exit_code(self) -> int:
        """0 - чисто, 1 - были сбои загрузки или записи, 2 - ничего не записано."""
        if not self.categories_written:
            return EXIT_FAILED
        if self.fetch_failures or self.write_errors:
            return EXIT_DEGRADED
        return EXIT_OK

    def as_dict(self) -> Dict[str, Any]:
        """JSON-совместимое представление для отчётов."""
        return {
            "selected": list(self.selected),
            "categories_written": list(self.categories_written),
            "records": dict(self.records),
            "per_category": {
                name: {"ok": s.ok, "skipped": s.skipped, "failed": s.failed, "total": s.total}
                for name, s in sorted(self.per_category.items())
            },
            "fetch_failures": [
                {"url": f.key.url, "error": f.last_error, "attempts": f.attempts, "retryable": f.retryable}
                for f in self.fetch_failures
            ],
            "extraction_failures": [
                {"category": e.category.value, "field": e.field, "reason": e.reason} for e in self.extraction_failures
            ],
            "color_errors": [{"raw": c.raw, "reason": c.reason} for c in self.color_errors],
            "validation_failures": [
                {
                    "category": v.category.value,
                    "id": v.record_id,
                    "reason": v.reason,
                    "source": v.source.url,
                    "duplicate": v.duplicate,
                }
                for v in self.validation_failures
            ],
            "unresolved_references": [str(u) for u in self.unresolved],
            "truncations": [
                {"url": t.key.url, "category": t.category.value, "referrer": t.referrer.url if t.referrer else None}
                for t in self.truncations
            ],
            "write_errors": [{"target": w.target, "path": w.path, "reason": w.reason} for w in self.write_errors],
            "cache": dict(self.cache),
            "pages": self.pages,
            "elapsed": round(self.elapsed, 3),
            "exit_code": self.exit_code,
        }

    def log(self, lg: logging.Logger) -> None:
        """Печатает итоговую таблицу в лог."""
        lg.info("=" * 68)
        lg.info("%-20s | %8s | %8s | %8s | %8s", "category", "ok", "skipped", "failed", "total")
        lg.info("-" * 68)
        for name, s in sorted(self.per_category.items()):
            lg.info("%-20s | %8d | %8d | %8d | %8d", name, s.ok, s.skipped, s.failed, s.total)
        lg.info("-" * 68)
        lg.info("Pages resolved:        %d in %.2f s", self.pages, self.elapsed)
        lg.info("Fetch failures:        %d", len(self.fetch_failures))
        lg.info("Extraction failures:   %d", len(self.extraction_failures))
        lg.info("Color parse errors:    %d", len(self.color_errors))
        lg.info("Validation failures:   %d", len(self.validation_failures))
        lg.info("Unresolved references: %d", self.unresolved_references)
        lg.info("Truncated links:       %d", len(self.truncations))
        lg.info("Write errors:          %d", len(self.write_errors))
        lg.info("Written: %s", ", ".join(self.categories_written) or "nothing")
        lg.info("=" * 68)
        for failure in self.fetch_failures:
            lg.warning("Fetch failed: %s (%s, %d attempts)", failure.key, failure.last_error, failure.attempts)
        for err in self.write_errors:
            lg.error("Write failed: %s (%s)", err.path, err.reason)
