# File: wiki_harvest/engine.py
"""wiki_harvest.engine: оркестрация запуска - обход, сборка записей, слияние и запись документов."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import signal
import time
from typing import Iterable, List, Optional, Sequence, Tuple

from wiki_harvest.aggregator import merge_records
from wiki_harvest.builder import Record, RecordBuilder, ValidationError
from wiki_harvest.config import HarvestConfig
from wiki_harvest.crawler.cache import ResolutionCache
from wiki_harvest.crawler.fetcher import Fetcher
from wiki_harvest.crawler.models import CategoryKind, FetchFailed
from wiki_harvest.crawler.resolver import CrawlResult, LinkResolver
from wiki_harvest.logger import logger
from wiki_harvest.parser.html_parser import ExtractionError
from wiki_harvest.parser.rules import upstream_categories
from wiki_harvest.report.json_report import WriteError, write_documents
from wiki_harvest.stats import RunSummary

__all__ = ["Engine"]


class Engine:
    """Фасад для CLI и тестов: запуск конвейера и итоговая сводка."""

    def __init__(self, config: HarvestConfig) -> None:
        self.config = config

    def seeds(
        self, selected: Iterable[CategoryKind], language: Optional[str] = None
    ) -> List[Tuple[str, CategoryKind]]:
        """Стартовые URL выбранных категорий и категорий, ссылки которых к ним ведут."""
        crawl = upstream_categories(selected)
        return [
            (url, category)
            for category in sorted(crawl, key=lambda c: c.value)
            for url in self.config.entry_urls(category, language)
        ]

    async def run(
        self,
        categories: Optional[Sequence[CategoryKind]] = None,
        languages: Optional[Sequence[str]] = None,
    ) -> RunSummary:
        """
        Один полный запуск. Кэш создаётся заново на каждый запуск.

        Для многоязычного конфига каждый язык обходится со своим кэшем и пишется
        в ``<out_dir>/<язык>/``; Fetcher (лимиты, паузы, robots.txt) общий.
        """
        selected = list(categories) if categories else list(CategoryKind)
        scopes: List[Optional[str]] = list(languages) if languages else list(self.config.language_codes)
        plans = [(lang, self.seeds(selected, lang)) for lang in scopes or [None]]
        for lang, seeds in plans:
            if lang is not None and not seeds:
                logger.warning("No entry points for language %s, skipping it", lang)
        plans = [(lang, seeds) for lang, seeds in plans if seeds]
        if not plans:
            names = ", ".join(c.value for c in selected)
            raise ValueError(f"No entry points configured for the selected categories: {names}")

        start = time.monotonic()
        summary = RunSummary(selected=sorted(c.value for c in selected))
        logger.info(
            "Starting run for %s (%d entry points%s)",
            ", ".join(summary.selected),
            sum(len(seeds) for _, seeds in plans),
            "" if plans[0][0] is None else f", languages: {', '.join(lang for lang, _ in plans)}",
        )

        async with Fetcher(self.config) as fetcher:
            tasks = [
                asyncio.create_task(self._run_scope(fetcher, lang, seeds, selected))
                for lang, seeds in plans
            ]
            try:
                parts = await asyncio.gather(*tasks)
            finally:
                # при ошибке одного языка остальные не должны пережить сессию
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)

        for (lang, _), part in zip(plans, parts):
            summary.absorb(part, prefix="" if lang is None else f"{lang}/")
        summary.elapsed = time.monotonic() - start
        summary.log(logger)
        return summary

    async def _run_scope(
        self,
        fetcher: Fetcher,
        language: Optional[str],
        seeds: List[Tuple[str, CategoryKind]],
        selected: List[CategoryKind],
    ) -> RunSummary:
        """Обход, сборка и запись документов одного языка (или всего конфига без языков)."""
        part = RunSummary()
        cache = ResolutionCache()
        fetch = fetcher.fetch if language is None else functools.partial(fetcher.fetch, language=language)
        resolver = LinkResolver(self.config, fetch, cache)
        crawl = await resolver.crawl(seeds)

        part.pages = len(crawl.resolutions)
        part.truncations = list(crawl.truncated)
        part.cache = cache.stats.as_dict()

        records = self._build_records(crawl, part)
        document = merge_records(records)
        part.records = document.record_counts()
        part.unresolved = list(document.unresolved)
        if part.unresolved:
            logger.info("%d unresolved cross-references%s", len(part.unresolved), f" [{language}]" if language else "")

        out_dir = self.config.out_dir if language is None else self.config.out_dir / language
        results = await asyncio.to_thread(write_documents, document, out_dir, selected)
        for name, result in results.items():
            if isinstance(result, WriteError):
                part.write_errors.append(result)
            else:
                part.categories_written.append(name)
        return part

    @staticmethod
    def _build_records(crawl: CrawlResult, summary: RunSummary) -> List[Record]:
        """Строит записи в детерминированном порядке: (категория, URL, позиция на странице)."""
        builder = RecordBuilder()
        for resolution in crawl.ordered():
            entry, outcome = resolution.entry, resolution.outcome
            stats = summary.category(entry.category.value)
            if isinstance(outcome, FetchFailed):
                summary.fetch_failures.append(outcome)
                stats.failed += 1
                continue
            if isinstance(outcome, ExtractionError):
                summary.extraction_failures.append(outcome)
                stats.failed += 1
                continue

            summary.color_errors.extend(outcome.color_errors)
            summary.extraction_failures.extend(outcome.item_errors)
            stats.failed += len(outcome.item_errors)
            for item in outcome.items:
                record_id = str(item.get(outcome.id_field, ""))
                built = builder.build(entry.category, record_id, item, entry.key)
                if isinstance(built, ValidationError):
                    summary.validation_failures.append(built)
                    if built.duplicate:
                        stats.skipped += 1
                    else:
                        stats.failed += 1
                elif built.source != entry.key:
                    # identical duplicate reached via an alias URL
                    stats.skipped += 1
                else:
                    stats.ok += 1
        return builder.records()

    def start(
        self,
        categories: Optional[Sequence[CategoryKind]] = None,
        *,
        languages: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> RunSummary:
        """Синхронная обёртка над run(): SIGTERM отменяет запуск, таймаут опционален."""

        async def _runner() -> RunSummary:
            task = asyncio.current_task()
            assert task is not None
            loop = asyncio.get_running_loop()
            # вне главного потока или на Windows обработчик не ставится
            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.add_signal_handler(signal.SIGTERM, task.cancel)
            try:
                if timeout:
                    return await asyncio.wait_for(self.run(categories, languages), timeout=timeout)
                return await self.run(categories, languages)
            finally:
                with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                    loop.remove_signal_handler(signal.SIGTERM)

        try:
            return asyncio.run(_runner())
        except asyncio.TimeoutError:
            logger.error("Run did not finish within %s seconds", timeout)
            raise
        except asyncio.CancelledError:
            logger.error("Run cancelled")
            raise
        except Exception as exc:
            logger.error("Run failed: %s", exc)
            raise
