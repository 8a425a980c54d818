# === FILE: wiki_harvest/crawler/resolver.py ===
"""Рекурсивный обход ссылок: явная очередь (frontier), пул воркеров, бюджет глубины.

Для каждой пары (ResourceKey, CategoryKind) хранится лучший (наибольший) остаток
глубины. Если пара найдена повторно по более короткому пути, она снова ставится в
очередь с большим остатком: повторной загрузки не будет (исход уже в кэше), но её
ссылки раскрываются глубже. Итоговое множество страниц поэтому не зависит от того,
какая ветка ответила первой. Ссылка, найденная на странице с нулевым остатком
глубины и так и не обойдённая, фиксируется как усечение (truncation).
Ограниченная глубина, карта лучших остатков глубины и single-flight кэш гарантируют завершение
даже на страницах, ссылающихся друг на друга.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from wiki_harvest.config import HarvestConfig
from wiki_harvest.crawler.cache import ResolutionCache
from wiki_harvest.crawler.models import (
    CategoryKind,
    FetchFailed,
    FetchResult,
    FrontierEntry,
    PageData,
    ResourceKey,
)
from wiki_harvest.logger import logger
from wiki_harvest.parser.html_parser import DiscoveredLink, Extraction, ExtractionError, extract

__all__ = ("Outcome", "Resolution", "CrawlResult", "LinkResolver")

Outcome = Union[Extraction, ExtractionError, FetchFailed]
Extractor = Callable[[CategoryKind, str, str], Union[Extraction, ExtractionError]]

_PROGRESS_EVERY = 50


@dataclass(slots=True)
class Resolution:
    entry: FrontierEntry
    outcome: Outcome


@dataclass(slots=True)
class CrawlResult:
    """Итог обхода: исходы по каждой паре (ключ, категория) и усечённые ссылки."""

    resolutions: Dict[Tuple[ResourceKey, CategoryKind], Resolution] = field(default_factory=dict)
    truncated: List[FrontierEntry] = field(default_factory=list)
    elapsed: float = 0.0

    def ordered(self) -> List[Resolution]:
        """Исходы в детерминированном порядке: категория, затем URL."""
        return [self.resolutions[k] for k in sorted(self.resolutions, key=lambda k: (k[1].value, k[0].url))]


class LinkResolver:
    """Асинхронный обход с пулом воркеров поверх общей очереди."""

    def __init__(
        self,
        config: HarvestConfig,
        fetch: Callable[[ResourceKey], Awaitable[FetchResult]],
        cache: ResolutionCache,
        *,
        extractor: Extractor = extract,
        workers: Optional[int] = None,
    ) -> None:
        self.config = config
        self.cache = cache
        self._fetch = fetch
        self._extractor = extractor
        self._workers = workers or config.concurrency
        self._depths: Dict[Tuple[ResourceKey, CategoryKind], int] = {}
        self._hosts: Set[str] = set()
        self._truncated: List[FrontierEntry] = []
        self._failure: Optional[BaseException] = None
        self._result = CrawlResult()

    async def crawl(self, seeds: Iterable[Tuple[str, CategoryKind]]) -> CrawlResult:
        """Обходит граф ссылок от *seeds* (URL, категория) до исчерпания очереди."""
        start = time.monotonic()
        queue: asyncio.Queue[FrontierEntry] = asyncio.Queue()
        for url, category in seeds:
            key = ResourceKey.from_url(url, self.config.keep_query_params)
            if key.host:
                self._hosts.add(key.host)
            if (key, category) in self._depths:
                continue
            self._depths[(key, category)] = self.config.max_depth
            queue.put_nowait(FrontierEntry(key, category, self.config.max_depth))

        logger.info("Старт обхода: %d стартовых страниц, %d воркеров", queue.qsize(), self._workers)
        workers = [asyncio.create_task(self._worker(queue)) for _ in range(self._workers)]
        try:
            await queue.join()
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        if self._failure is not None:
            raise self._failure

        self._result.truncated = self._collect_truncated()
        self._result.elapsed = time.monotonic() - start
        total = len(self._result.resolutions)
        logger.info(
            "Обход завершён: %d страниц за %.2f с (%.2f стр/с)",
            total,
            self._result.elapsed,
            total / self._result.elapsed if self._result.elapsed else 0,
        )
        for entry in self._result.truncated:
            logger.warning(
                "Depth budget exhausted, not following %s as %s (linked from %s)",
                entry.key,
                entry.category.value,
                entry.referrer,
            )
        return self._result

    async def _worker(self, queue: asyncio.Queue[FrontierEntry]) -> None:
        while True:
            entry = await queue.get()
            try:
                await self._process(entry, queue)
            except Exception as exc:
                logger.exception("Unexpected error while resolving %s", entry.key)
                if self._failure is None:
                    self._failure = exc
            finally:
                queue.task_done()

    async def _process(self, entry: FrontierEntry, queue: asyncio.Queue[FrontierEntry]) -> None:
        pair = (entry.key, entry.category)
        if entry.depth_remaining < self._depths[pair]:
            # в очереди уже есть запись с большим остатком глубины
            return
        outcome: Outcome = await self.cache.resolve(entry.key, entry.category, lambda: self._load(entry))
        if entry.depth_remaining < self._depths[pair]:
            return
        self._result.resolutions[pair] = Resolution(entry, outcome)

        done = len(self._result.resolutions)
        if done % _PROGRESS_EVERY == 0:
            logger.info("Progress: %d resolved, %d queued", done, queue.qsize())

        if isinstance(outcome, FetchFailed):
            logger.debug("Fetch failed for %s: %s", entry.key, outcome.last_error)
            return
        if isinstance(outcome, ExtractionError):
            logger.warning(
                "Extraction failed for %s as %s: %s (%s)",
                entry.key,
                entry.category.value,
                outcome.field,
                outcome.reason,
            )
            return
        for link in outcome.links:
            self._enqueue(link, entry, queue)

    async def _load(self, entry: FrontierEntry) -> Outcome:
        fetched = await self.cache.fetch(entry.key, self._fetch)
        if isinstance(fetched, FetchFailed):
            return fetched
        return await self.cache.parse(fetched, entry.category, self._parse)

    async def _parse(self, page: PageData, category: CategoryKind) -> Union[Extraction, ExtractionError]:
        # разбор HTML - CPU-работа, уводим из event loop
        return await asyncio.to_thread(self._extractor, category, page.content, page.key.url)

    def _enqueue(self, link: DiscoveredLink, parent: FrontierEntry, queue: asyncio.Queue[FrontierEntry]) -> None:
        key = ResourceKey.from_url(link.url, self.config.keep_query_params)
        if key.host not in self._hosts:
            logger.debug("Skipping off-site link %s", key)
            return
        pair = (key, link.category)
        best = self._depths.get(pair)
        if parent.depth_remaining <= 0:
            if best is None:
                self._truncated.append(FrontierEntry(key, link.category, 0, parent.key))
            return
        depth = parent.depth_remaining - 1
        if best is not None and best >= depth:
            return
        if best is not None:
            logger.debug("Shorter path to %s as %s, depth budget %d -> %d", key, link.category.value, best, depth)
        self._depths[pair] = depth
        queue.put_nowait(FrontierEntry(key, link.category, depth, parent.key))

    def _collect_truncated(self) -> List[FrontierEntry]:
        """Усечённые ссылки, которые так и не были обойдены другим путём (без дублей).

        Для каждой пары остаётся запись с наименьшим URL источника, чтобы отчёт
        не зависел от порядка ответов.
        """
        seen: Dict[Tuple[ResourceKey, CategoryKind], FrontierEntry] = {}
        for entry in self._truncated:
            pair = (entry.key, entry.category)
            if pair in self._depths:
                continue
            kept = seen.get(pair)
            if kept is None or (entry.referrer and kept.referrer and entry.referrer.url < kept.referrer.url):
                seen[pair] = entry
        return [seen[p] for p in sorted(seen, key=lambda p: (p[1].value, p[0].url))]
