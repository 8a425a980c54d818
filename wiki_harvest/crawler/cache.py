# wiki_harvest/crawler/cache.py
"""
Run-scoped resolution cache with single-flight semantics.

* :meth:`ResolutionCache.fetch` runs at most one fetch per :class:`ResourceKey`.
* :meth:`ResolutionCache.resolve` runs at most one load per (key, category).
* :meth:`ResolutionCache.parse` runs at most one parse per identical content
  (SHA-256 fingerprint) read as the same category from the same directory,
  so alias URLs serving the same page are parsed once.

Concurrent callers await the single in-flight future. Outcomes, failures
included, are written once and never change. A cancelled owner leaves nothing
behind: its waiters see the cancellation and the key can be loaded again.
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, TypeVar
from urllib.parse import urljoin

from wiki_harvest.crawler.models import CategoryKind, FetchResult, PageData, ResourceKey

__all__ = ("CacheStats", "ResolutionCache")

_T = TypeVar("_T")


@dataclass(slots=True)
class CacheStats:
    fetches: int = 0
    fetch_hits: int = 0
    resolves: int = 0
    resolve_hits: int = 0
    parses: int = 0
    content_hits: int = 0
    waits: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class ResolutionCache:
    """Shared between resolver workers for the duration of one run."""

    def __init__(self) -> None:
        self._fetches: Dict[Hashable, asyncio.Future[Any]] = {}
        self._resolves: Dict[Hashable, asyncio.Future[Any]] = {}
        self._parses: Dict[Hashable, asyncio.Future[Any]] = {}
        self.stats = CacheStats()

    async def fetch(self, key: ResourceKey, fetch: Callable[[ResourceKey], Awaitable[FetchResult]]) -> FetchResult:
        return await self._single_flight(self._fetches, key, lambda: fetch(key), "fetches", "fetch_hits")

    async def resolve(self, key: ResourceKey, category: CategoryKind, load: Callable[[], Awaitable[_T]]) -> _T:
        return await self._single_flight(self._resolves, (key, category), load, "resolves", "resolve_hits")

    async def parse(
        self,
        page: PageData,
        category: CategoryKind,
        parse: Callable[[PageData, CategoryKind], Awaitable[_T]],
    ) -> _T:
        # relative links resolve against the page directory, so it is part of the identity
        slot = (page.fingerprint, category, urljoin(page.key.url, "."))
        return await self._single_flight(self._parses, slot, lambda: parse(page, category), "parses", "content_hits")

    async def _single_flight(
        self,
        table: Dict[Hashable, asyncio.Future[Any]],
        slot: Hashable,
        factory: Callable[[], Awaitable[Any]],
        miss_counter: str,
        hit_counter: str,
    ) -> Any:
        fut = table.get(slot)
        if fut is not None:
            if fut.done():
                setattr(self.stats, hit_counter, getattr(self.stats, hit_counter) + 1)
            else:
                self.stats.waits += 1
            # shield: a cancelled waiter must not cancel the shared future
            return await asyncio.shield(fut)

        fut = asyncio.get_running_loop().create_future()
        table[slot] = fut
        setattr(self.stats, miss_counter, getattr(self.stats, miss_counter) + 1)
        try:
            result = await factory()
        except asyncio.CancelledError:
            del table[slot]
            fut.cancel()
            raise
        except Exception as exc:
            del table[slot]
            fut.set_exception(exc)
            # mark retrieved, the owner re-raises
            fut.exception()
            raise
        fut.set_result(result)
        return result

