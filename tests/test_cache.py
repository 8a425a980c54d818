# File: tests/test_cache.py
from __future__ import annotations

import asyncio

import pytest
from wiki_harvest.crawler.cache import ResolutionCache
from wiki_harvest.crawler.models import CategoryKind, FetchFailed, PageData, ResourceKey

KEY = ResourceKey("http://wiki.test/entry/1")


class CountingFetch:
    """Fake fetch: counts calls per key and yields to the loop before answering."""

    def __init__(self, delay: float = 0.05, fail: bool = False) -> None:
        self.delay = delay
        self.fail = fail
        self.calls: dict[ResourceKey, int] = {}

    async def __call__(self, key: ResourceKey):
        self.calls[key] = self.calls.get(key, 0) + 1
        await asyncio.sleep(self.delay)
        if self.fail:
            return FetchFailed(key, "HTTP 500", attempts=2, retryable=True)
        return PageData(key, f"<p>{key.url}</p>")


@pytest.mark.asyncio()
async def test_concurrent_callers_share_one_fetch():
    cache = ResolutionCache()
    fetch = CountingFetch()
    results = await asyncio.gather(*(cache.fetch(KEY, fetch) for _ in range(10)))
    assert fetch.calls == {KEY: 1}
    assert all(r is results[0] for r in results)
    assert cache.stats.fetches == 1
    assert cache.stats.waits == 9


@pytest.mark.asyncio()
async def test_failure_is_cached():
    cache = ResolutionCache()
    fetch = CountingFetch(fail=True)
    first = await cache.fetch(KEY, fetch)
    second = await cache.fetch(KEY, fetch)
    assert isinstance(first, FetchFailed)
    assert second is first
    assert fetch.calls == {KEY: 1}
    assert cache.stats.fetch_hits == 1


@pytest.mark.asyncio()
async def test_cancelled_load_is_not_cached():
    cache = ResolutionCache()
    fetch = CountingFetch(delay=1.0)
    task = asyncio.create_task(cache.fetch(KEY, fetch))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    fetch.delay = 0.0
    result = await cache.fetch(KEY, fetch)
    assert isinstance(result, PageData)
    assert fetch.calls == {KEY: 2}


@pytest.mark.asyncio()
async def test_cancelled_waiter_does_not_cancel_owner():
    cache = ResolutionCache()
    fetch = CountingFetch(delay=0.1)
    owner = asyncio.create_task(cache.fetch(KEY, fetch))
    await asyncio.sleep(0.01)
    waiter = asyncio.create_task(cache.fetch(KEY, fetch))
    await asyncio.sleep(0.01)
    waiter.cancel()
    result = await owner
    assert isinstance(result, PageData)
    assert waiter.cancelled()


@pytest.mark.asyncio()
async def test_unexpected_error_propagates_and_is_not_cached():
    cache = ResolutionCache()
    calls = []

    async def load():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return "ok"

    with pytest.raises(RuntimeError):
        await cache.resolve(KEY, CategoryKind.DETAIL, load)
    assert await cache.resolve(KEY, CategoryKind.DETAIL, load) == "ok"
    assert len(calls) == 2


@pytest.mark.asyncio()
async def test_resolve_keyed_by_category():
    cache = ResolutionCache()
    seen = []

    def loader(category):
        async def load():
            seen.append(category)
            return category

        return load

    assert await cache.resolve(KEY, CategoryKind.DETAIL, loader(CategoryKind.DETAIL)) is CategoryKind.DETAIL
    assert await cache.resolve(KEY, CategoryKind.LIST, loader(CategoryKind.LIST)) is CategoryKind.LIST
    assert await cache.resolve(KEY, CategoryKind.DETAIL, loader(CategoryKind.LIST)) is CategoryKind.DETAIL
    assert seen == [CategoryKind.DETAIL, CategoryKind.LIST]


@pytest.mark.asyncio()
async def test_identical_content_parsed_once_per_directory():
    cache = ResolutionCache()
    parsed = []

    async def parse(page, category):
        parsed.append(page.key)
        return page.key.url

    a = PageData(ResourceKey("http://wiki.test/entry/1"), "<p>same</p>")
    alias = PageData(ResourceKey("http://wiki.test/entry/1-alias"), "<p>same</p>")
    elsewhere = PageData(ResourceKey("http://wiki.test/other/1"), "<p>same</p>")

    assert await cache.parse(a, CategoryKind.DETAIL, parse) == a.key.url
    assert await cache.parse(alias, CategoryKind.DETAIL, parse) == a.key.url
    assert await cache.parse(elsewhere, CategoryKind.DETAIL, parse) == elsewhere.key.url
    assert parsed == [a.key, elsewhere.key]
    assert cache.stats.content_hits == 1
