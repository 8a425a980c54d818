# wiki_harvest/crawler/fetcher.py
"""
Fetcher module: HTTP GET with a global concurrency ceiling, per-host pacing,
robots.txt, retry with exponential backoff, and per-request timeouts.

Every call returns a :data:`FetchResult`; network problems never escape as
exceptions. Only cancellation propagates.
"""
from __future__ import annotations

import asyncio
import random
import time
from typing import Dict, FrozenSet, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout, TCPConnector

from wiki_harvest.config import HarvestConfig
from wiki_harvest.crawler.models import FetchFailed, FetchResult, PageData, ResourceKey
from wiki_harvest.crawler.robots import RobotsTxtRules
from wiki_harvest.logger import logger

__all__ = ("Fetcher",)


class Fetcher:
    """Handles HTTP fetching with rate limit, retries/backoff, and timeout."""

    _RETRY_STATUS: FrozenSet[int] = frozenset(range(500, 600)) | {408, 429}

    def __init__(self, config: HarvestConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self._owns_session = session is None
        self._semaphore = asyncio.Semaphore(config.concurrency)
        self._pace_lock = asyncio.Lock()
        self._next_slot: Dict[str, float] = {}
        self._robots: Dict[str, Optional[RobotsTxtRules]] = {}
        self._robots_locks: Dict[str, asyncio.Lock] = {}
        self.requests = 0

    async def __aenter__(self) -> Fetcher:
        if self.session is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.timeout, connect=self.config.connect_timeout),
                headers={"User-Agent": self.config.user_agent},
                connector=TCPConnector(limit=self.config.concurrency),
                raise_for_status=False,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()

    async def fetch(self, key: ResourceKey, *, language: Optional[str] = None) -> FetchResult:
        """
        Fetch *key*, retrying transient failures.

        *language* is sent as ``Accept-Language``. Robots rules and pacing are
        shared by all languages of a host.

        Returns PageData on a 2xx response, FetchFailed otherwise.
        """
        if self.session is None:
            raise RuntimeError("Session not initialized")
        if not key.is_fetchable:
            return FetchFailed(key, "malformed URL", attempts=0, retryable=False)

        robots = await self._robots_for(key)
        if robots is not None and not robots.can_fetch(self.config.user_agent, key.path_with_query):
            logger.debug("Disallowed by robots.txt: %s", key)
            return FetchFailed(key, "disallowed by robots.txt", attempts=0, retryable=False)

        delay = self.config.per_host_delay
        if robots is not None:
            delay = max(delay, robots.crawl_delay(self.config.user_agent) or 0.0)

        headers = {"Accept-Language": language} if language else None
        attempts = 0
        while True:
            attempts += 1
            try:
                async with self._semaphore:
                    # слот бронируется только когда запрос реально может уйти
                    await self._wait_for_slot(key.host, delay)
                    self.requests += 1
                    async with self.session.get(key.url, headers=headers) as resp:
                        status = resp.status
                        if 200 <= status < 300:
                            text = await resp.text(errors="replace")
                            return PageData(key, text, status=status)
                        last_error = f"HTTP {status}"
                        if status not in self._RETRY_STATUS:
                            logger.debug("Not retrying %s: %s", key, last_error)
                            return FetchFailed(key, last_error, attempts=attempts, retryable=False)
            except asyncio.TimeoutError:
                last_error = f"timeout after {self.config.timeout:g}s"
            except ClientError as exc:
                last_error = f"{type(exc).__name__}: {exc}"

            if attempts > self.config.retry_times:
                logger.warning("Giving up on %s after %d attempts: %s", key, attempts, last_error)
                return FetchFailed(key, last_error, attempts=attempts, retryable=True)
            backoff = self._backoff(attempts)
            logger.debug(
                "Retry %d/%d for %s after %.2f s (%s)", attempts, self.config.retry_times, key, backoff, last_error
            )
            await asyncio.sleep(backoff)

    def _backoff(self, attempt: int) -> float:
        base = self.config.retry_backoff * 2 ** (attempt - 1)
        return min(self.config.max_backoff, base * random.uniform(0.9, 1.1))

    async def _wait_for_slot(self, host: str, delay: float) -> None:
        """Reserve the next request slot for *host*, then sleep until it arrives."""
        if delay <= 0:
            return
        async with self._pace_lock:
            now = time.monotonic()
            slot = max(now, self._next_slot.get(host, 0.0))
            self._next_slot[host] = slot + delay
        wait = slot - now
        if wait > 0:
            await asyncio.sleep(wait)

    async def _robots_for(self, key: ResourceKey) -> Optional[RobotsTxtRules]:
        if not self.config.respect_robots:
            return None
        origin = key.origin
        lock = self._robots_locks.setdefault(origin, asyncio.Lock())
        async with lock:
            if origin not in self._robots:
                self._robots[origin] = await self._load_robots(origin)
        return self._robots[origin]

    async def _load_robots(self, origin: str) -> Optional[RobotsTxtRules]:
        assert self.session is not None
        robots_url = f"{origin}/robots.txt"
        try:
            async with self._semaphore:
                async with self.session.get(robots_url) as resp:
                    if resp.status != 200:
                        logger.debug("robots.txt %s -> HTTP %s, allowing all", robots_url, resp.status)
                        return None
                    text = await resp.text(errors="replace")
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Error loading robots.txt %s: %s", robots_url, exc)
            return None
        return RobotsTxtRules(text)
