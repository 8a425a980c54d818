# File: tests/conftest.py
from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Set

import pytest
import pytest_asyncio
from aiohttp import web

from wiki_harvest.config import HarvestConfig
from wiki_harvest.logger import configure

from wiki_pages import default_pages, serve_app

# --------------------------------------------------------------------------- #
#                                Test server                                  #
# --------------------------------------------------------------------------- #


@dataclass
class WikiSite:
    """Local wiki served by aiohttp; counts hits per path."""

    base: str = ""
    pages: Dict[str, str] = field(default_factory=default_pages)
    failing: Set[str] = field(default_factory=lambda: {"/entry/2"})
    robots: str = ""
    slow: Dict[str, float] = field(default_factory=dict)
    hits: Counter = field(default_factory=Counter)

    def build_app(self) -> web.Application:
        app = web.Application()

        async def handle(request: web.Request) -> web.Response:
            path = request.path
            self.hits[path] += 1
            if path in self.slow:
                await asyncio.sleep(self.slow[path])
            if path == "/robots.txt" and self.robots:
                return web.Response(text=self.robots, content_type="text/plain")
            if path in self.failing:
                return web.Response(status=500)
            if path in self.pages:
                return web.Response(text=self.pages[path], content_type="text/html")
            return web.Response(status=404)

        app.router.add_get("/{tail:.*}", handle)
        return app


@pytest_asyncio.fixture
async def wiki_site(unused_tcp_port: int) -> AsyncIterator[WikiSite]:
    site = WikiSite()
    async for base in serve_app(site.build_app(), unused_tcp_port):
        site.base = base
        yield site


# --------------------------------------------------------------------------- #
#                                   Config                                    #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def make_config(tmp_path: Path) -> Callable[..., HarvestConfig]:
    """Factory for a fast HarvestConfig pointed at a local wiki."""

    def _make(base: str, **overrides) -> HarvestConfig:
        data = dict(
            entry_points={"navigation": [f"{base}/nav/"], "calendar": [f"{base}/calendar/"]},
            out_dir=tmp_path / "out",
            max_depth=3,
            concurrency=4,
            per_host_delay=0.0,
            timeout=2.0,
            retry_times=1,
            retry_backoff=0.0,
            max_backoff=0.0,
            user_agent="TestAgent/1.0",
        )
        data.update(overrides)
        return HarvestConfig(**data)

    return _make


@pytest.fixture(autouse=True)
def _reset_logging():
    """CliRunner swaps stdout; put the project logger back on the real one after each test."""
    yield
    configure(level="INFO")
