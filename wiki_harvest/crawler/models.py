# wiki_harvest/crawler/models.py
"""
Data models shared by the fetcher, the cache and the link resolver.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union
from urllib.parse import urlsplit

from wiki_harvest.utils import canonicalize_url, extract_domain, is_http_url, sha256_hexdigest

__all__ = (
    "CategoryKind",
    "ResourceKey",
    "PageData",
    "FetchFailed",
    "FetchResult",
    "FrontierEntry",
)


class CategoryKind(str, Enum):
    """Content categories known to the pipeline."""

    LIST = "list"
    DETAIL = "detail"
    CALENDAR = "calendar"
    NAVIGATION = "navigation"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True, order=True)
class ResourceKey:
    """Canonical identifier of a fetchable page; equal keys mean the same resource."""

    url: str

    @classmethod
    def from_url(cls, url: str, keep_params: Iterable[str] = ()) -> ResourceKey:
        return cls(canonicalize_url(url, keep_params))

    @property
    def host(self) -> str:
        return extract_domain(self.url)

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def path_with_query(self) -> str:
        parts = urlsplit(self.url)
        return parts.path + (f"?{parts.query}" if parts.query else "")

    @property
    def is_fetchable(self) -> bool:
        return is_http_url(self.url)

    def __str__(self) -> str:
        return self.url


@dataclass(slots=True)
class PageData:
    """Successfully fetched page: text content plus fetch metadata."""

    key: ResourceKey
    content: str
    status: int = 200
    fetched_at: float = field(default_factory=time.time)
    fingerprint: str = ""

    def __post_init__(self) -> None:
        if not self.fingerprint:
            self.fingerprint = sha256_hexdigest(self.content)


@dataclass(frozen=True, slots=True)
class FetchFailed:
    """Terminal fetch failure for *key* after *attempts* tries."""

    key: ResourceKey
    last_error: str
    attempts: int
    retryable: bool


FetchResult = Union[PageData, FetchFailed]


@dataclass(frozen=True, slots=True)
class FrontierEntry:
    """Unit of work for the resolver: what to load, how to read it, how deep to go."""

    key: ResourceKey
    category: CategoryKind
    depth_remaining: int
    referrer: Optional[ResourceKey] = None
