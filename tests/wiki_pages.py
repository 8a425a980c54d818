# File: tests/wiki_pages.py
"""Sample wiki markup and a tiny aiohttp server helper shared by the test modules."""
from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Dict, Optional

from aiohttp import web

NAV_HTML = (
    "<html><body><nav>"
    '<a class="nav-item" data-menu-id="10" href="/list/10">'
    '<img class="nav-icon" src="/img/10.png"><span class="nav-name">Weapons</span></a>'
    '<a class="nav-item" data-menu-id="20" href="/list/20">'
    '<img class="nav-icon" src="/img/20.png"><span class="nav-name">Armor</span></a>'
    "</nav></body></html>"
)


def list_html(menu_id: str, title: str, entries: Dict[str, str]) -> str:
    items = "".join(
        f'<li class="entry-item" data-entry-id="{eid}"><a href="/entry/{eid}">{name}</a></li>'
        for eid, name in entries.items()
    )
    return (
        f'<html><body><main data-menu-id="{menu_id}">'
        f'<h1 class="list-title">{title}</h1><span class="list-total">{len(entries)} entries</span>'
        f"<ul>{items}</ul></main></body></html>"
    )


DETAIL_1_HTML = (
    '<html><body><article class="entry-page" data-entry-id="1">'
    '<h1 class="entry-name">Sword</h1><img class="entry-icon" src="/img/sword.png">'
    '<span class="entry-rarity" style="color: #FF0000">5</span>'
    '<div class="entry-desc"><p>Deals <span style="color: rgb(255,0,0)">50</span> damage.</p>'
    "<p>Second line</p></div>"
    '<ul class="entry-tags"><li>melee</li><li>steel</li></ul>'
    '<time class="entry-release" datetime="2024-05-01">May 1</time>'
    '<a class="related-entry" data-entry-id="3" href="/entry/3">Shield</a>'
    "</article></body></html>"
)

DETAIL_3_HTML = (
    '<html><body><article class="entry-page" data-entry-id="3">'
    '<h1 class="entry-name">Shield</h1>'
    '<a class="related-entry" data-entry-id="1" href="/entry/1">Sword</a>'
    "</article></body></html>"
)

CALENDAR_HTML = (
    "<html><body>"
    '<div class="calendar-event" data-event-id="e1"><h2 class="event-title">Sword Festival</h2>'
    '<span class="event-type" style="background-color: hsl(120, 100%, 25%)">festival</span>'
    '<time class="event-start" datetime="2024-06-01T00:00:00+00:00"></time>'
    '<time class="event-end" datetime="2024-06-07"></time>'
    '<a class="event-entry" data-entry-id="1" href="/entry/1">Sword</a></div>'
    "</body></html>"
)


def default_pages() -> Dict[str, str]:
    return {
        "/nav/": NAV_HTML,
        "/list/10": list_html("10", "Weapons", {"1": "Sword", "2": "Bow"}),
        "/list/20": list_html("20", "Armor", {"1": "Sword", "3": "Shield"}),
        "/entry/1": DETAIL_1_HTML,
        "/entry/3": DETAIL_3_HTML,
        "/calendar/": CALENDAR_HTML,
    }


def language_pages(lang: str, replacements: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Sample pages moved under ``/<lang>/``, with links rewritten to stay inside the language."""
    pages = {}
    for path, html in default_pages().items():
        html = html.replace('href="/', f'href="/{lang}/').replace('src="/', f'src="/{lang}/')
        for old, new in (replacements or {}).items():
            html = html.replace(old, new)
        pages[f"/{lang}{path}"] = html
    return pages


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()
