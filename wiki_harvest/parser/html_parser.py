# === FILE: wiki_harvest/parser/html_parser.py ===
"""HTML extraction for WikiHarvest.

:func:`extract` applies the category's :class:`~wiki_harvest.parser.rules.RuleSet`
to a page and returns either an :class:`Extraction` (field maps, outbound links,
color problems) or an :class:`ExtractionError` when a required field is missing
or cannot be coerced.

Coercion failures of *optional* fields degrade to absence. Pages with an item
selector (navigation, calendar) produce one field map per item; an item that
misses a required field is skipped and reported in ``Extraction.item_errors``.

Rich text is converted to the app's markup: plain text, ``\\n`` between
blocks, and ``<color=#rrggbbaa>…</color>`` for colored inline runs.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from wiki_harvest.crawler.models import CategoryKind
from wiki_harvest.parser.color import ColorParseError, normalize, style_property
from wiki_harvest.parser.rules import RULES, Coerce, FieldRule, RuleSet
from wiki_harvest.utils import is_http_url, remove_duplicates

__all__: Sequence[str] = ("DiscoveredLink", "Extraction", "ExtractionError", "FieldMap", "extract", "rich_text")

FieldMap = Dict[str, Any]

_WS_RE = re.compile(r"\s+")
_INT_RE = re.compile(r"[-+]?\d+")
_DATE_FORMATS = ("%Y/%m/%d", "%Y.%m.%d", "%d.%m.%Y", "%B %d, %Y", "%b %d, %Y")

_BLOCK_TAGS = frozenset(
    {
        "p", "div", "section", "article", "blockquote", "ul", "ol", "li", "table", "tr",
        "h1", "h2", "h3", "h4", "h5", "h6", "header", "footer", "dl", "dt", "dd", "pre",
    }
)
_STRIP_TAGS = frozenset({"script", "style", "noscript", "template", "rt", "rp"})
_MAX_RICH_DEPTH = 64


@dataclass(frozen=True, slots=True)
class DiscoveredLink:
    """Absolute outbound URL plus the category to resolve it as."""

    url: str
    category: CategoryKind


@dataclass(frozen=True, slots=True)
class ExtractionError:
    category: CategoryKind
    field: str
    reason: str


@dataclass(slots=True)
class Extraction:
    category: CategoryKind
    id_field: str
    items: List[FieldMap] = field(default_factory=list)
    links: List[DiscoveredLink] = field(default_factory=list)
    color_errors: List[ColorParseError] = field(default_factory=list)
    item_errors: List[ExtractionError] = field(default_factory=list)


class _CoercionFailed(ValueError):
    pass


_MISSING = object()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract(
    category: CategoryKind,
    content: str,
    base_url: str,
    rules: Optional[Dict[CategoryKind, RuleSet]] = None,
) -> Union[Extraction, ExtractionError]:
    """Extract field maps and outbound links from *content*.

    Parameters
    ----------
    category
        How to read the page; selects the rule set.
    content
        Raw HTML.
    base_url
        URL the page was fetched from; relative links and URL fields are
        resolved against it (or against ``<base href>`` when present).
    rules
        Rule table override, defaults to :data:`~wiki_harvest.parser.rules.RULES`.
    """
    ruleset = (rules or RULES)[category]
    soup = BeautifulSoup(content, "lxml")
    base_tag = soup.find("base", href=True)
    if isinstance(base_tag, Tag):
        base_url = urljoin(base_url, str(base_tag["href"]))

    result = Extraction(category=category, id_field=ruleset.id_field)

    if ruleset.item_selector:
        scopes = soup.select(ruleset.item_selector)
    else:
        scopes = [soup]

    for scope in scopes:
        item = _extract_item(category, ruleset, scope, base_url, result.color_errors)
        if isinstance(item, ExtractionError):
            if ruleset.item_selector is None:
                return item
            result.item_errors.append(item)
            continue
        result.items.append(item)

    result.links = _extract_links(ruleset, soup, base_url)
    return result


def rich_text(element: Tag, color_errors: Optional[List[ColorParseError]] = None) -> str:
    """Render *element* content in the app's rich-text markup."""
    builder = _RichTextBuilder(color_errors if color_errors is not None else [])
    builder.feed(element)
    return builder.render()


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------


def _extract_item(
    category: CategoryKind,
    ruleset: RuleSet,
    scope: Tag,
    base_url: str,
    color_errors: List[ColorParseError],
) -> Union[FieldMap, ExtractionError]:
    item: FieldMap = {}
    for rule in ruleset.fields:
        elements = [scope] if rule.selector is None else scope.select(rule.selector)
        if not rule.many:
            elements = elements[:1]

        values: List[Any] = []
        failure = ""
        for el in elements:
            try:
                value = _read(rule, el, base_url, color_errors)
            except _CoercionFailed as exc:
                failure = str(exc)
                continue
            if value is not _MISSING:
                values.append(value)

        if rule.many:
            if rule.coerce is Coerce.REF:
                values = remove_duplicates(values)
            if values or not rule.required:
                item[rule.name] = values
                continue
        elif values:
            item[rule.name] = values[0]
            continue

        if rule.required:
            if failure:
                reason = failure
            elif not elements:
                reason = f"no element matches {rule.selector!r}"
            else:
                reason = "value is empty"
            return ExtractionError(category, rule.name, reason)
    return item


def _read(rule: FieldRule, el: Tag, base_url: str, color_errors: List[ColorParseError]) -> Any:
    if rule.coerce is Coerce.RICH_TEXT:
        text = rich_text(el, color_errors)
        return text if text else _MISSING

    if rule.attr is not None:
        raw = el.get(rule.attr)
        if isinstance(raw, list):
            raw = " ".join(raw)
    elif rule.style is not None:
        raw = style_property(el.get("style"), rule.style)
    else:
        raw = el.get_text(" ", strip=True)

    if raw is None:
        return _MISSING
    raw = _WS_RE.sub(" ", str(raw)).strip()
    if not raw:
        return _MISSING
    return _coerce(rule, raw, base_url, color_errors)


def _coerce(rule: FieldRule, raw: str, base_url: str, color_errors: List[ColorParseError]) -> Any:
    kind = rule.coerce
    if kind in (Coerce.TEXT, Coerce.REF):
        return raw
    if kind is Coerce.INTEGER:
        match = _INT_RE.search(raw.replace(",", "").replace(" ", ""))
        if match is None:
            raise _CoercionFailed(f"{rule.name}: not an integer: {raw!r}")
        return int(match.group())
    if kind is Coerce.DATE:
        return _parse_date(rule.name, raw)
    if kind is Coerce.URL:
        url = urljoin(base_url, raw)
        if not is_http_url(url):
            raise _CoercionFailed(f"{rule.name}: not an http(s) URL: {raw!r}")
        return url
    if kind is Coerce.COLOR:
        color = normalize(raw)
        if isinstance(color, ColorParseError):
            color_errors.append(color)
            raise _CoercionFailed(f"{rule.name}: {color.reason}")
        return color
    raise _CoercionFailed(f"{rule.name}: unsupported coercion {kind}")


def _parse_date(name: str, raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    raise _CoercionFailed(f"{name}: not a date: {raw!r}")


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


def _extract_links(ruleset: RuleSet, soup: BeautifulSoup, base_url: str) -> List[DiscoveredLink]:
    links: List[DiscoveredLink] = []
    for rule in ruleset.links:
        for el in soup.select(rule.selector):
            href = el.get(rule.attr)
            if not isinstance(href, str):
                continue
            href = href.strip()
            if not href or href.startswith(("#", "mailto:", "javascript:", "tel:")):
                continue
            url = urljoin(base_url, href)
            if is_http_url(url):
                links.append(DiscoveredLink(url, rule.category))
    return remove_duplicates(links)


# ---------------------------------------------------------------------------
# Rich text
# ---------------------------------------------------------------------------

_NEWLINE = "\n"


class _RichTextBuilder:
    """Walks an element tree and collects (color, text) runs."""

    def __init__(self, color_errors: List[ColorParseError]) -> None:
        self._runs: List[List[Any]] = []
        self._colors: List[Optional[str]] = [None]
        self._color_errors = color_errors

    def feed(self, node: Tag, depth: int = 0) -> None:
        if depth > _MAX_RICH_DEPTH:
            return
        for child in node.children:
            if isinstance(child, NavigableString):
                # comments, CDATA, doctype
                if not isinstance(child, PreformattedString):
                    self._text(str(child))
                continue
            if not isinstance(child, Tag):
                continue
            name = (child.name or "").lower()
            if name in _STRIP_TAGS:
                continue
            if name == "br":
                self._newline()
                continue
            block = name in _BLOCK_TAGS
            if block:
                self._newline()
            self._colors.append(self._style_color(child) or self._colors[-1])
            self.feed(child, depth + 1)
            self._colors.pop()
            if block:
                self._newline()

    def render(self) -> str:
        out: List[str] = []
        for color, text in self._runs:
            if text == _NEWLINE:
                out.append(_NEWLINE)
                continue
            text = _WS_RE.sub(" ", text)
            if color is None:
                out.append(text)
                continue
            core = text.strip()
            lead = " " if text[:1] == " " else ""
            trail = " " if text[-1:] == " " else ""
            if core:
                out.append(f"{lead}<color={color}>{core}</color>{trail}")
            else:
                out.append(lead or trail)
        lines = [_WS_RE.sub(" ", line).strip() for line in "".join(out).split(_NEWLINE)]
        return _NEWLINE.join(line for line in lines if line)

    def _text(self, text: str) -> None:
        text = _WS_RE.sub(" ", text)
        if not text:
            return
        color = self._colors[-1]
        if self._runs and self._runs[-1][0] == color and self._runs[-1][1] != _NEWLINE:
            self._runs[-1][1] += text
        else:
            self._runs.append([color, text])

    def _newline(self) -> None:
        if self._runs and self._runs[-1][1] != _NEWLINE:
            self._runs.append([None, _NEWLINE])

    def _style_color(self, el: Tag) -> Optional[str]:
        raw = style_property(el.get("style"), "color")
        if raw is None and el.name == "font":
            raw = el.get("color")
        if not raw:
            return None
        color = normalize(str(raw))
        if isinstance(color, ColorParseError):
            self._color_errors.append(color)
            return None
        return color
