# wiki_harvest/parser/rules.py
"""
Declarative extraction rules, one :class:`RuleSet` per content category.

The extractor is generic; everything it knows about the site's markup lives in
the :data:`RULES` table below. Adding a field or a link type is a data change.

Markup conventions of the wiki:

* navigation: ``a.nav-item[data-menu-id]`` per menu, with ``.nav-name`` and
  ``img.nav-icon``; the link leads to that menu's list page.
* list: ``main[data-menu-id]`` with ``.list-title``, an optional
  ``.list-total`` and ``li.entry-item[data-entry-id]`` entries linking to
  detail pages.
* detail: ``article.entry-page[data-entry-id]`` with name, icon, rarity
  (number, colored via inline style), rich description, tags, release date and
  ``a.related-entry[data-entry-id]`` links to other details.
* calendar: ``div.calendar-event[data-event-id]`` per event with title, type
  (background color), start/end ``time[datetime]`` and featured entries.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Set, Tuple

from wiki_harvest.crawler.models import CategoryKind

__all__ = ("Coerce", "FieldRule", "LinkRule", "RuleSet", "RULES", "upstream_categories")


class Coerce(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    DATE = "date"
    URL = "url"
    COLOR = "color"
    RICH_TEXT = "rich_text"
    REF = "ref"


@dataclass(frozen=True, slots=True)
class FieldRule:
    """How to read one field out of an item scope.

    ``selector=None`` reads the scope element itself. The raw value comes from
    ``attr``, else from the inline-style property ``style``, else from the
    element text.
    """

    name: str
    selector: Optional[str] = None
    attr: Optional[str] = None
    style: Optional[str] = None
    coerce: Coerce = Coerce.TEXT
    required: bool = False
    many: bool = False
    ref: Optional[CategoryKind] = None

    def __post_init__(self) -> None:
        if (self.coerce is Coerce.REF) != (self.ref is not None):
            raise ValueError(f"field {self.name!r}: REF coercion and ref category go together")


@dataclass(frozen=True, slots=True)
class LinkRule:
    """Outbound links to follow, tagged with the category to read them as."""

    selector: str
    category: CategoryKind
    attr: str = "href"


@dataclass(frozen=True, slots=True)
class RuleSet:
    id_field: str
    fields: Tuple[FieldRule, ...]
    links: Tuple[LinkRule, ...] = ()
    item_selector: Optional[str] = None

    def ref_fields(self) -> Tuple[FieldRule, ...]:
        return tuple(f for f in self.fields if f.ref is not None)


RULES: Dict[CategoryKind, RuleSet] = {
    CategoryKind.NAVIGATION: RuleSet(
        item_selector="a.nav-item[data-menu-id]",
        id_field="id",
        fields=(
            FieldRule("id", attr="data-menu-id", required=True),
            FieldRule("name", ".nav-name", required=True),
            FieldRule("icon", "img.nav-icon", attr="src", coerce=Coerce.URL),
            FieldRule("list", attr="data-menu-id", coerce=Coerce.REF, ref=CategoryKind.LIST),
        ),
        links=(LinkRule("a.nav-item[href]", CategoryKind.LIST),),
    ),
    CategoryKind.LIST: RuleSet(
        id_field="id",
        fields=(
            FieldRule("id", "main[data-menu-id]", attr="data-menu-id", required=True),
            FieldRule("title", ".list-title", required=True),
            FieldRule("total", ".list-total", coerce=Coerce.INTEGER),
            FieldRule(
                "entries",
                "li.entry-item[data-entry-id]",
                attr="data-entry-id",
                coerce=Coerce.REF,
                many=True,
                ref=CategoryKind.DETAIL,
            ),
        ),
        links=(LinkRule("li.entry-item a[href]", CategoryKind.DETAIL),),
    ),
    CategoryKind.DETAIL: RuleSet(
        id_field="id",
        fields=(
            FieldRule("id", "article.entry-page[data-entry-id]", attr="data-entry-id", required=True),
            FieldRule("name", ".entry-name", required=True),
            FieldRule("icon", "img.entry-icon", attr="src", coerce=Coerce.URL),
            FieldRule("rarity", ".entry-rarity", coerce=Coerce.INTEGER),
            FieldRule("rarity_color", ".entry-rarity", style="color", coerce=Coerce.COLOR),
            FieldRule("description", ".entry-desc", coerce=Coerce.RICH_TEXT),
            FieldRule("tags", ".entry-tags li", many=True),
            FieldRule("released", "time.entry-release", attr="datetime", coerce=Coerce.DATE),
            FieldRule(
                "related",
                "a.related-entry[data-entry-id]",
                attr="data-entry-id",
                coerce=Coerce.REF,
                many=True,
                ref=CategoryKind.DETAIL,
            ),
        ),
        links=(LinkRule("a.related-entry[href]", CategoryKind.DETAIL),),
    ),
    CategoryKind.CALENDAR: RuleSet(
        item_selector="div.calendar-event[data-event-id]",
        id_field="id",
        fields=(
            FieldRule("id", attr="data-event-id", required=True),
            FieldRule("title", ".event-title", required=True),
            FieldRule("kind", ".event-type"),
            FieldRule("color", ".event-type", style="background-color", coerce=Coerce.COLOR),
            FieldRule("starts", "time.event-start", attr="datetime", coerce=Coerce.DATE, required=True),
            FieldRule("ends", "time.event-end", attr="datetime", coerce=Coerce.DATE),
            FieldRule(
                "entries",
                "a.event-entry[data-entry-id]",
                attr="data-entry-id",
                coerce=Coerce.REF,
                many=True,
                ref=CategoryKind.DETAIL,
            ),
        ),
        links=(LinkRule("a.event-entry[href]", CategoryKind.DETAIL),),
    ),
}


def upstream_categories(selected: Iterable[CategoryKind]) -> Set[CategoryKind]:
    """Selected categories plus every category whose links (transitively) lead to them."""
    reached: Set[CategoryKind] = set(selected)
    changed = True
    while changed:
        changed = False
        for category, rules in RULES.items():
            if category in reached:
                continue
            if any(link.category in reached for link in rules.links):
                reached.add(category)
                changed = True
    return reached
