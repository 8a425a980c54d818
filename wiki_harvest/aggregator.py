# File: wiki_harvest/aggregator.py
"""wiki_harvest.aggregator: слияние записей в выходные документы и индекс перекрёстных ссылок."""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from wiki_harvest.builder import Record
from wiki_harvest.crawler.models import CategoryKind
from wiki_harvest.parser.rules import RULES, RuleSet

__all__ = (
    "RESOLVED",
    "UNRESOLVED",
    "MERGED_NAME",
    "UnresolvedRef",
    "OutputDocument",
    "merge_records",
    "dumps_document",
)

RESOLVED = "resolved"
UNRESOLVED = "unresolved"
MERGED_NAME = "merged"


@dataclass(frozen=True, slots=True)
class UnresolvedRef:
    """Ссылка из поля записи на ID, которого нет в целевой категории."""

    category: CategoryKind
    record_id: str
    field: str
    target: CategoryKind
    target_id: str

    def __str__(self) -> str:
        return f"{self.category.value}/{self.record_id}.{self.field} -> {self.target.value}/{self.target_id}"


@dataclass(slots=True)
class OutputDocument:
    """Документы по категориям и объединённый индекс ссылок."""

    categories: Dict[CategoryKind, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    merged: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    unresolved: List[UnresolvedRef] = field(default_factory=list)

    def payload(self, name: str) -> Dict[str, Any]:
        """JSON-данные документа *name*: имя категории или ``merged``."""
        if name == MERGED_NAME:
            return self.merged
        return self.categories.get(CategoryKind(name), {})

    def json(self, name: str) -> str:
        return dumps_document(self.payload(name))

    def record_counts(self) -> Dict[str, int]:
        return {c.value: len(recs) for c, recs in sorted(self.categories.items(), key=lambda kv: kv[0].value)}


def dumps_document(data: Any) -> str:
    """Детерминированная сериализация: сортировка ключей, отступ 2, UTF-8, перевод строки в конце."""
    return json.dumps(data, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


def _targets(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def merge_records(records: Iterable[Record], rules: Optional[Dict[CategoryKind, RuleSet]] = None) -> OutputDocument:
    """Группирует записи по категориям и строит индекс ссылок.

    Для каждой записи индекс хранит ``refs`` (поле → {целевой ID: resolved|unresolved})
    и ``referenced_by`` (отсортированный список ``категория/ID`` ссылающихся записей).
    Неразрешённые ссылки сохраняются с пометкой и перечисляются в ``unresolved``.
    """
    rules = rules or RULES
    doc = OutputDocument(categories={c: {} for c in CategoryKind})
    records = sorted(records, key=lambda r: (r.category.value, r.id))
    for rec in records:
        doc.categories[rec.category][rec.id] = rec.fields

    known: Dict[CategoryKind, Set[str]] = {c: set(recs) for c, recs in doc.categories.items()}
    back: Dict[Tuple[CategoryKind, str], Set[str]] = defaultdict(set)
    refs_by_record: Dict[Tuple[CategoryKind, str], Dict[str, Dict[str, str]]] = {}

    for rec in records:
        refs: Dict[str, Dict[str, str]] = {}
        for rule in rules[rec.category].ref_fields():
            assert rule.ref is not None
            targets = _targets(rec.fields.get(rule.name))
            if not targets:
                continue
            states: Dict[str, str] = {}
            for target_id in targets:
                if target_id in known[rule.ref]:
                    states[target_id] = RESOLVED
                    back[(rule.ref, target_id)].add(f"{rec.category.value}/{rec.id}")
                else:
                    states[target_id] = UNRESOLVED
                    doc.unresolved.append(UnresolvedRef(rec.category, rec.id, rule.name, rule.ref, target_id))
            refs[rule.name] = states
        refs_by_record[(rec.category, rec.id)] = refs

    for rec in records:
        doc.merged.setdefault(rec.category.value, {})[rec.id] = {
            "refs": refs_by_record[(rec.category, rec.id)],
            "referenced_by": sorted(back.get((rec.category, rec.id), ())),
        }
    return doc
