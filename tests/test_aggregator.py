# File: tests/test_aggregator.py
import json

from wiki_harvest.aggregator import MERGED_NAME, RESOLVED, UNRESOLVED, dumps_document, merge_records
from wiki_harvest.builder import Record
from wiki_harvest.crawler.models import CategoryKind, ResourceKey

SRC = ResourceKey("http://wiki.test/")


def rec(category, rid, **fields):
    return Record(category, rid, fields, SRC)


RECORDS = [
    rec(CategoryKind.LIST, "10", title="Weapons", entries=["1", "2"]),
    rec(CategoryKind.LIST, "20", title="Armor", entries=["1", "3"]),
    rec(CategoryKind.DETAIL, "1", name="Sword", related=["3"]),
    rec(CategoryKind.DETAIL, "3", name="Shield", related=["1"]),
    rec(CategoryKind.NAVIGATION, "10", name="Weapons", list="10"),
]


def test_refs_resolved_and_unresolved():
    doc = merge_records(RECORDS)
    assert doc.merged["list"]["10"]["refs"] == {"entries": {"1": RESOLVED, "2": UNRESOLVED}}
    assert [str(u) for u in doc.unresolved] == ["list/10.entries -> detail/2"]


def test_referenced_by_is_sorted_and_shared():
    doc = merge_records(RECORDS)
    assert doc.merged["detail"]["1"]["referenced_by"] == ["detail/3", "list/10", "list/20"]
    assert doc.merged["list"]["10"]["referenced_by"] == ["navigation/10"]
    assert doc.merged["navigation"]["10"]["referenced_by"] == []


def test_single_reference_field():
    doc = merge_records(RECORDS)
    assert doc.merged["navigation"]["10"]["refs"] == {"list": {"10": RESOLVED}}


def test_category_documents_and_counts():
    doc = merge_records(RECORDS)
    assert doc.payload("detail") == {"1": {"name": "Sword", "related": ["3"]}, "3": {"name": "Shield", "related": ["1"]}}
    assert doc.payload("calendar") == {}
    assert doc.payload(MERGED_NAME) is doc.merged
    assert doc.record_counts() == {"calendar": 0, "detail": 2, "list": 2, "navigation": 1}


def test_input_order_does_not_matter():
    forward = merge_records(RECORDS)
    backward = merge_records(list(reversed(RECORDS)))
    for name in ("list", "detail", "navigation", MERGED_NAME):
        assert forward.json(name) == backward.json(name)


def test_dumps_document_is_deterministic():
    text = dumps_document({"b": 1, "a": {"ü": [2, 1]}})
    assert text == '{\n  "a": {\n    "ü": [\n      2,\n      1\n    ]\n  },\n  "b": 1\n}\n'
    assert json.loads(text) == {"a": {"ü": [2, 1]}, "b": 1}
