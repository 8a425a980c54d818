# File: tests/test_builder.py
import datetime

import pytest
from wiki_harvest.builder import Record, RecordBuilder, ValidationError
from wiki_harvest.crawler.models import CategoryKind, ResourceKey

SRC_A = ResourceKey("http://wiki.test/entry/1")
SRC_B = ResourceKey("http://wiki.test/entry/1-copy")


def sword(**extra):
    fields = {
        "id": "1",
        "name": "Sword",
        "rarity": 5,
        "rarity_color": "#ff0000ff",
        "tags": ["melee"],
        "released": datetime.date(2024, 5, 1),
        "related": [],
    }
    fields.update(extra)
    return fields


def test_valid_detail_record():
    builder = RecordBuilder()
    rec = builder.build(CategoryKind.DETAIL, "1", sword(), SRC_A)
    assert isinstance(rec, Record)
    assert rec.id == "1"
    assert rec.fields["released"] == "2024-05-01"
    assert "id" not in rec.fields
    assert "icon" not in rec.fields
    assert rec.to_json()["id"] == "1"


@pytest.mark.parametrize(
    "extra",
    [
        {"rarity": 11},
        {"rarity_color": "red"},
        {"name": "   "},
        {"icon": "/relative.png"},
        {"unexpected": "field"},
    ],
)
def test_schema_violation(extra):
    builder = RecordBuilder()
    result = builder.build(CategoryKind.DETAIL, "1", sword(**extra), SRC_A)
    assert isinstance(result, ValidationError)
    assert result.duplicate is False
    assert result.record_id == "1"
    assert result.reason
    assert builder.records() == []


def test_empty_id_rejected():
    result = RecordBuilder().build(CategoryKind.DETAIL, "  ", sword(), SRC_A)
    assert isinstance(result, ValidationError)


def test_identical_duplicate_collapses():
    builder = RecordBuilder()
    first = builder.build(CategoryKind.DETAIL, "1", sword(), SRC_A)
    second = builder.build(CategoryKind.DETAIL, "1", sword(), SRC_B)
    assert second is first
    assert len(builder.records()) == 1


def test_conflicting_duplicate_keeps_first():
    builder = RecordBuilder()
    first = builder.build(CategoryKind.DETAIL, "1", sword(), SRC_A)
    second = builder.build(CategoryKind.DETAIL, "1", sword(name="Other sword"), SRC_B)
    assert isinstance(second, ValidationError)
    assert second.duplicate is True
    assert second.source == SRC_B
    assert str(SRC_A) in second.reason
    assert builder.records() == [first]
    assert builder.records()[0].fields["name"] == "Sword"


def test_same_id_in_different_categories():
    builder = RecordBuilder()
    builder.build(CategoryKind.DETAIL, "10", sword(id="10"), SRC_A)
    builder.build(CategoryKind.LIST, "10", {"title": "Weapons", "entries": ["1"]}, SRC_A)
    assert [(r.category, r.id) for r in builder.records()] == [
        (CategoryKind.DETAIL, "10"),
        (CategoryKind.LIST, "10"),
    ]


def test_calendar_range():
    builder = RecordBuilder()
    ok = builder.build(
        CategoryKind.CALENDAR,
        "e1",
        {"title": "Fest", "starts": datetime.date(2024, 6, 1), "ends": datetime.date(2024, 6, 7)},
        SRC_A,
    )
    bad = builder.build(
        CategoryKind.CALENDAR,
        "e2",
        {"title": "Backwards", "starts": datetime.date(2024, 6, 7), "ends": datetime.date(2024, 6, 1)},
        SRC_A,
    )
    assert isinstance(ok, Record)
    assert isinstance(bad, ValidationError)
    assert "before" in bad.reason


def test_records_sorted():
    builder = RecordBuilder()
    for rid in ("b", "a", "c"):
        builder.build(CategoryKind.NAVIGATION, rid, {"name": rid.upper()}, SRC_A)
    assert [r.id for r in builder.records()] == ["a", "b", "c"]
