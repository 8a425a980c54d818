# File: wiki_harvest/builder.py
"""wiki_harvest.builder: сборка записей из field map и проверка по схеме категории.

Схемы категорий описаны моделями Pydantic. Уникальность ID в пределах категории:
побеждает первая валидная запись; более поздняя запись с тем же ID и другими
полями отклоняется (``ValidationError.duplicate``) с предупреждением в логе.
Идентичный дубликат (та же страница по другому URL) схлопывается молча.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Annotated, Any, Dict, List, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator
from pydantic import ValidationError as SchemaError

from wiki_harvest.crawler.models import CategoryKind, ResourceKey
from wiki_harvest.logger import logger

__all__ = ("Record", "ValidationError", "RecordBuilder", "SCHEMAS")

RecordId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]
Color = Annotated[str, StringConstraints(pattern=r"^#[0-9a-f]{8}$")]
WebUrl = Annotated[str, StringConstraints(pattern=r"^https?://\S+$")]
Label = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _RecordSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: RecordId


class NavigationSchema(_RecordSchema):
    name: Label
    icon: Optional[WebUrl] = None
    list: Optional[RecordId] = None


class ListSchema(_RecordSchema):
    title: Label
    total: Optional[int] = Field(None, ge=0)
    entries: List[RecordId] = Field(default_factory=list)


class DetailSchema(_RecordSchema):
    name: Label
    icon: Optional[WebUrl] = None
    rarity: Optional[int] = Field(None, ge=1, le=10)
    rarity_color: Optional[Color] = None
    description: Optional[str] = None
    tags: List[Label] = Field(default_factory=list)
    released: Optional[date] = None
    related: List[RecordId] = Field(default_factory=list)


class CalendarSchema(_RecordSchema):
    title: Label
    kind: Optional[str] = None
    color: Optional[Color] = None
    starts: date
    ends: Optional[date] = None
    entries: List[RecordId] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_range(self) -> CalendarSchema:
        if self.ends is not None and self.ends < self.starts:
            raise ValueError(f"ends ({self.ends}) is before starts ({self.starts})")
        return self


SCHEMAS: Dict[CategoryKind, Type[_RecordSchema]] = {
    CategoryKind.NAVIGATION: NavigationSchema,
    CategoryKind.LIST: ListSchema,
    CategoryKind.DETAIL: DetailSchema,
    CategoryKind.CALENDAR: CalendarSchema,
}


@dataclass(frozen=True, slots=True)
class Record:
    """Нормализованная запись: ID, JSON-совместимые поля (без ID), категория и источник."""

    category: CategoryKind
    id: str
    fields: Dict[str, Any] = field(hash=False)
    source: ResourceKey

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, **self.fields}


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Запись отклонена: нарушение схемы или конфликт ID."""

    category: CategoryKind
    record_id: str
    reason: str
    source: ResourceKey
    duplicate: bool = False


_LOC_RE = re.compile(r"\s+")


def _describe(exc: SchemaError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<record>"
        parts.append(f"{loc}: {_LOC_RE.sub(' ', err.get('msg', 'invalid'))}")
    return "; ".join(parts)


class RecordBuilder:
    """Собирает записи; хранит первую валидную запись для каждого (категория, ID)."""

    def __init__(self) -> None:
        self._records: Dict[CategoryKind, Dict[str, Record]] = {c: {} for c in CategoryKind}

    def build(
        self,
        category: CategoryKind,
        record_id: str,
        field_map: Mapping[str, Any],
        source: ResourceKey,
    ) -> Union[Record, ValidationError]:
        schema = SCHEMAS[category]
        payload = {k: v for k, v in field_map.items() if k != "id"}
        payload["id"] = record_id
        try:
            model = schema.model_validate(payload)
        except SchemaError as exc:
            reason = _describe(exc)
            logger.warning("Invalid %s record %r from %s: %s", category.value, record_id, source, reason)
            return ValidationError(category, str(record_id), reason, source)

        fields = model.model_dump(mode="json", exclude_none=True, exclude={"id"})
        record = Record(category, model.id, fields, source)

        existing = self._records[category].get(record.id)
        if existing is None:
            self._records[category][record.id] = record
            return record
        if existing.fields == record.fields:
            logger.debug("Identical %s record %r from %s and %s", category.value, record.id, existing.source, source)
            return existing

        reason = f"duplicate id, keeping the record from {existing.source}"
        logger.warning("Conflicting %s record %r from %s: %s", category.value, record.id, source, reason)
        return ValidationError(category, record.id, reason, source, duplicate=True)

    def records(self) -> List[Record]:
        """Все принятые записи, отсортированные по категории и ID."""
        out: List[Record] = []
        for category in sorted(self._records, key=lambda c: c.value):
            out.extend(self._records[category][rid] for rid in sorted(self._records[category]))
        return out
