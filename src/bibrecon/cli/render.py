# ABOUTME: Display helpers shared by CLI commands: short value descriptions and JSON export.
# ABOUTME: Turns nested dataclasses into readable table cells or JSON-safe dicts.

import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from typing import Any

from bibrecon.preview.types import PhysicalSummary
from bibrecon.reconciliation.types import (
    CoverImage,
    Description,
    Identifier,
    LanguageInfo,
    PhysicalDimensions,
    PublicationDate,
    Rating,
    Series,
    Subject,
    TableOfContents,
)

_MAX_CELL = 80


def _clip(text: str) -> str:
    return text if len(text) <= _MAX_CELL else text[: _MAX_CELL - 3] + "..."


def _dimensions(dims: PhysicalDimensions) -> str:
    parts = [f"{v:g}" for v in (dims.width, dims.height, dims.depth) if v is not None]
    return " x ".join(parts) + (f" {dims.unit}" if dims.unit else "")


def describe(value: Any) -> str:
    """One-line rendering of a reconciled value for a table cell."""
    if value is None:
        return ""
    if isinstance(value, PublicationDate):
        if value.year is None:
            return value.raw or ""
        return "-".join(
            f"{part:02d}" if i else str(part)
            for i, part in enumerate((value.year, value.month, value.day))
            if part is not None
        )
    if isinstance(value, Identifier):
        return f"{value.type}:{value.normalized or value.value}"
    if isinstance(value, Subject):
        return value.normalized or value.name
    if isinstance(value, LanguageInfo):
        return value.code
    if isinstance(value, Series):
        return f"{value.name} #{value.volume}" if value.volume is not None else value.name
    if isinstance(value, Description):
        return _clip(value.text)
    if isinstance(value, CoverImage):
        return value.url
    if isinstance(value, Rating):
        return f"{value.value:g}/{value.scale:g}"
    if isinstance(value, TableOfContents):
        return f"{len(value.entries)} entries"
    if isinstance(value, PhysicalDimensions):
        return _dimensions(value)
    if isinstance(value, PhysicalSummary):
        parts = []
        if value.page_count:
            parts.append(f"{value.page_count} pages")
        if value.dimensions:
            parts.append(_dimensions(value.dimensions))
        if value.format and value.format.binding:
            parts.append(value.format.binding)
        return ", ".join(parts)
    if isinstance(value, (list, tuple)):
        return _clip(", ".join(describe(v) for v in value))
    for attr in ("name", "title", "binding"):
        if dataclasses.is_dataclass(value) and getattr(value, attr, None):
            return str(getattr(value, attr))
    return _clip(str(value))


def _default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def to_json(value: Any) -> str:
    """Serialize a dataclass tree to indented JSON."""
    data = dataclasses.asdict(value) if dataclasses.is_dataclass(value) else value
    return json.dumps(data, default=_default, indent=2, ensure_ascii=False)
