# ABOUTME: Reads provider records and library entries from JSON files for the CLI.
# ABOUTME: Converts ISO date strings and nested objects into the package's dataclasses.

import json
from dataclasses import fields
from datetime import date, datetime
from pathlib import Path
from typing import Any

from bibrecon.metadata.types import CoverImageRef, Dimensions, MetadataRecord, SeriesInfo
from bibrecon.preview.types import LibraryEntry
from bibrecon.reconciliation.dates import normalize_date
from bibrecon.reconciliation.types import Description, Publisher, Series, Subject


class RecordFileError(Exception):
    """Raised when an input file can't be turned into records."""


def _read_list(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        msg = f"Cannot read {path}: {exc}"
        raise RecordFileError(msg) from exc
    if isinstance(data, dict):
        data = data.get("records", [data])
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        msg = f"{path} must contain a list of objects"
        raise RecordFileError(msg)
    return data


def _iso_date(value: Any) -> date | str | None:
    if not isinstance(value, str):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        return value


def _series_info(value: Any) -> SeriesInfo | None:
    if value is None:
        return None
    if isinstance(value, str):
        return SeriesInfo(name=value)
    return SeriesInfo(name=value["name"], volume=value.get("volume"))


def record_from_dict(data: dict[str, Any]) -> MetadataRecord:
    """Build a MetadataRecord from a JSON object; unknown keys land in provider_data."""
    known = {f.name for f in fields(MetadataRecord)}
    values = {key: value for key, value in data.items() if key in known}
    extra = {key: value for key, value in data.items() if key not in known}

    for key in ("authors", "isbn", "subjects"):
        if key in values:
            raw = values[key]
            values[key] = (raw,) if isinstance(raw, str) else tuple(raw)
    if "timestamp" in values:
        values["timestamp"] = datetime.fromisoformat(values["timestamp"])
    if "publication_date" in values:
        values["publication_date"] = _iso_date(values["publication_date"])
    if "series" in values:
        values["series"] = _series_info(values["series"])
    if values.get("physical_dimensions") is not None:
        values["physical_dimensions"] = Dimensions(**values["physical_dimensions"])
    cover = values.get("cover_image")
    if isinstance(cover, str):
        values["cover_image"] = CoverImageRef(url=cover)
    elif cover is not None:
        values["cover_image"] = CoverImageRef(**cover)
    values["provider_data"] = {**values.get("provider_data", {}), **extra}
    return MetadataRecord(**values)


def load_records(path: Path) -> list[MetadataRecord]:
    records = []
    for index, item in enumerate(_read_list(path)):
        try:
            records.append(record_from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Record {index} in {path} is invalid: {exc}"
            raise RecordFileError(msg) from exc
    return records


def _library_series(value: Any) -> tuple[Series, ...]:
    if value is None:
        return ()
    items = value if isinstance(value, list) else [value]
    series = []
    for item in items:
        if isinstance(item, str):
            series.append(Series(name=item))
        else:
            series.append(
                Series(
                    name=item["name"],
                    volume=item.get("volume"),
                    total_volumes=item.get("total_volumes"),
                )
            )
    return tuple(series)


def entry_from_dict(data: dict[str, Any]) -> LibraryEntry:
    published = data.get("publication_date")
    added = data.get("added_date")
    return LibraryEntry(
        id=str(data["id"]),
        title=data["title"],
        authors=tuple(data.get("authors", ())),
        isbn=tuple(data.get("isbn", ())),
        publication_date=normalize_date(published) if published else None,
        publisher=Publisher(name=data["publisher"]) if data.get("publisher") else None,
        series=_library_series(data.get("series")),
        subjects=tuple(Subject(name=s) for s in data.get("subjects", ())),
        description=Description(text=data["description"]) if data.get("description") else None,
        language=data.get("language"),
        added_date=datetime.fromisoformat(added) if added else None,
    )


def load_library(path: Path) -> list[LibraryEntry]:
    entries = []
    for index, item in enumerate(_read_list(path)):
        try:
            entries.append(entry_from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Library entry {index} in {path} is invalid: {exc}"
            raise RecordFileError(msg) from exc
    return entries
