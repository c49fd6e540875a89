# ABOUTME: Unit tests for reading provider records and library entries from JSON files.
# ABOUTME: Covers field conversion, extra keys, wrapper objects, and error reporting.

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pytest

from bibrecon.cli.loader import (
    RecordFileError,
    entry_from_dict,
    load_library,
    load_records,
    record_from_dict,
)
from bibrecon.metadata.types import CoverImageRef, Dimensions, SeriesInfo


def _write(tmp_path: Path, data: Any) -> Path:
    path = tmp_path / "data.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestRecordFromDict:
    """Tests for record_from_dict."""

    def test_converts_nested_values(self) -> None:
        """Strings, dates, series, covers, and dimensions become dataclasses."""
        record = record_from_dict(
            {
                "id": "ol-1",
                "source": "openlibrary",
                "confidence": 0.8,
                "authors": "Frank Herbert",
                "isbn": ["9780441013593"],
                "publication_date": "1965-08-01",
                "series": {"name": "Dune Chronicles", "volume": 1},
                "cover_image": "https://covers.example/dune.jpg",
                "physical_dimensions": {"width": 13.3, "height": 20.3, "depth": 3.3, "unit": "cm"},
            }
        )
        assert record.authors == ("Frank Herbert",)
        assert record.isbn == ("9780441013593",)
        assert record.publication_date == date(1965, 8, 1)
        assert record.series == SeriesInfo(name="Dune Chronicles", volume=1)
        assert record.cover_image == CoverImageRef(url="https://covers.example/dune.jpg")
        assert record.physical_dimensions == Dimensions(width=13.3, height=20.3, depth=3.3, unit="cm")

    def test_partial_date_kept_as_text(self) -> None:
        """Dates that are not full ISO dates stay as text."""
        record = record_from_dict({"id": "1", "source": "s", "confidence": 0.5, "publication_date": "1965"})
        assert record.publication_date == "1965"

    def test_unknown_keys_become_provider_data(self) -> None:
        """Keys the record doesn't define are kept in provider_data."""
        record = record_from_dict(
            {
                "id": "1",
                "source": "s",
                "confidence": 0.5,
                "oclc": ["12345678"],
                "provider_data": {"binding": "paperback"},
            }
        )
        assert record.provider_data == {"binding": "paperback", "oclc": ["12345678"]}

    def test_timestamp_parsed(self) -> None:
        """ISO timestamps are parsed."""
        record = record_from_dict(
            {"id": "1", "source": "s", "confidence": 0.5, "timestamp": "2024-01-02T03:04:05"}
        )
        assert record.timestamp == datetime(2024, 1, 2, 3, 4, 5)


class TestLoadRecords:
    """Tests for load_records."""

    def test_list_file(self, tmp_path: Path) -> None:
        """A top-level list of objects loads in order."""
        path = _write(
            tmp_path,
            [{"id": "1", "source": "a", "confidence": 0.5}, {"id": "2", "source": "b", "confidence": 0.6}],
        )
        assert [r.id for r in load_records(path)] == ["1", "2"]

    def test_records_wrapper(self, tmp_path: Path) -> None:
        """An object with a records key is unwrapped."""
        path = _write(tmp_path, {"records": [{"id": "1", "source": "a", "confidence": 0.5}]})
        assert len(load_records(path)) == 1

    def test_single_object(self, tmp_path: Path) -> None:
        """A single record object is accepted."""
        path = _write(tmp_path, {"id": "1", "source": "a", "confidence": 0.5})
        assert load_records(path)[0].source == "a"

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Unparseable files raise RecordFileError."""
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(RecordFileError, match="Cannot read"):
            load_records(path)

    def test_wrong_shape(self, tmp_path: Path) -> None:
        """Lists of non-objects are rejected."""
        with pytest.raises(RecordFileError, match="must contain a list of objects"):
            load_records(_write(tmp_path, [1, 2]))

    def test_invalid_record(self, tmp_path: Path) -> None:
        """Records that can't be built name their index."""
        path = _write(tmp_path, [{"id": "1", "source": "a", "confidence": 2.0}])
        with pytest.raises(RecordFileError, match="Record 0 in .* is invalid"):
            load_records(path)


class TestLibrary:
    """Tests for entry_from_dict and load_library."""

    def test_entry_conversion(self) -> None:
        """Library entries get parsed dates, publishers, and series."""
        entry = entry_from_dict(
            {
                "id": 7,
                "title": "Dune",
                "authors": ["Frank Herbert"],
                "publication_date": "1965",
                "publisher": "Chilton",
                "series": [{"name": "Dune Chronicles", "volume": 1, "total_volumes": 6}],
                "added_date": "2024-01-02T03:04:05",
            }
        )
        assert entry.id == "7"
        assert entry.publication_date is not None
        assert entry.publication_date.year == 1965
        assert entry.publisher is not None
        assert entry.publisher.name == "Chilton"
        assert entry.series[0].total_volumes == 6
        assert entry.added_date == datetime(2024, 1, 2, 3, 4, 5)

    def test_series_as_text(self) -> None:
        """A bare series name is accepted."""
        entry = entry_from_dict({"id": "1", "title": "Dune", "series": "Dune Chronicles"})
        assert [s.name for s in entry.series] == ["Dune Chronicles"]

    def test_missing_title(self, tmp_path: Path) -> None:
        """Entries without a title are rejected with their index."""
        with pytest.raises(RecordFileError, match="Library entry 0"):
            load_library(_write(tmp_path, [{"id": "1"}]))
