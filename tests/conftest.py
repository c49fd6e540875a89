# ABOUTME: Shared pytest fixtures for bibrecon tests.
# ABOUTME: Writes sample provider-record, library, and config JSON files for CLI tests.

import json
from pathlib import Path
from typing import Any

import pytest

DUNE_RECORDS: list[dict[str, Any]] = [
    {
        "id": "ol-dune",
        "source": "openlibrary",
        "confidence": 0.9,
        "title": "Dune",
        "authors": ["Frank Herbert"],
        "isbn": ["9780441013593"],
        "publisher": "Ace",
        "publication_date": "1965-08-01",
        "page_count": 412,
        "format": "Paperback",
        "series": {"name": "Dune Chronicles", "volume": 1},
    },
    {
        "id": "g-dune",
        "source": "google",
        "confidence": 0.8,
        "title": "Dune",
        "authors": ["Frank Herbert"],
        "isbn": ["0441013597"],
        "publisher": "Ace Books",
        "publication_date": "1965",
        "page_count": 412,
        "language": "en",
        "subjects": ["Science Fiction"],
    },
]


def _write_json(path: Path, data: Any) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def records_file(tmp_path: Path) -> Path:
    """Two provider records describing the same edition of Dune."""
    return _write_json(tmp_path / "records.json", DUNE_RECORDS)


@pytest.fixture
def library_file(tmp_path: Path) -> Path:
    """A library that already owns Dune, stored under its ISBN-10."""
    entries = [
        {"id": "owned-dune", "title": "Dune", "authors": ["Herbert, Frank"], "isbn": ["0-441-01359-7"]},
        {"id": "owned-gibson", "title": "Neuromancer", "authors": ["William Gibson"]},
    ]
    return _write_json(tmp_path / "library.json", entries)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A valid provider configuration that tweaks Open Library."""
    config = {"providers": {"openlibrary": {"priority": 90, "rate_limit": {"max_requests": 10}}}}
    return _write_json(tmp_path / "config.json", config)
