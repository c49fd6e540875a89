# ABOUTME: Parsing functions for Open Library API JSON responses.
# ABOUTME: Converts OL-specific data structures into MetadataRecord instances.

from typing import Any

from bibrecon.metadata.types import CoverImageRef, MetadataRecord, SeriesInfo

SOURCE_NAME = "openlibrary"
_COVERS_BASE_URL = "https://covers.openlibrary.org/b"


def _first(values: list[Any] | None) -> Any:
    return values[0] if values else None


def _language_code(entry: dict[str, Any] | str) -> str:
    key = entry.get("key", "") if isinstance(entry, dict) else entry
    return key.rsplit("/", 1)[-1] if "/" in key else key


def parse_isbn_response(data: dict[str, Any], confidence: float = 0.9) -> MetadataRecord:
    """Parse an Open Library ISBN endpoint response into a MetadataRecord.

    The ISBN endpoint returns edition-level data with fields like
    title, publishers, isbn_13, languages, works, etc.
    """
    isbns = tuple(data.get("isbn_13", [])) + tuple(data.get("isbn_10", []))

    languages = data.get("languages", [])
    language = _language_code(languages[0]) if languages else None

    series_names = data.get("series", [])
    series = SeriesInfo(name=series_names[0]) if series_names else None

    covers = [c for c in data.get("covers", []) if isinstance(c, int) and c > 0]
    cover = CoverImageRef(url=build_cover_url(covers[0])) if covers else None

    works = data.get("works", [])
    provider_data: dict[str, Any] = {}
    if works:
        provider_data["openlibrary_work"] = works[0].get("key")
    if data.get("physical_format"):
        provider_data["format"] = data["physical_format"]
    if data.get("physical_dimensions"):
        provider_data["dimensions"] = data["physical_dimensions"]
    if data.get("weight"):
        provider_data["weight"] = data["weight"]

    subjects = tuple(s if isinstance(s, str) else s.get("name", "") for s in data.get("subjects", []))

    return MetadataRecord(
        id=data.get("key", f"isbn:{_first(list(isbns)) or 'unknown'}"),
        source=SOURCE_NAME,
        confidence=confidence,
        title=data.get("title"),
        isbn=isbns,
        publication_date=data.get("publish_date"),
        subjects=tuple(s for s in subjects if s),
        language=language,
        publisher=_first(data.get("publishers")),
        series=series,
        edition=data.get("edition_name"),
        page_count=data.get("number_of_pages"),
        cover_image=cover,
        provider_data=provider_data,
    )


def parse_works_response(data: dict[str, Any]) -> str | None:
    """Extract the description from an Open Library Works response.

    Handles the OL quirk where description can be either a plain string
    or a dict with {"type": ..., "value": "actual text"}.
    """
    desc = data.get("description")
    if desc is None:
        return None
    if isinstance(desc, str):
        return desc
    if isinstance(desc, dict):
        return desc.get("value")
    return None


def parse_author_name(data: dict[str, Any]) -> str:
    """Extract the author name from an Open Library Author response."""
    return data.get("name", "Unknown")


def parse_search_results(data: dict[str, Any], confidence: float = 0.5) -> list[MetadataRecord]:
    """Parse an Open Library Search API response into a list of MetadataRecords.

    Each doc in the search results contains title, author_name, isbn, etc.
    Confidence is provisional; the provider rescores hits against the query.
    """
    results: list[MetadataRecord] = []

    for doc in data.get("docs", []):
        year = doc.get("first_publish_year")
        cover_id = doc.get("cover_i")
        results.append(
            MetadataRecord(
                id=doc.get("key", "unknown"),
                source=SOURCE_NAME,
                confidence=confidence,
                title=doc.get("title"),
                authors=tuple(doc.get("author_name", [])),
                isbn=tuple(doc.get("isbn", [])[:5]),
                publication_date=str(year) if year else None,
                subjects=tuple(doc.get("subject", [])[:10]),
                language=_first(doc.get("language")),
                publisher=_first(doc.get("publisher")),
                page_count=doc.get("number_of_pages_median"),
                cover_image=CoverImageRef(url=build_cover_url(cover_id)) if cover_id else None,
                provider_data={"openlibrary_work": doc.get("key")},
            )
        )

    return results


def build_cover_url(cover_id: int | str, size: str = "L") -> str:
    """Build an Open Library cover image URL.

    Args:
        cover_id: Numeric cover id, or an ISBN string.
        size: Image size: "S" (small), "M" (medium), or "L" (large).
    """
    kind = "id" if isinstance(cover_id, int) else "isbn"
    return f"{_COVERS_BASE_URL}/{kind}/{cover_id}-{size}.jpg"
