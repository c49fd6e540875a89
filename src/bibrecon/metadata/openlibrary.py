# ABOUTME: Open Library metadata provider implementation.
# ABOUTME: Searches openlibrary.org by ISBN, title, creator, or combined criteria and scores the hits.

import logging
import re
from dataclasses import replace

from bibrecon.metadata.http import HttpClient, MetadataFetchError
from bibrecon.metadata.openlibrary_parser import (
    SOURCE_NAME,
    parse_author_name,
    parse_isbn_response,
    parse_search_results,
    parse_works_response,
)
from bibrecon.metadata.provider import BaseProvider, RateLimitSettings, TimeoutSettings
from bibrecon.metadata.scoring import score_record
from bibrecon.metadata.types import (
    CreatorQuery,
    MetadataRecord,
    MetadataType,
    MultiCriteriaQuery,
    TitleQuery,
)

logger = logging.getLogger(__name__)

_OL_BASE = "https://openlibrary.org"
_SEARCH_LIMIT = 5

# Matches a colon followed by a space and remaining text (subtitle pattern).
_SUBTITLE_RE = re.compile(r"\s*:\s+.+$")


def _strip_subtitle(title: str) -> str | None:
    """Remove subtitle from a title string (text after ": ").

    Returns the stripped title, or None if no subtitle was found or
    stripping would produce an identical or empty string.
    """
    stripped = _SUBTITLE_RE.sub("", title).strip()
    if stripped and stripped != title.strip():
        return stripped
    return None


class OpenLibraryProvider(BaseProvider):
    """Metadata provider backed by the Open Library API.

    Supports ISBN-based lookup (most precise) and search (broader).
    Uses dependency-injected HttpClient for testability. Fetch errors are
    raised so the coordinator can record this provider as failed.
    """

    name = SOURCE_NAME
    priority = 80
    rate_limit = RateLimitSettings(max_requests=100, window=60.0, request_delay=0.1)
    timeout = TimeoutSettings(request_timeout=15.0, operation_timeout=30.0)
    supported_types = frozenset(
        {
            MetadataType.TITLE,
            MetadataType.AUTHORS,
            MetadataType.ISBN,
            MetadataType.PUBLICATION_DATE,
            MetadataType.SUBJECTS,
            MetadataType.DESCRIPTION,
            MetadataType.LANGUAGE,
            MetadataType.PUBLISHER,
            MetadataType.PAGE_COUNT,
            MetadataType.COVER_IMAGE,
        }
    )

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        """Look up a book by ISBN via the Open Library ISBN endpoint.

        Follows up with works and author endpoints to enrich metadata.
        """
        clean_isbn = re.sub(r"[\s-]", "", isbn)
        data = await self._http.get(f"{_OL_BASE}/isbn/{clean_isbn}.json")

        record = parse_isbn_response(data)
        description = await self._fetch_description(record.provider_data.get("openlibrary_work"))
        authors = await self._fetch_authors(data.get("authors", []))
        record = replace(
            record,
            description=description or record.description,
            authors=tuple(authors) or record.authors,
        )
        return [record]

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]:
        """Search by title, retrying without a subtitle when nothing is found."""
        records = await self._search({"title": query.title}, title=query.title)
        if not records:
            stripped = _strip_subtitle(query.title)
            if stripped:
                records = await self._search({"title": stripped}, title=stripped)
        if query.exact_match:
            records = [r for r in records if (r.title or "").lower() == query.title.lower()]
        return records

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]:
        return await self._search({"author": query.name}, author=query.name)

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        params: dict[str, str] = {}
        if query.title:
            params["title"] = query.title
        if query.authors:
            params["author"] = query.authors[0]
        if query.isbn:
            params["isbn"] = query.isbn
        if query.publisher:
            params["publisher"] = query.publisher
        if query.language:
            params["language"] = query.language
        if query.subjects:
            params["subject"] = query.subjects[0]
        if not params:
            return []

        records = await self._search(
            params,
            title=query.title,
            author=query.authors[0] if query.authors else None,
            isbn=query.isbn,
        )
        if query.year_range:
            low, high = query.year_range
            records = [
                r
                for r in records
                if r.publication_year is None or low <= r.publication_year <= high
            ]
        return records

    async def _search(
        self,
        params: dict[str, str],
        *,
        title: str | None = None,
        author: str | None = None,
        isbn: str | None = None,
    ) -> list[MetadataRecord]:
        """Execute a single Open Library search query.

        Returns records sorted by confidence descending, with the top result
        enriched with a description from the works endpoint.
        """
        data = await self._http.get(
            f"{_OL_BASE}/search.json", params={**params, "limit": str(_SEARCH_LIMIT)}
        )
        records = [
            replace(r, confidence=score_record(r, title=title, author=author, isbn=isbn))
            for r in parse_search_results(data)
        ]
        records.sort(key=lambda r: r.confidence, reverse=True)

        if records and records[0].description is None:
            description = await self._fetch_description(
                records[0].provider_data.get("openlibrary_work")
            )
            if description:
                records[0] = replace(records[0], description=description)
        return records

    async def _fetch_description(self, works_key: str | None) -> str | None:
        """Fetch description from the works endpoint if available."""
        if not works_key:
            return None
        try:
            works_data = await self._http.get(f"{_OL_BASE}{works_key}.json")
        except MetadataFetchError as exc:
            logger.debug("Works lookup failed for %s: %s", works_key, exc)
            return None
        return parse_works_response(works_data)

    async def _fetch_authors(self, author_entries: list[dict[str, str]]) -> list[str]:
        """Fetch author names from the authors endpoint."""
        authors: list[str] = []
        for entry in author_entries:
            author_key = entry.get("key", "")
            if not author_key:
                continue
            try:
                author_data = await self._http.get(f"{_OL_BASE}{author_key}.json")
            except MetadataFetchError:
                continue
            authors.append(parse_author_name(author_data))
        return authors
