# ABOUTME: MetadataProvider protocol defining the contract for metadata sources.
# ABOUTME: Also provides BaseProvider defaults plus in-memory and adapter provider variants.

import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from bibrecon.metadata.types import (
    CreatorQuery,
    IsbnQuery,
    MetadataRecord,
    MetadataType,
    MultiCriteriaQuery,
    Query,
    TitleQuery,
)

_ISBN_STRIP_RE = re.compile(r"[\s-]")

# Default per-type reliability for providers that do not know better.
DEFAULT_RELIABILITY: dict[MetadataType, float] = {
    MetadataType.TITLE: 0.8,
    MetadataType.AUTHORS: 0.7,
    MetadataType.ISBN: 0.9,
    MetadataType.PUBLICATION_DATE: 0.6,
    MetadataType.SUBJECTS: 0.5,
    MetadataType.DESCRIPTION: 0.4,
    MetadataType.LANGUAGE: 0.7,
    MetadataType.PUBLISHER: 0.6,
    MetadataType.SERIES: 0.5,
    MetadataType.EDITION: 0.5,
    MetadataType.PAGE_COUNT: 0.6,
    MetadataType.PHYSICAL_DIMENSIONS: 0.3,
    MetadataType.COVER_IMAGE: 0.4,
}

_BASIC_TYPES = frozenset(
    {
        MetadataType.TITLE,
        MetadataType.AUTHORS,
        MetadataType.ISBN,
        MetadataType.PUBLICATION_DATE,
        MetadataType.SUBJECTS,
        MetadataType.DESCRIPTION,
        MetadataType.LANGUAGE,
    }
)


@dataclass(frozen=True)
class RateLimitSettings:
    """Call budget for a provider: max_requests per window seconds."""

    max_requests: int = 100
    window: float = 60.0
    request_delay: float = 0.1


@dataclass(frozen=True)
class TimeoutSettings:
    """Per-request and whole-operation timeouts, in seconds."""

    request_timeout: float = 10.0
    operation_timeout: float = 30.0


@runtime_checkable
class MetadataProvider(Protocol):
    """Protocol for metadata lookup services.

    Implementations expose their scheduling hints (priority, rate limit,
    timeouts), four async search entry points, and per-type reliability.
    """

    @property
    def name(self) -> str: ...

    @property
    def priority(self) -> int: ...

    @property
    def rate_limit(self) -> RateLimitSettings: ...

    @property
    def timeout(self) -> TimeoutSettings: ...

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]: ...

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]: ...

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]: ...

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]: ...

    def get_reliability_score(self, data_type: MetadataType) -> float: ...

    def supports_data_type(self, data_type: MetadataType) -> bool: ...


class BaseProvider:
    """Shared defaults for concrete providers.

    Subclasses set name and priority and implement the search methods;
    reliability and supported types fall back to module defaults.
    """

    name: str = "base"
    priority: int = 50
    rate_limit: RateLimitSettings = RateLimitSettings()
    timeout: TimeoutSettings = TimeoutSettings()
    reliability: dict[MetadataType, float] = DEFAULT_RELIABILITY
    supported_types: frozenset[MetadataType] = _BASIC_TYPES

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]:
        raise NotImplementedError

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        raise NotImplementedError

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]:
        raise NotImplementedError

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        raise NotImplementedError

    def get_reliability_score(self, data_type: MetadataType) -> float:
        return self.reliability.get(data_type, 0.5)

    def supports_data_type(self, data_type: MetadataType) -> bool:
        return data_type in self.supported_types


def _normalize_isbn(isbn: str) -> str:
    """Strip hyphens and spaces from an ISBN for comparison."""
    return _ISBN_STRIP_RE.sub("", isbn).upper()


class StaticProvider(BaseProvider):
    """Provider answering queries from a fixed list of records.

    Used for offline reconciliation of exported provider payloads and as a
    building block in tests. Matching is case-insensitive substring matching.
    """

    def __init__(
        self,
        name: str,
        records: Iterable[MetadataRecord],
        *,
        priority: int = 50,
        reliability: dict[MetadataType, float] | None = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self._records = list(records)
        if reliability is not None:
            self.reliability = {**DEFAULT_RELIABILITY, **reliability}

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]:
        return [r for r in self._records if _title_matches(r, query.title, query.exact_match)]

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        wanted = _normalize_isbn(isbn)
        return [r for r in self._records if wanted in {_normalize_isbn(i) for i in r.isbn}]

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]:
        needle = query.name.lower()
        return [r for r in self._records if any(needle in a.lower() for a in r.authors)]

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        results = []
        for record in self._records:
            if query.title and not _title_matches(record, query.title, False):
                continue
            if query.isbn and _normalize_isbn(query.isbn) not in {
                _normalize_isbn(i) for i in record.isbn
            }:
                continue
            if query.authors and not any(
                wanted.lower() in author.lower()
                for wanted in query.authors
                for author in record.authors
            ):
                continue
            if query.publisher and (
                not record.publisher or query.publisher.lower() not in record.publisher.lower()
            ):
                continue
            if query.year_range and record.publication_year is not None:
                low, high = query.year_range
                if not low <= record.publication_year <= high:
                    continue
            results.append(record)
        return results


def _title_matches(record: MetadataRecord, title: str, exact: bool) -> bool:
    if not record.title:
        return False
    if exact:
        return record.title.lower() == title.lower()
    return title.lower() in record.title.lower()


SearchFunction = Callable[[Query], Awaitable[list[MetadataRecord]]]


class AdapterProvider(BaseProvider):
    """Generic adapter turning a single async search callable into a provider.

    Lets sources that are not modelled as their own class participate in
    coordinated queries without changes to the coordinator.
    """

    def __init__(
        self,
        name: str,
        search: SearchFunction,
        *,
        priority: int = 50,
        rate_limit: RateLimitSettings | None = None,
        timeout: TimeoutSettings | None = None,
        reliability: dict[MetadataType, float] | None = None,
        supported_types: Iterable[MetadataType] | None = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self._search = search
        if rate_limit is not None:
            self.rate_limit = rate_limit
        if timeout is not None:
            self.timeout = timeout
        if reliability is not None:
            self.reliability = {**DEFAULT_RELIABILITY, **reliability}
        if supported_types is not None:
            self.supported_types = frozenset(supported_types)

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]:
        return await self._search(query)

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        return await self._search(IsbnQuery(isbn=isbn))

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]:
        return await self._search(query)

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        return await self._search(query)
