# ABOUTME: Core metadata data structures shared by providers and the reconciliation engine.
# ABOUTME: MetadataRecord is the interchange format between providers, coordinator, and reconcilers.

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

_YEAR_RE = re.compile(r"\b\d{4}\b")


class MetadataType(str, Enum):
    """Bibliographic dimensions a provider may be more or less reliable for."""

    TITLE = "title"
    AUTHORS = "authors"
    ISBN = "isbn"
    PUBLICATION_DATE = "publicationDate"
    SUBJECTS = "subjects"
    DESCRIPTION = "description"
    LANGUAGE = "language"
    PUBLISHER = "publisher"
    SERIES = "series"
    EDITION = "edition"
    PAGE_COUNT = "pageCount"
    PHYSICAL_DIMENSIONS = "physicalDimensions"
    COVER_IMAGE = "coverImage"


@dataclass(frozen=True)
class MetadataSource:
    """Provenance of a value: which provider said it and how much to trust it."""

    name: str
    reliability: float
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.reliability <= 1.0:
            msg = f"reliability must be between 0.0 and 1.0, got {self.reliability}"
            raise ValueError(msg)


@dataclass(frozen=True)
class SeriesInfo:
    """Series membership as reported by a provider."""

    name: str
    volume: float | None = None


@dataclass(frozen=True)
class Dimensions:
    """Physical dimensions in a single unit (mm, cm or in)."""

    width: float | None = None
    height: float | None = None
    depth: float | None = None
    unit: str = "mm"


@dataclass(frozen=True)
class CoverImageRef:
    """Pointer to a cover image with optional pixel size."""

    url: str
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True)
class MetadataRecord:
    """One provider's answer to a query.

    Records are immutable once returned. Everything except the identity fields
    is optional since providers differ wildly in what they know about a book.
    """

    id: str
    source: str
    confidence: float
    timestamp: datetime = field(default_factory=datetime.now)
    title: str | None = None
    authors: tuple[str, ...] = ()
    isbn: tuple[str, ...] = ()
    publication_date: date | str | None = None
    subjects: tuple[str, ...] = ()
    description: str | None = None
    language: str | None = None
    publisher: str | None = None
    series: SeriesInfo | None = None
    edition: str | None = None
    page_count: int | None = None
    physical_dimensions: Dimensions | None = None
    cover_image: CoverImageRef | None = None
    provider_data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            msg = f"confidence must be between 0.0 and 1.0, got {self.confidence}"
            raise ValueError(msg)

    @property
    def author(self) -> str:
        """Convenience property: joined author string for display."""
        return ", ".join(self.authors) if self.authors else ""

    @property
    def publication_date_text(self) -> str | None:
        """Publication date as ISO text; partial dates reported as strings pass through."""
        if self.publication_date is None:
            return None
        if isinstance(self.publication_date, date):
            return self.publication_date.isoformat()
        return self.publication_date.strip() or None

    @property
    def publication_year(self) -> int | None:
        if isinstance(self.publication_date, date):
            return self.publication_date.year
        if self.publication_date:
            match = _YEAR_RE.search(self.publication_date)
            if match:
                return int(match.group(0))
        return None


@dataclass(frozen=True)
class TitleQuery:
    title: str
    exact_match: bool = False
    fuzzy: bool = False


@dataclass(frozen=True)
class IsbnQuery:
    isbn: str


@dataclass(frozen=True)
class CreatorQuery:
    name: str
    role: str | None = None
    fuzzy: bool = False


@dataclass(frozen=True)
class MultiCriteriaQuery:
    title: str | None = None
    authors: tuple[str, ...] = ()
    isbn: str | None = None
    subjects: tuple[str, ...] = ()
    publisher: str | None = None
    language: str | None = None
    year_range: tuple[int, int] | None = None
    fuzzy: bool = False


Query = TitleQuery | IsbnQuery | CreatorQuery | MultiCriteriaQuery
