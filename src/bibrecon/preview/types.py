# ABOUTME: Data structures for library previews: preview fields, duplicates, editions, and quality.
# ABOUTME: Everything here is plain frozen data produced by the preview generator.

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.types import (
    Conflict,
    CoverImage,
    Description,
    Edition,
    FormatInfo,
    Identifier,
    PhysicalDimensions,
    PublicationDate,
    Publisher,
    RelatedWork,
    Series,
    Subject,
    Work,
)

T = TypeVar("T")

# Preview fields in display order.
PREVIEW_FIELDS = (
    "title",
    "authors",
    "isbn",
    "publication_date",
    "subjects",
    "description",
    "language",
    "publisher",
    "series",
    "identifiers",
    "physical_description",
    "cover_image",
    "work",
    "edition",
    "related_works",
)

# Fields that count double toward preview confidence and drive conflict severity.
CORE_FIELDS = frozenset({"title", "authors", "isbn", "publication_date"})


@dataclass(frozen=True)
class QualityFactor:
    name: str
    impact: float
    description: str


@dataclass(frozen=True)
class FieldQuality:
    """Quality grade for one field; level is excellent, good, fair, or poor."""

    score: float
    level: str
    factors: tuple[QualityFactor, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class SourceAttribution:
    """How much one source contributed to a preview field."""

    source: MetadataSource
    original_value: Any
    weight: float
    is_primary: bool
    field_reliability: float


@dataclass(frozen=True)
class PhysicalSummary:
    page_count: int | None = None
    dimensions: PhysicalDimensions | None = None
    format: FormatInfo | None = None


@dataclass(frozen=True)
class PreviewField(Generic[T]):
    value: T | None
    confidence: float
    sources: tuple[SourceAttribution, ...]
    conflicts: tuple[Conflict, ...]
    reasoning: str
    is_high_confidence: bool
    quality: FieldQuality

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def has_value(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class PreviewSummary:
    fields_with_data: int
    total_fields: int
    completeness: float
    high_confidence_fields: int
    conflicted_fields: int
    most_reliable_source: MetadataSource | None
    least_reliable_source: MetadataSource | None
    overall_quality: FieldQuality
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetadataPreview:
    """Per-field preview of what would be added to the library."""

    id: str
    timestamp: datetime
    overall_confidence: float
    sources: tuple[MetadataSource, ...]
    fields: dict[str, PreviewField[Any]]
    summary: PreviewSummary

    def __getitem__(self, name: str) -> PreviewField[Any]:
        return self.fields[name]

    def value(self, name: str) -> Any:
        return self.fields[name].value


@dataclass(frozen=True)
class LibraryEntry:
    """A book as stored in (or proposed for) the user's library."""

    id: str
    title: str
    authors: tuple[str, ...] = ()
    isbn: tuple[str, ...] = ()
    publication_date: PublicationDate | None = None
    publisher: Publisher | None = None
    series: tuple[Series, ...] = ()
    work: Work | None = None
    edition: Edition | None = None
    identifiers: tuple[Identifier, ...] = ()
    subjects: tuple[Subject, ...] = ()
    description: Description | None = None
    language: str | None = None
    physical_description: PhysicalSummary | None = None
    cover_image: CoverImage | None = None
    added_date: datetime | None = None


@dataclass(frozen=True)
class DuplicateMatchField:
    field: str
    similarity: float
    new_value: Any
    existing_value: Any
    weight: float


@dataclass(frozen=True)
class DuplicateMatch:
    """An existing entry that resembles the proposed one.

    match_type is exact, likely, possible, different_edition, or related_work.
    recommendation is skip, merge, review_manually, or add_as_new.
    """

    existing_entry: LibraryEntry
    similarity: float
    match_type: str
    matching_fields: tuple[DuplicateMatchField, ...]
    confidence: float
    recommendation: str
    explanation: str


@dataclass(frozen=True)
class EditionAlternative:
    edition: Edition
    reason: str
    confidence: float
    advantages: tuple[str, ...] = ()


@dataclass(frozen=True)
class EditionSelection:
    selected_edition: Edition
    available_editions: tuple[Edition, ...]
    selection_reason: str
    confidence: float
    alternatives: tuple[EditionAlternative, ...] = ()


@dataclass(frozen=True)
class SeriesRelationship:
    series: Series
    position: float
    previous_work: RelatedWork | None = None
    next_work: RelatedWork | None = None
    related_works: tuple[RelatedWork, ...] = ()
    confidence: float = 0.8
    is_series_complete: bool = False
    missing_works: tuple[RelatedWork, ...] = ()


@dataclass(frozen=True)
class RecommendationAction:
    """type is add, update, review, or ignore."""

    type: str
    label: str
    description: str
    is_recommended: bool = False


@dataclass(frozen=True)
class LibraryRecommendation:
    """type is merge_duplicates, review_conflicts, improve_metadata, or complete_series."""

    type: str
    priority: str
    message: str
    explanation: str
    actions: tuple[RecommendationAction, ...] = ()


@dataclass(frozen=True)
class LibraryQuality:
    score: float
    level: str
    completeness: float
    accuracy: float
    consistency: float
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()


@dataclass(frozen=True)
class PreviewContext:
    """Optional hints about the book the user expects to add."""

    expected_language: str | None = None
    expected_year_range: tuple[int, int] | None = None


@dataclass(frozen=True)
class LibraryPreview:
    """Everything the user needs to decide whether and how to add a book."""

    entry: LibraryEntry
    confidence: float
    sources: tuple[MetadataSource, ...]
    duplicates: tuple[DuplicateMatch, ...]
    edition_selection: EditionSelection
    series_relationships: tuple[SeriesRelationship, ...]
    recommendations: tuple[LibraryRecommendation, ...]
    quality: LibraryQuality
    summary: PreviewSummary
    metadata: MetadataPreview
    raw_by_field: dict[str, list[tuple[Any, MetadataSource]]] = field(default_factory=dict)
