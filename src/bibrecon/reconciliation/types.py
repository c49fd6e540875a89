# ABOUTME: Data structures for field-level reconciliation: reconciled fields, conflicts, domain values.
# ABOUTME: Reconcilers consume the *Input types and return immutable ReconciledField wrappers.

from dataclasses import dataclass
from datetime import date
from typing import Any, Generic, TypeVar

from bibrecon.metadata.types import MetadataSource

T = TypeVar("T")


@dataclass(frozen=True)
class ConflictValue:
    value: Any
    source: MetadataSource


@dataclass(frozen=True)
class Conflict:
    """A disagreement between sources that survived value selection."""

    field: str
    values: tuple[ConflictValue, ...]
    resolution: str


@dataclass(frozen=True)
class ReconciledField(Generic[T]):
    """The outcome of reconciling one field across sources.

    sources lists every source considered, including those whose value lost.
    """

    value: T
    confidence: float
    sources: tuple[MetadataSource, ...] = ()
    conflicts: tuple[Conflict, ...] = ()
    reasoning: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            msg = f"confidence must be between 0.0 and 1.0, got {self.confidence}"
            raise ValueError(msg)


@dataclass(frozen=True)
class EmptyInput:
    """Returned by try_reconcile when there was nothing to reconcile."""

    reason: str


@dataclass(frozen=True)
class Identifier:
    """A typed identifier: isbn, doi, oclc, lccn, goodreads, amazon, google, or other."""

    type: str
    value: str
    normalized: str | None = None
    valid: bool | None = None


@dataclass(frozen=True)
class IdentifierInput:
    source: MetadataSource
    identifiers: tuple[str | Identifier, ...] = ()
    isbn: tuple[str, ...] = ()
    oclc: tuple[str, ...] = ()
    lccn: tuple[str, ...] = ()
    doi: tuple[str, ...] = ()
    goodreads: str | None = None
    amazon: str | None = None
    google: str | None = None


@dataclass(frozen=True)
class Subject:
    """A subject heading; scheme is dewey, lcc, lcsh, bisac, custom, or unknown."""

    name: str
    normalized: str | None = None
    scheme: str | None = None
    code: str | None = None
    hierarchy: tuple[str, ...] = ()
    type: str | None = None


@dataclass(frozen=True)
class SubjectInput:
    source: MetadataSource
    subjects: tuple[str | Subject, ...] = ()


@dataclass(frozen=True)
class PhysicalDimensions:
    width: float | None = None
    height: float | None = None
    depth: float | None = None
    unit: str | None = None
    raw: str | None = None


@dataclass(frozen=True)
class FormatInfo:
    binding: str | None = None
    format: str | None = None
    medium: str | None = None
    raw: str | None = None


@dataclass(frozen=True)
class LanguageInfo:
    code: str
    name: str | None = None
    region: str | None = None
    confidence: float | None = None
    raw: str | None = None


@dataclass(frozen=True)
class PhysicalDescriptionInput:
    source: MetadataSource
    page_count: int | str | None = None
    dimensions: str | PhysicalDimensions | None = None
    format: str | FormatInfo | None = None
    binding: str | None = None
    languages: tuple[str | LanguageInfo, ...] = ()
    weight: float | str | None = None


@dataclass(frozen=True)
class ReconciledPhysicalDescription:
    page_count: ReconciledField[int]
    dimensions: ReconciledField[PhysicalDimensions]
    format: ReconciledField[FormatInfo]
    languages: ReconciledField[tuple[LanguageInfo, ...]]
    weight: ReconciledField[float]


@dataclass(frozen=True)
class PublicationDate:
    """A possibly partial date; precision is day, month, year, or unknown."""

    precision: str = "unknown"
    year: int | None = None
    month: int | None = None
    day: int | None = None
    raw: str | None = None

    def as_date(self) -> date | None:
        if self.year is None:
            return None
        return date(self.year, self.month or 1, self.day or 1)


@dataclass(frozen=True)
class Publisher:
    name: str
    normalized: str | None = None
    location: str | None = None


@dataclass(frozen=True)
class PublicationPlace:
    name: str
    normalized: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class PublicationInfoInput:
    source: MetadataSource
    date: str | PublicationDate | None = None
    publisher: str | Publisher | None = None
    place: str | PublicationPlace | None = None


@dataclass(frozen=True)
class ReconciledPublicationInfo:
    date: ReconciledField[PublicationDate]
    publisher: ReconciledField[Publisher]
    place: ReconciledField[PublicationPlace]


@dataclass(frozen=True)
class Description:
    text: str
    type: str | None = None
    length: str | None = None
    quality: float | None = None
    language: str | None = None
    source: str | None = None
    raw: str | None = None


@dataclass(frozen=True)
class TocEntry:
    title: str
    page: int | None = None
    level: int = 0
    children: tuple["TocEntry", ...] = ()


@dataclass(frozen=True)
class TableOfContents:
    """Format is simple, detailed (with page numbers), or hierarchical."""

    entries: tuple[TocEntry, ...] = ()
    format: str | None = None
    page_numbers: bool = False
    raw: str | None = None


@dataclass(frozen=True)
class Review:
    text: str | None = None
    rating: float | None = None
    scale: float | None = None
    reviewer: str | None = None
    source: str | None = None
    published: date | None = None
    verified: bool = False
    helpful: int | None = None
    total: int | None = None


@dataclass(frozen=True)
class Rating:
    value: float
    scale: float = 5
    count: int | None = None
    source: str | None = None


@dataclass(frozen=True)
class CoverImage:
    url: str
    width: int | None = None
    height: int | None = None
    format: str | None = None
    size: int | None = None
    quality: str | None = None
    aspect_ratio: float | None = None
    source: str | None = None
    verified: bool = False


@dataclass(frozen=True)
class ContentDescriptionInput:
    source: MetadataSource
    descriptions: tuple[str | Description, ...] = ()
    table_of_contents: str | TableOfContents | None = None
    reviews: tuple[Review, ...] = ()
    ratings: tuple[Rating, ...] = ()
    cover_images: tuple[str | CoverImage, ...] = ()
    excerpt: str | None = None


@dataclass(frozen=True)
class ReconciledContentDescription:
    description: ReconciledField[Description]
    table_of_contents: ReconciledField[TableOfContents]
    reviews: ReconciledField[tuple[Review, ...]]
    rating: ReconciledField[Rating]
    cover_image: ReconciledField[CoverImage]
    excerpt: ReconciledField[str]


@dataclass(frozen=True)
class Series:
    """Series membership; series_type is numbered, chronological, anthology, collection, or unknown."""

    name: str
    normalized: str | None = None
    volume: float | str | None = None
    position: float | None = None
    total_volumes: int | None = None
    series_type: str | None = None
    description: str | None = None
    identifiers: tuple[Identifier, ...] = ()
    raw: str | None = None


@dataclass(frozen=True)
class SeriesInput:
    source: MetadataSource
    series: tuple[str | Series, ...] = ()


@dataclass(frozen=True)
class Work:
    title: str
    id: str | None = None
    normalized: str | None = None
    type: str | None = None
    original_language: str | None = None
    first_published: PublicationDate | None = None
    authors: tuple[str, ...] = ()
    identifiers: tuple[Identifier, ...] = ()


@dataclass(frozen=True)
class Edition:
    id: str | None = None
    work_id: str | None = None
    title: str | None = None
    format: FormatInfo | None = None
    language: str | None = None
    publication_date: PublicationDate | None = None
    publisher: Publisher | None = None
    isbn: tuple[str, ...] = ()
    page_count: int | None = None
    identifiers: tuple[Identifier, ...] = ()
    authors: tuple[str, ...] = ()


@dataclass(frozen=True)
class EditionComparison:
    """Evidence for whether two editions are manifestations of the same work."""

    is_same_work: bool
    confidence: float
    title_similarity: float
    author_overlap: int
    external_id_match: bool
    language_match: bool
    isbn_family: bool
    relationship: str | None = None


@dataclass(frozen=True)
class WorkCluster:
    """Editions grouped under one work; identification_method names the strongest evidence."""

    work: Work
    editions: tuple[Edition, ...]
    confidence: float
    identification_method: str


@dataclass(frozen=True)
class RelatedWork:
    """A work linked to another; relationship_type is sequel, prequel, part_of, etc."""

    title: str
    relationship_type: str
    work_id: str | None = None
    description: str | None = None
    confidence: float | None = None
    source: str | None = None


@dataclass(frozen=True)
class CollectionContent:
    title: str
    type: str | None = None
    authors: tuple[str, ...] = ()
    position: int | None = None


@dataclass(frozen=True)
class Collection:
    name: str
    type: str = "other"
    normalized: str | None = None
    contents: tuple[CollectionContent, ...] = ()
    editors: tuple[str, ...] = ()
    total_works: int | None = None
    description: str | None = None


@dataclass(frozen=True)
class CollectionInput:
    source: MetadataSource
    collections: tuple[str | Collection, ...] = ()


@dataclass(frozen=True)
class WorkEditionInput:
    source: MetadataSource
    work: Work | None = None
    edition: Edition | None = None
    related_works: tuple[RelatedWork, ...] = ()


@dataclass(frozen=True)
class ReconciledWorkEdition:
    work: ReconciledField[Work]
    edition: ReconciledField[Edition]
    related_works: ReconciledField[tuple[RelatedWork, ...]]


@dataclass(frozen=True)
class ReconciliationStats:
    total_sources: int
    fields_reconciled: int
    conflicts_detected: int
    conflicts_resolved: int
    processing_time_ms: float


@dataclass(frozen=True)
class ReconciledMetadata:
    """Bundle produced by the reconciliation coordinator for one set of records."""

    publication: ReconciledPublicationInfo
    subjects: ReconciledField[tuple[Subject, ...]]
    identifiers: ReconciledField[tuple[Identifier, ...]]
    physical: ReconciledPhysicalDescription
    content: ReconciledContentDescription
    series: ReconciledField[tuple[Series, ...]]
    overall_confidence: float
    stats: ReconciliationStats

    def named_fields(self) -> list[tuple[str, ReconciledField[Any]]]:
        """Every reconciled field with a dotted display name, placeholders included."""
        return [
            ("publication.date", self.publication.date),
            ("publication.publisher", self.publication.publisher),
            ("publication.place", self.publication.place),
            ("subjects", self.subjects),
            ("identifiers", self.identifiers),
            ("physical.page_count", self.physical.page_count),
            ("physical.dimensions", self.physical.dimensions),
            ("physical.format", self.physical.format),
            ("physical.languages", self.physical.languages),
            ("physical.weight", self.physical.weight),
            ("content.description", self.content.description),
            ("content.table_of_contents", self.content.table_of_contents),
            ("content.reviews", self.content.reviews),
            ("content.rating", self.content.rating),
            ("content.cover_image", self.content.cover_image),
            ("content.excerpt", self.content.excerpt),
            ("series", self.series),
        ]

    def all_fields(self) -> list[ReconciledField[Any]]:
        """Every reconciled field in a fixed order, placeholders included."""
        return [field for _, field in self.named_fields()]
