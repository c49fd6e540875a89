# ABOUTME: Builds a library preview from provider records and optional reconciled fields.
# ABOUTME: Attributes sources, grades quality, and runs duplicate, edition, and series analysis.

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from bibrecon.metadata.types import MetadataRecord, MetadataSource
from bibrecon.preview.conflicts import ConflictDetector, ConflictSummary
from bibrecon.preview.duplicates import DuplicateDetector
from bibrecon.preview.editions import EditionSelector
from bibrecon.preview.quality import QualityAssessor, QualityConfig, is_empty
from bibrecon.preview.recommendations import generate_recommendations
from bibrecon.preview.series_analysis import SeriesAnalyzer
from bibrecon.preview.types import (
    CORE_FIELDS,
    PREVIEW_FIELDS,
    FieldQuality,
    LibraryEntry,
    LibraryPreview,
    MetadataPreview,
    PhysicalSummary,
    PreviewContext,
    PreviewField,
    PreviewSummary,
    QualityFactor,
    SourceAttribution,
)
from bibrecon.reconciliation.dates import normalize_date
from bibrecon.reconciliation.identifiers import normalize_identifier, normalize_isbn
from bibrecon.reconciliation.physical import parse_format
from bibrecon.reconciliation.types import (
    CoverImage,
    Description,
    Edition,
    Identifier,
    PhysicalDimensions,
    PublicationDate,
    Publisher,
    ReconciledField,
    ReconciledMetadata,
    Series,
    Subject,
    Work,
)

logger = logging.getLogger(__name__)

_NO_VALUE_CONFIDENCE = 0.1


@dataclass(frozen=True)
class PreviewConfig:
    high_confidence_threshold: float = 0.8
    good_quality_threshold: float = 0.7
    include_quality_suggestions: bool = True
    max_sources_per_field: int = 5


def _dimensions(record: MetadataRecord) -> PhysicalDimensions | None:
    dims = record.physical_dimensions
    if dims is None:
        return None
    return PhysicalDimensions(width=dims.width, height=dims.height, depth=dims.depth, unit=dims.unit)


def _physical(record: MetadataRecord) -> PhysicalSummary | None:
    dims = _dimensions(record)
    book_format = parse_format(record.edition) if record.edition else None
    if record.page_count is None and dims is None and book_format is None:
        return None
    return PhysicalSummary(page_count=record.page_count, dimensions=dims, format=book_format)


def _publication_date(record: MetadataRecord) -> PublicationDate | None:
    if record.publication_date is None:
        return None
    parsed = normalize_date(record.publication_date)
    return parsed if parsed.year is not None else None


def _work(record: MetadataRecord) -> Work | None:
    if not record.title:
        return None
    return Work(title=record.title, authors=record.authors, first_published=_publication_date(record))


def record_edition(record: MetadataRecord) -> Edition | None:
    """The edition one record describes, if it says anything edition-specific."""
    if not record.isbn and not record.edition:
        return None
    return Edition(
        id=record.id,
        title=record.title,
        format=parse_format(record.edition) if record.edition else None,
        language=record.language,
        publication_date=_publication_date(record),
        publisher=Publisher(name=record.publisher) if record.publisher else None,
        isbn=tuple(dict.fromkeys(normalize_isbn(i) for i in record.isbn)),
        page_count=record.page_count,
        authors=record.authors,
    )


# How to read each preview field straight off a provider record.
_RAW_EXTRACTORS: dict[str, Callable[[MetadataRecord], Any]] = {
    "title": lambda r: r.title or None,
    "authors": lambda r: r.authors or None,
    "isbn": lambda r: r.isbn or None,
    "publication_date": _publication_date,
    "subjects": lambda r: tuple(Subject(name=s) for s in r.subjects) or None,
    "description": lambda r: Description(text=r.description, source=r.source) if r.description else None,
    "language": lambda r: r.language or None,
    "publisher": lambda r: Publisher(name=r.publisher) if r.publisher else None,
    "series": lambda r: (Series(name=r.series.name, volume=r.series.volume),) if r.series else None,
    "identifiers": lambda r: tuple(normalize_identifier(i, "isbn") for i in r.isbn) or None,
    "physical_description": _physical,
    "cover_image": lambda r: (
        CoverImage(url=r.cover_image.url, width=r.cover_image.width, height=r.cover_image.height)
        if r.cover_image
        else None
    ),
    "work": _work,
    "edition": record_edition,
    "related_works": lambda r: None,
}


def raw_values(records: Sequence[MetadataRecord]) -> dict[str, list[tuple[Any, MetadataSource]]]:
    """Every record's value for each preview field, skipping fields a record can't supply."""
    grouped: dict[str, list[tuple[Any, MetadataSource]]] = {name: [] for name in PREVIEW_FIELDS}
    for record in records:
        source = MetadataSource(record.source, record.confidence, record.timestamp)
        for name, extract in _RAW_EXTRACTORS.items():
            try:
                value = extract(record)
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed %s from %s: %s", name, record.source, exc)
                continue
            if value is not None:
                grouped[name].append((value, source))
    return grouped


def _live(field: ReconciledField[Any]) -> bool:
    return field.confidence > 0 and not is_empty(field.value)


def fields_from_reconciled(metadata: ReconciledMetadata) -> dict[str, ReconciledField[Any]]:
    """Preview-shaped fields from a reconciliation bundle; placeholders are left out."""
    fields: dict[str, ReconciledField[Any]] = {}
    publication = metadata.publication
    if _live(publication.date) and publication.date.value.year is not None:
        fields["publication_date"] = publication.date
    if _live(publication.publisher) and publication.publisher.value.name:
        fields["publisher"] = publication.publisher
    if _live(metadata.subjects):
        fields["subjects"] = metadata.subjects
    if _live(metadata.identifiers):
        identifiers = metadata.identifiers
        fields["identifiers"] = identifiers
        isbns = tuple(i.normalized or i.value for i in identifiers.value if i.type == "isbn")
        if isbns:
            fields["isbn"] = ReconciledField(
                value=isbns,
                confidence=identifiers.confidence,
                sources=identifiers.sources,
                conflicts=tuple(c for c in identifiers.conflicts if c.field == "identifier_isbn"),
                reasoning=identifiers.reasoning,
            )
    if _live(metadata.content.description) and metadata.content.description.value.text:
        fields["description"] = metadata.content.description
    if _live(metadata.content.cover_image) and metadata.content.cover_image.value.url:
        fields["cover_image"] = metadata.content.cover_image
    if _live(metadata.series):
        fields["series"] = metadata.series
    physical = metadata.physical
    if _live(physical.languages):
        languages = physical.languages
        fields["language"] = ReconciledField(
            value=languages.value[0].code,
            confidence=languages.confidence,
            sources=languages.sources,
            conflicts=languages.conflicts,
            reasoning=languages.reasoning,
        )
    parts = [f for f in (physical.page_count, physical.dimensions) if _live(f)]
    if parts:
        sources = {s.name: s for f in parts for s in f.sources}
        fields["physical_description"] = ReconciledField(
            value=PhysicalSummary(
                page_count=physical.page_count.value if _live(physical.page_count) else None,
                dimensions=physical.dimensions.value if _live(physical.dimensions) else None,
                format=physical.format.value if physical.format.confidence > 0 else None,
            ),
            confidence=max(f.confidence for f in parts),
            sources=tuple(sources.values()),
            conflicts=tuple(c for f in parts for c in f.conflicts),
            reasoning="; ".join(f.reasoning for f in parts if f.reasoning),
        )
    return fields


class PreviewGenerator:
    """Turns records (and reconciled fields, when available) into a library preview."""

    def __init__(self, config: PreviewConfig | None = None) -> None:
        self.config = config or PreviewConfig()
        self.quality = QualityAssessor(
            QualityConfig(
                high_confidence_threshold=self.config.high_confidence_threshold,
                good_quality_threshold=self.config.good_quality_threshold,
                include_suggestions=self.config.include_quality_suggestions,
            )
        )
        self.duplicates = DuplicateDetector()
        self.editions = EditionSelector()
        self.series = SeriesAnalyzer()
        self.conflicts = ConflictDetector()

    def generate_preview(
        self,
        records: Sequence[MetadataRecord],
        reconciled: ReconciledMetadata | Mapping[str, ReconciledField[Any]] | None = None,
        existing_library: Sequence[LibraryEntry] = (),
        context: PreviewContext | None = None,
    ) -> LibraryPreview:
        raw = raw_values(records)
        metadata = self.metadata_preview(records, reconciled, raw)
        entry = library_entry(metadata)

        duplicates = self.duplicates.detect_duplicates(entry, existing_library)
        editions = self._editions(records)
        fallback = entry.edition or Edition(title=entry.title)
        edition_selection = self.editions.select(editions, fallback, entry.language, context)
        series_relationships = self.series.detect_relationships(entry.title, entry.series, existing_library)
        recommendations = generate_recommendations(
            duplicates, edition_selection, series_relationships, metadata.summary
        )
        scores = [metadata[name].quality.score for name in PREVIEW_FIELDS if name != "related_works"]
        quality = self.quality.assess_library(entry, scores, metadata.overall_confidence)

        logger.info(
            "Preview %s: %d duplicates, %d editions, %d recommendations",
            metadata.id,
            len(duplicates),
            len(edition_selection.available_editions),
            len(recommendations),
        )
        return LibraryPreview(
            entry=entry,
            confidence=metadata.overall_confidence,
            sources=metadata.sources,
            duplicates=tuple(duplicates),
            edition_selection=edition_selection,
            series_relationships=tuple(series_relationships),
            recommendations=tuple(recommendations),
            quality=quality,
            summary=metadata.summary,
            metadata=metadata,
            raw_by_field=raw,
        )

    def conflict_report(self, preview: LibraryPreview) -> ConflictSummary:
        reconciled = {
            name: ReconciledField(
                value=field.value,
                confidence=field.confidence,
                sources=tuple(a.source for a in field.sources),
                conflicts=field.conflicts,
                reasoning=field.reasoning,
            )
            for name, field in preview.metadata.fields.items()
        }
        return self.conflicts.analyze(preview.raw_by_field, reconciled)

    def metadata_preview(
        self,
        records: Sequence[MetadataRecord],
        reconciled: ReconciledMetadata | Mapping[str, ReconciledField[Any]] | None,
        raw: Mapping[str, list[tuple[Any, MetadataSource]]],
    ) -> MetadataPreview:
        if isinstance(reconciled, ReconciledMetadata):
            reconciled = fields_from_reconciled(reconciled)
        reconciled = reconciled or {}
        sources = unique_sources(records)

        fields: dict[str, PreviewField[Any]] = {}
        for name in PREVIEW_FIELDS:
            base = reconciled.get(name) or fallback_field(name, raw[name])
            fields[name] = self._preview_field(name, base, raw[name])

        return MetadataPreview(
            id=f"preview-{uuid.uuid4().hex[:12]}",
            timestamp=datetime.now(),
            overall_confidence=preview_confidence(fields),
            sources=sources,
            fields=fields,
            summary=self._summary(fields, sources),
        )

    def _preview_field(
        self, name: str, base: ReconciledField[Any], raw: Sequence[tuple[Any, MetadataSource]]
    ) -> PreviewField[Any]:
        attributions = self.attribute_sources(base, raw)
        return PreviewField(
            value=base.value,
            confidence=base.confidence,
            sources=attributions,
            conflicts=base.conflicts,
            reasoning=base.reasoning or f"Reconciled {name} from {len(attributions)} sources",
            is_high_confidence=base.confidence >= self.config.high_confidence_threshold,
            quality=self.quality.assess_field(base, attributions),
        )

    def attribute_sources(
        self, base: ReconciledField[Any], raw: Sequence[tuple[Any, MetadataSource]]
    ) -> tuple[SourceAttribution, ...]:
        """Weight each contributing source by reliability; weights of kept sources sum to 1."""
        by_name: dict[str, MetadataSource] = {}
        for source in base.sources:
            if source.name not in by_name or source.reliability > by_name[source.name].reliability:
                by_name[source.name] = source
        kept = sorted(by_name.values(), key=lambda s: -s.reliability)[: self.config.max_sources_per_field]
        if not kept:
            return ()
        total = sum(s.reliability for s in kept)
        originals: dict[str, Any] = {}
        for value, source in raw:
            originals.setdefault(source.name, value)
        return tuple(
            SourceAttribution(
                source=source,
                original_value=originals.get(source.name),
                weight=source.reliability / total if total else 1 / len(kept),
                is_primary=index == 0,
                field_reliability=source.reliability,
            )
            for index, source in enumerate(kept)
        )

    def _summary(
        self, fields: Mapping[str, PreviewField[Any]], sources: Sequence[MetadataSource]
    ) -> PreviewSummary:
        total = len(fields)
        with_data = [f for f in fields.values() if f.has_value]
        high = [f for f in fields.values() if f.is_high_confidence and f.has_value]
        conflicted = [f for f in fields.values() if f.has_conflicts]
        ordered = sorted(sources, key=lambda s: -s.reliability)

        average = sum(f.quality.score for f in fields.values()) / total
        completeness = len(with_data) / total
        high_share = len(high) / len(with_data) if with_data else 0.0
        overall = FieldQuality(
            score=average,
            level=self.quality.level(average),
            factors=(
                QualityFactor(
                    "completeness", (completeness - 0.5) * 0.4, f"{len(with_data)}/{total} fields have data"
                ),
                QualityFactor(
                    "confidence",
                    (high_share - 0.5) * 0.3,
                    f"{len(high)}/{len(with_data)} fields have high confidence",
                ),
            ),
        )

        strengths = []
        weaknesses = []
        if completeness > 0.7:
            strengths.append("Good data completeness")
        if high_share > 0.6:
            strengths.append("High confidence in most fields")
        if len(sources) > 2:
            strengths.append("Multiple sources provide good coverage")
        if completeness < 0.5:
            weaknesses.append("Many fields are missing data")
        if conflicted:
            weaknesses.append(f"{len(conflicted)} fields have conflicts")
        if len(sources) < 2:
            weaknesses.append("Limited number of sources")

        return PreviewSummary(
            fields_with_data=len(with_data),
            total_fields=total,
            completeness=completeness,
            high_confidence_fields=len(high),
            conflicted_fields=len(conflicted),
            most_reliable_source=ordered[0] if ordered else None,
            least_reliable_source=ordered[-1] if ordered else None,
            overall_quality=overall,
            strengths=tuple(strengths),
            weaknesses=tuple(weaknesses),
        )

    def _editions(self, records: Sequence[MetadataRecord]) -> list[Edition]:
        editions: list[Edition] = []
        seen: set[frozenset[str]] = set()
        for record in sorted(records, key=lambda r: -r.confidence):
            try:
                edition = record_edition(record)
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed edition from %s: %s", record.source, exc)
                continue
            if edition is None:
                continue
            key = frozenset(edition.isbn)
            if key and key in seen:
                continue
            seen.add(key)
            editions.append(edition)
        return editions


def fallback_field(name: str, raw: Sequence[tuple[Any, MetadataSource]]) -> ReconciledField[Any]:
    """Value from the most reliable source that has one, at that source's reliability."""
    if not raw:
        return ReconciledField(
            value=None,
            confidence=_NO_VALUE_CONFIDENCE,
            reasoning=f"No {name} data available from any source",
        )
    value, primary = max(raw, key=lambda item: item[1].reliability)
    return ReconciledField(
        value=value,
        confidence=primary.reliability,
        sources=tuple(source for _, source in raw),
        reasoning=f"Using {name} from most reliable source: {primary.name}",
    )


def unique_sources(records: Sequence[MetadataRecord]) -> tuple[MetadataSource, ...]:
    sources: dict[str, MetadataSource] = {}
    for record in records:
        sources.setdefault(record.source, MetadataSource(record.source, record.confidence, record.timestamp))
    return tuple(sources.values())


def preview_confidence(fields: Mapping[str, PreviewField[Any]]) -> float:
    """Confidence over fields with data; core fields count double."""
    weighted = 0.0
    total = 0
    for name, field in fields.items():
        if not field.has_value:
            continue
        weight = 2 if name in CORE_FIELDS else 1
        weighted += field.confidence * weight
        total += weight
    return weighted / total if total else _NO_VALUE_CONFIDENCE


def library_entry(preview: MetadataPreview) -> LibraryEntry:
    isbn = preview.value("isbn") or ()
    identifiers = preview.value("identifiers") or ()
    return LibraryEntry(
        id=f"entry-{uuid.uuid4().hex[:12]}",
        title=preview.value("title") or "Unknown Title",
        authors=tuple(preview.value("authors") or ()),
        isbn=tuple(isbn),
        publication_date=preview.value("publication_date"),
        publisher=preview.value("publisher"),
        series=tuple(preview.value("series") or ()),
        work=preview.value("work"),
        edition=preview.value("edition"),
        identifiers=tuple(i for i in identifiers if isinstance(i, Identifier)),
        subjects=tuple(preview.value("subjects") or ()),
        description=preview.value("description"),
        language=preview.value("language"),
        physical_description=preview.value("physical_description"),
        cover_image=preview.value("cover_image"),
        added_date=datetime.now(),
    )
