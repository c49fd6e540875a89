# ABOUTME: Runs all domain reconcilers over a set of provider records and bundles the result.
# ABOUTME: Converts MetadataRecords into reconciler inputs and computes overall confidence and stats.

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from bibrecon.metadata.types import MetadataRecord, MetadataSource
from bibrecon.reconciliation.content import ContentReconciler
from bibrecon.reconciliation.identifiers import IdentifierReconciler
from bibrecon.reconciliation.physical import PhysicalReconciler
from bibrecon.reconciliation.publication import PublicationReconciler
from bibrecon.reconciliation.series import SeriesReconciler
from bibrecon.reconciliation.subjects import SubjectReconciler
from bibrecon.reconciliation.types import (
    ContentDescriptionInput,
    CoverImage,
    Description,
    FormatInfo,
    IdentifierInput,
    PhysicalDescriptionInput,
    PhysicalDimensions,
    PublicationDate,
    PublicationInfoInput,
    PublicationPlace,
    Publisher,
    Rating,
    ReconciledContentDescription,
    ReconciledField,
    ReconciledMetadata,
    ReconciledPhysicalDescription,
    ReconciledPublicationInfo,
    ReconciliationStats,
    Series,
    SeriesInput,
    Subject,
    SubjectInput,
    TableOfContents,
)
from bibrecon.reconciliation.weights import OVERALL_BOOST_CAP, OVERALL_BOOST_PER_FIELD

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_DATA = "No data available"

# Optional provider_data keys the coordinator understands, beyond MetadataRecord's own fields.
_IDENTIFIER_KEYS = ("oclc", "lccn", "doi")
_SINGLE_IDENTIFIER_KEYS = ("goodreads", "amazon", "google")


@dataclass(frozen=True)
class ReconciliationConfig:
    """Which dimensions to reconcile."""

    reconcile_publication: bool = True
    reconcile_subjects: bool = True
    reconcile_identifiers: bool = True
    reconcile_physical: bool = True
    reconcile_content: bool = True
    reconcile_series: bool = True
    min_confidence_threshold: float = 0.5

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_confidence_threshold <= 1.0:
            msg = (
                "min_confidence_threshold must be between 0.0 and 1.0, "
                f"got {self.min_confidence_threshold}"
            )
            raise ValueError(msg)


def _placeholder(value: T) -> ReconciledField[T]:
    return ReconciledField(value=value, confidence=0.0, reasoning=_NO_DATA)


def empty_publication() -> ReconciledPublicationInfo:
    return ReconciledPublicationInfo(
        date=_placeholder(PublicationDate()),
        publisher=_placeholder(Publisher(name="")),
        place=_placeholder(PublicationPlace(name="")),
    )


def empty_physical() -> ReconciledPhysicalDescription:
    return ReconciledPhysicalDescription(
        page_count=_placeholder(0),
        dimensions=_placeholder(PhysicalDimensions()),
        format=_placeholder(FormatInfo()),
        languages=_placeholder(()),
        weight=_placeholder(0.0),
    )


def empty_content() -> ReconciledContentDescription:
    return ReconciledContentDescription(
        description=_placeholder(Description(text="")),
        table_of_contents=_placeholder(TableOfContents()),
        reviews=_placeholder(()),
        rating=_placeholder(Rating(value=0.0)),
        cover_image=_placeholder(CoverImage(url="")),
        excerpt=_placeholder(""),
    )


def _safe(record: MetadataRecord, field: str, extract: Callable[[], T]) -> T | None:
    """Run one field extraction, skipping the field if the record's value is malformed."""
    try:
        return extract()
    except (TypeError, ValueError, KeyError, AttributeError) as exc:
        logger.warning(
            "Skipping malformed %s on record %s from %s: %s", field, record.id, record.source, exc
        )
        return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"expected text, got {type(value).__name__}"
        raise TypeError(msg)
    return value.strip() or None


def _texts(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None and str(item).strip())
    msg = f"expected text or list of text, got {type(value).__name__}"
    raise TypeError(msg)


def _date_value(record: MetadataRecord) -> str | None:
    return record.publication_date_text


def _page_count(record: MetadataRecord) -> int | None:
    count = record.page_count
    if count is None:
        return None
    if isinstance(count, bool) or not isinstance(count, int):
        msg = f"page count must be an integer, got {count!r}"
        raise TypeError(msg)
    return count


def _dimensions(record: MetadataRecord) -> PhysicalDimensions | str | None:
    dims = record.physical_dimensions
    if dims is None:
        return _text(record.provider_data.get("dimensions"))
    return PhysicalDimensions(width=dims.width, height=dims.height, depth=dims.depth, unit=dims.unit)


def _series(record: MetadataRecord) -> Series | None:
    if record.series is None or not record.series.name.strip():
        return None
    return Series(name=record.series.name, volume=record.series.volume)


def _weight(record: MetadataRecord) -> float | str | None:
    weight = record.provider_data.get("weight")
    if weight is None or isinstance(weight, (int, float, str)) and not isinstance(weight, bool):
        return weight
    msg = f"weight must be a number or text, got {type(weight).__name__}"
    raise TypeError(msg)


def _ratings(record: MetadataRecord) -> tuple[Rating, ...]:
    raw = record.provider_data.get("rating")
    if raw is None:
        return ()
    if isinstance(raw, (int, float)):
        return (Rating(value=float(raw), source=record.source),)
    return (
        Rating(
            value=float(raw["value"]),
            scale=float(raw.get("scale", 5)),
            count=int(raw["count"]) if raw.get("count") is not None else None,
            source=record.source,
        ),
    )


class ReconciliationCoordinator:
    """Fans provider records out to every domain reconciler and bundles the answers."""

    def __init__(self, config: ReconciliationConfig | None = None) -> None:
        self.config = config or ReconciliationConfig()
        self._publication = PublicationReconciler()
        self._subjects = SubjectReconciler()
        self._identifiers = IdentifierReconciler()
        self._physical = PhysicalReconciler()
        self._content = ContentReconciler()
        self._series = SeriesReconciler()

    def update_config(self, **changes: Any) -> None:
        self.config = replace(self.config, **changes)

    async def reconcile(
        self, records: Sequence[MetadataRecord], config: ReconciliationConfig | None = None
    ) -> ReconciledMetadata:
        config = config or self.config
        start = time.monotonic()
        sources = [MetadataSource(r.source, r.confidence, r.timestamp) for r in records]

        publication_inputs = self.publication_inputs(records, sources)
        subject_inputs = self.subject_inputs(records, sources)
        identifier_inputs = self.identifier_inputs(records, sources)
        physical_inputs = self.physical_inputs(records, sources)
        content_inputs = self.content_inputs(records, sources)
        series_inputs = self.series_inputs(records, sources)

        async def run(enabled: bool, inputs: list[Any], reconcile: Callable[[Any], T], empty: T) -> T:
            if not enabled or not inputs:
                return empty
            return await asyncio.to_thread(reconcile, inputs)

        publication, subjects, identifiers, physical, content, series = await asyncio.gather(
            run(
                config.reconcile_publication,
                publication_inputs,
                self._publication.reconcile,
                empty_publication(),
            ),
            run(config.reconcile_subjects, subject_inputs, self._subjects.reconcile, _placeholder(())),
            run(
                config.reconcile_identifiers,
                identifier_inputs,
                self._identifiers.reconcile,
                _placeholder(()),
            ),
            run(config.reconcile_physical, physical_inputs, self._physical.reconcile, empty_physical()),
            run(config.reconcile_content, content_inputs, self._content.reconcile, empty_content()),
            run(config.reconcile_series, series_inputs, self._series.reconcile, _placeholder(())),
        )
        overall = overall_confidence(
            [
                publication.publisher.confidence,
                publication.date.confidence,
                subjects.confidence,
                identifiers.confidence,
                physical.page_count.confidence,
                content.description.confidence,
            ]
        )
        partial = ReconciledMetadata(
            publication=publication,
            subjects=subjects,
            identifiers=identifiers,
            physical=physical,
            content=content,
            series=series,
            overall_confidence=overall,
            stats=ReconciliationStats(0, 0, 0, 0, 0.0),
        )
        fields = partial.all_fields()
        conflicts = [conflict for f in fields for conflict in f.conflicts]
        stats = ReconciliationStats(
            total_sources=len(sources),
            fields_reconciled=sum(1 for f in fields if f.confidence > 0),
            conflicts_detected=len(conflicts),
            conflicts_resolved=sum(1 for c in conflicts if c.resolution),
            processing_time_ms=(time.monotonic() - start) * 1000,
        )
        logger.info(
            "Reconciled %d records: %d fields, %d conflicts, overall confidence %.2f",
            len(records),
            stats.fields_reconciled,
            stats.conflicts_detected,
            overall,
        )
        return replace(partial, stats=stats)

    def publication_inputs(
        self, records: Sequence[MetadataRecord], sources: Sequence[MetadataSource]
    ) -> list[PublicationInfoInput]:
        inputs = []
        for record, source in zip(records, sources, strict=True):
            date_value = _safe(record, "publication date", lambda r=record: _date_value(r))
            publisher = _safe(record, "publisher", lambda r=record: _text(r.publisher))
            place = _safe(record, "place", lambda r=record: _text(r.provider_data.get("place")))
            if date_value or publisher or place:
                inputs.append(
                    PublicationInfoInput(source=source, date=date_value, publisher=publisher, place=place)
                )
        return inputs

    def subject_inputs(
        self, records: Sequence[MetadataRecord], sources: Sequence[MetadataSource]
    ) -> list[SubjectInput]:
        inputs = []
        for record, source in zip(records, sources, strict=True):
            subjects: tuple[str | Subject, ...] = (
                _safe(record, "subjects", lambda r=record: _texts(r.subjects)) or ()
            )
            if subjects:
                inputs.append(SubjectInput(source=source, subjects=subjects))
        return inputs

    def identifier_inputs(
        self, records: Sequence[MetadataRecord], sources: Sequence[MetadataSource]
    ) -> list[IdentifierInput]:
        inputs = []
        for record, source in zip(records, sources, strict=True):
            isbn = _safe(record, "isbn", lambda r=record: _texts(r.isbn)) or ()
            typed: dict[str, tuple[str, ...]] = {}
            for key in _IDENTIFIER_KEYS:
                typed[key] = _safe(record, key, lambda r=record, k=key: _texts(r.provider_data.get(k))) or ()
            single: dict[str, str | None] = {}
            for key in _SINGLE_IDENTIFIER_KEYS:
                single[key] = _safe(record, key, lambda r=record, k=key: _text(r.provider_data.get(k)))
            if isbn or any(typed.values()) or any(single.values()):
                inputs.append(IdentifierInput(source=source, isbn=isbn, **typed, **single))
        return inputs

    def physical_inputs(
        self, records: Sequence[MetadataRecord], sources: Sequence[MetadataSource]
    ) -> list[PhysicalDescriptionInput]:
        inputs = []
        for record, source in zip(records, sources, strict=True):
            page_count = _safe(record, "page count", lambda r=record: _page_count(r))
            dimensions = _safe(record, "dimensions", lambda r=record: _dimensions(r))
            language = _safe(record, "language", lambda r=record: _text(r.language))
            binding = _safe(record, "binding", lambda r=record: _text(r.provider_data.get("binding")))
            book_format = _safe(record, "format", lambda r=record: _text(r.provider_data.get("format")))
            weight = _safe(record, "weight", lambda r=record: _weight(r))
            if not any((page_count, dimensions, language, binding, book_format, weight)):
                continue
            inputs.append(
                PhysicalDescriptionInput(
                    source=source,
                    page_count=page_count,
                    dimensions=dimensions,
                    format=book_format,
                    binding=binding,
                    languages=(language,) if language else (),
                    weight=weight,
                )
            )
        return inputs

    def content_inputs(
        self, records: Sequence[MetadataRecord], sources: Sequence[MetadataSource]
    ) -> list[ContentDescriptionInput]:
        inputs = []
        for record, source in zip(records, sources, strict=True):
            description = _safe(record, "description", lambda r=record: _text(r.description))
            cover = record.cover_image
            covers = (
                (CoverImage(url=cover.url, width=cover.width, height=cover.height, source=record.source),)
                if cover is not None and cover.url
                else ()
            )
            toc = _safe(record, "table of contents", lambda r=record: _text(r.provider_data.get("table_of_contents")))
            excerpt = _safe(record, "excerpt", lambda r=record: _text(r.provider_data.get("excerpt")))
            ratings = _safe(record, "rating", lambda r=record: _ratings(r)) or ()
            if not any((description, covers, toc, excerpt, ratings)):
                continue
            inputs.append(
                ContentDescriptionInput(
                    source=source,
                    descriptions=(description,) if description else (),
                    table_of_contents=toc,
                    ratings=ratings,
                    cover_images=covers,
                    excerpt=excerpt,
                )
            )
        return inputs

    def series_inputs(
        self, records: Sequence[MetadataRecord], sources: Sequence[MetadataSource]
    ) -> list[SeriesInput]:
        inputs = []
        for record, source in zip(records, sources, strict=True):
            series = _safe(record, "series", lambda r=record: _series(r))
            if series is not None:
                inputs.append(SeriesInput(source=source, series=(series,)))
        return inputs


def overall_confidence(confidences: Sequence[float]) -> float:
    """Average of the non-zero confidences plus a small boost per contributing field."""
    contributing = [c for c in confidences if c > 0]
    if not contributing:
        return 0.0
    base = sum(contributing) / len(contributing)
    boost = min(OVERALL_BOOST_CAP, OVERALL_BOOST_PER_FIELD * len(contributing))
    return min(1.0, base + boost)


async def reconcile_metadata(records: Sequence[MetadataRecord], **config: Any) -> ReconciledMetadata:
    """Reconcile records with a one-off coordinator built from keyword config."""
    coordinator = ReconciliationCoordinator(ReconciliationConfig(**config))
    return await coordinator.reconcile(records)
