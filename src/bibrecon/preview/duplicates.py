# ABOUTME: Weighted similarity between a proposed library entry and existing entries.
# ABOUTME: Classifies matches as exact, likely, possible, different edition, or related work.

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from bibrecon.preview.titles import comparison_name, comparison_title
from bibrecon.preview.types import DuplicateMatch, DuplicateMatchField, LibraryEntry
from bibrecon.reconciliation.identifiers import normalize_isbn
from bibrecon.reconciliation.similarity import jaccard, string_similarity
from bibrecon.reconciliation.types import PublicationDate, Publisher, Series

logger = logging.getLogger(__name__)

DUPLICATE_FIELD_WEIGHTS: Mapping[str, float] = {
    "title": 0.3,
    "authors": 0.25,
    "isbn": 0.25,
    "publication_date": 0.1,
    "publisher": 0.05,
    "series": 0.05,
}

# (lower bound, match type, recommendation, explanation), highest first.
_MATCH_BANDS = (
    (0.9, "exact", "skip", "This appears to be an exact duplicate of an existing entry."),
    (
        0.75,
        "likely",
        "merge",
        "This is likely a duplicate; merging keeps the best metadata from both entries.",
    ),
    (0.5, "possible", "review_manually", "This might be a duplicate or a different edition of the same work."),
)

_STRONG_MATCH = 0.8


@dataclass(frozen=True)
class DuplicateDetectorConfig:
    min_similarity_threshold: float = 0.3
    field_weights: Mapping[str, float] = field(default_factory=lambda: dict(DUPLICATE_FIELD_WEIGHTS))


def title_similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    return string_similarity(comparison_title(a), comparison_title(b))


def authors_similarity(a: Sequence[str], b: Sequence[str]) -> float:
    if not a or not b:
        return 0.0
    return jaccard((comparison_name(n) for n in a), (comparison_name(n) for n in b))


def isbn_similarity(a: Sequence[str], b: Sequence[str]) -> float:
    """1.0 when any ISBN is shared, ISBN-10 and ISBN-13 forms included."""
    if not a or not b:
        return 0.0
    return 1.0 if {normalize_isbn(i) for i in a} & {normalize_isbn(i) for i in b} else 0.0


def date_similarity(a: PublicationDate | None, b: PublicationDate | None) -> float:
    if a is None or b is None or a.year is None or b.year is None:
        return 0.0
    if a.year == b.year:
        if a.month and b.month:
            if a.month != b.month:
                return 0.7
            if a.day and b.day:
                return 1.0 if a.day == b.day else 0.8
            return 0.9
        return 0.8
    gap = abs(a.year - b.year)
    if gap <= 1:
        return 0.6
    if gap <= 2:
        return 0.4
    return 0.0


def publisher_similarity(a: Publisher | None, b: Publisher | None) -> float:
    if a is None or b is None or not a.name or not b.name:
        return 0.0
    if a.normalized and b.normalized:
        return string_similarity(a.normalized, b.normalized)
    return string_similarity(a.name, b.name)


def series_similarity(a: Sequence[Series], b: Sequence[Series]) -> float:
    best = 0.0
    for left in a:
        for right in b:
            name = string_similarity(left.name, right.name)
            volume = 1.0 if left.volume is not None and left.volume == right.volume else 0.0
            best = max(best, name * 0.8 + volume * 0.2)
    return best


class DuplicateDetector:
    def __init__(self, config: DuplicateDetectorConfig | None = None) -> None:
        self.config = config or DuplicateDetectorConfig()

    def detect_duplicates(
        self, proposed: LibraryEntry, existing_library: Sequence[LibraryEntry]
    ) -> list[DuplicateMatch]:
        """Existing entries resembling the proposed one, most similar first."""
        matches = [self.compare(proposed, existing) for existing in existing_library]
        kept = [m for m in matches if m.similarity > self.config.min_similarity_threshold]
        logger.debug("Found %d candidate duplicates among %d entries", len(kept), len(existing_library))
        return sorted(kept, key=lambda m: -m.similarity)

    def compare(self, proposed: LibraryEntry, existing: LibraryEntry) -> DuplicateMatch:
        weights = self.config.field_weights
        fields: list[DuplicateMatchField] = []

        def score(name: str, similarity: float, new: object, old: object, always: bool = False) -> None:
            if always or similarity > 0:
                fields.append(DuplicateMatchField(name, similarity, new, old, weights[name]))

        title = title_similarity(proposed.title, existing.title)
        authors = authors_similarity(proposed.authors, existing.authors)
        isbn = isbn_similarity(proposed.isbn, existing.isbn)
        score("title", title, proposed.title, existing.title, always=True)
        score("authors", authors, proposed.authors, existing.authors, always=True)
        score("isbn", isbn, proposed.isbn, existing.isbn)
        score(
            "publication_date",
            date_similarity(proposed.publication_date, existing.publication_date),
            proposed.publication_date,
            existing.publication_date,
        )
        score(
            "publisher",
            publisher_similarity(proposed.publisher, existing.publisher),
            proposed.publisher,
            existing.publisher,
        )
        score("series", series_similarity(proposed.series, existing.series), proposed.series, existing.series)

        total_weight = sum(f.weight for f in fields)
        similarity = sum(f.similarity * f.weight for f in fields) / total_weight if total_weight else 0.0
        match_type, recommendation, explanation = classify_match(similarity, isbn, title, authors)
        return DuplicateMatch(
            existing_entry=existing,
            similarity=similarity,
            match_type=match_type,
            matching_fields=tuple(fields),
            confidence=min(1.0, similarity + 0.1),
            recommendation=recommendation,
            explanation=explanation,
        )


def classify_match(
    similarity: float, isbn: float, title: float, authors: float
) -> tuple[str, str, str]:
    """(match type, recommendation, explanation) for an overall similarity."""
    for bound, match_type, recommendation, explanation in _MATCH_BANDS:
        if similarity >= bound:
            return match_type, recommendation, explanation
    if isbn > _STRONG_MATCH or (title > _STRONG_MATCH and authors > _STRONG_MATCH):
        return (
            "different_edition",
            "add_as_new",
            "This appears to be a different edition of an existing work.",
        )
    return (
        "related_work",
        "add_as_new",
        "This appears to be related to, but distinct from, existing entries.",
    )
