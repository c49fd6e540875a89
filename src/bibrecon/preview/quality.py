# ABOUTME: Quality grading for preview fields and for a whole proposed library entry.
# ABOUTME: Scores confidence, source coverage, reliability, conflicts, and emptiness.

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from bibrecon.preview.types import (
    FieldQuality,
    LibraryEntry,
    LibraryQuality,
    QualityFactor,
    SourceAttribution,
)
from bibrecon.reconciliation.types import ReconciledField

# LibraryEntry attributes counted toward completeness.
_ENTRY_FIELDS = (
    "title",
    "authors",
    "isbn",
    "publication_date",
    "publisher",
    "series",
    "subjects",
    "description",
    "language",
    "physical_description",
    "cover_image",
    "work",
    "edition",
    "identifiers",
)


@dataclass(frozen=True)
class QualityConfig:
    high_confidence_threshold: float = 0.8
    good_quality_threshold: float = 0.7
    include_suggestions: bool = True


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


class QualityAssessor:
    def __init__(self, config: QualityConfig | None = None) -> None:
        self.config = config or QualityConfig()

    def level(self, score: float) -> str:
        if score >= 0.9:
            return "excellent"
        if score >= self.config.good_quality_threshold:
            return "good"
        if score >= 0.5:
            return "fair"
        return "poor"

    def assess_field(
        self, reconciled: ReconciledField[Any], attributions: Sequence[SourceAttribution]
    ) -> FieldQuality:
        """Grade one field starting from 0.5 and adding each factor's impact."""
        factors: list[QualityFactor] = []

        confidence_impact = (reconciled.confidence - 0.5) * 0.4
        factors.append(
            QualityFactor("confidence", confidence_impact, f"Confidence level: {reconciled.confidence:.1%}")
        )

        count = len(attributions)
        count_impact = min(count / 3, 1) * 0.2 - 0.1
        factors.append(QualityFactor("source_count", count_impact, f"Number of sources: {count}"))

        reliability = (
            sum(a.field_reliability for a in attributions) / count if attributions else 0.5
        )
        reliability_impact = (reliability - 0.5) * 0.3
        factors.append(
            QualityFactor(
                "source_reliability",
                reliability_impact,
                f"Average source reliability: {reliability:.1%}",
            )
        )

        if reconciled.conflicts:
            factors.append(
                QualityFactor("conflicts", -0.15, f"Has {len(reconciled.conflicts)} conflicts")
            )
        empty = is_empty(reconciled.value)
        if empty:
            factors.append(QualityFactor("completeness", -0.3, "Field is empty or null"))

        score = max(0.0, min(1.0, 0.5 + sum(f.impact for f in factors)))

        suggestions: list[str] = []
        if self.config.include_suggestions:
            if reconciled.confidence < 0.7:
                suggestions.append("Consider adding more reliable sources for this field")
            if count < 2:
                suggestions.append("Additional sources would improve confidence")
            if reconciled.conflicts:
                suggestions.append("Review and resolve conflicts between sources")
            if empty:
                suggestions.append("This field is missing data; try additional metadata sources")

        return FieldQuality(
            score=score, level=self.level(score), factors=tuple(factors), suggestions=tuple(suggestions)
        )

    def assess_library(
        self, entry: LibraryEntry, field_scores: Sequence[float], overall_confidence: float
    ) -> LibraryQuality:
        """completeness * 0.4 + accuracy * 0.4 + consistency * 0.2."""
        filled = sum(1 for name in _ENTRY_FIELDS if not is_empty(getattr(entry, name)))
        completeness = filled / len(_ENTRY_FIELDS)
        accuracy = overall_confidence
        consistency = sum(field_scores) / len(field_scores) if field_scores else 0.5
        score = completeness * 0.4 + accuracy * 0.4 + consistency * 0.2

        strengths: list[str] = []
        improvements: list[str] = []
        if completeness > 0.8:
            strengths.append("High data completeness")
        if accuracy > 0.8:
            strengths.append("High confidence in metadata")
        if consistency > 0.8:
            strengths.append("Consistent data quality across fields")
        if completeness < 0.6:
            improvements.append("Add more metadata fields")
        if accuracy < 0.7:
            improvements.append("Improve metadata confidence with additional sources")
        if consistency < 0.6:
            improvements.append("Resolve quality inconsistencies between fields")

        return LibraryQuality(
            score=score,
            level=self.level(score),
            completeness=completeness,
            accuracy=accuracy,
            consistency=consistency,
            strengths=tuple(strengths),
            improvements=tuple(improvements),
        )
