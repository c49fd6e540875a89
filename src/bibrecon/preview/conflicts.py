# ABOUTME: Presentation-time conflict analysis over the raw per-field values of each source.
# ABOUTME: Classifies conflicts by type and severity, marks auto-resolvable ones, and renders a report.

import dataclasses
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from bibrecon.metadata.types import MetadataSource
from bibrecon.preview.types import CORE_FIELDS
from bibrecon.reconciliation.identifiers import normalize_isbn
from bibrecon.reconciliation.similarity import jaccard, string_similarity
from bibrecon.reconciliation.types import (
    ConflictValue,
    Description,
    PublicationDate,
    Publisher,
    ReconciledField,
)

logger = logging.getLogger(__name__)

SEVERITIES = ("critical", "major", "minor", "informational")
CONFLICT_TYPES = (
    "value_mismatch",
    "format_difference",
    "precision_difference",
    "completeness_difference",
    "quality_difference",
)
_SEVERITY_WEIGHTS = {"critical": 1.0, "major": 0.7, "minor": 0.4, "informational": 0.1}
_LIST_FIELDS = frozenset({"authors", "subjects", "identifiers", "isbn"})
_HIGH_RELIABILITY = 0.8
_LOW_RELIABILITY = 0.5

RawValues = Sequence[tuple[Any, MetadataSource]]


@dataclass(frozen=True)
class ConflictDetectionConfig:
    numeric_threshold: float = 0.05
    string_similarity_threshold: float = 0.8
    detect_minor_conflicts: bool = True
    max_conflicts_per_field: int = 10


@dataclass(frozen=True)
class DetailedConflict:
    field: str
    values: tuple[ConflictValue, ...]
    resolution: str
    type: str
    severity: str
    confidence: float
    explanation: str
    suggestions: tuple[str, ...] = ()
    auto_resolvable: bool = False
    affects_core_metadata: bool = False


@dataclass(frozen=True)
class ConflictSummary:
    conflicts: tuple[DetailedConflict, ...]
    overall_score: float
    problematic_fields: tuple[str, ...]
    recommendations: tuple[str, ...]
    by_field: dict[str, list[DetailedConflict]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.conflicts)

    def by_severity(self, severity: str) -> list[DetailedConflict]:
        return [c for c in self.conflicts if c.severity == severity]

    def by_type(self, conflict_type: str) -> list[DetailedConflict]:
        return [c for c in self.conflicts if c.type == conflict_type]

    @property
    def auto_resolvable(self) -> list[DetailedConflict]:
        return [c for c in self.conflicts if c.auto_resolvable]

    @property
    def manual(self) -> list[DetailedConflict]:
        return [c for c in self.conflicts if not c.auto_resolvable]


class ConflictDetector:
    def __init__(self, config: ConflictDetectionConfig | None = None) -> None:
        self.config = config or ConflictDetectionConfig()

    def similar(self, a: Any, b: Any) -> bool:
        """Whether two raw values say the same thing, allowing for format noise."""
        if a == b:
            return True
        if a is None or b is None:
            return False
        if isinstance(a, str) and isinstance(b, str):
            return string_similarity(a, b) >= self.config.string_similarity_threshold
        if isinstance(a, (int, float)) and isinstance(b, (int, float)):
            mean = (a + b) / 2
            return a == b if mean == 0 else abs(a - b) / abs(mean) <= self.config.numeric_threshold
        if isinstance(a, PublicationDate) and isinstance(b, PublicationDate):
            if a.year is not None and b.year is not None:
                return abs(a.year - b.year) <= 1
            return False
        if isinstance(a, Publisher) and isinstance(b, Publisher):
            return self.similar(a.normalized or a.name, b.normalized or b.name)
        if isinstance(a, Description) and isinstance(b, Description):
            return self.similar(a.text, b.text)
        if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
            left = {str(x).strip().lower() for x in a}
            right = {str(x).strip().lower() for x in b}
            return jaccard(left, right) >= self.config.string_similarity_threshold
        if dataclasses.is_dataclass(a) and type(a) is type(b):
            return all(
                self.similar(getattr(a, f.name), getattr(b, f.name)) for f in dataclasses.fields(a)
            )
        return False

    def group_values(self, raw: RawValues) -> list[list[tuple[Any, MetadataSource]]]:
        groups: list[list[tuple[Any, MetadataSource]]] = []
        for item in raw:
            for group in groups:
                if self.similar(item[0], group[0][0]):
                    group.append(item)
                    break
            else:
                groups.append([item])
        return groups

    def detect_field_conflicts(
        self, name: str, raw: RawValues, reconciled: ReconciledField[Any] | None = None
    ) -> list[DetailedConflict]:
        if len(raw) < 2:
            return []
        conflicts: list[DetailedConflict] = []
        groups = self.group_values(raw)
        if len(groups) > 1:
            resolution = reconciled.reasoning if reconciled and reconciled.reasoning else "Used most reliable source"
            conflicts.append(self._value_mismatch(name, groups, resolution))
        if self.config.detect_minor_conflicts:
            if name == "isbn":
                conflicts.extend(self._isbn_format_differences(raw))
            if name == "publication_date":
                conflicts.extend(self._date_precision_differences(raw))
        if name in _LIST_FIELDS:
            conflicts.extend(self._completeness_differences(name, raw))
        conflicts.extend(self._quality_differences(name, raw))
        return conflicts[: self.config.max_conflicts_per_field]

    def analyze(
        self,
        raw_by_field: Mapping[str, RawValues],
        reconciled: Mapping[str, ReconciledField[Any]] | None = None,
    ) -> ConflictSummary:
        """Run detection for every field and summarize the findings."""
        reconciled = reconciled or {}
        conflicts = [
            conflict
            for name, raw in raw_by_field.items()
            for conflict in self.detect_field_conflicts(name, raw, reconciled.get(name))
        ]
        logger.debug("Detected %d conflicts across %d fields", len(conflicts), len(raw_by_field))
        return summarize(conflicts)

    def _value_mismatch(
        self, name: str, groups: list[list[tuple[Any, MetadataSource]]], resolution: str
    ) -> DetailedConflict:
        values = [item for group in groups for item in group]
        sources = [source for _, source in values]
        core = name in CORE_FIELDS
        reliable = any(s.reliability > _HIGH_RELIABILITY for s in sources)
        unreliable = any(s.reliability < _LOW_RELIABILITY for s in sources)
        if core and len(groups) > 2 and reliable:
            severity = "critical"
        elif core and reliable:
            severity = "major"
        elif len(groups) > 2 or (core and unreliable):
            severity = "minor"
        else:
            severity = "informational"

        top = max(s.reliability for s in sources)
        top_count = sum(1 for s in sources if s.reliability == top)
        avg = sum(s.reliability for s in sources) / len(sources)
        suggestions = [
            "Review source reliability and prioritize the most trustworthy sources",
            "Consider manual verification of conflicting values",
        ]
        if name == "title":
            suggestions.append("Check for alternate titles or editions")
        return DetailedConflict(
            field=name,
            values=tuple(ConflictValue(v, s) for v, s in values),
            resolution=resolution,
            type="value_mismatch",
            severity=severity,
            confidence=min(1.0, 0.5 + min(0.3, (len(groups) - 1) * 0.1) + avg * 0.2),
            explanation=f"Found {len(groups)} different values for '{name}' across {len(values)} sources",
            suggestions=tuple(suggestions),
            auto_resolvable=top_count == 1 and top > _HIGH_RELIABILITY,
            affects_core_metadata=core,
        )

    def _isbn_format_differences(self, raw: RawValues) -> list[DetailedConflict]:
        spellings: dict[str, list[tuple[str, MetadataSource]]] = {}
        for value, source in raw:
            for isbn in (value,) if isinstance(value, str) else value:
                spellings.setdefault(normalize_isbn(isbn), []).append((isbn, source))
        conflicts = []
        for normalized, items in spellings.items():
            forms = {isbn for isbn, _ in items}
            if len(items) > 1 and len(forms) > 1:
                conflicts.append(
                    DetailedConflict(
                        field="isbn",
                        values=tuple(ConflictValue(v, s) for v, s in items),
                        resolution="Normalized to ISBN-13",
                        type="format_difference",
                        severity="minor",
                        confidence=0.9,
                        explanation=f"ISBN {normalized} appears as: {', '.join(sorted(forms))}",
                        suggestions=("Normalize all ISBNs to ISBN-13 format",),
                        auto_resolvable=True,
                    )
                )
        return conflicts

    def _date_precision_differences(self, raw: RawValues) -> list[DetailedConflict]:
        by_year: dict[int, list[tuple[PublicationDate, MetadataSource]]] = {}
        for value, source in raw:
            if isinstance(value, PublicationDate) and value.year is not None:
                by_year.setdefault(value.year, []).append((value, source))
        conflicts = []
        for year, items in by_year.items():
            precisions = {v.precision for v, _ in items}
            if len(precisions) > 1:
                conflicts.append(
                    DetailedConflict(
                        field="publication_date",
                        values=tuple(ConflictValue(v, s) for v, s in items),
                        resolution="Used most precise date available",
                        type="precision_difference",
                        severity="minor",
                        confidence=0.8,
                        explanation=(
                            f"Publication year {year} reported at different precisions: "
                            f"{', '.join(sorted(precisions))}"
                        ),
                        suggestions=("Use the most precise date available",),
                        auto_resolvable=True,
                    )
                )
        return conflicts

    def _completeness_differences(self, name: str, raw: RawValues) -> list[DetailedConflict]:
        lengths = [len(v) if isinstance(v, (list, tuple)) else (1 if v else 0) for v, _ in raw]
        if max(lengths) <= min(lengths) * 2:
            return []
        return [
            DetailedConflict(
                field=name,
                values=tuple(ConflictValue(v, s) for v, s in raw),
                resolution="Combined data from all sources to maximize completeness",
                type="completeness_difference",
                severity="minor",
                confidence=0.7,
                explanation=f"Sources report between {min(lengths)} and {max(lengths)} items",
                suggestions=("Merge data from all sources",),
                auto_resolvable=True,
            )
        ]

    def _quality_differences(self, name: str, raw: RawValues) -> list[DetailedConflict]:
        reliabilities = [s.reliability for _, s in raw]
        if max(reliabilities) - min(reliabilities) <= 0.3:
            return []
        if not any(r > _HIGH_RELIABILITY for r in reliabilities) or not any(
            r < _LOW_RELIABILITY for r in reliabilities
        ):
            return []
        return [
            DetailedConflict(
                field=name,
                values=tuple(ConflictValue(v, s) for v, s in raw),
                resolution="Prioritized data from more reliable sources",
                type="quality_difference",
                severity="minor",
                confidence=0.8,
                explanation=(
                    f"Source reliability ranges from {min(reliabilities):.2f} to {max(reliabilities):.2f}"
                ),
                suggestions=("Use high-reliability sources as primary, others as fallback",),
                auto_resolvable=True,
            )
        ]


def summarize(conflicts: Sequence[DetailedConflict]) -> ConflictSummary:
    by_field: dict[str, list[DetailedConflict]] = {}
    for conflict in conflicts:
        by_field.setdefault(conflict.field, []).append(conflict)

    weighted = sum(_SEVERITY_WEIGHTS[c.severity] for c in conflicts)
    field_scores = sorted(
        by_field.items(), key=lambda item: -sum(_SEVERITY_WEIGHTS[c.severity] for c in item[1])
    )

    critical = sum(1 for c in conflicts if c.severity == "critical")
    major = sum(1 for c in conflicts if c.severity == "major")
    automatic = sum(1 for c in conflicts if c.auto_resolvable)
    recommendations = []
    if critical:
        recommendations.append(f"Address {critical} critical conflicts; these affect core metadata")
    if major:
        recommendations.append(f"Review {major} major conflicts; these may impact data quality")
    if automatic:
        recommendations.append(f"{automatic} conflicts can be automatically resolved")
    if len(conflicts) - automatic:
        recommendations.append(f"{len(conflicts) - automatic} conflicts require manual review")
    if not conflicts:
        recommendations.append("No conflicts detected; metadata appears consistent across sources")

    return ConflictSummary(
        conflicts=tuple(conflicts),
        overall_score=min(1.0, weighted / 10),
        problematic_fields=tuple(name for name, _ in field_scores[:5]),
        recommendations=tuple(recommendations),
        by_field=by_field,
    )


def _describe(value: Any) -> str:
    if isinstance(value, PublicationDate):
        return value.raw or str(value.year)
    if isinstance(value, Publisher):
        return value.name
    if isinstance(value, Description):
        return value.text[:60] + ("..." if len(value.text) > 60 else "")
    if isinstance(value, (list, tuple)):
        return ", ".join(_describe(v) for v in value)
    return str(value)


def render_report(summary: ConflictSummary) -> str:
    """Plain-text conflict report grouped by severity."""
    lines = [
        "Conflict Report",
        "===============",
        f"Total conflicts: {summary.total}",
        f"Auto-resolvable: {len(summary.auto_resolvable)}",
        f"Manual review: {len(summary.manual)}",
        f"Conflict score: {summary.overall_score:.2f}",
    ]
    for severity in SEVERITIES:
        conflicts = summary.by_severity(severity)
        if not conflicts:
            continue
        lines.append("")
        lines.append(f"{severity.upper()} ({len(conflicts)})")
        for conflict in conflicts:
            marker = "auto" if conflict.auto_resolvable else "manual"
            lines.append(f"  - {conflict.field} [{conflict.type}, {marker}]: {conflict.explanation}")
            for item in conflict.values:
                lines.append(
                    f"      {item.source.name} ({item.source.reliability:.2f}): {_describe(item.value)}"
                )
            lines.append(f"      Resolution: {conflict.resolution}")
    if summary.problematic_fields:
        lines.append("")
        lines.append(f"Most problematic fields: {', '.join(summary.problematic_fields)}")
    lines.append("")
    lines.append("Recommendations:")
    lines.extend(f"  * {r}" for r in summary.recommendations)
    return "\n".join(lines)
