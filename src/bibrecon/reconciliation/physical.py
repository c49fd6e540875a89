# ABOUTME: Physical description reconciliation: page count, dimensions, format, languages, weight.
# ABOUTME: Parses free-text measurements into canonical units and picks the best-supported values.

import logging
import re
from collections.abc import Sequence
from dataclasses import replace
from typing import TypeVar

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.languages import get_language_by_iso3, resolve_language
from bibrecon.reconciliation.types import (
    Conflict,
    ConflictValue,
    EmptyInput,
    FormatInfo,
    LanguageInfo,
    PhysicalDescriptionInput,
    PhysicalDimensions,
    ReconciledField,
    ReconciledPhysicalDescription,
)
from bibrecon.reconciliation.weights import (
    DIMENSIONS_SCALE,
    FORMAT_SCALE,
    LANGUAGE_SCALE,
    MIN_CONFIDENCE,
    NO_FORMAT_CONFIDENCE,
    PAGE_COUNT_SCALE,
    WEIGHT_SCALE,
    agreement_bonus,
    average,
    clamp_confidence,
    group_confidence,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DIGITS_RE = re.compile(r"\d+")
_UNIT = r"(mm|cm|millimet(?:er|re)s?|centimet(?:er|re)s?|in|inch|inches)"
_NUMBER = r"(\d+(?:\.\d+)?)"
_DIMENSIONS_TRAILING_UNIT_RE = re.compile(
    rf"{_NUMBER}\s*[x×]\s*{_NUMBER}(?:\s*[x×]\s*{_NUMBER})?\s*{_UNIT}\b", re.IGNORECASE
)
_DIMENSIONS_EACH_UNIT_RE = re.compile(
    rf"{_NUMBER}\s*{_UNIT}\s*[x×]\s*{_NUMBER}\s*{_UNIT}(?:\s*[x×]\s*{_NUMBER}\s*{_UNIT})?",
    re.IGNORECASE,
)
_LABELED_DIMENSION_RE = re.compile(
    rf"\b(h|height|w|width|d|depth)\s*:?\s*{_NUMBER}\s*{_UNIT}\b", re.IGNORECASE
)
_WEIGHT_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(kg|kilograms?|g|grams?|lbs?|pounds?|oz|ounces?)\b", re.IGNORECASE
)
_LANGUAGE_REGION_RE = re.compile(r"^([a-z]{2,3})[-_]([a-z]{2})$", re.IGNORECASE)

_MAX_PAGES = 50_000
_MAX_GRAMS = 50_000
_PAGE_TOLERANCE = 10
_PAGE_TOLERANCE_RATIO = 0.05
_DIMENSION_TOLERANCE_MM = 5.0
_DIMENSION_TOLERANCE_RATIO = 0.05
_WEIGHT_TOLERANCE_GRAMS = 10.0
_WEIGHT_TOLERANCE_RATIO = 0.05

_MM_PER_UNIT = {"mm": 1.0, "cm": 10.0, "in": 25.4}
_GRAMS_PER_UNIT = {"g": 1.0, "kg": 1000.0, "lb": 453.592, "oz": 28.3495}
_SIDE_RANGE = (10.0, 1000.0)
_DEPTH_RANGE = (1.0, 200.0)

# Checked in order; more specific bindings first.
_BINDING_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("hardcover", ("hardcover", "hardback", "hard cover")),
    ("mass_market", ("mass market", "pocket")),
    ("paperback", ("paperback", "softcover", "soft cover")),
    ("board_book", ("board book", "boardbook")),
    ("spiral", ("spiral", "wire-o", "coil")),
    ("leather", ("leather",)),
    ("cloth", ("cloth",)),
    ("digital", ("digital", "ebook", "e-book")),
    ("audio", ("audio",)),
)

_BINDING_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("hardcover", ("hard",)),
    ("paperback", ("paper", "soft")),
    ("mass_market", ("mass",)),
    ("board_book", ("board",)),
    ("spiral", ("spiral", "coil")),
    ("leather", ("leather",)),
    ("cloth", ("cloth",)),
    ("digital", ("digital", "ebook")),
    ("audio", ("audio",)),
)

_FORMAT_KEYWORDS: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("ebook", "e-book", "digital"), "ebook", "digital"),
    (("audiobook", "audio book"), "audiobook", "audio"),
    (("magazine",), "magazine", "print"),
    (("journal",), "journal", "print"),
    (("newspaper",), "newspaper", "print"),
    (("braille",), "book", "braille"),
    (("large print",), "book", "large_print"),
)

_LANGUAGE_MATCH_CONFIDENCE = {"iso3": 0.9, "iso1": 0.9, "regional": 0.85, "name": 0.8}


def _unit_key(unit: str) -> str:
    lowered = unit.lower()
    if lowered.startswith("in"):
        return "in"
    if lowered.startswith("c"):
        return "cm"
    return "mm"


def _to_mm(value: float | None, unit: str) -> float | None:
    if value is None:
        return None
    return round(value * _MM_PER_UNIT[unit], 2)


def _in_range(value: float | None, bounds: tuple[float, float]) -> float | None:
    if value is None or not bounds[0] <= value <= bounds[1]:
        return None
    return value


def normalize_page_count(value: int | float | str | None) -> int | None:
    """Page count from a number or text such as "xiv + 342 pp."; the largest number wins."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        count = int(value)
    else:
        numbers = [int(n) for n in _DIGITS_RE.findall(value)]
        if not numbers:
            return None
        count = max(numbers)
    return count if 0 < count < _MAX_PAGES else None


def _validate_dimensions(dimensions: PhysicalDimensions) -> PhysicalDimensions:
    unit = _unit_key(dimensions.unit or "mm")
    return PhysicalDimensions(
        width=_in_range(_to_mm(dimensions.width, unit), _SIDE_RANGE),
        height=_in_range(_to_mm(dimensions.height, unit), _SIDE_RANGE),
        depth=_in_range(_to_mm(dimensions.depth, unit), _DEPTH_RANGE),
        unit="mm",
        raw=dimensions.raw,
    )


def parse_dimensions(text: str) -> PhysicalDimensions:
    """Parse "8.5 x 11 in", "210mm x 297mm", or "H: 23cm W: 15cm" into millimetres."""
    match = _DIMENSIONS_TRAILING_UNIT_RE.search(text)
    if match:
        width, height, depth, unit = match.groups()
        return _validate_dimensions(
            PhysicalDimensions(
                width=float(width),
                height=float(height),
                depth=float(depth) if depth else None,
                unit=_unit_key(unit),
                raw=text,
            )
        )

    match = _DIMENSIONS_EACH_UNIT_RE.search(text)
    if match:
        groups = match.groups()
        values = [
            _to_mm(float(groups[i]), _unit_key(groups[i + 1])) if groups[i] else None
            for i in (0, 2, 4)
        ]
        return PhysicalDimensions(
            width=_in_range(values[0], _SIDE_RANGE),
            height=_in_range(values[1], _SIDE_RANGE),
            depth=_in_range(values[2], _DEPTH_RANGE),
            unit="mm",
            raw=text,
        )

    labeled: dict[str, float | None] = {}
    for label, number, unit in _LABELED_DIMENSION_RE.findall(text):
        labeled[label[0].lower()] = _to_mm(float(number), _unit_key(unit))
    if labeled:
        return PhysicalDimensions(
            width=_in_range(labeled.get("w"), _SIDE_RANGE),
            height=_in_range(labeled.get("h"), _SIDE_RANGE),
            depth=_in_range(labeled.get("d"), _DEPTH_RANGE),
            unit="mm",
            raw=text,
        )
    return PhysicalDimensions(raw=text)


def normalize_dimensions(value: str | PhysicalDimensions) -> PhysicalDimensions:
    if isinstance(value, PhysicalDimensions):
        return _validate_dimensions(value)
    return parse_dimensions(value)


def normalize_binding(hint: str) -> str:
    lowered = hint.lower()
    for binding, keywords in _BINDING_HINTS:
        if any(k in lowered for k in keywords):
            return binding
    return "other"


def parse_format(text: str, binding_hint: str | None = None) -> FormatInfo:
    """Detect binding, format, and medium from free text like "Mass Market Paperback"."""
    lowered = text.lower()
    binding = None
    for candidate, keywords in _BINDING_KEYWORDS:
        if any(k in lowered for k in keywords):
            binding = candidate
            break
    if binding is None and binding_hint:
        binding = normalize_binding(binding_hint)

    for keywords, fmt, medium in _FORMAT_KEYWORDS:
        if any(k in lowered for k in keywords):
            return FormatInfo(binding=binding, format=fmt, medium=medium, raw=text or None)

    if binding == "digital":
        medium = "digital"
    elif binding == "audio":
        medium = "audio"
    else:
        medium = "print"
    return FormatInfo(binding=binding, format="book", medium=medium, raw=text or None)


def _validate_format(info: FormatInfo) -> FormatInfo:
    medium = info.medium
    if medium is None:
        if info.binding == "digital" or info.format == "ebook":
            medium = "digital"
        elif info.binding == "audio" or info.format == "audiobook":
            medium = "audio"
    return replace(info, medium=medium)


def normalize_format(value: str | FormatInfo, binding_hint: str | None = None) -> FormatInfo:
    if isinstance(value, FormatInfo):
        return _validate_format(value)
    return parse_format(value, binding_hint)


def parse_language(text: str) -> LanguageInfo | None:
    trimmed = text.strip()
    if len(trimmed) < 2:
        return None
    match = _LANGUAGE_REGION_RE.match(trimmed)
    region = match.group(2).upper() if match else None
    resolved = resolve_language(trimmed)
    if resolved is not None:
        return LanguageInfo(
            code=resolved.iso3,
            name=resolved.name,
            region=region,
            confidence=_LANGUAGE_MATCH_CONFIDENCE.get(resolved.match_type, 0.7),
            raw=text,
        )
    return LanguageInfo(code=trimmed.lower(), name=text, confidence=0.3, raw=text)


def _validate_language(info: LanguageInfo) -> LanguageInfo | None:
    if not info.code:
        return None
    resolved = resolve_language(info.code)
    code = resolved.iso3 if resolved else info.code
    name = info.name or (resolved.name if resolved else None)
    confidence = info.confidence
    if confidence is None:
        confidence = 0.8 if get_language_by_iso3(code) else 0.5
    return replace(info, code=code, name=name, confidence=confidence)


def normalize_languages(values: Sequence[str | LanguageInfo]) -> list[LanguageInfo]:
    results = []
    for value in values:
        info = parse_language(value) if isinstance(value, str) else _validate_language(value)
        if info is not None:
            results.append(info)
    return results


def normalize_weight(value: float | str | None) -> float | None:
    """Weight in grams from a number (already grams) or text like "1.2 kg" or "14 oz"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        grams = float(value)
    else:
        match = _WEIGHT_RE.search(value)
        if not match:
            return None
        unit = match.group(2).lower()
        if unit.startswith(("lb", "p")):
            unit = "lb"
        elif unit.startswith("o"):
            unit = "oz"
        elif unit.startswith("k"):
            unit = "kg"
        else:
            unit = "g"
        grams = float(match.group(1)) * _GRAMS_PER_UNIT[unit]
    return float(round(grams)) if 0 < grams < _MAX_GRAMS else None


def _group_close_values(
    values: Sequence[tuple[float, MetadataSource]], tolerance: float, ratio: float
) -> list[list[tuple[float, MetadataSource]]]:
    """Group measurements within an absolute or relative tolerance of a group's anchor.

    Anchors are the most reliable claims, so each group's first member is its most trusted value.
    """
    groups: list[list[tuple[float, MetadataSource]]] = []
    for value, source in sorted(values, key=lambda pair: -pair[1].reliability):
        for group in groups:
            anchor = group[0][0]
            diff = abs(value - anchor)
            if diff <= tolerance or diff / max(value, anchor) <= ratio:
                group.append((value, source))
                break
        else:
            groups.append([(value, source)])
    return groups


def _best_group(groups: list[list[tuple[T, MetadataSource]]]) -> list[tuple[T, MetadataSource]]:
    return max(groups, key=lambda group: sum(source.reliability for _, source in group))


def dimensions_agree(first: PhysicalDimensions, second: PhysicalDimensions) -> bool:
    """True when every axis both claims measure is within tolerance; at least one must be shared."""
    shared = 0
    for a, b in (
        (first.width, second.width),
        (first.height, second.height),
        (first.depth, second.depth),
    ):
        if a is None or b is None:
            continue
        shared += 1
        diff = abs(a - b)
        if diff > _DIMENSION_TOLERANCE_MM and diff / max(a, b) > _DIMENSION_TOLERANCE_RATIO:
            return False
    return shared > 0


def _average_dimensions(group: list[tuple[PhysicalDimensions, MetadataSource]]) -> PhysicalDimensions:
    """Reliability-weighted mean of each axis over the claims that measure it."""

    def axis(name: str) -> float | None:
        measured = [(getattr(dims, name), source.reliability) for dims, source in group]
        measured = [(value, weight) for value, weight in measured if value is not None]
        if not measured:
            return None
        total = sum(weight for _, weight in measured)
        return round(sum(value * weight for value, weight in measured) / total, 1)

    return PhysicalDimensions(
        width=axis("width"),
        height=axis("height"),
        depth=axis("depth"),
        unit="mm",
        raw=group[0][0].raw,
    )


class PhysicalReconciler:
    """Reconciles page counts, dimensions, format, languages, and weight independently."""

    def reconcile(self, inputs: Sequence[PhysicalDescriptionInput]) -> ReconciledPhysicalDescription:
        if not inputs:
            msg = "No physical descriptions to reconcile"
            raise ReconciliationInputError(msg)
        return ReconciledPhysicalDescription(
            page_count=self.reconcile_page_counts(inputs),
            dimensions=self.reconcile_dimensions(inputs),
            format=self.reconcile_formats(inputs),
            languages=self.reconcile_languages(inputs),
            weight=self.reconcile_weights(inputs),
        )

    def try_reconcile(
        self, inputs: Sequence[PhysicalDescriptionInput]
    ) -> ReconciledPhysicalDescription | EmptyInput:
        if not inputs:
            return EmptyInput("No physical descriptions to reconcile")
        return self.reconcile(inputs)

    def reconcile_page_counts(self, inputs: Sequence[PhysicalDescriptionInput]) -> ReconciledField[int]:
        counts: list[tuple[int, MetadataSource]] = []
        for item in inputs:
            count = normalize_page_count(item.page_count)
            if count is not None:
                counts.append((count, item.source))

        if not counts:
            return ReconciledField(
                value=0,
                confidence=MIN_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No valid page counts found",
            )

        groups = _group_close_values(counts, _PAGE_TOLERANCE, _PAGE_TOLERANCE_RATIO)
        best = _best_group(groups)
        best_reliability = sum(source.reliability for _, source in best)
        value = round(sum(count * source.reliability for count, source in best) / best_reliability)

        conflicts: tuple[Conflict, ...] = ()
        if len(groups) > 1:
            conflicts = (
                Conflict(
                    field="page_count",
                    values=tuple(ConflictValue(group[0][0], group[0][1]) for group in groups),
                    resolution="Selected page count from most reliable sources",
                ),
            )
            reasoning = (
                f"Reconciled {len(counts)} page counts with conflicts, "
                f"selected from {len(best)} agreeing sources"
            )
        elif len(counts) == 1:
            reasoning = "Single page count source"
        else:
            reasoning = f"Averaged {len(best)} agreeing page counts"

        confidence = group_confidence(
            [source.reliability for _, source in best],
            sum(source.reliability for _, source in counts),
            PAGE_COUNT_SCALE,
        )
        return ReconciledField(
            value=value,
            confidence=clamp_confidence(confidence),
            sources=tuple(source for _, source in counts),
            conflicts=conflicts,
            reasoning=reasoning,
        )

    def reconcile_dimensions(
        self, inputs: Sequence[PhysicalDescriptionInput]
    ) -> ReconciledField[PhysicalDimensions]:
        candidates: list[tuple[PhysicalDimensions, MetadataSource]] = []
        for item in inputs:
            if item.dimensions is None:
                continue
            dimensions = normalize_dimensions(item.dimensions)
            if dimensions.width or dimensions.height:
                candidates.append((dimensions, item.source))

        if not candidates:
            return ReconciledField(
                value=PhysicalDimensions(),
                confidence=MIN_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No valid dimensions found",
            )

        # Each group's first member is its most reliable claim.
        groups: list[list[tuple[PhysicalDimensions, MetadataSource]]] = []
        for dimensions, source in sorted(candidates, key=lambda pair: -pair[1].reliability):
            for group in groups:
                if dimensions_agree(group[0][0], dimensions):
                    group.append((dimensions, source))
                    break
            else:
                groups.append([(dimensions, source)])

        best = _best_group(groups)
        value = _average_dimensions(best)

        conflicts: tuple[Conflict, ...] = ()
        if len(groups) > 1:
            conflicts = (
                Conflict(
                    field="dimensions",
                    values=tuple(ConflictValue(group[0][0], group[0][1]) for group in groups),
                    resolution="Selected dimensions agreed on by the most reliable sources",
                ),
            )
            reasoning = (
                f"Reconciled {len(candidates)} dimension claims with conflicts, "
                f"selected from {len(best)} agreeing sources"
            )
        elif len(candidates) == 1:
            reasoning = "Single dimensions source"
        else:
            reasoning = f"Averaged {len(best)} agreeing dimension claims"

        confidence = group_confidence(
            [source.reliability for _, source in best],
            sum(source.reliability for _, source in candidates),
            DIMENSIONS_SCALE,
        )
        return ReconciledField(
            value=value,
            confidence=clamp_confidence(confidence),
            sources=tuple(source for _, source in candidates),
            conflicts=conflicts,
            reasoning=reasoning,
        )

    def reconcile_formats(self, inputs: Sequence[PhysicalDescriptionInput]) -> ReconciledField[FormatInfo]:
        candidates: list[tuple[FormatInfo, MetadataSource]] = []
        for item in inputs:
            if item.format is not None:
                candidates.append((normalize_format(item.format, item.binding), item.source))
            elif item.binding:
                candidates.append((parse_format("", item.binding), item.source))

        if not candidates:
            return ReconciledField(
                value=FormatInfo(format="book", medium="print"),
                confidence=NO_FORMAT_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No format information found, defaulting to print book",
            )

        best_format, best_source = max(candidates, key=lambda c: c[1].reliability)
        agreeing = sum(
            1 for fmt, _ in candidates if (fmt.binding, fmt.format) == (best_format.binding, best_format.format)
        )
        conflicts: tuple[Conflict, ...] = ()
        if agreeing < len(candidates):
            conflicts = (
                Conflict(
                    field="format",
                    values=tuple(ConflictValue(fmt, source) for fmt, source in candidates),
                    resolution="Selected format from most reliable source",
                ),
            )
        if len(candidates) == 1:
            reasoning = "Single format source"
        else:
            reasoning = f"Selected format from most reliable of {len(candidates)} sources"
        return ReconciledField(
            value=best_format,
            confidence=clamp_confidence(best_source.reliability * FORMAT_SCALE + agreement_bonus(agreeing)),
            sources=tuple(source for _, source in candidates),
            conflicts=conflicts,
            reasoning=reasoning,
        )

    def reconcile_languages(
        self, inputs: Sequence[PhysicalDescriptionInput]
    ) -> ReconciledField[tuple[LanguageInfo, ...]]:
        merged: dict[str, LanguageInfo] = {}
        sources: list[MetadataSource] = []
        for item in inputs:
            languages = normalize_languages(item.languages)
            if not languages:
                continue
            sources.append(item.source)
            for language in languages:
                existing = merged.get(language.code)
                if existing is None or (language.confidence or 0) > (existing.confidence or 0):
                    merged[language.code] = language

        if not merged:
            return ReconciledField(
                value=(),
                confidence=MIN_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No language information found",
            )

        languages = tuple(sorted(merged.values(), key=lambda lang: -(lang.confidence or 0)))
        confidence = average([lang.confidence or 0 for lang in languages]) * LANGUAGE_SCALE
        return ReconciledField(
            value=languages,
            confidence=clamp_confidence(confidence),
            sources=tuple(sources),
            reasoning=f"Reconciled {len(languages)} unique languages from {len(sources)} sources",
        )

    def reconcile_weights(self, inputs: Sequence[PhysicalDescriptionInput]) -> ReconciledField[float]:
        weights: list[tuple[float, MetadataSource]] = []
        for item in inputs:
            grams = normalize_weight(item.weight)
            if grams is not None:
                weights.append((grams, item.source))

        if not weights:
            return ReconciledField(
                value=0.0,
                confidence=MIN_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No weight information found",
            )

        groups = _group_close_values(weights, _WEIGHT_TOLERANCE_GRAMS, _WEIGHT_TOLERANCE_RATIO)
        best = _best_group(groups)
        best_reliability = sum(source.reliability for _, source in best)
        value = float(round(sum(grams * source.reliability for grams, source in best) / best_reliability))

        conflicts: tuple[Conflict, ...] = ()
        if len(groups) > 1:
            conflicts = (
                Conflict(
                    field="weight",
                    values=tuple(ConflictValue(group[0][0], group[0][1]) for group in groups),
                    resolution="Selected weight from most reliable sources",
                ),
            )
            reasoning = (
                f"Reconciled {len(weights)} weights with conflicts, "
                f"selected from {len(best)} agreeing sources"
            )
        elif len(weights) == 1:
            reasoning = "Single weight source"
        else:
            reasoning = f"Averaged {len(weights)} weight measurements"

        confidence = group_confidence(
            [source.reliability for _, source in best],
            sum(source.reliability for _, source in weights),
            WEIGHT_SCALE,
        )
        return ReconciledField(
            value=value,
            confidence=clamp_confidence(confidence),
            sources=tuple(source for _, source in weights),
            conflicts=conflicts,
            reasoning=reasoning,
        )
