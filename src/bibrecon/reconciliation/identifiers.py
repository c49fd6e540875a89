# ABOUTME: Identifier reconciliation: type detection, normalization, validation, and dedup.
# ABOUTME: Handles ISBN (10 to 13 conversion), DOI, OCLC, LCCN, Goodreads, Amazon ASIN, Google ids.

import logging
import re
from collections.abc import Sequence

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.types import (
    Conflict,
    ConflictValue,
    EmptyInput,
    Identifier,
    IdentifierInput,
    ReconciledField,
)
from bibrecon.reconciliation.weights import (
    IDENTIFIER_CONFIDENCE_BASE,
    IDENTIFIER_CONFIDENCE_SCALE,
    IDENTIFIER_PRIORITY,
    MIN_CONFIDENCE,
    agreement_bonus,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

_SEPARATOR_RE = re.compile(r"[\s-]")
_ISBN13_SHAPE_RE = re.compile(r"^97\d{11}$")
_ISBN10_SHAPE_RE = re.compile(r"^\d{9}[\dX]$")
_DOI_SHAPE_RE = re.compile(r"^10\.\d{4,}/")
_DOI_PREFIX_RE = re.compile(r"^doi:", re.IGNORECASE)
_DOI_URL_RE = re.compile(r"^https?://(dx\.)?doi\.org/", re.IGNORECASE)
_DOI_VALID_RE = re.compile(r"^10\.\d{4,}/\S+$")
_GOODREADS_PREFIX_RE = re.compile(r"^goodreads:", re.IGNORECASE)
_GOODREADS_URL_RE = re.compile(r".*/show/(\d+).*")
_GOODREADS_VALID_RE = re.compile(r"^\d{7,10}$")
_AMAZON_PREFIX_RE = re.compile(r"^amazon:", re.IGNORECASE)
_AMAZON_SHAPE_RE = re.compile(r"^[A-Z0-9]{10}$")
_AMAZON_URL_RE = re.compile(r".*/(?:dp|gp/product)/([A-Z0-9]{10}).*", re.IGNORECASE)
_GOOGLE_PREFIX_RE = re.compile(r"^google:", re.IGNORECASE)
_GOOGLE_URL_RE = re.compile(r".*books\.google\.com.*[?&]id=([^&]+).*")
_OCLC_SHAPE_RE = re.compile(r"^(ocm|ocn|on)?\d{8,10}$")
_OCLC_PREFIX_RE = re.compile(r"^(\(ocolc\)|ocm|ocn|on)", re.IGNORECASE)
_OCLC_VALID_RE = re.compile(r"^\d{8,10}$")
_LCCN_SHAPE_RE = re.compile(r"^[a-z]{1,3}\d{8,10}$")
_LCCN_NUMERIC_RE = re.compile(r"^\d{10,11}$")
_LCCN_VALID_RE = re.compile(r"^[a-z]{0,3}\d{8,10}$")
_NON_DIGIT_RE = re.compile(r"\D")

# Typed fields on IdentifierInput, in the order they are collected.
_TYPED_FIELDS = ("isbn", "oclc", "lccn", "doi", "goodreads", "amazon", "google")


def _ean_check_digit(first_twelve: str) -> int:
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(first_twelve))
    return (10 - total % 10) % 10


def is_valid_isbn10(isbn: str) -> bool:
    """Check an ISBN-10 (digits, optional trailing X) against its mod-11 checksum."""
    if not _ISBN10_SHAPE_RE.match(isbn):
        return False
    total = 0
    for i, char in enumerate(isbn):
        value = 10 if char == "X" else int(char)
        total += value * (10 - i)
    return total % 11 == 0


def is_valid_isbn13(isbn: str) -> bool:
    if len(isbn) != 13 or not isbn.isdigit():
        return False
    if not isbn.startswith(("978", "979")):
        return False
    return _ean_check_digit(isbn[:12]) == int(isbn[12])


def isbn10_to_isbn13(isbn10: str) -> str:
    """Convert an ISBN-10 to ISBN-13 with a freshly computed check digit."""
    base = "978" + isbn10[:9]
    return base + str(_ean_check_digit(base))


def normalize_isbn(isbn: str) -> str:
    cleaned = _SEPARATOR_RE.sub("", isbn).upper()
    if len(cleaned) == 10 and cleaned[:9].isdigit():
        return isbn10_to_isbn13(cleaned)
    return cleaned


def detect_identifier_type(value: str) -> str:
    """Guess an identifier's type from its shape."""
    cleaned = _SEPARATOR_RE.sub("", value)
    lowered = cleaned.lower()

    if _ISBN13_SHAPE_RE.match(cleaned) or _ISBN10_SHAPE_RE.match(cleaned.upper()):
        return "isbn"
    if _DOI_SHAPE_RE.match(value) or _DOI_PREFIX_RE.match(value) or "doi.org" in value:
        return "doi"
    if _GOODREADS_PREFIX_RE.match(value) or "goodreads.com" in value:
        return "goodreads"
    if _AMAZON_PREFIX_RE.match(value) or "amazon.com" in value or _AMAZON_SHAPE_RE.match(cleaned):
        return "amazon"
    if _GOOGLE_PREFIX_RE.match(value) or "books.google.com" in value:
        return "google"
    if _OCLC_SHAPE_RE.match(lowered) or lowered.startswith("(ocolc)"):
        return "oclc"
    if _LCCN_NUMERIC_RE.match(cleaned) or _LCCN_SHAPE_RE.match(lowered):
        return "lccn"
    if _GOODREADS_VALID_RE.match(cleaned):
        return "goodreads"
    return "other"


def normalize_by_type(value: str, id_type: str) -> str:
    if id_type == "isbn":
        return normalize_isbn(value)
    if id_type == "doi":
        return _DOI_URL_RE.sub("", _DOI_PREFIX_RE.sub("", value.strip()))
    if id_type == "oclc":
        return _OCLC_PREFIX_RE.sub("", _SEPARATOR_RE.sub("", value))
    if id_type == "lccn":
        return _SEPARATOR_RE.sub("", value).lower()
    if id_type == "goodreads":
        stripped = _GOODREADS_URL_RE.sub(r"\1", _GOODREADS_PREFIX_RE.sub("", value.strip()))
        return _NON_DIGIT_RE.sub("", stripped)
    if id_type == "amazon":
        stripped = _AMAZON_URL_RE.sub(r"\1", _AMAZON_PREFIX_RE.sub("", value.strip()))
        return stripped.upper()
    if id_type == "google":
        return _GOOGLE_URL_RE.sub(r"\1", _GOOGLE_PREFIX_RE.sub("", value.strip()))
    return value.strip()


def validate_by_type(normalized: str, id_type: str, raw: str | None = None) -> bool:
    """Validate a normalized identifier.

    For ISBNs the raw value matters: an ISBN-10 with a bad checksum is
    invalid even though its ISBN-13 form carries a recomputed check digit.
    """
    if id_type == "isbn":
        if raw is not None:
            cleaned = _SEPARATOR_RE.sub("", raw).upper()
            if len(cleaned) == 10 and not is_valid_isbn10(cleaned):
                return False
        return is_valid_isbn13(normalized)
    if id_type == "doi":
        return bool(_DOI_VALID_RE.match(normalized))
    if id_type == "oclc":
        return bool(_OCLC_VALID_RE.match(normalized))
    if id_type == "lccn":
        return bool(_LCCN_VALID_RE.match(normalized) or _LCCN_NUMERIC_RE.match(normalized))
    if id_type == "goodreads":
        return bool(_GOODREADS_VALID_RE.match(normalized))
    if id_type == "amazon":
        return bool(_AMAZON_SHAPE_RE.match(normalized))
    return len(normalized) > 0


def normalize_identifier(value: str | Identifier, id_type: str | None = None) -> Identifier:
    """Build a normalized, validated Identifier from a raw string or partial Identifier."""
    if isinstance(value, Identifier):
        normalized = normalize_by_type(value.value, value.type)
        return Identifier(
            type=value.type,
            value=value.value,
            normalized=normalized,
            valid=validate_by_type(normalized, value.type, value.value),
        )
    detected = id_type or detect_identifier_type(value)
    normalized = normalize_by_type(value, detected)
    return Identifier(
        type=detected,
        value=value,
        normalized=normalized,
        valid=validate_by_type(normalized, detected, value),
    )


def _typed_values(raw: str | Sequence[str] | None) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        return [raw]
    return [v for v in raw if v]


class IdentifierReconciler:
    """Folds identifiers reported by several sources into one ordered, deduplicated list."""

    def reconcile(self, inputs: Sequence[IdentifierInput]) -> ReconciledField[tuple[Identifier, ...]]:
        """Reconcile identifiers from all inputs.

        Raises:
            ReconciliationInputError: If inputs is empty.
        """
        if not inputs:
            msg = "No identifiers to reconcile"
            raise ReconciliationInputError(msg)

        collected: list[tuple[Identifier, MetadataSource]] = []
        for item in inputs:
            for raw in item.identifiers:
                if isinstance(raw, str) and not raw.strip():
                    continue
                collected.append((normalize_identifier(raw), item.source))
            for id_type in _TYPED_FIELDS:
                for raw in _typed_values(getattr(item, id_type)):
                    if not raw.strip():
                        continue
                    collected.append((normalize_identifier(raw, id_type), item.source))

        all_sources = tuple(item.source for item in inputs)
        if not collected:
            return ReconciledField(
                value=(),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No valid identifiers found",
            )

        kept: dict[str, tuple[Identifier, MetadataSource]] = {}
        supporters: dict[str, set[str]] = {}
        conflicts: list[Conflict] = []
        for identifier, source in collected:
            key = f"{identifier.type}:{identifier.normalized or identifier.value}"
            supporters.setdefault(key, set()).add(source.name)
            existing = kept.get(key)
            if existing is None:
                kept[key] = (identifier, source)
                continue
            existing_id, existing_source = existing
            if existing_source.name == source.name:
                continue
            if existing_id.value != identifier.value:
                conflicts.append(
                    Conflict(
                        field=f"identifier_{identifier.type}",
                        values=(
                            ConflictValue(existing_id, existing_source),
                            ConflictValue(identifier, source),
                        ),
                        resolution="Kept identifier from more reliable source",
                    )
                )
            if source.reliability > existing_source.reliability:
                kept[key] = (identifier, source)

        ordered = sorted(
            kept.items(),
            key=lambda pair: (
                not pair[1][0].valid,
                -IDENTIFIER_PRIORITY.get(pair[1][0].type, 1),
                -pair[1][1].reliability,
            ),
        )

        winners = [pair[1] for pair in ordered]
        valid_count = sum(1 for identifier, _ in winners if identifier.valid)
        total = len(winners)
        avg_reliability = sum(source.reliability for _, source in winners) / total
        top_agreement = len(supporters[ordered[0][0]])
        confidence = clamp_confidence(
            (valid_count / total) * avg_reliability * IDENTIFIER_CONFIDENCE_SCALE
            + IDENTIFIER_CONFIDENCE_BASE
            + agreement_bonus(top_agreement)
        )

        if conflicts:
            reasoning = (
                f"Reconciled {total} identifiers with {len(conflicts)} conflicts, {valid_count} valid"
            )
        else:
            reasoning = f"Reconciled {total} identifiers, {valid_count} valid"
        logger.debug(reasoning)

        return ReconciledField(
            value=tuple(identifier for identifier, _ in winners),
            confidence=confidence,
            sources=all_sources,
            conflicts=tuple(conflicts),
            reasoning=reasoning,
        )

    def try_reconcile(
        self, inputs: Sequence[IdentifierInput]
    ) -> ReconciledField[tuple[Identifier, ...]] | EmptyInput:
        if not inputs:
            return EmptyInput("No identifiers to reconcile")
        return self.reconcile(inputs)
