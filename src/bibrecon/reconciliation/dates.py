# ABOUTME: Publication date parsing and reconciliation with day/month/year precision tracking.
# ABOUTME: Groups prefix-compatible dates and prefers the most precise date in the best-supported group.

import calendar
import logging
import re
from collections.abc import Sequence
from datetime import date

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.types import (
    Conflict,
    ConflictValue,
    PublicationDate,
    PublicationInfoInput,
    ReconciledField,
)
from bibrecon.reconciliation.weights import (
    DATE_INVALID_YEAR_PENALTY,
    DATE_PRECISION_FACTOR,
    MIN_CONFIDENCE,
    agreement_bonus,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

_ISO_DAY_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")
_ISO_MONTH_RE = re.compile(r"^(\d{4})[-/](\d{1,2})$")
_YEAR_ONLY_RE = re.compile(r"^(\d{4})$")
_US_DAY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_MONTH_NAME_DAY_RE = re.compile(r"^([a-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})$", re.IGNORECASE)
_DAY_MONTH_NAME_RE = re.compile(r"^(\d{1,2})(?:st|nd|rd|th)?\s+([a-z]+)\.?,?\s+(\d{4})$", re.IGNORECASE)
_MONTH_NAME_YEAR_RE = re.compile(r"^([a-z]+)\.?,?\s+(\d{4})$", re.IGNORECASE)
_EMBEDDED_YEAR_RE = re.compile(r"\b(1\d{3}|20\d{2})\b")

_PRECISION_RANK = {"day": 3, "month": 2, "year": 1, "unknown": 0}
_MIN_YEAR = 1000

_MONTHS: dict[str, int] = {}
for _index in range(1, 13):
    _MONTHS[calendar.month_name[_index].lower()] = _index
    _MONTHS[calendar.month_abbr[_index].lower()] = _index
_MONTHS["sept"] = 9


def _max_year() -> int:
    return date.today().year + 10


def is_plausible_year(year: int | None) -> bool:
    return year is not None and _MIN_YEAR <= year <= _max_year()


def _build(year: int, month: int | None, day: int | None, raw: str) -> PublicationDate:
    """Assemble a date, dropping components that do not form a real calendar date."""
    if month is not None and not 1 <= month <= 12:
        return PublicationDate(precision="year", year=year, raw=raw)
    if month is None:
        return PublicationDate(precision="year", year=year, raw=raw)
    if day is not None:
        if 1 <= day <= calendar.monthrange(year, month)[1]:
            return PublicationDate(precision="day", year=year, month=month, day=day, raw=raw)
    return PublicationDate(precision="month", year=year, month=month, raw=raw)


def parse_date_string(text: str) -> PublicationDate:
    """Parse "2001-05-12", "2001-05", "2001", "May 12, 2001", "12 May 2001", or "May 2001"."""
    raw = text
    text = text.strip()
    if not text:
        return PublicationDate(raw=raw)

    match = _ISO_DAY_RE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build(year, month, day, raw)
    match = _ISO_MONTH_RE.match(text)
    if match:
        return _build(int(match.group(1)), int(match.group(2)), None, raw)
    match = _YEAR_ONLY_RE.match(text)
    if match:
        return PublicationDate(precision="year", year=int(match.group(1)), raw=raw)
    match = _US_DAY_RE.match(text)
    if match:
        return _build(int(match.group(3)), int(match.group(1)), int(match.group(2)), raw)
    match = _MONTH_NAME_DAY_RE.match(text)
    if match and match.group(1).lower() in _MONTHS:
        return _build(int(match.group(3)), _MONTHS[match.group(1).lower()], int(match.group(2)), raw)
    match = _DAY_MONTH_NAME_RE.match(text)
    if match and match.group(2).lower() in _MONTHS:
        return _build(int(match.group(3)), _MONTHS[match.group(2).lower()], int(match.group(1)), raw)
    match = _MONTH_NAME_YEAR_RE.match(text)
    if match and match.group(1).lower() in _MONTHS:
        return _build(int(match.group(2)), _MONTHS[match.group(1).lower()], None, raw)

    match = _EMBEDDED_YEAR_RE.search(text)
    if match:
        return PublicationDate(precision="year", year=int(match.group(1)), raw=raw)
    return PublicationDate(raw=raw)


def _validate(value: PublicationDate) -> PublicationDate:
    if value.year is None:
        return PublicationDate(raw=value.raw)
    year = int(value.year)
    month = int(value.month) if value.month is not None else None
    day = int(value.day) if value.day is not None else None
    return _build(year, month, day, value.raw or "")


def normalize_date(value: str | date | PublicationDate) -> PublicationDate:
    if isinstance(value, PublicationDate):
        return _validate(value)
    if isinstance(value, date):
        return PublicationDate(
            precision="day", year=value.year, month=value.month, day=value.day, raw=value.isoformat()
        )
    return parse_date_string(value)


def date_key(value: PublicationDate) -> str:
    parts = []
    if value.year is not None:
        parts.append(f"{value.year:04d}")
    if value.month is not None:
        parts.append(f"{value.month:02d}")
    if value.day is not None:
        parts.append(f"{value.day:02d}")
    return "-".join(parts) or "unknown"


def dates_compatible(a: PublicationDate, b: PublicationDate) -> bool:
    """True when one date is a less precise prefix of the other, e.g. 1965 and 1965-08."""
    if a.year is None or b.year is None or a.year != b.year:
        return False
    if a.month is not None and b.month is not None and a.month != b.month:
        return False
    if a.day is not None and b.day is not None and a.day != b.day:
        return False
    return True


def date_confidence(value: PublicationDate, source: MetadataSource) -> float:
    confidence = source.reliability * DATE_PRECISION_FACTOR.get(value.precision, 0.3)
    if not is_plausible_year(value.year):
        confidence *= DATE_INVALID_YEAR_PENALTY
    return confidence


class DateReconciler:
    """Picks a publication date from competing claims of differing precision."""

    def reconcile(self, inputs: Sequence[PublicationInfoInput]) -> ReconciledField[PublicationDate]:
        if not inputs:
            msg = "No publication dates to reconcile"
            raise ReconciliationInputError(msg)

        normalized = [
            (normalize_date(item.date), item.source) for item in inputs if item.date is not None
        ]
        all_sources = tuple(source for _, source in normalized) or tuple(i.source for i in inputs)
        candidates = [pair for pair in normalized if pair[0].precision != "unknown"]

        if not candidates:
            value = normalized[0][0] if normalized else PublicationDate()
            return ReconciledField(
                value=value,
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="All dates have unknown precision, using first available",
            )

        candidates.sort(key=lambda pair: (-_PRECISION_RANK[pair[0].precision], -pair[1].reliability))

        # Each group's first member is its most precise, most reliable date.
        groups: list[list[tuple[PublicationDate, MetadataSource]]] = []
        for candidate in candidates:
            for group in groups:
                if dates_compatible(group[0][0], candidate[0]):
                    group.append(candidate)
                    break
            else:
                groups.append([candidate])

        best_group = max(groups, key=lambda g: sum(source.reliability for _, source in g))
        best_date, best_source = best_group[0]
        agreeing = len({source.name for _, source in best_group})
        confidence = date_confidence(best_date, best_source) + agreement_bonus(agreeing)

        conflicts: tuple[Conflict, ...] = ()
        if len(groups) > 1:
            conflicts = (
                Conflict(
                    field="publication_date",
                    values=tuple(ConflictValue(group[0][0], group[0][1]) for group in groups),
                    resolution="Preferred most specific date from most reliable source",
                ),
            )
            reasoning = "Resolved conflict by preferring most specific date from most reliable source"
        elif len(normalized) == 1:
            reasoning = "Single source"
        else:
            reasoning = "Selected most specific date from most reliable source"

        logger.debug("Selected date %s from %s", date_key(best_date), best_source.name)
        return ReconciledField(
            value=best_date,
            confidence=clamp_confidence(confidence),
            sources=all_sources,
            conflicts=conflicts,
            reasoning=reasoning,
        )
