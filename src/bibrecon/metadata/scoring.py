# ABOUTME: Confidence scoring for provider search hits against the search terms.
# ABOUTME: Weighted title/author/ISBN similarity plus a small completeness bonus.

import re
from difflib import SequenceMatcher

from bibrecon.metadata.types import MetadataRecord

# Match weights — must sum to 1.0
_WEIGHT_TITLE = 0.5
_WEIGHT_AUTHOR = 0.3
_WEIGHT_ISBN = 0.2

# Completeness bonus — max added on top of the match score.
_COMPLETENESS_BONUS = 0.10

# Per-field weights within the completeness bonus (must sum to 1.0).
_COMPLETENESS_FIELDS: dict[str, float] = {
    "description": 0.30,
    "isbn": 0.30,
    "authors": 0.15,
    "publication_date": 0.10,
    "language": 0.10,
    "publisher": 0.05,
}

_ISBN_STRIP_RE = re.compile(r"[\s-]")


def normalize_author(name: str) -> str:
    """Normalize 'Last, First' to 'First Last' and lowercase."""
    name = name.strip().lower()
    if "," in name:
        parts = [p.strip() for p in name.split(",", 1)]
        name = f"{parts[1]} {parts[0]}"
    return name


def string_similarity(a: str, b: str) -> float:
    """Case-insensitive string similarity using SequenceMatcher."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a.lower(), b.lower()).ratio()


def score_record(
    record: MetadataRecord,
    title: str | None = None,
    author: str | None = None,
    isbn: str | None = None,
) -> float:
    """Score how well a provider hit matches the search terms.

    Only the terms actually searched for contribute; their weights are
    renormalized so a title-only search can still reach 1.0.
    Returns a float clamped to [0.0, 1.0].
    """
    score = 0.0
    weight_total = 0.0

    if title:
        weight_total += _WEIGHT_TITLE
        score += _WEIGHT_TITLE * string_similarity(title, record.title or "")

    if author:
        weight_total += _WEIGHT_AUTHOR
        candidate_authors = " ".join(normalize_author(a) for a in record.authors)
        score += _WEIGHT_AUTHOR * string_similarity(normalize_author(author), candidate_authors)

    if isbn:
        weight_total += _WEIGHT_ISBN
        wanted = _ISBN_STRIP_RE.sub("", isbn)
        if any(_ISBN_STRIP_RE.sub("", i) == wanted for i in record.isbn):
            score += _WEIGHT_ISBN

    match = score / weight_total if weight_total else 0.5
    return max(0.0, min(1.0, match * (1 - _COMPLETENESS_BONUS) + completeness_bonus(record)))


def completeness_bonus(record: MetadataRecord) -> float:
    """Calculate a small bonus based on how many metadata fields are populated.

    Rewards richer records so they float above sparse stubs when match scores
    are otherwise tied. Returns a value in [0.0, _COMPLETENESS_BONUS].
    """
    filled = 0.0
    for field_name, weight in _COMPLETENESS_FIELDS.items():
        if getattr(record, field_name, None):
            filled += weight
    return _COMPLETENESS_BONUS * filled
