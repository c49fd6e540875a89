# ABOUTME: String and set similarity measures used for grouping and duplicate detection.
# ABOUTME: SequenceMatcher ratio for strings, Jaccard index for sets of tokens or values.

import re
from collections.abc import Iterable
from difflib import SequenceMatcher

_WORD_RE = re.compile(r"\w+")


def string_similarity(a: str, b: str) -> float:
    """Case-insensitive string similarity using SequenceMatcher."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    a = a.strip().lower()
    b = b.strip().lower()
    if a == b:
        return 1.0
    return SequenceMatcher(None, a, b).ratio()


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard index of two collections; two empty collections are identical."""
    set_a = set(a)
    set_b = set(b)
    if not set_a and not set_b:
        return 1.0
    union = set_a | set_b
    return len(set_a & set_b) / len(union)


def word_jaccard(a: str, b: str, min_length: int = 4) -> float:
    """Jaccard index over lowercase words of at least min_length characters."""
    words_a = {w for w in _WORD_RE.findall(a.lower()) if len(w) >= min_length}
    words_b = {w for w in _WORD_RE.findall(b.lower()) if len(w) >= min_length}
    return jaccard(words_a, words_b)
