# ABOUTME: Title cleanup before duplicate comparison (CamelCase, concatenated words, articles).
# ABOUTME: Splits mangled titles like "TheLordOfTheRings" so they compare equal to clean ones.

import re

import wordninja

# Spaceless strings shorter than this (e.g. "Dune", "1984") are left alone.
_MIN_CONCAT_LENGTH = 8

_CAMEL_CASE_RE = re.compile(r"[a-z][A-Z]")
_CAMEL_LOWER_UPPER_RE = re.compile(r"([a-z\d])([A-Z])")
_CAMEL_UPPER_SEQUENCE_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LETTER_DIGIT_RE = re.compile(r"([a-zA-Z])(\d)")
_DIGIT_LETTER_RE = re.compile(r"(\d)([a-zA-Z])")
_SEPARATOR_RE = re.compile(r"[-_]")
_LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_SUBTITLE_RE = re.compile(r"\s*[:;]\s+.*$")


def needs_splitting(text: str) -> bool:
    """Whether a title looks like joined words: underscores, CamelCase, or long spaceless runs."""
    text = text.strip()
    if not text:
        return False
    if "_" in text:
        return True
    if _CAMEL_CASE_RE.search(text):
        return True
    segments = text.split("-") if "-" in text else [text]
    return any(" " not in seg and len(seg) >= _MIN_CONCAT_LENGTH for seg in segments)


def _split_camel_case(text: str) -> list[str]:
    result = _CAMEL_LOWER_UPPER_RE.sub(r"\1_SPLIT_\2", text)
    result = _CAMEL_UPPER_SEQUENCE_RE.sub(r"\1_SPLIT_\2", result)
    result = _LETTER_DIGIT_RE.sub(r"\1_SPLIT_\2", result)
    result = _DIGIT_LETTER_RE.sub(r"\1_SPLIT_\2", result)
    parts = [p for p in result.split("_SPLIT_") if p]
    return parts if parts else [text]


def split_concatenated(text: str) -> str:
    """Split a concatenated title into space-separated words.

    Hyphens and underscores separate segments, CamelCase boundaries split
    each segment, and long all-lowercase runs go through wordninja.
    """
    if not needs_splitting(text):
        return text

    words: list[str] = []
    for segment in _SEPARATOR_RE.split(text):
        segment = segment.strip()
        if not segment:
            continue
        for part in _split_camel_case(segment):
            if part.islower() and len(part) >= _MIN_CONCAT_LENGTH:
                words.extend(wordninja.split(part) or [part])
            else:
                words.append(part)
    return " ".join(words)


def comparison_title(title: str, drop_subtitle: bool = False) -> str:
    """Lowercased, article-free, punctuation-free form of a title for similarity checks."""
    if not title:
        return ""
    text = split_concatenated(title.strip())
    if drop_subtitle:
        text = _SUBTITLE_RE.sub("", text)
    text = _PUNCTUATION_RE.sub(" ", text.lower())
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return _LEADING_ARTICLE_RE.sub("", text)


def comparison_name(name: str) -> str:
    """Normalize an author name so "Herbert, Frank" and "Frank Herbert" compare equal."""
    if "," in name:
        last, _, first = name.partition(",")
        name = f"{first.strip()} {last.strip()}"
    text = _PUNCTUATION_RE.sub(" ", name.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()
