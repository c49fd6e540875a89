# ABOUTME: Subject reconciliation: scheme detection, genre normalization, hierarchy, and dedup.
# ABOUTME: Understands BISAC, Dewey, LCC, and LCSH shapes plus a built-in genre vocabulary.

import logging
import re
from collections.abc import Sequence

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.similarity import string_similarity
from bibrecon.reconciliation.types import (
    Conflict,
    ConflictValue,
    EmptyInput,
    ReconciledField,
    Subject,
    SubjectInput,
)
from bibrecon.reconciliation.weights import (
    MIN_CONFIDENCE,
    SUBJECT_TYPE_ORDER,
    SUBJECT_TYPE_POINTS,
    agreement_bonus,
    average,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

_BISAC_RE = re.compile(r"^[A-Z]{3}\d{6}")
_DEWEY_RE = re.compile(r"^(\d{3})(\.\d+)?")
_LCC_RE = re.compile(r"^[A-Z]{1,3}\d+")
_LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
_DOUBLE_DASH_RE = re.compile(r"\s*--\s*")
_SEMICOLON_RE = re.compile(r"\s*;\s*")
_COMMA_RE = re.compile(r"\s*,\s*")
_SPECIAL_CHAR_RE = re.compile(r"[^\w\s\-;,&/+]")
_WHITESPACE_RE = re.compile(r"\s+")
_LCSH_SPLIT_RE = re.compile(r"\s*-+\s*")

_NEAR_DUPLICATE_THRESHOLD = 0.9

DEWEY_CLASSES: dict[str, tuple[str, ...]] = {
    "000": ("computer science", "information", "general knowledge"),
    "004": ("computer science", "computing", "data processing"),
    "020": ("library science", "information science"),
    "100": ("philosophy", "psychology"),
    "150": ("psychology", "mental health"),
    "170": ("ethics", "moral philosophy"),
    "200": ("religion", "theology"),
    "220": ("bible", "biblical studies"),
    "300": ("social sciences", "sociology"),
    "320": ("political science", "politics"),
    "330": ("economics", "finance"),
    "340": ("law",),
    "370": ("education",),
    "400": ("language", "linguistics"),
    "420": ("english language",),
    "500": ("science", "mathematics"),
    "510": ("mathematics",),
    "520": ("astronomy",),
    "530": ("physics",),
    "540": ("chemistry",),
    "570": ("biology", "life sciences"),
    "600": ("technology", "applied sciences"),
    "610": ("medicine", "health"),
    "620": ("engineering",),
    "640": ("home economics",),
    "650": ("management", "business"),
    "700": ("arts", "recreation"),
    "720": ("architecture",),
    "750": ("painting",),
    "770": ("photography",),
    "780": ("music",),
    "790": ("recreation", "sports"),
    "800": ("literature", "rhetoric"),
    "810": ("american literature",),
    "820": ("english literature",),
    "830": ("german literature",),
    "840": ("french literature",),
    "860": ("spanish literature",),
    "900": ("history", "geography"),
    "910": ("geography", "travel"),
    "920": ("biography",),
    "930": ("ancient history",),
    "940": ("european history",),
    "970": ("north american history",),
}

LCC_CLASSES: dict[str, tuple[str, ...]] = {
    "A": ("general works",),
    "B": ("philosophy", "psychology", "religion"),
    "C": ("auxiliary sciences of history",),
    "D": ("world history",),
    "E": ("history of america",),
    "F": ("history of america",),
    "G": ("geography", "anthropology", "recreation"),
    "H": ("social sciences",),
    "J": ("political science",),
    "K": ("law",),
    "L": ("education",),
    "M": ("music",),
    "N": ("fine arts",),
    "P": ("language", "literature"),
    "Q": ("science",),
    "R": ("medicine",),
    "S": ("agriculture",),
    "T": ("technology",),
    "U": ("military science",),
    "V": ("naval science",),
    "Z": ("bibliography", "library science"),
}

# Canonical genre -> recognized spellings.
GENRES: dict[str, tuple[str, ...]] = {
    "fiction": ("novel", "novels", "fiction", "literary fiction"),
    "mystery": ("mystery", "detective", "crime", "thriller", "suspense"),
    "romance": ("romance", "love story", "romantic fiction"),
    "science fiction": ("science fiction", "sci-fi", "sf", "speculative fiction"),
    "fantasy": ("fantasy", "epic fantasy", "urban fantasy", "magical realism"),
    "horror": ("horror", "supernatural", "gothic", "dark fantasy"),
    "historical fiction": ("historical fiction", "historical novel", "period fiction"),
    "young adult": ("young adult", "ya", "teen fiction", "juvenile fiction"),
    "children": ("children", "juvenile", "kids", "picture book"),
    "biography": ("biography", "autobiography", "memoir"),
    "history": ("history", "historical"),
    "science": ("science", "scientific"),
    "self-help": ("self-help", "self improvement", "personal development"),
    "business": ("business", "management", "entrepreneurship"),
    "health": ("health", "wellness", "fitness"),
    "cooking": ("cooking", "recipes", "culinary"),
    "travel": ("travel", "guidebook", "tourism"),
    "adventure": ("adventure",),
    "art": ("art", "visual arts", "design"),
    "music": ("music", "musical", "songs"),
    "sports": ("sports", "athletics"),
    "religion": ("religion", "spiritual", "faith", "theology"),
    "philosophy": ("philosophy", "philosophical", "ethics", "logic"),
    "poetry": ("poetry", "poems", "verse"),
    "drama": ("drama", "plays", "theater"),
    "essay": ("essay", "essays"),
    "nonfiction": ("nonfiction", "non-fiction"),
    "reference": ("reference", "dictionary", "encyclopedia", "handbook"),
    "textbook": ("textbook", "academic", "study guide"),
}

SUBJECT_ALIASES: dict[str, str] = {
    "sci-fi": "science fiction",
    "sf": "science fiction",
    "ya": "young adult",
    "non-fiction": "nonfiction",
    "self-improvement": "self-help",
    "cook book": "cookbook",
    "guide book": "guidebook",
    "text book": "textbook",
    "how-to": "how to",
    "diy": "do it yourself",
    "wwii": "world war ii",
    "ww2": "world war ii",
    "wwi": "world war i",
    "ww1": "world war i",
    "usa": "united states",
    "uk": "united kingdom",
    "us history": "american history",
}


def _genre_for(name: str) -> str | None:
    for canonical, spellings in GENRES.items():
        if name in spellings:
            return canonical
    return None


def normalize_subject_name(name: str) -> str:
    """Lowercase, tidy separators, apply aliases, and fold genre spellings to their canonical form."""
    if not name:
        return ""
    normalized = _LEADING_ARTICLE_RE.sub("", name.lower().strip())
    normalized = _DOUBLE_DASH_RE.sub(" - ", normalized)
    normalized = _SEMICOLON_RE.sub("; ", normalized)
    normalized = _COMMA_RE.sub(", ", normalized)
    normalized = _SPECIAL_CHAR_RE.sub(" ", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip()

    normalized = SUBJECT_ALIASES.get(normalized, normalized)

    genre = _genre_for(normalized)
    if genre is not None:
        return genre
    for canonical, spellings in GENRES.items():
        if any(string_similarity(normalized, s) > _NEAR_DUPLICATE_THRESHOLD for s in spellings):
            return canonical
    return normalized


def detect_scheme(value: str) -> str:
    if _BISAC_RE.match(value):
        return "bisac"
    if _DEWEY_RE.match(value):
        return "dewey"
    if _LCC_RE.match(value):
        return "lcc"
    if " -- " in value or " - " in value:
        return "lcsh"
    return "unknown"


def detect_subject_type(name: str) -> str:
    lowered = name.lower().strip()
    if _genre_for(lowered) is not None or _genre_for(SUBJECT_ALIASES.get(lowered, "")) is not None:
        return "genre"
    words = lowered.split()
    if len(words) == 1 and len(lowered) < 15:
        return "tag"
    if len(words) <= 3 and len(lowered) < 30:
        return "keyword"
    return "subject"


def hierarchy_from_code(code: str, scheme: str) -> tuple[str, ...]:
    """Broader-to-narrower headings for a Dewey or LCC class code."""
    hierarchy: list[str] = []
    if scheme == "dewey":
        match = _DEWEY_RE.match(code)
        if not match:
            return ()
        section = match.group(1)
        division = section[:2] + "0"
        main_class = section[:1] + "00"
        hierarchy.extend(DEWEY_CLASSES.get(main_class, ()))
        if division != main_class:
            hierarchy.extend(DEWEY_CLASSES.get(division, ()))
        if section != division:
            hierarchy.extend(DEWEY_CLASSES.get(section, ()))
    elif scheme == "lcc":
        hierarchy.extend(LCC_CLASSES.get(code[:1], ()))
    return tuple(hierarchy)


def hierarchy_from_name(name: str, scheme: str) -> tuple[str, ...]:
    if scheme == "lcsh":
        return tuple(part for part in _LCSH_SPLIT_RE.split(name) if part)
    if scheme in ("dewey", "lcc"):
        return hierarchy_from_code(name, scheme)
    normalized = normalize_subject_name(name)
    raw = _WHITESPACE_RE.sub(" ", name.lower().strip())
    genre = _genre_for(SUBJECT_ALIASES.get(raw, raw))
    if genre is not None and genre != raw:
        return (genre, raw)
    return (normalized,)


def normalize_subject(value: str | Subject) -> Subject:
    """Fill in normalized name, scheme, hierarchy, and type for a raw or partial subject."""
    if isinstance(value, Subject):
        scheme = value.scheme
        if not scheme:
            scheme = detect_scheme(value.code) if value.code else detect_scheme(value.name)
        hierarchy = value.hierarchy
        if not hierarchy:
            if value.code:
                hierarchy = hierarchy_from_code(value.code, scheme)
            else:
                hierarchy = hierarchy_from_name(value.name, scheme)
        return Subject(
            name=value.name,
            normalized=value.normalized or normalize_subject_name(value.name),
            scheme=scheme,
            code=value.code,
            hierarchy=hierarchy,
            type=value.type or detect_subject_type(value.name),
        )
    scheme = detect_scheme(value)
    return Subject(
        name=value,
        normalized=normalize_subject_name(value),
        scheme=scheme,
        hierarchy=hierarchy_from_name(value, scheme),
        type=detect_subject_type(value),
    )


def subject_quality(subject: Subject) -> float:
    score = 0.0
    if subject.name and subject.name.strip():
        score += 1
    if subject.normalized and subject.normalized != subject.name.lower():
        score += 0.5
    if subject.scheme and subject.scheme != "unknown":
        score += 1
    if subject.code:
        score += 0.5
    if len(subject.hierarchy) > 1:
        score += 0.5
    score += SUBJECT_TYPE_POINTS.get(subject.type or "", 0.0)
    return score


def _key(subject: Subject) -> str:
    return subject.normalized or subject.name.lower()


class SubjectReconciler:
    """Merges subject headings, genres, and tags from many sources into one ordered list."""

    def reconcile(self, inputs: Sequence[SubjectInput]) -> ReconciledField[tuple[Subject, ...]]:
        if not inputs:
            msg = "No subjects to reconcile"
            raise ReconciliationInputError(msg)

        all_sources = tuple(item.source for item in inputs)
        collected: list[tuple[Subject, MetadataSource]] = []
        per_source: dict[str, set[str]] = {}
        for item in inputs:
            for raw in item.subjects:
                name = raw.name if isinstance(raw, Subject) else raw
                if not name or not name.strip():
                    continue
                subject = normalize_subject(raw)
                collected.append((subject, item.source))
                per_source.setdefault(item.source.name, set()).add(_key(subject))

        if not collected:
            return ReconciledField(
                value=(),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No valid subjects found",
            )

        merged = self._deduplicate(collected)
        merged.sort(key=lambda pair: (-pair[0][1].reliability, -subject_quality(pair[0][0])))
        merged.sort(key=lambda pair: SUBJECT_TYPE_ORDER.get(pair[0][0].type or "subject", 0))
        subjects = tuple(subject for (subject, _), _ in merged)
        top_support = len(merged[0][1])

        conflicts: list[Conflict] = []
        if len(per_source) > 1 and len({frozenset(keys) for keys in per_source.values()}) > 1:
            by_name = {source.name: source for source in all_sources}
            conflicts.append(
                Conflict(
                    field="subjects",
                    values=tuple(
                        ConflictValue(tuple(sorted(keys)), by_name[name])
                        for name, keys in per_source.items()
                    ),
                    resolution=(
                        "Merged and deduplicated subjects from all sources, "
                        "prioritizing by source reliability"
                    ),
                )
            )

        supporting = [kept_source.reliability for (_, kept_source), _ in merged]
        confidence = self._confidence(subjects, supporting) + agreement_bonus(top_support)
        return ReconciledField(
            value=subjects,
            confidence=clamp_confidence(confidence),
            sources=all_sources,
            conflicts=tuple(conflicts),
            reasoning=(
                "Merged and deduplicated subjects from multiple sources with conflict resolution"
                if conflicts
                else "Merged and deduplicated subjects from all sources"
            ),
        )

    def try_reconcile(
        self, inputs: Sequence[SubjectInput]
    ) -> ReconciledField[tuple[Subject, ...]] | EmptyInput:
        if not inputs:
            return EmptyInput("No subjects to reconcile")
        return self.reconcile(inputs)

    def _deduplicate(
        self, collected: list[tuple[Subject, MetadataSource]]
    ) -> list[tuple[tuple[Subject, MetadataSource], set[str]]]:
        """Fold exact and near-duplicate subjects, keeping the most reliable source's spelling.

        Each entry carries the names of every source that supplied the subject.
        """
        merged: list[tuple[tuple[Subject, MetadataSource], set[str]]] = []
        for subject, source in collected:
            key = _key(subject)
            for index, ((kept, kept_source), supporters) in enumerate(merged):
                if key == _key(kept) or string_similarity(key, _key(kept)) > _NEAR_DUPLICATE_THRESHOLD:
                    supporters.add(source.name)
                    if source.reliability > kept_source.reliability:
                        merged[index] = ((subject, source), supporters)
                    break
            else:
                merged.append(((subject, source), {source.name}))
        return merged

    def _confidence(self, subjects: tuple[Subject, ...], supporting: list[float]) -> float:
        """Scored from the reliability behind each kept subject, so agreeing sources never dilute it."""
        confidence = average(supporting)
        if len(subjects) >= 5:
            confidence *= 1.1
        elif len(subjects) >= 3:
            confidence *= 1.05
        elif len(subjects) == 1:
            confidence *= 0.9
        confidence *= 0.7 + average([subject_quality(s) for s in subjects]) / 10
        classified = sum(1 for s in subjects if s.scheme and s.scheme != "unknown")
        if classified:
            confidence *= 1 + (classified / len(subjects)) * 0.2
        logger.debug("Subject confidence %.3f over %d subjects", confidence, len(subjects))
        return confidence
