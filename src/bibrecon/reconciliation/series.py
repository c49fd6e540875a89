# ABOUTME: Series, work/edition, and collection reconciliation.
# ABOUTME: Extracts series name and volume from free text and merges similar series across sources.

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import replace

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.identifiers import normalize_isbn
from bibrecon.reconciliation.similarity import string_similarity
from bibrecon.reconciliation.types import (
    Collection,
    CollectionInput,
    EmptyInput,
    Edition,
    EditionComparison,
    Identifier,
    ReconciledField,
    ReconciledWorkEdition,
    RelatedWork,
    Series,
    SeriesInput,
    Work,
    WorkCluster,
    WorkEditionInput,
)
from bibrecon.reconciliation.weights import (
    MIN_CONFIDENCE,
    agreement_bonus,
    average,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

_VOLUME_WORD = r"(?:book|bk\.?|vol\.?|volume|part|pt\.?|no\.?|number|#)"
_VOLUME_VALUE = r"(\d+(?:\.\d+)?|[ivxlc]+)"
_ORDINAL = (
    r"(first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth|\d+(?:st|nd|rd|th))"
)

# (pattern, name group, volume group); order matters.
_SERIES_PATTERNS: tuple[tuple[re.Pattern[str], int, int | None], ...] = (
    (re.compile(rf"^(.+?),\s*{_VOLUME_WORD}\s*{_VOLUME_VALUE}$", re.IGNORECASE), 1, 2),
    (re.compile(rf"^(.+?)\s*\(\s*{_VOLUME_WORD}\s*{_VOLUME_VALUE}\s*\)$", re.IGNORECASE), 1, 2),
    (re.compile(rf"^(.+?)\s+{_VOLUME_WORD}\s*{_VOLUME_VALUE}$", re.IGNORECASE), 1, 2),
    (re.compile(rf"^{_VOLUME_WORD}\s*{_VOLUME_VALUE}\s+of\s+(?:the\s+)?(.+)$", re.IGNORECASE), 2, 1),
    (re.compile(rf"^(.+?)\s+{_ORDINAL}\s+(?:book|volume|part)$", re.IGNORECASE), 1, 2),
    (re.compile(rf"^(?:the\s+)?{_ORDINAL}\s+(?:book|volume|part)\s+of\s+(?:the\s+)?(.+)$", re.IGNORECASE), 2, 1),
    (re.compile(r"^(.+?):\s*.+$"), 1, None),
)

_ARTICLE_RE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
_SERIES_SUFFIX_RE = re.compile(r"\s+(series|saga|cycle|trilogy|sequence)$", re.IGNORECASE)
_SPECIAL_CHAR_RE = re.compile(r"[^\w\s&'-]")
_TITLE_SPECIAL_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_ORDINAL_SUFFIX_RE = re.compile(r"^(\d+)(?:st|nd|rd|th)$")
_ROMAN_RE = re.compile(r"^[ivxlc]+$")

_ORDINAL_WORDS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
    "tenth": 10,
}
_ROMAN_VALUES = {"i": 1, "v": 5, "x": 10, "l": 50, "c": 100}

_SERIES_SIMILARITY = 0.8
_RELATED_TITLE_SIMILARITY = 0.6

_TITLE_MATCH_THRESHOLD = 0.85
_MIN_AUTHOR_MATCHES = 1
# Strongest evidence that joined a cluster decides how its work was identified.
_METHOD_RANK = {"single_edition": 0, "title_author_match": 1, "isbn_family": 2, "external_id": 3}

RELATIONSHIP_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sequel": ("sequel", "continuation", "follows"),
    "prequel": ("prequel", "precedes", "origin", "backstory"),
    "companion": ("companion", "spin-off", "spinoff", "side story"),
    "adaptation": ("adaptation", "adapted from", "based on", "tie-in"),
    "translation": ("translation", "translated from", "translated by"),
    "revision": ("revision", "revised", "updated", "new edition", "expanded"),
    "anthology_contains": ("anthology of", "collection of", "contains", "includes"),
    "collection_contains": ("collected in", "omnibus"),
    "part_of": ("part of", "volume in", "book in series"),
}


def parse_roman_numeral(text: str) -> int | None:
    text = text.lower()
    if not _ROMAN_RE.match(text):
        return None
    total = 0
    previous = 0
    for char in reversed(text):
        value = _ROMAN_VALUES[char]
        if value < previous:
            total -= value
        else:
            total += value
            previous = value
    return total or None


def parse_volume(text: str | float | None) -> float | None:
    """Volume number from "3", "2.5", "iii", "third", or "3rd"."""
    if text is None or isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        return float(text)
    lowered = text.strip().lower()
    if not lowered:
        return None
    if lowered in _ORDINAL_WORDS:
        return float(_ORDINAL_WORDS[lowered])
    match = _ORDINAL_SUFFIX_RE.match(lowered)
    if match:
        return float(match.group(1))
    try:
        return float(lowered)
    except ValueError:
        roman = parse_roman_numeral(lowered)
        return float(roman) if roman else None


def normalize_series_name(name: str) -> str:
    if not name:
        return ""
    normalized = _ARTICLE_RE.sub("", name.strip())
    normalized = _SERIES_SUFFIX_RE.sub("", normalized)
    normalized = _SPECIAL_CHAR_RE.sub(" ", normalized)
    return _WHITESPACE_RE.sub(" ", normalized).strip().lower()


def normalize_title(title: str) -> str:
    if not title:
        return ""
    normalized = _ARTICLE_RE.sub("", title.lower().strip())
    normalized = _TITLE_SPECIAL_RE.sub(" ", normalized)
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def extract_series_info(text: str) -> tuple[str, float | None]:
    """Split free text such as "Dune Chronicles, Book 1" into (name, volume)."""
    trimmed = text.strip()
    for pattern, name_group, volume_group in _SERIES_PATTERNS:
        match = pattern.match(trimmed)
        if not match:
            continue
        name = match.group(name_group).strip()
        if volume_group is None:
            return name, None
        volume = parse_volume(match.group(volume_group))
        if volume is not None:
            return name, volume
    return trimmed, None


def detect_series_type(name: str, volume: float | str | None) -> str:
    lowered = name.lower()
    if "anthology" in lowered:
        return "anthology"
    if any(word in lowered for word in ("collection", "omnibus", "complete")):
        return "collection"
    if volume is not None:
        return "numbered"
    if any(word in lowered for word in ("chronicles", "saga", "cycle")):
        return "chronological"
    return "unknown"


def normalize_series(value: str | Series) -> Series:
    if isinstance(value, Series):
        volume = parse_volume(value.volume) if isinstance(value.volume, str) else value.volume
        return Series(
            name=value.name,
            normalized=value.normalized or normalize_series_name(value.name),
            volume=volume,
            position=value.position,
            total_volumes=value.total_volumes,
            series_type=value.series_type or detect_series_type(value.name, volume),
            description=value.description,
            identifiers=value.identifiers,
            raw=value.raw or value.name,
        )
    name, volume = extract_series_info(value)
    return Series(
        name=name,
        normalized=normalize_series_name(name),
        volume=volume,
        series_type=detect_series_type(name, volume),
        raw=value.strip(),
    )


def series_similarity(a: str, b: str) -> float:
    return string_similarity(normalize_series_name(a), normalize_series_name(b))


def detect_relationship(text: str) -> str | None:
    """Relationship type implied by a phrase such as "sequel to" or "collected in"."""
    lowered = text.lower()
    for relationship, keywords in RELATIONSHIP_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return relationship
    return None


def _merge_identifiers(
    kept: tuple[Identifier, ...], extra: tuple[Identifier, ...]
) -> tuple[Identifier, ...]:
    merged = list(kept)
    for identifier in extra:
        if not any(i.type == identifier.type and i.value == identifier.value for i in merged):
            merged.append(identifier)
    return tuple(merged)


def _merge_unique(kept: tuple[str, ...], extra: tuple[str, ...]) -> tuple[str, ...]:
    return kept + tuple(item for item in extra if item not in kept)


def _series_completeness(series: Series) -> float:
    score = 0.2
    if series.volume is not None:
        score += 0.2
    if series.series_type and series.series_type != "unknown":
        score += 0.2
    if series.total_volumes:
        score += 0.2
    if series.identifiers:
        score += 0.2
    return score


def _group_support(groups: Sequence[Sequence[tuple[object, MetadataSource]]]) -> list[float]:
    """Reliability of each group's strongest supporter."""
    return [max(source.reliability for _, source in group) for group in groups]


def _normalize_author(name: str) -> str:
    """'Orwell, George' and 'George Orwell' normalize alike."""
    if "," in name:
        last, first = name.split(",", 1)
        name = f"{first} {last}"
    return _WHITESPACE_RE.sub(" ", _TITLE_SPECIAL_RE.sub(" ", name.lower())).strip()


def _shares_isbn(first: Sequence[str], second: Sequence[str]) -> bool:
    """True if the editions share an ISBN, counting ISBN-10 and ISBN-13 forms as one."""
    return bool({normalize_isbn(i) for i in first} & {normalize_isbn(i) for i in second})


def compare_editions(
    first: Edition,
    second: Edition,
    *,
    title_threshold: float = _TITLE_MATCH_THRESHOLD,
    min_author_matches: int = _MIN_AUTHOR_MATCHES,
    translations_are_separate_works: bool = False,
) -> EditionComparison:
    """Decide whether two editions are manifestations of the same work.

    A shared work id is the strongest signal, then a shared ISBN in either form,
    then a close title with enough shared authors. A title and author match in
    another language is a translation, which stays in the same work unless
    translations_are_separate_works is set.
    """
    title_similarity = string_similarity(
        normalize_title(first.title or ""), normalize_title(second.title or "")
    )
    author_overlap = len(
        {_normalize_author(a) for a in first.authors} & {_normalize_author(a) for a in second.authors}
    )
    external_id_match = bool(first.work_id and first.work_id == second.work_id)
    language_match = first.language == second.language
    isbn_family = _shares_isbn(first.isbn, second.isbn)

    def result(same: bool, confidence: float, relationship: str | None = None) -> EditionComparison:
        return EditionComparison(
            is_same_work=same,
            confidence=confidence,
            title_similarity=title_similarity,
            author_overlap=author_overlap,
            external_id_match=external_id_match,
            language_match=language_match,
            isbn_family=isbn_family,
            relationship=relationship,
        )

    if external_id_match:
        return result(True, 0.95)
    if isbn_family:
        return result(True, 0.9)
    if title_similarity >= title_threshold and author_overlap >= min_author_matches:
        if not language_match:
            if translations_are_separate_works:
                return result(False, 0.85, "translation")
            return result(True, 0.85)
        return result(True, 0.8)
    return result(False, 0.3, "unrelated")


def _join_method(comparison: EditionComparison) -> str:
    if comparison.external_id_match:
        return "external_id"
    if comparison.isbn_family:
        return "isbn_family"
    return "title_author_match"


def _cluster_indices(
    editions: Sequence[Edition], translations_are_separate_works: bool
) -> list[tuple[list[int], float, str]]:
    """Group edition positions by work as (positions, confidence, method), best first."""
    clusters: list[tuple[list[int], float, str]] = []
    assigned: set[int] = set()
    for i, anchor in enumerate(editions):
        if i in assigned:
            continue
        assigned.add(i)
        members, confidence, method = [i], 1.0, "single_edition"
        for j in range(i + 1, len(editions)):
            if j in assigned:
                continue
            comparison = compare_editions(
                anchor,
                editions[j],
                translations_are_separate_works=translations_are_separate_works,
            )
            if not comparison.is_same_work:
                continue
            assigned.add(j)
            members.append(j)
            confidence = min(confidence, comparison.confidence)
            method = max(method, _join_method(comparison), key=_METHOD_RANK.__getitem__)
        clusters.append((members, confidence, method))
    clusters.sort(key=lambda cluster: -cluster[1])
    return clusters


def _edition_work(edition: Edition) -> Work:
    title = edition.title or ""
    return Work(
        title=title,
        id=edition.work_id,
        normalized=normalize_title(title),
        original_language=edition.language,
        first_published=edition.publication_date,
        authors=edition.authors,
        identifiers=edition.identifiers,
    )


def cluster_editions_by_work(
    editions: Sequence[Edition], *, translations_are_separate_works: bool = False
) -> list[WorkCluster]:
    """Group editions that represent the same work, most confident cluster first.

    Each cluster is anchored on its first edition; later editions join the first
    anchor they match. Cluster confidence is the weakest match that formed it.
    """
    return [
        WorkCluster(
            work=_edition_work(editions[members[0]]),
            editions=tuple(editions[i] for i in members),
            confidence=confidence,
            identification_method=method,
        )
        for members, confidence, method in _cluster_indices(
            editions, translations_are_separate_works
        )
    ]


def _volume_sort_key(series: Series) -> tuple[int, float, str]:
    volume = series.volume if isinstance(series.volume, (int, float)) else parse_volume(series.volume)
    if volume is None:
        return (1, 0.0, series.normalized or series.name)
    return (0, float(volume), series.normalized or series.name)


class SeriesReconciler:
    """Merges series claims and, separately, work, edition, and collection claims.

    When translations_are_separate_works is set, editions in another language
    form their own work and are reported as related translations.
    """

    def __init__(self, translations_are_separate_works: bool = False) -> None:
        self._translations_are_separate_works = translations_are_separate_works

    def reconcile(self, inputs: Sequence[SeriesInput]) -> ReconciledField[tuple[Series, ...]]:
        if not inputs:
            msg = "No series inputs to reconcile"
            raise ReconciliationInputError(msg)

        all_sources = tuple(item.source for item in inputs)
        collected: list[tuple[Series, MetadataSource]] = []
        for item in inputs:
            for raw in item.series:
                series = normalize_series(raw)
                if series.name.strip():
                    collected.append((series, item.source))

        if not collected:
            return ReconciledField(
                value=(),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No valid series information found",
            )

        groups: list[list[tuple[Series, MetadataSource]]] = []
        for series, source in collected:
            for group in groups:
                if series_similarity(series.name, group[0][0].name) > _SERIES_SIMILARITY:
                    group.append((series, source))
                    break
            else:
                groups.append([(series, source)])

        merged = sorted((self._merge_group(group) for group in groups), key=_volume_sort_key)
        top_support = max(len({source.name for _, source in group}) for group in groups)

        confidence = average(_group_support(groups)) * average([_series_completeness(s) for s in merged])
        return ReconciledField(
            value=tuple(merged),
            confidence=clamp_confidence(confidence + agreement_bonus(top_support)),
            sources=all_sources,
            reasoning=f"Reconciled {len(merged)} series from {len(inputs)} sources",
        )

    def try_reconcile(
        self, inputs: Sequence[SeriesInput]
    ) -> ReconciledField[tuple[Series, ...]] | EmptyInput:
        if not inputs:
            return EmptyInput("No series inputs to reconcile")
        return self.reconcile(inputs)

    def _merge_group(self, group: list[tuple[Series, MetadataSource]]) -> Series:
        """The most reliable source's series with gaps filled from the others."""
        ordered = sorted(group, key=lambda pair: -pair[1].reliability)
        merged = ordered[0][0]
        for other, _ in ordered[1:]:
            merged = replace(
                merged,
                volume=merged.volume if merged.volume is not None else other.volume,
                position=merged.position if merged.position is not None else other.position,
                total_volumes=merged.total_volumes or other.total_volumes,
                series_type=(
                    other.series_type
                    if merged.series_type in (None, "unknown") and other.series_type
                    else merged.series_type
                ),
                description=merged.description or other.description,
                identifiers=_merge_identifiers(merged.identifiers, other.identifiers),
            )
        return merged

    def reconcile_work_edition(self, inputs: Sequence[WorkEditionInput]) -> ReconciledWorkEdition:
        if not inputs:
            msg = "No work/edition inputs to reconcile"
            raise ReconciliationInputError(msg)

        works = [(item.work, item.source) for item in inputs if item.work is not None]
        editions = [(item.edition, item.source) for item in inputs if item.edition is not None]
        related = [(rw, item.source) for item in inputs for rw in item.related_works]

        editions, translations = self._primary_work_editions(editions)
        work = self._reconcile_work(works)
        return ReconciledWorkEdition(
            work=work,
            edition=self._reconcile_edition(editions, work.value),
            related_works=self._reconcile_related_works(related + translations),
        )

    def _primary_work_editions(
        self, editions: list[tuple[Edition, MetadataSource]]
    ) -> tuple[list[tuple[Edition, MetadataSource]], list[tuple[RelatedWork, MetadataSource]]]:
        """Editions of the best-supported work, plus translations among the other clusters."""
        if len(editions) < 2:
            return editions, []
        clusters = _cluster_indices([e for e, _ in editions], self._translations_are_separate_works)
        primary = max(clusters, key=lambda c: c[1] * math.log(len(c[0]) + 1))
        anchor = editions[primary[0][0]][0]

        translations: list[tuple[RelatedWork, MetadataSource]] = []
        for cluster in clusters:
            if cluster is primary:
                continue
            other, source = editions[cluster[0][0]]
            comparison = compare_editions(
                anchor,
                other,
                translations_are_separate_works=self._translations_are_separate_works,
            )
            if comparison.relationship == "translation":
                translations.append(
                    (
                        RelatedWork(
                            title=other.title or "",
                            relationship_type="translation",
                            work_id=other.work_id,
                            description=f"Translation from {anchor.language} to {other.language}",
                            confidence=comparison.confidence,
                        ),
                        source,
                    )
                )
        if len(clusters) > 1:
            logger.debug(
                "Editions form %d works; keeping %d editions of the primary one",
                len(clusters),
                len(primary[0]),
            )
        return [editions[i] for i in primary[0]], translations

    def _reconcile_work(self, works: list[tuple[Work, MetadataSource]]) -> ReconciledField[Work]:
        if not works:
            return ReconciledField(
                value=Work(title="", type="other"),
                confidence=MIN_CONFIDENCE,
                reasoning="No work information available",
            )
        ordered = sorted(works, key=lambda pair: -pair[1].reliability)
        primary = ordered[0][0]
        merged = replace(
            primary,
            normalized=primary.normalized or normalize_title(primary.title),
            type=primary.type or "other",
        )
        for other, _ in ordered[1:]:
            merged = replace(
                merged,
                type=other.type if merged.type == "other" and other.type else merged.type,
                original_language=merged.original_language or other.original_language,
                first_published=merged.first_published or other.first_published,
                authors=_merge_unique(merged.authors, other.authors),
                identifiers=_merge_identifiers(merged.identifiers, other.identifiers),
            )

        completeness = 0.2
        if merged.type and merged.type != "other":
            completeness += 0.2
        if merged.authors:
            completeness += 0.2
        if merged.first_published:
            completeness += 0.2
        if merged.identifiers:
            completeness += 0.2
        sources = tuple(source for _, source in ordered)
        confidence = ordered[0][1].reliability * completeness
        return ReconciledField(
            value=merged,
            confidence=clamp_confidence(confidence),
            sources=sources,
            reasoning=f"Reconciled work from {len(sources)} sources",
        )

    def _reconcile_edition(
        self, editions: list[tuple[Edition, MetadataSource]], work: Work
    ) -> ReconciledField[Edition]:
        if not editions:
            return ReconciledField(
                value=Edition(work_id=work.id),
                confidence=MIN_CONFIDENCE,
                reasoning="No edition information available",
            )
        ordered = sorted(editions, key=lambda pair: -pair[1].reliability)
        primary = ordered[0][0]
        merged = replace(primary, work_id=primary.work_id or work.id)
        for other, _ in ordered[1:]:
            merged = replace(
                merged,
                format=merged.format or other.format,
                language=merged.language or other.language,
                publication_date=merged.publication_date or other.publication_date,
                publisher=merged.publisher or other.publisher,
                page_count=merged.page_count or other.page_count,
                isbn=_merge_unique(merged.isbn, other.isbn),
                identifiers=_merge_identifiers(merged.identifiers, other.identifiers),
            )

        completeness = 0.1
        completeness += 0.15 if merged.format else 0
        completeness += 0.15 if merged.language else 0
        completeness += 0.2 if merged.publication_date else 0
        completeness += 0.15 if merged.publisher else 0
        completeness += 0.15 if merged.isbn else 0
        completeness += 0.1 if merged.page_count else 0
        sources = tuple(source for _, source in ordered)
        confidence = ordered[0][1].reliability * completeness
        return ReconciledField(
            value=merged,
            confidence=clamp_confidence(confidence),
            sources=sources,
            reasoning=f"Reconciled edition from {len(sources)} sources",
        )

    def _reconcile_related_works(
        self, related: list[tuple[RelatedWork, MetadataSource]]
    ) -> ReconciledField[tuple[RelatedWork, ...]]:
        if not related:
            return ReconciledField(
                value=(),
                confidence=MIN_CONFIDENCE,
                reasoning="No related works information available",
            )

        groups: list[list[tuple[RelatedWork, MetadataSource]]] = []
        for work, source in related:
            title = normalize_title(work.title)
            for group in groups:
                anchor = group[0][0]
                if (
                    anchor.relationship_type == work.relationship_type
                    and string_similarity(normalize_title(anchor.title), title) > _RELATED_TITLE_SIMILARITY
                ):
                    group.append((work, source))
                    break
            else:
                groups.append([(work, source)])

        reconciled = []
        for group in groups:
            primary, primary_source = max(group, key=lambda pair: pair[1].reliability)
            reconciled.append(
                replace(
                    primary,
                    confidence=max(w.confidence if w.confidence is not None else 0.5 for w, _ in group),
                    source=primary_source.name,
                )
            )

        sources = tuple(source for _, source in related)
        confidence = average(_group_support(groups)) * average([w.confidence or 0.5 for w in reconciled])
        return ReconciledField(
            value=tuple(reconciled),
            confidence=clamp_confidence(confidence),
            sources=sources,
            reasoning=f"Reconciled {len(reconciled)} related works from {len(related)} sources",
        )

    def reconcile_collections(
        self, inputs: Sequence[CollectionInput]
    ) -> ReconciledField[tuple[Collection, ...]]:
        """Merge anthology, omnibus, and box-set memberships reported by several sources."""
        if not inputs:
            msg = "No collection inputs to reconcile"
            raise ReconciliationInputError(msg)

        collected = [
            (normalize_collection(raw), item.source) for item in inputs for raw in item.collections
        ]
        if not collected:
            return ReconciledField(
                value=(),
                confidence=MIN_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No collection information available",
            )

        groups: list[list[tuple[Collection, MetadataSource]]] = []
        for collection, source in collected:
            for group in groups:
                anchor = group[0][0]
                if string_similarity(collection.normalized or "", anchor.normalized or "") > _SERIES_SIMILARITY:
                    group.append((collection, source))
                    break
            else:
                groups.append([(collection, source)])

        merged = tuple(self._merge_collections(group) for group in groups)

        def completeness(collection: Collection) -> float:
            score = 0.2
            score += 0.2 if collection.type != "other" else 0
            score += 0.3 if collection.contents else 0
            score += 0.15 if collection.editors else 0
            score += 0.15 if collection.description else 0
            return score

        sources = tuple(source for _, source in collected)
        confidence = average(_group_support(groups)) * average([completeness(c) for c in merged])
        return ReconciledField(
            value=merged,
            confidence=clamp_confidence(confidence),
            sources=sources,
            reasoning=f"Reconciled {len(merged)} collections from {len(collected)} sources",
        )

    def _merge_collections(self, group: list[tuple[Collection, MetadataSource]]) -> Collection:
        ordered = sorted(group, key=lambda pair: -pair[1].reliability)
        primary = ordered[0][0]
        name = max((c.name for c, _ in group), key=len)
        collection_type = next((c.type for c, _ in group if c.type != "other"), primary.type)
        merged = replace(
            primary, name=name, normalized=normalize_title(name), type=collection_type
        )
        for other, _ in ordered[1:]:
            known = {normalize_title(content.title) for content in merged.contents}
            merged = replace(
                merged,
                description=merged.description or other.description,
                total_works=merged.total_works or other.total_works,
                editors=_merge_unique(merged.editors, other.editors),
                contents=merged.contents
                + tuple(c for c in other.contents if normalize_title(c.title) not in known),
            )
        return merged


def detect_collection_type(name: str) -> str:
    lowered = name.lower()
    if "anthology" in lowered:
        return "anthology"
    if "omnibus" in lowered:
        return "omnibus"
    if "box set" in lowered or "boxed set" in lowered:
        return "box_set"
    if "series" in lowered and "collection" in lowered:
        return "series_collection"
    if "collection" in lowered:
        return "collection"
    return "other"


def normalize_collection(value: str | Collection) -> Collection:
    if isinstance(value, Collection):
        return replace(value, normalized=value.normalized or normalize_title(value.name))
    return Collection(name=value, normalized=normalize_title(value), type=detect_collection_type(value))
