# ABOUTME: Provider selection strategies (all, priority, fastest, consensus) for a query.
# ABOUTME: Filters providers by exclusion, data-type support, reliability, and language coverage.

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum

from bibrecon.metadata.provider import MetadataProvider
from bibrecon.metadata.types import MetadataType, MultiCriteriaQuery

# Languages each known provider covers well; unknown providers are assumed English-only.
_PROVIDER_LANGUAGES: dict[str, tuple[str, ...]] = {
    "openlibrary": ("en", "es", "fr", "de", "it", "pt", "nl", "pl", "ru", "ja", "zh", "ar"),
    "wikidata": (
        "en", "es", "fr", "de", "it", "pt", "nl", "pl", "ru", "ja", "zh", "ar", "ko", "hi",
        "sv", "fi",
    ),
    "library-of-congress": ("en",),
    "isni": ("en", "es", "fr", "de", "it", "pt", "nl", "pl", "ru", "ja", "zh"),
    "viaf": ("en", "es", "fr", "de", "it", "pt", "nl", "pl", "ru", "ja", "zh"),
}

_DEFAULT_CONSENSUS_SIZE = 3
# A provider joins a consensus set only if it beats every chosen one by this much on some type.
_DIVERSITY_MARGIN = 0.1


class Strategy(str, Enum):
    ALL = "all"
    PRIORITY = "priority"
    FASTEST = "fastest"
    CONSENSUS = "consensus"


def select_providers(
    providers: Sequence[MetadataProvider],
    query: MultiCriteriaQuery,
    strategy: Strategy | str,
    *,
    max_providers: int | None = None,
    preferred_languages: Sequence[str] = (),
    required_data_types: Sequence[MetadataType] = (),
    exclude_providers: Iterable[str] = (),
    min_reliability: float = 0.0,
    average_durations: Mapping[str, float] | None = None,
    language_support: Mapping[str, Sequence[str]] | None = None,
) -> list[MetadataProvider]:
    """Choose and order the providers to consult for a query.

    Args:
        providers: Candidate providers.
        query: The query, used by the consensus strategy to pick relevant types.
        strategy: One of all, priority, fastest, consensus.
        max_providers: Truncate the selection; 0 selects nothing.
        preferred_languages: Reorder by coverage of these language codes.
        required_data_types: Drop providers not supporting all of these.
        exclude_providers: Provider names to leave out.
        min_reliability: Drop providers whose mean reliability for the
            required types is below this.
        average_durations: Observed mean call duration per provider name,
            used by the fastest strategy.
        language_support: Extra per-provider language coverage.

    Raises:
        ValueError: If the strategy name is unknown.
    """
    try:
        strategy = Strategy(strategy)
    except ValueError as exc:
        msg = f"Unknown strategy: {strategy}"
        raise ValueError(msg) from exc

    filtered = list(providers)
    excluded = set(exclude_providers)
    if excluded:
        filtered = [p for p in filtered if p.name not in excluded]
    if required_data_types:
        filtered = filter_by_data_type_support(filtered, required_data_types)
        if min_reliability > 0:
            filtered = filter_by_reliability(filtered, required_data_types, min_reliability)
    if preferred_languages:
        filtered = filter_by_language_support(filtered, preferred_languages, language_support)

    if strategy is Strategy.FASTEST:
        selected = sort_by_speed(filtered, average_durations)
    elif strategy is Strategy.CONSENSUS:
        selected = _select_for_consensus(filtered, query, max_providers)
    elif preferred_languages:
        selected = filtered
    else:
        selected = sort_by_priority(filtered)

    if max_providers is not None and max_providers >= 0:
        selected = selected[:max_providers]
    return selected


def sort_by_priority(providers: Iterable[MetadataProvider]) -> list[MetadataProvider]:
    return sorted(providers, key=lambda p: p.priority, reverse=True)


def sort_by_speed(
    providers: Iterable[MetadataProvider], average_durations: Mapping[str, float] | None
) -> list[MetadataProvider]:
    """Fastest first; providers never measured go last, ties broken by priority."""
    if not average_durations:
        return sort_by_priority(providers)
    return sorted(
        providers,
        key=lambda p: (average_durations.get(p.name, float("inf")), -p.priority),
    )


def filter_by_data_type_support(
    providers: Iterable[MetadataProvider], data_types: Sequence[MetadataType]
) -> list[MetadataProvider]:
    return [p for p in providers if all(p.supports_data_type(t) for t in data_types)]


def filter_by_reliability(
    providers: Iterable[MetadataProvider],
    data_types: Sequence[MetadataType],
    min_score: float,
) -> list[MetadataProvider]:
    if not data_types or min_score <= 0:
        return list(providers)
    return [
        p
        for p in providers
        if sum(p.get_reliability_score(t) for t in data_types) / len(data_types) >= min_score
    ]


def filter_by_language_support(
    providers: Iterable[MetadataProvider],
    languages: Sequence[str],
    extra_support: Mapping[str, Sequence[str]] | None = None,
) -> list[MetadataProvider]:
    """Order providers by the share of requested languages they cover."""
    support = {**_PROVIDER_LANGUAGES, **(extra_support or {})}

    def coverage(provider: MetadataProvider) -> float:
        supported = support.get(provider.name, ("en",))
        return sum(1 for lang in languages if lang in supported) / len(languages)

    return sorted(providers, key=lambda p: (coverage(p), p.priority), reverse=True)


def relevant_data_types(query: MultiCriteriaQuery) -> list[MetadataType]:
    """Data types a query actually asks about, with a generic default."""
    types = []
    if query.title:
        types.append(MetadataType.TITLE)
    if query.authors:
        types.append(MetadataType.AUTHORS)
    if query.isbn:
        types.append(MetadataType.ISBN)
    if query.language:
        types.append(MetadataType.LANGUAGE)
    if query.subjects:
        types.append(MetadataType.SUBJECTS)
    if query.publisher:
        types.append(MetadataType.PUBLISHER)
    if query.year_range:
        types.append(MetadataType.PUBLICATION_DATE)
    if not types:
        return [
            MetadataType.TITLE,
            MetadataType.AUTHORS,
            MetadataType.ISBN,
            MetadataType.PUBLICATION_DATE,
            MetadataType.DESCRIPTION,
        ]
    return types


def _select_for_consensus(
    providers: Sequence[MetadataProvider],
    query: MultiCriteriaQuery,
    max_providers: int | None,
) -> list[MetadataProvider]:
    """Pick the most reliable provider plus others that add reliability on some type."""
    types = relevant_data_types(query)

    def mean_score(provider: MetadataProvider) -> float:
        return sum(provider.get_reliability_score(t) for t in types) / len(types)

    ranked = sorted(providers, key=lambda p: (mean_score(p), p.priority), reverse=True)
    limit = max_providers if max_providers is not None else _DEFAULT_CONSENSUS_SIZE

    selected: list[MetadataProvider] = ranked[:1]
    for candidate in ranked[1:]:
        if len(selected) >= limit:
            break
        adds_diversity = any(
            candidate.get_reliability_score(t)
            > max(p.get_reliability_score(t) for p in selected) + _DIVERSITY_MARGIN
            for t in types
        )
        if adds_diversity or len(selected) < 2:
            selected.append(candidate)
    return selected
