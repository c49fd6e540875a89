# ABOUTME: Progressive relaxation of multi-criteria queries into ordered fallback queries.
# ABOUTME: Also judges whether a result set is good enough to stop trying fallbacks.

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from bibrecon.metadata.types import MetadataRecord, MultiCriteriaQuery

logger = logging.getLogger(__name__)

# Broadening a year range widens each end by half the range, never less than this.
_MIN_YEAR_EXPANSION = 5


@dataclass(frozen=True)
class RelaxationRule:
    """One way of loosening a query. Lower priority runs first.

    Rules without an applicability check are always tried.
    """

    name: str
    description: str
    priority: int
    apply: Callable[[MultiCriteriaQuery], MultiCriteriaQuery]
    applies: Callable[[MultiCriteriaQuery], bool] | None = None

    def is_applicable(self, query: MultiCriteriaQuery) -> bool:
        return self.applies is None or self.applies(query)


@dataclass(frozen=True)
class QueryStrategyConfig:
    max_fallbacks: int = 5
    enable_fuzzy_matching: bool = True
    relax_language: bool = True
    relax_authors: bool = True
    relax_subjects: bool = True
    relax_publisher: bool = True
    relax_year_range: bool = True


@dataclass(frozen=True)
class QueryStrategy:
    primary: MultiCriteriaQuery
    fallbacks: tuple[MultiCriteriaQuery, ...] = ()
    relaxation_rules: tuple[RelaxationRule, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class QualityAssessment:
    result_count: int
    average_confidence: float
    meets_threshold: bool
    reason: str


def _keep_first_author(query: MultiCriteriaQuery) -> MultiCriteriaQuery:
    if len(query.authors) > 1:
        return replace(query, authors=query.authors[:1])
    return query


def _broaden_year_range(query: MultiCriteriaQuery) -> MultiCriteriaQuery:
    if query.year_range is None:
        return query
    start, end = query.year_range
    expansion = max(_MIN_YEAR_EXPANSION, (end - start) // 2)
    return replace(query, year_range=(start - expansion, end + expansion))


def _title_only(query: MultiCriteriaQuery) -> MultiCriteriaQuery:
    if query.title:
        return MultiCriteriaQuery(title=query.title, fuzzy=True)
    return query


def _has_narrowing_criteria(query: MultiCriteriaQuery) -> bool:
    return bool(
        query.title
        and (
            query.authors
            or query.publisher
            or query.subjects
            or query.language
            or query.year_range
        )
    )


def _normalized(query: MultiCriteriaQuery) -> MultiCriteriaQuery:
    return replace(
        query, authors=tuple(sorted(query.authors)), subjects=tuple(sorted(query.subjects))
    )


class QueryStrategyBuilder:
    """Builds a primary query plus progressively looser fallbacks.

    Applicable rules run in priority order, each on the output of the one
    before. A rule that leaves the query unchanged adds no fallback.
    """

    def __init__(self, config: QueryStrategyConfig | None = None) -> None:
        self._config = config or QueryStrategyConfig()
        self._rules = self._default_rules()

    @property
    def config(self) -> QueryStrategyConfig:
        return self._config

    def build_strategy(self, query: MultiCriteriaQuery) -> QueryStrategy:
        applicable = sorted(
            (rule for rule in self._rules if rule.is_applicable(query)),
            key=lambda rule: rule.priority,
        )
        fallbacks: list[MultiCriteriaQuery] = []
        current = query
        for rule in applicable:
            if len(fallbacks) >= self._config.max_fallbacks:
                break
            relaxed = rule.apply(current)
            if _normalized(relaxed) != _normalized(current):
                logger.debug("Relaxation %s produced %s", rule.name, relaxed)
                fallbacks.append(relaxed)
                current = relaxed
        return QueryStrategy(
            primary=query, fallbacks=tuple(fallbacks), relaxation_rules=tuple(applicable)
        )

    def assess_result_quality(
        self,
        results: Sequence[MetadataRecord],
        min_results: int = 1,
        min_confidence: float = 0.6,
    ) -> QualityAssessment:
        """Decide whether results are good enough to skip further fallbacks."""
        if not results:
            return QualityAssessment(
                result_count=0,
                average_confidence=0.0,
                meets_threshold=False,
                reason="No results found",
            )
        count = len(results)
        mean = sum(record.confidence for record in results) / count
        meets = count >= min_results and mean >= min_confidence
        reason = (
            "Results meet quality threshold"
            if meets
            else f"Results below threshold: {count} results, {mean:.2f} avg confidence"
        )
        return QualityAssessment(
            result_count=count, average_confidence=mean, meets_threshold=meets, reason=reason
        )

    def add_relaxation_rule(self, rule: RelaxationRule) -> None:
        self._rules.append(rule)
        self._rules.sort(key=lambda r: r.priority)

    def remove_relaxation_rule(self, name: str) -> bool:
        before = len(self._rules)
        self._rules = [rule for rule in self._rules if rule.name != name]
        return len(self._rules) < before

    def get_relaxation_rules(self) -> list[RelaxationRule]:
        return list(self._rules)

    def update_config(self, **changes: Any) -> None:
        """Change config fields. Rules are rebuilt, so custom rules are dropped."""
        self._config = replace(self._config, **changes)
        self._rules = self._default_rules()

    def _default_rules(self) -> list[RelaxationRule]:
        config = self._config
        rules: list[RelaxationRule] = []
        if config.enable_fuzzy_matching:
            rules.append(
                RelaxationRule(
                    name="enable-fuzzy",
                    description="Enable fuzzy matching for title and authors",
                    priority=1,
                    apply=lambda q: replace(q, fuzzy=True),
                    applies=lambda q: not q.fuzzy and bool(q.title or q.authors),
                )
            )
        if config.relax_language:
            rules.append(
                RelaxationRule(
                    name="remove-language",
                    description="Remove language constraint",
                    priority=2,
                    apply=lambda q: replace(q, language=None),
                    applies=lambda q: bool(q.language),
                )
            )
        if config.relax_authors:
            rules.append(
                RelaxationRule(
                    name="broaden-authors",
                    description="Reduce number of required authors",
                    priority=3,
                    apply=_keep_first_author,
                    applies=lambda q: len(q.authors) > 1,
                )
            )
        if config.relax_subjects:
            rules.append(
                RelaxationRule(
                    name="remove-subjects",
                    description="Remove subject constraints",
                    priority=4,
                    apply=lambda q: replace(q, subjects=()),
                    applies=lambda q: bool(q.subjects),
                )
            )
        if config.relax_publisher:
            rules.append(
                RelaxationRule(
                    name="remove-publisher",
                    description="Remove publisher constraint",
                    priority=5,
                    apply=lambda q: replace(q, publisher=None),
                    applies=lambda q: bool(q.publisher),
                )
            )
        if config.relax_year_range:
            rules.append(
                RelaxationRule(
                    name="broaden-year-range",
                    description="Broaden publication year range",
                    priority=6,
                    apply=_broaden_year_range,
                    applies=lambda q: q.year_range is not None,
                )
            )
        rules.append(
            RelaxationRule(
                name="remove-year-range",
                description="Remove year range constraint entirely",
                priority=7,
                apply=lambda q: replace(q, year_range=None),
                applies=lambda q: q.year_range is not None,
            )
        )
        rules.append(
            RelaxationRule(
                name="title-only",
                description="Search by title only",
                priority=8,
                apply=_title_only,
                applies=_has_narrowing_criteria,
            )
        )
        return rules
