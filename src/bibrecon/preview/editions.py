# ABOUTME: Picks the best edition among those the providers reported.
# ABOUTME: Scores completeness, recency, binding, and language match, and lists alternatives.

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from bibrecon.preview.types import EditionAlternative, EditionSelection, PreviewContext
from bibrecon.reconciliation.types import Edition


@dataclass(frozen=True)
class EditionSelectorConfig:
    recent_edition_years: int = 5
    max_alternatives: int = 3


def _binding(edition: Edition) -> str | None:
    return edition.format.binding if edition.format else None


def _year(edition: Edition) -> int | None:
    return edition.publication_date.year if edition.publication_date else None


class EditionSelector:
    def __init__(self, config: EditionSelectorConfig | None = None) -> None:
        self.config = config or EditionSelectorConfig()

    def score(
        self, edition: Edition, language: str | None, context: PreviewContext | None = None
    ) -> float:
        score = 0.5
        if edition.isbn:
            score += 0.1
        if edition.publication_date:
            score += 0.1
        if edition.publisher:
            score += 0.1
        if edition.page_count:
            score += 0.05
        if edition.format:
            score += 0.05

        year = _year(edition)
        if year is not None:
            age = date.today().year - year
            if age < self.config.recent_edition_years:
                score += 0.1
            elif age < self.config.recent_edition_years * 2:
                score += 0.05
            if context and context.expected_year_range:
                low, high = context.expected_year_range
                if low <= year <= high:
                    score += 0.05

        binding = _binding(edition)
        if binding == "hardcover":
            score += 0.05
        elif binding == "paperback":
            score += 0.03

        wanted = context.expected_language if context and context.expected_language else language
        if wanted and edition.language == wanted:
            score += 0.1
        return min(score, 1.0)

    def select(
        self,
        editions: Sequence[Edition],
        fallback: Edition,
        language: str | None = None,
        context: PreviewContext | None = None,
    ) -> EditionSelection:
        """Highest-scoring edition plus up to max_alternatives runners-up."""
        available = list(editions) or [fallback]
        scored = sorted(
            ((edition, self.score(edition, language, context)) for edition in available),
            key=lambda pair: -pair[1],
        )
        selected, best = scored[0]
        alternatives = tuple(
            EditionAlternative(
                edition=edition,
                reason=alternative_reason(edition, selected),
                confidence=score,
                advantages=advantages(edition, selected),
            )
            for edition, score in scored[1 : self.config.max_alternatives + 1]
        )
        return EditionSelection(
            selected_edition=selected,
            available_editions=tuple(available),
            selection_reason=selection_reason(selected, best),
            confidence=best,
            alternatives=alternatives,
        )


def selection_reason(edition: Edition, score: float) -> str:
    reasons = []
    if edition.isbn:
        reasons.append("has ISBN information")
    if edition.publication_date:
        reasons.append("has publication date")
    if edition.publisher:
        reasons.append("has publisher information")
    if score > 0.8:
        reasons.append("most complete metadata")
    if not reasons:
        return "Selected as the most suitable edition based on available data"
    return f"Selected because it {', '.join(reasons)}"


def alternative_reason(alternative: Edition, selected: Edition) -> str:
    if _binding(alternative) == "hardcover" and _binding(selected) != "hardcover":
        return "Hardcover edition might be preferred"
    alt_year, sel_year = _year(alternative), _year(selected)
    if alt_year and sel_year:
        if alt_year > sel_year:
            return "More recent edition"
        if alt_year < sel_year:
            return "Original/earlier edition"
    return "Alternative edition with different characteristics"


def advantages(alternative: Edition, selected: Edition) -> tuple[str, ...]:
    found = []
    if _binding(alternative) == "hardcover" and _binding(selected) != "hardcover":
        found.append("Hardcover binding")
    if alternative.page_count and selected.page_count and alternative.page_count > selected.page_count:
        found.append("More pages (possibly unabridged)")
    alt_year, sel_year = _year(alternative), _year(selected)
    if alt_year and sel_year and alt_year > sel_year:
        found.append("More recent publication")
    return tuple(found)
