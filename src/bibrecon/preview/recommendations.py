# ABOUTME: Turns duplicate, edition, series, and quality findings into ranked recommendations.
# ABOUTME: Each recommendation carries a priority and the actions a user can take.

from collections.abc import Sequence

from bibrecon.preview.types import (
    DuplicateMatch,
    EditionSelection,
    LibraryRecommendation,
    PreviewSummary,
    RecommendationAction,
    SeriesRelationship,
)

_PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}

_SKIP_ACTIONS = (
    RecommendationAction("ignore", "Skip adding", "Do not add this book as it already exists", True),
    RecommendationAction(
        "review", "Review differences", "Compare the entries for meaningful differences"
    ),
)
_MERGE_ACTIONS = (
    RecommendationAction("update", "Merge", "Merge the new metadata into the existing entry", True),
    RecommendationAction("review", "Review manually", "Compare entries before deciding"),
    RecommendationAction("add", "Add as new", "Add as a separate entry"),
)
_REVIEW_ACTIONS = (
    RecommendationAction(
        "review", "Review manually", "Compare entries and decide whether to merge or keep separate", True
    ),
    RecommendationAction("add", "Add as new", "Add as a separate entry"),
)


def duplicate_recommendations(duplicates: Sequence[DuplicateMatch]) -> list[LibraryRecommendation]:
    recommendations = []
    exact = [d for d in duplicates if d.match_type == "exact"]
    likely = [d for d in duplicates if d.match_type == "likely"]
    possible = [d for d in duplicates if d.match_type == "possible"]
    if exact:
        recommendations.append(
            LibraryRecommendation(
                type="merge_duplicates",
                priority="high",
                message=f"Found {len(exact)} exact duplicate(s) in your library",
                explanation="This book appears to already exist in your library.",
                actions=_SKIP_ACTIONS,
            )
        )
    if likely:
        recommendations.append(
            LibraryRecommendation(
                type="merge_duplicates",
                priority="high",
                message=f"Found {len(likely)} likely duplicate(s) that could be merged",
                explanation="These entries are very similar and probably describe the same book.",
                actions=_MERGE_ACTIONS,
            )
        )
    if possible:
        recommendations.append(
            LibraryRecommendation(
                type="review_conflicts",
                priority="medium",
                message=f"Found {len(possible)} possible duplicate(s) that need review",
                explanation="These entries share some details but may be different editions.",
                actions=_REVIEW_ACTIONS,
            )
        )
    return recommendations


def edition_recommendations(selection: EditionSelection) -> list[LibraryRecommendation]:
    if not selection.alternatives:
        return []
    return [
        LibraryRecommendation(
            type="improve_metadata",
            priority="low",
            message=f"{len(selection.alternatives)} alternative edition(s) available",
            explanation="Other editions of this work might better suit your preferences.",
            actions=(
                RecommendationAction(
                    "review", "Review editions", "Compare available editions and pick one"
                ),
                RecommendationAction(
                    "add", "Use selected edition", "Proceed with the automatically selected edition", True
                ),
            ),
        )
    ]


def series_recommendations(relationships: Sequence[SeriesRelationship]) -> list[LibraryRecommendation]:
    return [
        LibraryRecommendation(
            type="complete_series",
            priority="low",
            message=f"{len(rel.missing_works)} missing work(s) in {rel.series.name} series",
            explanation=f"You have some but not all books in the {rel.series.name} series.",
            actions=(
                RecommendationAction("add", "Add to wishlist", "Add missing series books to your wishlist", True),
                RecommendationAction("ignore", "Ignore", "Continue without completing the series"),
            ),
        )
        for rel in relationships
        if not rel.is_series_complete and rel.missing_works
    ]


def quality_recommendations(summary: PreviewSummary) -> list[LibraryRecommendation]:
    if summary.overall_quality.level != "poor":
        return []
    return [
        LibraryRecommendation(
            type="improve_metadata",
            priority="medium",
            message="Metadata quality could be improved",
            explanation="This entry has limited or low-quality metadata.",
            actions=(
                RecommendationAction(
                    "update", "Search for better metadata", "Try additional metadata sources", True
                ),
                RecommendationAction("add", "Add as-is", "Add the entry with current metadata"),
            ),
        )
    ]


def generate_recommendations(
    duplicates: Sequence[DuplicateMatch],
    edition_selection: EditionSelection,
    series_relationships: Sequence[SeriesRelationship],
    summary: PreviewSummary,
) -> list[LibraryRecommendation]:
    """All recommendations, highest priority first."""
    recommendations = [
        *duplicate_recommendations(duplicates),
        *edition_recommendations(edition_selection),
        *series_recommendations(series_relationships),
        *quality_recommendations(summary),
    ]
    return sorted(recommendations, key=lambda r: -_PRIORITY_ORDER[r.priority])
