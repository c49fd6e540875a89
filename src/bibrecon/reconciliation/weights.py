# ABOUTME: Central weighting tables and confidence helpers shared by every reconciler.
# ABOUTME: All tunable numbers for confidence curves live here so reconcilers stay consistent.

# Reconciled confidences are kept strictly inside (0, 1).
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.99

# Each extra source agreeing on the winning value adds this much, up to the cap.
AGREEMENT_BONUS_PER_SOURCE = 0.05
AGREEMENT_BONUS_CAP = 0.15

# Identifier type priority for presentation order (higher first).
IDENTIFIER_PRIORITY: dict[str, int] = {
    "isbn": 10,
    "doi": 9,
    "oclc": 8,
    "lccn": 7,
    "amazon": 6,
    "goodreads": 5,
    "google": 4,
    "other": 1,
}

# Identifier confidence: valid_fraction * avg_reliability * scale + base.
IDENTIFIER_CONFIDENCE_SCALE = 0.9
IDENTIFIER_CONFIDENCE_BASE = 0.1

# Subject quality points by subject type.
SUBJECT_TYPE_POINTS: dict[str, float] = {
    "subject": 1.0,
    "genre": 0.8,
    "keyword": 0.6,
    "tag": 0.4,
}
SUBJECT_TYPE_ORDER: dict[str, int] = {"subject": 0, "genre": 1, "keyword": 2, "tag": 3}

# Date confidence multiplier per precision.
DATE_PRECISION_FACTOR: dict[str, float] = {
    "day": 1.0,
    "month": 0.9,
    "year": 0.8,
    "unknown": 0.3,
}
DATE_INVALID_YEAR_PENALTY = 0.5

# Publication info overall confidence.
PUBLICATION_WEIGHTS: dict[str, float] = {"date": 0.4, "publisher": 0.4, "place": 0.2}

# Physical description scaling.
PAGE_COUNT_SCALE = 0.8
DIMENSIONS_SCALE = 0.7
FORMAT_SCALE = 0.8
NO_FORMAT_CONFIDENCE = 0.3
LANGUAGE_SCALE = 0.9
WEIGHT_SCALE = 0.7

# A winning group backed by only part of the total reliability keeps at least this share.
SUPPORT_SHARE_FLOOR = 0.5

# Content scaling.
TOC_SCALE = 0.9
REVIEWS_SCALE = 0.8
RATING_SCALE = 0.9
EXCERPT_SCALE = 0.8

# Overall reconciliation confidence boost per contributing field.
OVERALL_BOOST_PER_FIELD = 0.02
OVERALL_BOOST_CAP = 0.1


def clamp_confidence(value: float) -> float:
    """Clamp a computed confidence into [MIN_CONFIDENCE, MAX_CONFIDENCE]."""
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, value))


def agreement_bonus(agreeing_sources: int) -> float:
    """Bonus for sources beyond the first that agree on the chosen value."""
    if agreeing_sources <= 1:
        return 0.0
    return min(AGREEMENT_BONUS_CAP, (agreeing_sources - 1) * AGREEMENT_BONUS_PER_SOURCE)


def average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def group_confidence(group: list[float], total_reliability: float, scale: float) -> float:
    """Confidence for a value picked from a group of agreeing sources.

    The group's most reliable supporter sets the level; the share of all reliability
    the group holds discounts it when other groups disagree. Adding an agreeing source
    never lowers the result.
    """
    if not group:
        return 0.0
    share = sum(group) / total_reliability if total_reliability else 1.0
    base = max(group) * scale * (SUPPORT_SHARE_FLOOR + (1 - SUPPORT_SHARE_FLOOR) * share)
    return base + agreement_bonus(len(group))
