# ABOUTME: Unit tests for shared confidence helpers and similarity measures.
# ABOUTME: Covers clamping, agreement bonuses, string ratios, and Jaccard indexes.

import pytest

from bibrecon.reconciliation.similarity import jaccard, string_similarity, word_jaccard
from bibrecon.reconciliation.weights import agreement_bonus, average, clamp_confidence


class TestConfidenceHelpers:
    """Tests for clamp_confidence, agreement_bonus, and average."""

    def test_clamp(self) -> None:
        """Confidences stay inside [0.1, 0.99]."""
        assert clamp_confidence(1.4) == 0.99
        assert clamp_confidence(-0.2) == 0.1
        assert clamp_confidence(0.5) == 0.5

    def test_agreement_bonus(self) -> None:
        """Each extra agreeing source adds 0.05 up to 0.15."""
        assert agreement_bonus(1) == 0.0
        assert agreement_bonus(2) == pytest.approx(0.05)
        assert agreement_bonus(3) == pytest.approx(0.10)
        assert agreement_bonus(10) == pytest.approx(0.15)

    def test_average(self) -> None:
        """Averages of nothing are zero."""
        assert average([]) == 0.0
        assert average([0.5, 1.0]) == 0.75


class TestSimilarity:
    """Tests for the similarity measures."""

    def test_string_similarity_case_insensitive(self) -> None:
        """Case and surrounding spaces are ignored."""
        assert string_similarity(" Dune ", "dune") == 1.0

    def test_string_similarity_empty(self) -> None:
        """Two empty strings are identical; one empty string matches nothing."""
        assert string_similarity("", "") == 1.0
        assert string_similarity("", "Dune") == 0.0

    def test_string_similarity_partial(self) -> None:
        """Partial overlap gives the SequenceMatcher ratio."""
        assert string_similarity("Dune", "Dune Messiah") == pytest.approx(0.5)

    def test_jaccard(self) -> None:
        """Jaccard is shared over combined."""
        assert jaccard(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)
        assert jaccard([], []) == 1.0
        assert jaccard(["a"], []) == 0.0

    def test_word_jaccard_ignores_short_words(self) -> None:
        """Words shorter than the minimum length are ignored."""
        assert word_jaccard("The desert planet", "a desert planet") == 1.0
