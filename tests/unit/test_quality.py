# ABOUTME: Unit tests for field-level and library-level quality grading.
# ABOUTME: Checks factor impacts, levels, suggestions, strengths, and improvements.

import pytest

from bibrecon.metadata.types import MetadataSource
from bibrecon.preview.quality import QualityAssessor, QualityConfig, is_empty
from bibrecon.preview.types import LibraryEntry, SourceAttribution
from bibrecon.reconciliation.types import Conflict, ConflictValue, ReconciledField


def _attribution(name: str, reliability: float) -> SourceAttribution:
    source = MetadataSource(name, reliability)
    return SourceAttribution(source, "Dune", 1.0, False, reliability)


class TestIsEmpty:
    """Tests for is_empty."""

    def test_empty_values(self) -> None:
        """None, blank strings, and empty collections are empty."""
        assert is_empty(None)
        assert is_empty("  ")
        assert is_empty(())
        assert is_empty({})

    def test_filled_values(self) -> None:
        """Zero and text are not empty."""
        assert not is_empty(0)
        assert not is_empty("Dune")


class TestAssessField:
    """Tests for QualityAssessor.assess_field."""

    def test_well_supported_field(self) -> None:
        """Confident, reliable, multi-source fields grade well without suggestions."""
        reconciled = ReconciledField("Dune", 0.9)
        attributions = [_attribution(n, 0.9) for n in ("a", "b", "c")]
        quality = QualityAssessor().assess_field(reconciled, attributions)
        assert quality.score == pytest.approx(0.88)
        assert quality.level == "good"
        assert [f.name for f in quality.factors] == ["confidence", "source_count", "source_reliability"]
        assert quality.suggestions == ()

    def test_empty_field(self) -> None:
        """An empty field with no sources floors at zero."""
        quality = QualityAssessor().assess_field(ReconciledField(None, 0.0), [])
        assert quality.score == 0.0
        assert quality.level == "poor"
        assert len(quality.suggestions) == 3

    def test_conflicts_penalized(self) -> None:
        """Conflicts subtract from the score and prompt a review."""
        source = MetadataSource("a", 0.5)
        conflict = Conflict("title", (ConflictValue("Dune", source),), "highest confidence")
        reconciled = ReconciledField("Dune", 0.5, conflicts=(conflict,))
        quality = QualityAssessor().assess_field(reconciled, [_attribution("a", 0.5)])
        assert quality.score == pytest.approx(0.5 + 0.2 / 3 - 0.1 - 0.15)
        assert "Review and resolve conflicts between sources" in quality.suggestions

    def test_suggestions_disabled(self) -> None:
        """Suggestions can be switched off."""
        assessor = QualityAssessor(QualityConfig(include_suggestions=False))
        assert assessor.assess_field(ReconciledField(None, 0.0), []).suggestions == ()


class TestLevels:
    """Tests for QualityAssessor.level."""

    def test_level_bands(self) -> None:
        """Scores map onto four levels."""
        assessor = QualityAssessor()
        assert assessor.level(0.95) == "excellent"
        assert assessor.level(0.75) == "good"
        assert assessor.level(0.55) == "fair"
        assert assessor.level(0.2) == "poor"


class TestAssessLibrary:
    """Tests for QualityAssessor.assess_library."""

    def test_sparse_but_confident_entry(self) -> None:
        """Few fields but high confidence."""
        entry = LibraryEntry(id="e", title="Dune", authors=("Frank Herbert",), isbn=("9780441013593",))
        quality = QualityAssessor().assess_library(entry, [0.9, 0.9], 0.9)
        assert quality.completeness == pytest.approx(3 / 14)
        assert quality.score == pytest.approx(3 / 14 * 0.4 + 0.36 + 0.18)
        assert quality.level == "fair"
        assert quality.strengths == ("High confidence in metadata", "Consistent data quality across fields")
        assert quality.improvements == ("Add more metadata fields",)

    def test_no_field_scores(self) -> None:
        """Without field scores consistency defaults to 0.5."""
        quality = QualityAssessor().assess_library(LibraryEntry(id="e", title="Dune"), [], 0.0)
        assert quality.consistency == 0.5
        assert quality.level == "poor"
