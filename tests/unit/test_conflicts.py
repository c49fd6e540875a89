# ABOUTME: Unit tests for presentation-time conflict detection and reporting.
# ABOUTME: Covers value grouping, conflict types and severities, summaries, and the text report.

import pytest

from bibrecon.metadata.types import MetadataSource
from bibrecon.preview.conflicts import (
    ConflictDetectionConfig,
    ConflictDetector,
    render_report,
    summarize,
)
from bibrecon.reconciliation.types import PublicationDate, Publisher, ReconciledField

OL = MetadataSource("openlibrary", 0.9)
GOOGLE = MetadataSource("google", 0.85)
SCRAPER = MetadataSource("scraper", 0.4)
LOC = MetadataSource("library-of-congress", 0.7)
WIKI = MetadataSource("wikidata", 0.7)

TITLES = [("Dune", OL), ("Dune Messiah", LOC), ("Arrakis", MetadataSource("x", 0.6))]


class TestSimilar:
    """Tests for ConflictDetector.similar."""

    def test_strings(self) -> None:
        """Near-identical strings match; different titles do not."""
        detector = ConflictDetector()
        assert detector.similar("Dune", "dune")
        assert not detector.similar("Dune", "Dune Messiah")

    def test_numbers(self) -> None:
        """Numbers within five percent match."""
        detector = ConflictDetector()
        assert detector.similar(342, 345)
        assert not detector.similar(300, 500)

    def test_dates_within_a_year(self) -> None:
        """Dates a year apart match."""
        detector = ConflictDetector()
        assert detector.similar(PublicationDate("year", 1965), PublicationDate("year", 1966))
        assert not detector.similar(PublicationDate("year", 1965), PublicationDate("year", 1990))

    def test_none(self) -> None:
        """None only matches None."""
        assert not ConflictDetector().similar(None, "Dune")


class TestDetectFieldConflicts:
    """Tests for ConflictDetector.detect_field_conflicts."""

    def test_single_value(self) -> None:
        """One value cannot conflict."""
        assert ConflictDetector().detect_field_conflicts("title", [("Dune", OL)]) == []

    def test_critical_title_mismatch(self) -> None:
        """Three different core values with a reliable source are critical."""
        [conflict] = ConflictDetector().detect_field_conflicts("title", TITLES)
        assert conflict.type == "value_mismatch"
        assert conflict.severity == "critical"
        assert conflict.auto_resolvable
        assert conflict.affects_core_metadata
        assert conflict.explanation == "Found 3 different values for 'title' across 3 sources"
        assert conflict.confidence == pytest.approx(0.5 + 0.2 + (0.9 + 0.7 + 0.6) / 3 * 0.2)
        assert "Check for alternate titles or editions" in conflict.suggestions

    def test_major_core_mismatch(self) -> None:
        """Two different core values with a reliable source are major."""
        [conflict] = ConflictDetector().detect_field_conflicts(
            "title", [("Dune", OL), ("Dune Messiah", GOOGLE)]
        )
        assert conflict.severity == "major"

    def test_informational_mismatch(self) -> None:
        """Two different values in a non-core field are informational and manual."""
        [conflict] = ConflictDetector().detect_field_conflicts("language", [("eng", LOC), ("fre", WIKI)])
        assert conflict.severity == "informational"
        assert not conflict.auto_resolvable

    def test_resolution_from_reconciled_field(self) -> None:
        """The reconciler's reasoning becomes the resolution."""
        reconciled = ReconciledField("Dune", 0.9, reasoning="Selected from openlibrary")
        [conflict] = ConflictDetector().detect_field_conflicts("title", TITLES, reconciled)
        assert conflict.resolution == "Selected from openlibrary"

    def test_isbn_format_difference(self) -> None:
        """One ISBN spelled two ways is a format difference."""
        raw = [(("0441013597",), OL), (("978-0-441-01359-3",), GOOGLE)]
        conflicts = ConflictDetector().detect_field_conflicts("isbn", raw)
        [formatting] = [c for c in conflicts if c.type == "format_difference"]
        assert formatting.explanation == "ISBN 9780441013593 appears as: 0441013597, 978-0-441-01359-3"
        assert formatting.auto_resolvable

    def test_date_precision_difference(self) -> None:
        """The same year at different precisions is a precision difference only."""
        raw = [
            (PublicationDate("year", 1965), LOC),
            (PublicationDate("day", 1965, 8, 1), WIKI),
        ]
        [conflict] = ConflictDetector().detect_field_conflicts("publication_date", raw)
        assert conflict.type == "precision_difference"
        assert conflict.explanation == "Publication year 1965 reported at different precisions: day, year"

    def test_minor_conflicts_disabled(self) -> None:
        """Minor format and precision checks can be switched off."""
        raw = [
            (PublicationDate("year", 1965), LOC),
            (PublicationDate("day", 1965, 8, 1), WIKI),
        ]
        detector = ConflictDetector(ConflictDetectionConfig(detect_minor_conflicts=False))
        assert detector.detect_field_conflicts("publication_date", raw) == []

    def test_completeness_difference(self) -> None:
        """List fields where one source has far more items are flagged."""
        raw = [(("Science Fiction",), LOC), (("Science Fiction", "Classics", "Ecology"), WIKI)]
        conflicts = ConflictDetector().detect_field_conflicts("subjects", raw)
        assert [c.type for c in conflicts] == ["value_mismatch", "completeness_difference"]
        assert conflicts[1].explanation == "Sources report between 1 and 3 items"

    def test_quality_difference(self) -> None:
        """Agreeing sources of very different reliability are flagged."""
        raw = [(Publisher("Ace"), OL), (Publisher("Ace"), SCRAPER)]
        [conflict] = ConflictDetector().detect_field_conflicts("publisher", raw)
        assert conflict.type == "quality_difference"
        assert conflict.explanation == "Source reliability ranges from 0.40 to 0.90"

    def test_max_conflicts_per_field(self) -> None:
        """Detected conflicts are truncated per field."""
        raw = [(("Science Fiction",), LOC), (("Science Fiction", "Classics", "Ecology"), WIKI)]
        detector = ConflictDetector(ConflictDetectionConfig(max_conflicts_per_field=1))
        assert len(detector.detect_field_conflicts("subjects", raw)) == 1


class TestSummary:
    """Tests for summarize, analyze, and render_report."""

    def test_no_conflicts(self) -> None:
        """An empty summary says the metadata is consistent."""
        summary = summarize([])
        assert summary.total == 0
        assert summary.overall_score == 0.0
        assert summary.recommendations == (
            "No conflicts detected; metadata appears consistent across sources",
        )

    def test_analyze_groups_by_field(self) -> None:
        """analyze runs every field and ranks the worst first."""
        summary = ConflictDetector().analyze(
            {"title": TITLES, "language": [("eng", LOC), ("fre", WIKI)]}
        )
        assert summary.total == 2
        assert summary.problematic_fields == ("title", "language")
        assert summary.overall_score == pytest.approx(0.11)
        assert len(summary.by_severity("critical")) == 1
        assert len(summary.auto_resolvable) == 1
        assert len(summary.manual) == 1
        assert summary.recommendations == (
            "Address 1 critical conflicts; these affect core metadata",
            "1 conflicts can be automatically resolved",
            "1 conflicts require manual review",
        )

    def test_report(self) -> None:
        """The report lists conflicts by severity with their values."""
        report = render_report(ConflictDetector().analyze({"title": TITLES}))
        assert report.startswith("Conflict Report")
        assert "Total conflicts: 1" in report
        assert "CRITICAL (1)" in report
        assert "openlibrary (0.90): Dune" in report
        assert "Most problematic fields: title" in report
