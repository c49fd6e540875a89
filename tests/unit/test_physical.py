# ABOUTME: Unit tests for physical description parsing and reconciliation.
# ABOUTME: Covers page counts, dimension and weight units, binding detection, and language resolution.

import pytest

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.languages import resolve_language
from bibrecon.reconciliation.physical import (
    PhysicalReconciler,
    normalize_page_count,
    normalize_weight,
    parse_dimensions,
    parse_format,
    parse_language,
)
from bibrecon.reconciliation.types import FormatInfo, PhysicalDescriptionInput


def _src(name: str, reliability: float) -> MetadataSource:
    return MetadataSource(name, reliability)


class TestParsing:
    """Tests for the free-text parsers."""

    def test_page_count_from_text(self) -> None:
        """The largest number in a pagination statement wins."""
        assert normalize_page_count("xiv + 342 pp.") == 342
        assert normalize_page_count(528) == 528

    def test_page_count_out_of_range(self) -> None:
        """Zero, huge, and boolean page counts are rejected."""
        assert normalize_page_count(0) is None
        assert normalize_page_count(60000) is None
        assert normalize_page_count(True) is None

    def test_dimensions_trailing_unit(self) -> None:
        """'8.5 x 11 in' converts to millimetres."""
        dims = parse_dimensions("8.5 x 11 in")
        assert dims.width == pytest.approx(215.9)
        assert dims.height == pytest.approx(279.4)
        assert dims.depth is None
        assert dims.unit == "mm"

    def test_dimensions_spelled_out_unit(self) -> None:
        """Spelled-out centimetres with a depth are understood."""
        dims = parse_dimensions("20.3 x 13.3 x 3.3 centimeters")
        assert (dims.width, dims.height, dims.depth) == pytest.approx((203.0, 133.0, 33.0))

    def test_dimensions_each_unit_and_labeled(self) -> None:
        """Per-value units and labeled measurements both parse."""
        assert parse_dimensions("210mm x 297mm").height == 297.0
        labeled = parse_dimensions("H: 23cm W: 15cm")
        assert (labeled.width, labeled.height) == (150.0, 230.0)

    def test_dimensions_out_of_range_dropped(self) -> None:
        """Implausibly small sides are discarded."""
        assert parse_dimensions("1 x 2 mm").width is None

    def test_unparseable_dimensions_keep_raw(self) -> None:
        """Unrecognized text survives only as raw."""
        dims = parse_dimensions("big")
        assert dims.width is None
        assert dims.raw == "big"

    def test_weight_units(self) -> None:
        """Weights convert to whole grams."""
        assert normalize_weight("1.2 pounds") == 544.0
        assert normalize_weight("14 oz") == 397.0
        assert normalize_weight("1.2 kg") == 1200.0
        assert normalize_weight(500) == 500.0
        assert normalize_weight("heavy") is None

    def test_format_detection(self) -> None:
        """Bindings, formats, and media come from free text or a binding hint."""
        assert parse_format("Mass Market Paperback") == FormatInfo(
            binding="mass_market", format="book", medium="print", raw="Mass Market Paperback"
        )
        ebook = parse_format("Kindle ebook")
        assert (ebook.binding, ebook.format, ebook.medium) == ("digital", "ebook", "digital")
        assert parse_format("", "Hardback").binding == "hardcover"

    def test_language_parsing(self) -> None:
        """Codes, regional tags, and unknown names resolve with differing confidence."""
        regional = parse_language("en-US")
        assert (regional.code, regional.region, regional.confidence) == ("eng", "US", 0.85)
        assert parse_language("fre").code == "fra"
        unknown = parse_language("Klingon")
        assert unknown.code == "klingon"
        assert unknown.confidence == 0.3
        assert parse_language("x") is None

    def test_resolve_language_by_name(self) -> None:
        """English names resolve to ISO 639-3."""
        resolved = resolve_language("German")
        assert resolved is not None
        assert (resolved.iso3, resolved.match_type) == ("deu", "name")


class TestPhysicalReconciler:
    """Tests for PhysicalReconciler."""

    def test_page_count_groups_near_values(self) -> None:
        """Counts within tolerance are averaged by reliability and outliers are conflicts."""
        result = PhysicalReconciler().reconcile_page_counts(
            [
                PhysicalDescriptionInput(source=_src("a", 0.8), page_count=342),
                PhysicalDescriptionInput(source=_src("b", 0.9), page_count="345 p."),
                PhysicalDescriptionInput(source=_src("c", 0.5), page_count=500),
            ]
        )
        assert result.value == 344
        assert result.confidence == pytest.approx(0.6882, abs=1e-3)
        assert result.conflicts[0].field == "page_count"

    def test_single_page_count(self) -> None:
        """One source scales its reliability."""
        result = PhysicalReconciler().reconcile_page_counts(
            [PhysicalDescriptionInput(source=_src("a", 0.9), page_count=300)]
        )
        assert result.value == 300
        assert result.confidence == pytest.approx(0.72)

    def test_disagreeing_dimensions_conflict(self) -> None:
        """The more reliable of two contradicting measurements wins and the other is a conflict."""
        result = PhysicalReconciler().reconcile_dimensions(
            [
                PhysicalDescriptionInput(source=_src("a", 0.9), dimensions="8.5 x 11 in"),
                PhysicalDescriptionInput(source=_src("b", 0.7), dimensions="20.3 x 13.3 x 3.3 cm"),
            ]
        )
        assert result.value.width == pytest.approx(215.9)
        assert result.value.depth is None
        assert [c.field for c in result.conflicts] == ["dimensions"]
        assert len(result.conflicts[0].values) == 2
        assert result.confidence == pytest.approx(0.4922, abs=1e-3)

    def test_scaled_dimensions_disagreement(self) -> None:
        """Proportional but different sizes are not treated as agreement."""
        result = PhysicalReconciler().reconcile_dimensions(
            [
                PhysicalDescriptionInput(source=_src("a", 0.9), dimensions="13 x 20 x 3 cm"),
                PhysicalDescriptionInput(source=_src("b", 0.8), dimensions="30 x 45 x 9 cm"),
            ]
        )
        assert result.value.width == pytest.approx(130.0)
        assert result.conflicts[0].field == "dimensions"

    def test_agreeing_dimensions_fill_gaps(self) -> None:
        """Agreeing claims average their shared sides and contribute missing ones."""
        result = PhysicalReconciler().reconcile_dimensions(
            [
                PhysicalDescriptionInput(source=_src("a", 0.9), dimensions="20.3 x 13.3 cm"),
                PhysicalDescriptionInput(source=_src("b", 0.7), dimensions="20.4 x 13.3 x 3.3 cm"),
            ]
        )
        assert result.value.width == pytest.approx(203.4)
        assert result.value.depth == pytest.approx(33.0)
        assert result.conflicts == ()
        assert result.confidence == pytest.approx(0.68)

    def test_agreeing_dimensions_raise_confidence(self) -> None:
        """A second source with the same measurements never lowers confidence."""
        first = PhysicalDescriptionInput(source=_src("a", 0.95), dimensions="13 x 20 cm")
        second = PhysicalDescriptionInput(source=_src("b", 0.9), dimensions="13 x 20 cm")
        alone = PhysicalReconciler().reconcile_dimensions([first])
        together = PhysicalReconciler().reconcile_dimensions([first, second])
        assert alone.confidence == pytest.approx(0.665)
        assert together.confidence > alone.confidence

    def test_missing_format_defaults_to_print_book(self) -> None:
        """No format data yields a print book at low confidence."""
        result = PhysicalReconciler().reconcile_formats(
            [PhysicalDescriptionInput(source=_src("a", 0.9))]
        )
        assert result.value == FormatInfo(format="book", medium="print")
        assert result.confidence == 0.3

    def test_binding_only_source_counts(self) -> None:
        """A binding without a format still competes on reliability."""
        result = PhysicalReconciler().reconcile_formats(
            [
                PhysicalDescriptionInput(source=_src("a", 0.8), format="Paperback"),
                PhysicalDescriptionInput(source=_src("b", 0.9), binding="hardcover"),
            ]
        )
        assert result.value.binding == "hardcover"
        assert result.confidence == pytest.approx(0.72)
        assert result.conflicts[0].field == "format"

    def test_languages_merge_by_code(self) -> None:
        """Different spellings of one language become a single entry."""
        result = PhysicalReconciler().reconcile_languages(
            [
                PhysicalDescriptionInput(source=_src("a", 0.8), languages=("en", "English")),
                PhysicalDescriptionInput(source=_src("b", 0.9), languages=("eng",)),
            ]
        )
        assert [lang.code for lang in result.value] == ["eng"]
        assert result.confidence == pytest.approx(0.81)

    def test_close_weights_averaged(self) -> None:
        """Weights within tolerance average by reliability."""
        result = PhysicalReconciler().reconcile_weights(
            [
                PhysicalDescriptionInput(source=_src("a", 1.0), weight=500),
                PhysicalDescriptionInput(source=_src("b", 1.0), weight="510 g"),
            ]
        )
        assert result.value == 505.0
        assert result.conflicts == ()
        assert result.confidence == pytest.approx(0.75)

    def test_contradicting_weights_conflict(self) -> None:
        """Weights far apart are not blended; the more reliable one wins."""
        result = PhysicalReconciler().reconcile_weights(
            [
                PhysicalDescriptionInput(source=_src("a", 0.9), weight="300 g"),
                PhysicalDescriptionInput(source=_src("b", 0.8), weight="3 kg"),
            ]
        )
        assert result.value == 300.0
        assert [c.field for c in result.conflicts] == ["weight"]
        assert {v.value for v in result.conflicts[0].values} == {300.0, 3000.0}
        assert result.confidence == pytest.approx(0.4818, abs=1e-3)

    def test_empty_inputs_give_placeholders(self) -> None:
        """Inputs without any data yield minimum-confidence placeholders."""
        result = PhysicalReconciler().reconcile([PhysicalDescriptionInput(source=_src("a", 0.9))])
        assert result.page_count.value == 0
        assert result.page_count.confidence == 0.1
        assert result.weight.confidence == 0.1
        assert result.languages.value == ()

    def test_no_inputs_raises(self) -> None:
        """Reconciling nothing is an input error."""
        with pytest.raises(ReconciliationInputError, match="No physical descriptions"):
            PhysicalReconciler().reconcile([])
