# ABOUTME: Unit tests for publication date, publisher, and place normalization and reconciliation.
# ABOUTME: Covers date precision, imprint families, city aliases, and the combined publication reconciler.

from datetime import date

import pytest

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.dates import DateReconciler, dates_compatible, normalize_date
from bibrecon.reconciliation.places import PlaceReconciler, extract_country, normalize_place_name
from bibrecon.reconciliation.publication import PublicationReconciler, publication_confidence
from bibrecon.reconciliation.publishers import PublisherReconciler, normalize_publisher_name
from bibrecon.reconciliation.types import PublicationDate, PublicationInfoInput


def _src(name: str, reliability: float) -> MetadataSource:
    return MetadataSource(name, reliability)


class TestNormalizeDate:
    """Tests for date parsing and precision."""

    def test_month_name_day_year(self) -> None:
        """'May 12, 2001' parses to day precision."""
        value = normalize_date("May 12, 2001")
        assert (value.precision, value.year, value.month, value.day) == ("day", 2001, 5, 12)

    def test_day_month_name_year(self) -> None:
        """'12 May 2001' parses to day precision."""
        assert normalize_date("12 May 2001").day == 12

    def test_iso_month(self) -> None:
        """'2001-05' has month precision."""
        value = normalize_date("2001-05")
        assert value.precision == "month"
        assert value.day is None

    def test_invalid_day_falls_back_to_month(self) -> None:
        """February 30th keeps only year and month."""
        value = normalize_date("2001-02-30")
        assert value.precision == "month"
        assert value.month == 2

    def test_invalid_month_falls_back_to_year(self) -> None:
        """A thirteenth month keeps only the year."""
        assert normalize_date("2001-13").precision == "year"

    def test_embedded_year(self) -> None:
        """Free text containing a year yields year precision."""
        value = normalize_date("circa 1965")
        assert value.precision == "year"
        assert value.year == 1965

    def test_unparseable_is_unknown(self) -> None:
        """Text without a date is unknown precision."""
        assert normalize_date("someday").precision == "unknown"

    def test_date_object(self) -> None:
        """A date object is day precision."""
        assert normalize_date(date(2001, 5, 12)) == PublicationDate(
            precision="day", year=2001, month=5, day=12, raw="2001-05-12"
        )

    def test_compatibility(self) -> None:
        """A year is compatible with a month in that year, differing months are not."""
        assert dates_compatible(normalize_date("1965"), normalize_date("1965-08"))
        assert not dates_compatible(normalize_date("1965-08"), normalize_date("1965-09"))


class TestDateReconciler:
    """Tests for DateReconciler."""

    def test_prefers_most_specific_compatible_date(self) -> None:
        """A year and a full date in that year agree, and the full date wins."""
        result = DateReconciler().reconcile(
            [
                PublicationInfoInput(source=_src("a", 0.8), date="1965"),
                PublicationInfoInput(source=_src("b", 0.9), date="1965-08-01"),
            ]
        )
        assert result.value.precision == "day"
        assert result.confidence == pytest.approx(0.95)
        assert result.conflicts == ()

    def test_conflicting_years(self) -> None:
        """Disagreeing years resolve to the more reliable group and record a conflict."""
        result = DateReconciler().reconcile(
            [
                PublicationInfoInput(source=_src("a", 0.9), date="1965"),
                PublicationInfoInput(source=_src("b", 0.5), date="1966"),
            ]
        )
        assert result.value.year == 1965
        assert result.conflicts[0].field == "publication_date"
        assert result.reasoning.startswith("Resolved conflict")

    def test_implausible_year_penalized(self) -> None:
        """Years outside the plausible range halve the confidence."""
        result = DateReconciler().reconcile(
            [PublicationInfoInput(source=_src("a", 1.0), date="0999")]
        )
        assert result.confidence == pytest.approx(0.4)
        assert result.reasoning == "Single source"

    def test_all_unknown(self) -> None:
        """Only unknown dates give minimum confidence."""
        result = DateReconciler().reconcile(
            [PublicationInfoInput(source=_src("a", 0.9), date="someday")]
        )
        assert result.confidence == 0.1
        assert result.reasoning == "All dates have unknown precision, using first available"

    def test_no_inputs_raises(self) -> None:
        """Reconciling nothing is an input error."""
        with pytest.raises(ReconciliationInputError, match="No publication dates"):
            DateReconciler().reconcile([])


class TestPublishers:
    """Tests for publisher normalization and reconciliation."""

    def test_imprint_maps_to_family(self) -> None:
        """A known imprint normalizes to its publishing group."""
        assert normalize_publisher_name("Bantam Books") == "penguin random house"

    def test_abbreviation_expanded(self) -> None:
        """Abbreviations are expanded before family lookup."""
        assert normalize_publisher_name("Oxford Univ. Press") == "oxford university press"
        assert normalize_publisher_name("Natl Geographic Society") == "national geographic society"

    def test_corporate_suffix_removed(self) -> None:
        """Corporate suffixes are stripped."""
        assert normalize_publisher_name("Acme Widgets, Inc.") == "acme widgets"

    def test_group_with_most_reliability_wins(self) -> None:
        """Imprints of one family outweigh a lone publisher from another."""
        result = PublisherReconciler().reconcile(
            [
                PublicationInfoInput(source=_src("a", 0.8), publisher="Bantam Books"),
                PublicationInfoInput(source=_src("b", 0.9), publisher="Bantam"),
                PublicationInfoInput(source=_src("c", 0.7), publisher="Tor"),
            ]
        )
        assert result.value.name == "Bantam"
        assert result.value.normalized == "penguin random house"
        assert result.conflicts[0].field == "publisher"
        assert result.confidence == 0.99

    def test_blank_publishers(self) -> None:
        """Blank names give an empty publisher at minimum confidence."""
        result = PublisherReconciler().reconcile(
            [PublicationInfoInput(source=_src("a", 0.9), publisher="  ")]
        )
        assert result.value.name == ""
        assert result.confidence == 0.1


class TestPlaces:
    """Tests for place normalization and reconciliation."""

    def test_city_aliases(self) -> None:
        """Common aliases and qualified names reduce to the city."""
        assert normalize_place_name("NYC") == "new york"
        assert normalize_place_name("London, England") == "london"
        assert normalize_place_name("New York, NY") == "new york"

    def test_extract_country(self) -> None:
        """Countries come from the trailing part or the city itself."""
        assert extract_country("London, England") == "united kingdom"
        assert extract_country("Boston, MA") == "united states"
        assert extract_country("Paris") == "france"

    def test_reconcile_groups_by_city(self) -> None:
        """Spellings of one city combine their reliability."""
        result = PlaceReconciler().reconcile(
            [
                PublicationInfoInput(source=_src("a", 0.8), place="NYC"),
                PublicationInfoInput(source=_src("b", 0.6), place="New York, NY"),
                PublicationInfoInput(source=_src("c", 0.9), place="London"),
            ]
        )
        assert result.value.normalized == "new york"
        assert result.value.country == "united states"
        assert result.conflicts[0].field == "publication_place"


class TestPublicationReconciler:
    """Tests for the combined publication reconciler."""

    def test_missing_subfields_get_placeholders(self) -> None:
        """Sub-fields without data have zero confidence."""
        info = PublicationReconciler().reconcile(
            [PublicationInfoInput(source=_src("a", 0.9), date="1965")]
        )
        assert info.date.value.year == 1965
        assert info.publisher.confidence == 0.0
        assert info.publisher.reasoning == "No publisher information available"
        assert info.place.confidence == 0.0

    def test_weighted_confidence(self) -> None:
        """Block confidence is a weighted sum of sub-field confidences."""
        info = PublicationReconciler().reconcile(
            [PublicationInfoInput(source=_src("a", 0.9), date="1965")]
        )
        assert publication_confidence(info) == pytest.approx(info.date.confidence * 0.4)

    def test_no_inputs_raises(self) -> None:
        """Reconciling nothing is an input error."""
        with pytest.raises(ReconciliationInputError, match="No publication info"):
            PublicationReconciler().reconcile([])
