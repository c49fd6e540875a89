# ABOUTME: Unit tests for identifier normalization, validation, and reconciliation.
# ABOUTME: Covers ISBN-10/13 conversion, type detection, dedup across sources, and conflicts.

import pytest

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.identifiers import (
    IdentifierReconciler,
    detect_identifier_type,
    is_valid_isbn10,
    is_valid_isbn13,
    isbn10_to_isbn13,
    normalize_identifier,
    normalize_isbn,
)
from bibrecon.reconciliation.types import EmptyInput, Identifier, IdentifierInput


def _src(name: str, reliability: float) -> MetadataSource:
    return MetadataSource(name, reliability)


class TestIsbnHelpers:
    """Tests for ISBN checksum and conversion helpers."""

    def test_valid_isbn10(self) -> None:
        """A correct mod-11 checksum validates."""
        assert is_valid_isbn10("0141182636")
        assert is_valid_isbn10("080442957X")

    def test_invalid_isbn10(self) -> None:
        """A wrong check digit fails."""
        assert not is_valid_isbn10("0141182637")

    def test_valid_isbn13(self) -> None:
        """978/979 prefixed values with a correct EAN check digit validate."""
        assert is_valid_isbn13("9780141182636")
        assert not is_valid_isbn13("9780141182637")
        assert not is_valid_isbn13("1230141182636")

    def test_isbn10_to_isbn13_recomputes_check_digit(self) -> None:
        """Conversion prefixes 978 and computes a fresh check digit."""
        assert isbn10_to_isbn13("0141182636") == "9780141182636"

    def test_normalize_isbn_strips_separators(self) -> None:
        """Hyphens and spaces are removed and ISBN-10 becomes ISBN-13."""
        assert normalize_isbn("978-0-14-118263-6") == "9780141182636"
        assert normalize_isbn("0 14 118263 6") == "9780141182636"

    @pytest.mark.parametrize("isbn10", ["0141182636", "0306406152", "080442957X"])
    def test_round_trip_gives_valid_isbn13(self, isbn10: str) -> None:
        """Every normalized ISBN-10 is a valid ISBN-13."""
        assert is_valid_isbn13(normalize_isbn(isbn10))


class TestDetectIdentifierType:
    """Tests for detect_identifier_type."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("978-0-14-118263-6", "isbn"),
            ("0141182636", "isbn"),
            ("10.1000/182", "doi"),
            ("https://doi.org/10.1000/182", "doi"),
            ("https://www.goodreads.com/book/show/234225", "goodreads"),
            ("B000FC1PJI", "amazon"),
            ("https://books.google.com/books?id=abc123", "google"),
            ("ocm12345678", "oclc"),
            ("n2001050123", "lccn"),
            ("whatever", "other"),
        ],
    )
    def test_detects_type(self, value: str, expected: str) -> None:
        """Identifier shapes map to their types."""
        assert detect_identifier_type(value) == expected


class TestNormalizeIdentifier:
    """Tests for normalize_identifier."""

    def test_isbn10_normalized_to_isbn13(self) -> None:
        """The raw value is kept and the normalized form is ISBN-13."""
        identifier = normalize_identifier("0141182636")
        assert identifier.type == "isbn"
        assert identifier.value == "0141182636"
        assert identifier.normalized == "9780141182636"
        assert identifier.valid

    def test_bad_isbn10_checksum_flagged_invalid(self) -> None:
        """An ISBN-10 with a bad checksum is invalid even after conversion."""
        identifier = normalize_identifier("0141182637")
        assert identifier.normalized == normalize_isbn("0141182637")
        assert identifier.valid is False

    def test_explicit_type_wins(self) -> None:
        """A supplied type is used instead of detection."""
        identifier = normalize_identifier("12345678", "oclc")
        assert identifier.type == "oclc"
        assert identifier.valid

    def test_doi_prefix_removed(self) -> None:
        """doi: and doi.org prefixes are stripped."""
        assert normalize_identifier("doi:10.1000/182").normalized == "10.1000/182"
        assert normalize_identifier("https://doi.org/10.1000/182").normalized == "10.1000/182"

    def test_partial_identifier_completed(self) -> None:
        """An Identifier without normalized form gets one."""
        identifier = normalize_identifier(Identifier(type="amazon", value="amazon:b000fc1pji"))
        assert identifier.normalized == "B000FC1PJI"
        assert identifier.valid

    def test_deterministic(self) -> None:
        """The same input always gives the same result."""
        assert normalize_identifier("978-0-14-118263-6") == normalize_identifier("978-0-14-118263-6")


class TestIdentifierReconciler:
    """Tests for IdentifierReconciler."""

    def test_isbn_forms_collapse_to_one(self) -> None:
        """Hyphenated ISBN-13 and plain ISBN-10 of the same book become one identifier."""
        result = IdentifierReconciler().reconcile(
            [
                IdentifierInput(source=_src("a", 0.8), identifiers=("978-0-14-118263-6",)),
                IdentifierInput(source=_src("b", 0.9), identifiers=("0141182636",)),
            ]
        )
        isbns = [i for i in result.value if i.type == "isbn"]
        assert len(isbns) == 1
        assert isbns[0].normalized == "9780141182636"
        assert isbns[0].valid
        assert result.confidence > 0.8

    def test_differing_raw_values_recorded_as_conflict(self) -> None:
        """Sources that spell the same identifier differently leave a conflict behind."""
        result = IdentifierReconciler().reconcile(
            [
                IdentifierInput(source=_src("a", 0.8), isbn=("978-0-14-118263-6",)),
                IdentifierInput(source=_src("b", 0.9), isbn=("0141182636",)),
            ]
        )
        assert len(result.conflicts) == 1
        assert result.conflicts[0].field == "identifier_isbn"

    def test_identical_raw_values_no_conflict(self) -> None:
        """Agreeing sources produce no conflict."""
        result = IdentifierReconciler().reconcile(
            [
                IdentifierInput(source=_src("a", 0.8), isbn=("9780141182636",)),
                IdentifierInput(source=_src("b", 0.9), isbn=("9780141182636",)),
            ]
        )
        assert result.conflicts == ()

    def test_valid_and_priority_ordering(self) -> None:
        """Valid identifiers come first, then by type priority."""
        result = IdentifierReconciler().reconcile(
            [
                IdentifierInput(
                    source=_src("a", 0.9),
                    oclc=("12345678",),
                    doi=("10.1000/182",),
                    isbn=("9780141182636",),
                    goodreads="not-a-number",
                )
            ]
        )
        assert [i.type for i in result.value] == ["isbn", "doi", "oclc", "goodreads"]
        assert result.value[-1].valid is False

    def test_all_blank_gives_minimum_confidence(self) -> None:
        """Only blank values yield an empty list at minimum confidence."""
        result = IdentifierReconciler().reconcile(
            [IdentifierInput(source=_src("a", 0.9), identifiers=("  ",))]
        )
        assert result.value == ()
        assert result.confidence == 0.1
        assert result.reasoning == "No valid identifiers found"

    def test_no_inputs_raises(self) -> None:
        """Reconciling nothing is an input error."""
        with pytest.raises(ReconciliationInputError, match="No identifiers"):
            IdentifierReconciler().reconcile([])

    def test_try_reconcile_returns_empty_marker(self) -> None:
        """try_reconcile reports empty input without raising."""
        result = IdentifierReconciler().try_reconcile([])
        assert isinstance(result, EmptyInput)
        assert "No identifiers" in result.reason

    def test_same_winner_on_repeat(self) -> None:
        """Reconciliation is deterministic."""
        inputs = [
            IdentifierInput(source=_src("a", 0.7), isbn=("0141182636",)),
            IdentifierInput(source=_src("b", 0.9), isbn=("978-0-14-118263-6",)),
        ]
        first = IdentifierReconciler().reconcile(inputs)
        second = IdentifierReconciler().reconcile(inputs)
        assert first.value == second.value
        assert first.value[0].value == "978-0-14-118263-6"
