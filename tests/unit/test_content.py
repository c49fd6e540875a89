# ABOUTME: Unit tests for content cleanup, grading, and reconciliation.
# ABOUTME: Covers description HTML stripping, contents parsing, ratings, covers, reviews, and excerpts.

import pytest

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.content import (
    ContentReconciler,
    clean_description_text,
    description_quality,
    detect_description_type,
    image_format,
    image_quality_category,
    normalize_table_of_contents,
)
from bibrecon.reconciliation.types import ContentDescriptionInput, CoverImage, Rating, Review

DUNE_BLURB = (
    "A young nobleman must survive on the desert planet Arrakis. "
    "He becomes a leader of its people."
)


def _src(name: str, reliability: float) -> MetadataSource:
    return MetadataSource(name, reliability)


class TestDescriptionCleanup:
    """Tests for description text helpers."""

    def test_strips_label_tags_and_entities(self) -> None:
        """Leading labels, HTML tags, and entities are cleaned."""
        raw = "Description: <p>A <b>bold</b> tale &amp; more.</p>"
        assert clean_description_text(raw) == "A bold tale & more."

    def test_line_breaks_preserved(self) -> None:
        """Block-level tags become newlines."""
        assert clean_description_text("Line one<br>Line two") == "Line one\nLine two"

    def test_too_short_is_lowest_quality(self) -> None:
        """Very short text scores 0.1."""
        assert description_quality("short") == 0.1

    def test_well_formed_text_scores_higher(self) -> None:
        """Multiple complete sentences of moderate length score well."""
        assert description_quality(DUNE_BLURB) == pytest.approx(0.75)

    def test_publisher_source_is_summary(self) -> None:
        """Publisher-provided text is a summary."""
        assert detect_description_type("Anything at all.", "Publisher") == "summary"


class TestTableOfContents:
    """Tests for contents parsing."""

    def test_parses_pages_levels_and_prefixes(self) -> None:
        """Dotted leaders, trailing pages, indentation, and chapter prefixes are handled."""
        toc = normalize_table_of_contents(
            "Chapter 1: Beginnings .... 1\nChapter 2: Arrakis 45\n  Interlude"
        )
        assert [(e.title, e.page, e.level) for e in toc.entries] == [
            ("Beginnings", 1, 0),
            ("Arrakis", 45, 0),
            ("Interlude", None, 1),
        ]
        assert toc.format == "detailed"
        assert toc.page_numbers


class TestImages:
    """Tests for cover image helpers."""

    def test_format_from_url(self) -> None:
        """The extension before any query string decides the format."""
        assert image_format("http://covers.example/cover.JPG?size=L") == "jpeg"
        assert image_format("http://covers.example/cover") == "other"

    def test_quality_category(self) -> None:
        """Pixel area maps to a quality category."""
        assert image_quality_category(100, 100) == "thumbnail"
        assert image_quality_category(500, 750) == "medium"
        assert image_quality_category(None, None) == "medium"


class TestContentReconciler:
    """Tests for ContentReconciler."""

    def test_divergent_descriptions_conflict(self) -> None:
        """Unrelated descriptions are recorded as a conflict and the better one wins."""
        result = ContentReconciler().reconcile_descriptions(
            [
                ContentDescriptionInput(source=_src("a", 0.9), descriptions=(DUNE_BLURB,)),
                ContentDescriptionInput(
                    source=_src("b", 0.5),
                    descriptions=("Totally different text about cooking recipes from Italy",),
                ),
            ]
        )
        assert result.value.text == DUNE_BLURB
        assert result.conflicts[0].field == "description"

    def test_no_descriptions(self) -> None:
        """Missing descriptions give an empty placeholder."""
        result = ContentReconciler().reconcile_descriptions(
            [ContentDescriptionInput(source=_src("a", 0.9), descriptions=("tiny",))]
        )
        assert result.value.text == ""
        assert result.confidence == 0.1

    def test_longest_table_of_contents_wins(self) -> None:
        """The contents with the most entries is chosen."""
        result = ContentReconciler().reconcile_table_of_contents(
            [
                ContentDescriptionInput(source=_src("a", 0.9), table_of_contents="One\nTwo"),
                ContentDescriptionInput(source=_src("b", 0.5), table_of_contents="One\nTwo\nThree"),
            ]
        )
        assert len(result.value.entries) == 3
        assert result.confidence == pytest.approx(0.45)

    def test_ratings_on_different_scales_average(self) -> None:
        """Ratings are normalized by scale and weighted by reliability and count."""
        result = ContentReconciler().reconcile_rating(
            [
                ContentDescriptionInput(source=_src("a", 0.9), ratings=(Rating(4.0, 5, 99),)),
                ContentDescriptionInput(source=_src("b", 0.9), ratings=(Rating(8.0, 10, 9),)),
            ]
        )
        assert result.value == Rating(value=4.0, scale=5, count=108)
        assert result.conflicts == ()
        assert result.confidence == pytest.approx(0.86)

    def test_divergent_ratings_conflict(self) -> None:
        """Widely different ratings are recorded as a conflict."""
        result = ContentReconciler().reconcile_rating(
            [
                ContentDescriptionInput(source=_src("a", 0.9), ratings=(Rating(5.0, 5),)),
                ContentDescriptionInput(source=_src("b", 0.9), ratings=(Rating(1.0, 5),)),
            ]
        )
        assert result.value.value == 3.0
        assert result.conflicts[0].field == "rating"

    def test_best_cover_image(self) -> None:
        """A large, well-proportioned JPEG beats a plain GIF URL."""
        result = ContentReconciler().reconcile_cover_image(
            [
                ContentDescriptionInput(source=_src("a", 0.8), cover_images=("http://x/small.gif",)),
                ContentDescriptionInput(
                    source=_src("b", 0.8),
                    cover_images=(CoverImage(url="http://x/big.jpg", width=500, height=750),),
                ),
            ]
        )
        assert result.value.url == "http://x/big.jpg"
        assert result.value.aspect_ratio == pytest.approx(1.5)
        assert result.confidence == pytest.approx(0.8)
        assert result.conflicts[0].field == "cover_image"

    def test_verified_reviews_first(self) -> None:
        """Verified reviews sort ahead of unverified ones."""
        result = ContentReconciler().reconcile_reviews(
            [
                ContentDescriptionInput(
                    source=_src("a", 1.0),
                    reviews=(Review(text="meh"), Review(text="great", verified=True)),
                )
            ]
        )
        assert result.value[0].text == "great"
        assert result.confidence == pytest.approx(0.8)

    def test_excerpt_length_breaks_ties(self) -> None:
        """Among equally reliable sources, the excerpt nearest the ideal length wins."""
        result = ContentReconciler().reconcile_excerpt(
            [
                ContentDescriptionInput(source=_src("a", 0.9), excerpt="x" * 100),
                ContentDescriptionInput(source=_src("b", 0.9), excerpt="y" * 480),
                ContentDescriptionInput(source=_src("c", 0.9), excerpt="   "),
            ]
        )
        assert result.value == "y" * 480
        assert result.confidence == pytest.approx(0.72)

    def test_no_inputs_raises(self) -> None:
        """Reconciling nothing is an input error."""
        with pytest.raises(ReconciliationInputError, match="No content descriptions"):
            ContentReconciler().reconcile([])
