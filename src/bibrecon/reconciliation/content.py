# ABOUTME: Content reconciliation: descriptions, table of contents, reviews, ratings, covers, excerpts.
# ABOUTME: Cleans HTML-laden text, grades quality, and selects or blends the best-supported content.

import html
import logging
import math
import re
from collections import Counter
from collections.abc import Sequence

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.similarity import word_jaccard
from bibrecon.reconciliation.types import (
    Conflict,
    ConflictValue,
    ContentDescriptionInput,
    CoverImage,
    Description,
    EmptyInput,
    Rating,
    ReconciledContentDescription,
    ReconciledField,
    Review,
    TableOfContents,
    TocEntry,
)
from bibrecon.reconciliation.weights import (
    EXCERPT_SCALE,
    MIN_CONFIDENCE,
    RATING_SCALE,
    REVIEWS_SCALE,
    TOC_SCALE,
    agreement_bonus,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

_DESCRIPTION_PREFIX_RE = re.compile(
    r"^(book description|product description|editorial review|from the publisher|"
    r"from the back cover|book summary|description|summary|synopsis|about|overview):\s*",
    re.IGNORECASE,
)
_TAG_RE = re.compile(r"<[^>]*>")
_BLOCK_TAG_RE = re.compile(r"<\s*(br|/p|/div|/li)\s*/?>", re.IGNORECASE)
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_INLINE_SPACE_RE = re.compile(r"[ \t]+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_TERMINAL_PUNCTUATION_RE = re.compile(r"[.!?]$")
_TOC_DOTTED_RE = re.compile(r"^(.+?)\s*\.{2,}\s*(\d+)$")
_TOC_TRAILING_PAGE_RE = re.compile(r"^(.+?)\s+(\d+)$")
_TOC_CHAPTER_PREFIX_RE = re.compile(r"^(chapter\s*\d+\s*[:.]\s*|ch\.?\s*\d+\s*[:.]\s*|\d+\.\s*)", re.IGNORECASE)

_MIN_DESCRIPTION_LENGTH = 10
_DIVERGENT_TEXT_SIMILARITY = 0.7
_DIVERGENT_RATING_SPREAD = 0.3
_MAX_REVIEWS = 10
_IDEAL_EXCERPT_LENGTH = 500
_RELIABILITY_TIE = 0.1

_POSITIVE_SOURCE_HINTS = (
    "publisher",
    "official",
    "author",
    "editorial",
    "jacket",
    "back cover",
    "synopsis",
    "summary",
)
_NEGATIVE_SOURCE_HINTS = ("user", "review", "comment", "opinion", "personal", "brief", "partial")
_PROMOTIONAL_WORDS = ("amazing", "incredible", "must-read", "bestseller", "award-winning", "unforgettable")

_IMAGE_FORMATS = {"jpg": "jpeg", "jpeg": "jpeg", "png": "png", "webp": "webp", "gif": "gif", "svg": "svg"}
_IMAGE_FORMAT_POINTS = {"jpeg": 0.1, "png": 0.1, "webp": 0.05, "gif": -0.05}
_IMAGE_QUALITY_POINTS = {"original": 0.15, "large": 0.1, "medium": 0.05, "small": 0.0, "thumbnail": -0.1}
_MIN_WIDTH, _MIN_HEIGHT = 200, 300
_PREFERRED_WIDTH, _PREFERRED_HEIGHT = 400, 600
_MAX_WIDTH, _MAX_HEIGHT = 2000, 3000
_PREFERRED_ASPECT = 1.5
_ASPECT_TOLERANCE = 0.3
_TOC_FORMAT_RANK = {"detailed": 3, "hierarchical": 2, "simple": 1}


def clean_description_text(text: str) -> str:
    """Strip labels and HTML, decode entities, and normalize whitespace."""
    if not text:
        return ""
    cleaned = text.strip().replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _BLOCK_TAG_RE.sub("\n", cleaned)
    cleaned = _TAG_RE.sub("", cleaned)
    cleaned = html.unescape(cleaned).replace("\xa0", " ")
    cleaned = _DESCRIPTION_PREFIX_RE.sub("", cleaned.strip())
    cleaned = _INLINE_SPACE_RE.sub(" ", cleaned)
    cleaned = _EXCESS_NEWLINES_RE.sub("\n\n", cleaned)
    return "\n".join(line.strip() for line in cleaned.split("\n")).strip()


def detect_description_type(text: str, source: str | None = None) -> str:
    lowered = text.lower()
    hint = (source or "").lower()
    if "publisher" in hint or "official" in hint:
        return "summary"
    if "review" in hint or "editorial" in hint:
        return "blurb"
    if "abstract" in hint or "academic" in hint:
        return "abstract"
    for kind in ("synopsis", "summary", "abstract"):
        if lowered.startswith((f"{kind}:", f"{kind} ")):
            return kind
    for kind in ("synopsis", "summary", "abstract"):
        if kind in lowered:
            return kind
    if len(text) < 200:
        return "blurb"
    if len(text) > 1000:
        return "description"
    return "summary"


def description_length(text: str) -> str:
    if len(text) < 200:
        return "short"
    if len(text) < 800:
        return "medium"
    return "long"


def description_quality(text: str, source: str | None = None) -> float:
    """Score 0.1 to 1.0 from length, sentence structure, provenance, and promotional tone."""
    if len(text) < _MIN_DESCRIPTION_LENGTH:
        return 0.1
    quality = 0.5
    length = len(text)
    if 100 <= length <= 1000:
        quality += 0.2
    elif 50 <= length <= 1500:
        quality += 0.1
    elif length < 50 or length > 2000:
        quality -= 0.1

    if source:
        hint = source.lower()
        if any(h in hint for h in _POSITIVE_SOURCE_HINTS):
            quality += 0.1
        if any(h in hint for h in _NEGATIVE_SOURCE_HINTS):
            quality -= 0.1

    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    if 2 <= len(sentences) <= 10:
        quality += 0.1
    if _TERMINAL_PUNCTUATION_RE.search(text.strip()):
        quality += 0.05

    lowered = text.lower()
    if sum(1 for word in _PROMOTIONAL_WORDS if word in lowered) > 2:
        quality -= 0.1
    return max(0.1, min(1.0, quality))


def normalize_description(value: str | Description) -> Description:
    if isinstance(value, Description):
        text = clean_description_text(value.text)
        return Description(
            text=text,
            type=value.type or detect_description_type(value.text, value.source),
            length=value.length or description_length(text),
            quality=value.quality if value.quality is not None else description_quality(text, value.source),
            language=value.language,
            source=value.source,
            raw=value.raw or value.text,
        )
    text = clean_description_text(value)
    return Description(
        text=text,
        type=detect_description_type(value),
        length=description_length(text),
        quality=description_quality(text),
        raw=value,
    )


def parse_table_of_contents(text: str) -> tuple[TocEntry, ...]:
    """Parse one entry per line; "Title .... 12" and "Title 12" carry page numbers."""
    entries = []
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        level = (len(line) - len(line.lstrip())) // 2
        page = None
        match = _TOC_DOTTED_RE.match(stripped) or _TOC_TRAILING_PAGE_RE.match(stripped)
        if match:
            title, page = match.group(1), int(match.group(2))
        else:
            title = stripped
        title = _TOC_CHAPTER_PREFIX_RE.sub("", title).strip()
        if title:
            entries.append(TocEntry(title=title, page=page, level=level))
    return tuple(entries)


def _normalize_entry(entry: TocEntry) -> TocEntry:
    return TocEntry(
        title=entry.title.strip(),
        page=entry.page,
        level=entry.level or 0,
        children=tuple(_normalize_entry(child) for child in entry.children),
    )


def toc_format(entries: Sequence[TocEntry]) -> str:
    if any(entry.children for entry in entries):
        return "hierarchical"
    if any(entry.page is not None for entry in entries):
        return "detailed"
    return "simple"


def normalize_table_of_contents(value: str | TableOfContents) -> TableOfContents:
    if isinstance(value, TableOfContents):
        entries = tuple(_normalize_entry(entry) for entry in value.entries)
        return TableOfContents(
            entries=entries,
            format=value.format or toc_format(entries),
            page_numbers=value.page_numbers or any(e.page is not None for e in entries),
            raw=value.raw,
        )
    entries = parse_table_of_contents(value)
    return TableOfContents(
        entries=entries,
        format=toc_format(entries),
        page_numbers=any(e.page is not None for e in entries),
        raw=value,
    )


def image_format(url: str) -> str:
    extension = url.lower().split("?")[0].rsplit(".", 1)[-1]
    return _IMAGE_FORMATS.get(extension, "other")


def image_quality_category(width: int | None, height: int | None) -> str:
    if not width or not height:
        return "medium"
    area = width * height
    if area < 40_000:
        return "thumbnail"
    if area < 160_000:
        return "small"
    if area < 640_000:
        return "medium"
    if area < 2_560_000:
        return "large"
    return "original"


def normalize_cover_image(value: str | CoverImage) -> CoverImage:
    if isinstance(value, CoverImage):
        aspect = value.aspect_ratio
        if aspect is None and value.width and value.height:
            aspect = value.height / value.width
        return CoverImage(
            url=value.url,
            width=value.width,
            height=value.height,
            format=value.format or image_format(value.url),
            size=value.size,
            quality=value.quality or image_quality_category(value.width, value.height),
            aspect_ratio=aspect,
            source=value.source,
            verified=value.verified,
        )
    return CoverImage(url=value, format=image_format(value), quality="medium")


def image_score(image: CoverImage) -> float:
    score = 0.5
    if image.width and image.height:
        if image.width >= _PREFERRED_WIDTH:
            score += 0.2
        elif image.width >= _MIN_WIDTH:
            score += 0.1
        else:
            score -= 0.2
        if image.height >= _PREFERRED_HEIGHT:
            score += 0.2
        elif image.height >= _MIN_HEIGHT:
            score += 0.1
        else:
            score -= 0.2
        if image.width > _MAX_WIDTH or image.height > _MAX_HEIGHT:
            score -= 0.1
        if image.aspect_ratio:
            diff = abs(image.aspect_ratio - _PREFERRED_ASPECT)
            if diff <= _ASPECT_TOLERANCE:
                score += 0.1
            elif diff > _ASPECT_TOLERANCE * 2:
                score -= 0.1
    score += _IMAGE_FORMAT_POINTS.get(image.format or "", 0.0)
    if image.verified:
        score += 0.1
    score += _IMAGE_QUALITY_POINTS.get(image.quality or "", 0.0)
    return max(0.1, min(1.0, score))


def _description_confidence(description: Description, source: MetadataSource) -> float:
    confidence = source.reliability * (0.5 + (description.quality or 0.1) * 0.5)
    if description.length == "medium":
        confidence *= 1.1
    elif description.length == "long":
        confidence *= 1.05
    return confidence


class ContentReconciler:
    """Selects the best description, contents, reviews, rating, cover, and excerpt."""

    def reconcile(self, inputs: Sequence[ContentDescriptionInput]) -> ReconciledContentDescription:
        if not inputs:
            msg = "No content descriptions to reconcile"
            raise ReconciliationInputError(msg)
        return ReconciledContentDescription(
            description=self.reconcile_descriptions(inputs),
            table_of_contents=self.reconcile_table_of_contents(inputs),
            reviews=self.reconcile_reviews(inputs),
            rating=self.reconcile_rating(inputs),
            cover_image=self.reconcile_cover_image(inputs),
            excerpt=self.reconcile_excerpt(inputs),
        )

    def try_reconcile(
        self, inputs: Sequence[ContentDescriptionInput]
    ) -> ReconciledContentDescription | EmptyInput:
        if not inputs:
            return EmptyInput("No content descriptions to reconcile")
        return self.reconcile(inputs)

    def reconcile_descriptions(
        self, inputs: Sequence[ContentDescriptionInput]
    ) -> ReconciledField[Description]:
        all_sources = tuple(item.source for item in inputs)
        candidates: list[tuple[Description, MetadataSource]] = []
        for item in inputs:
            for raw in item.descriptions:
                description = normalize_description(raw)
                if len(description.text) > _MIN_DESCRIPTION_LENGTH:
                    candidates.append((description, item.source))

        if not candidates:
            return ReconciledField(
                value=Description(text="", type="description", length="short", quality=0.1),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No valid descriptions found",
            )

        # Quality and reliability are compared in coarse 0.1 bands so length can break near-ties.
        candidates.sort(
            key=lambda pair: (
                -round(pair[0].quality or 0, 1),
                -round(pair[1].reliability, 1),
                -len(pair[0].text),
            )
        )
        best, _ = candidates[0]
        supporters = [
            source
            for description, source in candidates
            if word_jaccard(description.text, best.text) >= _DIVERGENT_TEXT_SIMILARITY
        ]
        agreeing = {source.name for source in supporters}
        strongest = max(supporters, key=lambda source: source.reliability)
        divergent = any(
            word_jaccard(description.text, best.text) < _DIVERGENT_TEXT_SIMILARITY
            for description, _ in candidates
        )

        conflicts: tuple[Conflict, ...] = ()
        if divergent:
            conflicts = (
                Conflict(
                    field="description",
                    values=tuple(ConflictValue(d, s) for d, s in candidates),
                    resolution=(
                        "Selected highest quality description based on content quality "
                        "and source reliability"
                    ),
                ),
            )

        confidence = _description_confidence(best, strongest) + agreement_bonus(len(agreeing))
        return ReconciledField(
            value=best,
            confidence=clamp_confidence(confidence),
            sources=all_sources,
            conflicts=conflicts,
            reasoning=(
                "Selected best description from multiple sources with conflict resolution"
                if conflicts
                else "Selected best available description"
            ),
        )

    def reconcile_table_of_contents(
        self, inputs: Sequence[ContentDescriptionInput]
    ) -> ReconciledField[TableOfContents]:
        all_sources = tuple(item.source for item in inputs)
        candidates: list[tuple[TableOfContents, MetadataSource]] = []
        for item in inputs:
            if item.table_of_contents is None:
                continue
            toc = normalize_table_of_contents(item.table_of_contents)
            if toc.entries:
                candidates.append((toc, item.source))

        if not candidates:
            return ReconciledField(
                value=TableOfContents(format="simple"),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No table of contents found",
            )

        best, best_source = max(
            candidates,
            key=lambda pair: (
                len(pair[0].entries),
                _TOC_FORMAT_RANK.get(pair[0].format or "", 0),
                pair[1].reliability,
            ),
        )
        return ReconciledField(
            value=best,
            confidence=clamp_confidence(best_source.reliability * TOC_SCALE),
            sources=all_sources,
            reasoning="Selected most complete table of contents",
        )

    def reconcile_reviews(
        self, inputs: Sequence[ContentDescriptionInput]
    ) -> ReconciledField[tuple[Review, ...]]:
        all_sources = tuple(item.source for item in inputs)
        reviews = [review for item in inputs for review in item.reviews]
        if not reviews:
            return ReconciledField(
                value=(),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No reviews found",
            )

        def helpfulness(review: Review) -> float:
            if review.helpful and review.total:
                return review.helpful / review.total
            return 0.0

        reviews.sort(
            key=lambda r: (not r.verified, -round(helpfulness(r), 1), -len(r.text or ""))
        )
        selected = tuple(reviews[:_MAX_REVIEWS])
        reviewing = [item.source.reliability for item in inputs if item.reviews]
        confidence = max(reviewing) * REVIEWS_SCALE
        return ReconciledField(
            value=selected,
            confidence=clamp_confidence(confidence),
            sources=all_sources,
            reasoning=f"Selected top {len(selected)} reviews based on verification and quality",
        )

    def reconcile_rating(self, inputs: Sequence[ContentDescriptionInput]) -> ReconciledField[Rating]:
        all_sources = tuple(item.source for item in inputs)
        ratings = [
            (rating, item.source) for item in inputs for rating in item.ratings if rating.scale > 0
        ]
        if not ratings:
            return ReconciledField(
                value=Rating(value=0, scale=5),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No ratings found",
            )

        weighted = 0.0
        total_weight = 0.0
        for rating, source in ratings:
            count_weight = math.log10(rating.count + 1) if rating.count else 1.0
            weight = source.reliability * count_weight
            weighted += (rating.value / rating.scale) * weight
            total_weight += weight
        normalized = weighted / total_weight if total_weight else 0.0

        scale = Counter(rating.scale for rating, _ in ratings).most_common(1)[0][0]
        total_count = sum(rating.count or 0 for rating, _ in ratings)
        value = Rating(
            value=round(normalized * scale, 1),
            scale=scale,
            count=total_count or None,
        )

        spread = [rating.value / rating.scale for rating, _ in ratings]
        conflicts: tuple[Conflict, ...] = ()
        if len(ratings) > 1 and max(spread) - min(spread) > _DIVERGENT_RATING_SPREAD:
            conflicts = (
                Conflict(
                    field="rating",
                    values=tuple(ConflictValue(r, s) for r, s in ratings),
                    resolution="Calculated weighted average based on source reliability and rating counts",
                ),
            )

        confidence = max(source.reliability for _, source in ratings) * RATING_SCALE
        agreeing = len({source.name for _, source in ratings}) if not conflicts else 1
        return ReconciledField(
            value=value,
            confidence=clamp_confidence(confidence + agreement_bonus(agreeing)),
            sources=all_sources,
            conflicts=conflicts,
            reasoning=(
                "Calculated weighted average rating with conflict resolution"
                if conflicts
                else "Calculated weighted average rating from all sources"
            ),
        )

    def reconcile_cover_image(
        self, inputs: Sequence[ContentDescriptionInput]
    ) -> ReconciledField[CoverImage]:
        all_sources = tuple(item.source for item in inputs)
        images = [
            (normalize_cover_image(raw), item.source)
            for item in inputs
            for raw in item.cover_images
            if (raw.url if isinstance(raw, CoverImage) else raw)
        ]
        if not images:
            return ReconciledField(
                value=CoverImage(url="", quality="medium"),
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No cover images found",
            )

        best, best_source = max(images, key=lambda pair: image_score(pair[0]) * pair[1].reliability)
        conflicts: tuple[Conflict, ...] = ()
        if len({image.url for image, _ in images}) > 1:
            conflicts = (
                Conflict(
                    field="cover_image",
                    values=tuple(ConflictValue(i, s) for i, s in images),
                    resolution=(
                        "Selected highest quality image based on resolution, format, "
                        "and source reliability"
                    ),
                ),
            )
        return ReconciledField(
            value=best,
            confidence=clamp_confidence(best_source.reliability * image_score(best)),
            sources=all_sources,
            conflicts=conflicts,
            reasoning=(
                "Selected best cover image from multiple sources with conflict resolution"
                if conflicts
                else "Selected best available cover image"
            ),
        )

    def reconcile_excerpt(self, inputs: Sequence[ContentDescriptionInput]) -> ReconciledField[str]:
        all_sources = tuple(item.source for item in inputs)
        excerpts = [
            (item.excerpt.strip(), item.source) for item in inputs if item.excerpt and item.excerpt.strip()
        ]
        if not excerpts:
            return ReconciledField(
                value="",
                confidence=MIN_CONFIDENCE,
                sources=all_sources,
                reasoning="No excerpts found",
            )

        excerpts.sort(
            key=lambda pair: (
                -round(pair[1].reliability / _RELIABILITY_TIE),
                abs(len(pair[0]) - _IDEAL_EXCERPT_LENGTH),
            )
        )
        best, _ = excerpts[0]
        strongest = max(source.reliability for text, source in excerpts if text == best)
        return ReconciledField(
            value=best,
            confidence=clamp_confidence(strongest * EXCERPT_SCALE),
            sources=all_sources,
            reasoning="Selected best excerpt based on source reliability and length",
        )
