# ABOUTME: Preview package: turns reconciled metadata into a reviewable library addition.
# ABOUTME: Exports the generator plus duplicate, edition, series, quality, and conflict analysis.

from bibrecon.preview.conflicts import (
    ConflictDetectionConfig,
    ConflictDetector,
    ConflictSummary,
    DetailedConflict,
    render_report,
)
from bibrecon.preview.duplicates import DuplicateDetector, DuplicateDetectorConfig
from bibrecon.preview.editions import EditionSelector, EditionSelectorConfig
from bibrecon.preview.generator import PreviewConfig, PreviewGenerator
from bibrecon.preview.quality import QualityAssessor, QualityConfig
from bibrecon.preview.recommendations import generate_recommendations
from bibrecon.preview.series_analysis import SeriesAnalyzer, SeriesAnalyzerConfig
from bibrecon.preview.types import (
    DuplicateMatch,
    EditionSelection,
    FieldQuality,
    LibraryEntry,
    LibraryPreview,
    LibraryQuality,
    LibraryRecommendation,
    MetadataPreview,
    PreviewContext,
    PreviewField,
    PreviewSummary,
    SeriesRelationship,
    SourceAttribution,
)

__all__ = [
    "ConflictDetectionConfig",
    "ConflictDetector",
    "ConflictSummary",
    "DetailedConflict",
    "DuplicateDetector",
    "DuplicateDetectorConfig",
    "DuplicateMatch",
    "EditionSelection",
    "EditionSelector",
    "EditionSelectorConfig",
    "FieldQuality",
    "LibraryEntry",
    "LibraryPreview",
    "LibraryQuality",
    "LibraryRecommendation",
    "MetadataPreview",
    "PreviewConfig",
    "PreviewContext",
    "PreviewField",
    "PreviewGenerator",
    "PreviewSummary",
    "QualityAssessor",
    "QualityConfig",
    "SeriesAnalyzer",
    "SeriesAnalyzerConfig",
    "SeriesRelationship",
    "SourceAttribution",
    "generate_recommendations",
    "render_report",
]
