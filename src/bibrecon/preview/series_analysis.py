# ABOUTME: Links a proposed book to series already present in the library.
# ABOUTME: Finds previous and next volumes by position and flags missing volumes.

from collections.abc import Sequence
from dataclasses import dataclass

from bibrecon.preview.types import LibraryEntry, SeriesRelationship
from bibrecon.reconciliation.series import normalize_series_name, parse_volume
from bibrecon.reconciliation.similarity import string_similarity
from bibrecon.reconciliation.types import RelatedWork, Series


@dataclass(frozen=True)
class SeriesAnalyzerConfig:
    min_series_name_similarity: float = 0.8
    default_confidence: float = 0.8


def _volume(series: Series) -> float | None:
    if isinstance(series.volume, str):
        return parse_volume(series.volume)
    return series.volume


class SeriesAnalyzer:
    def __init__(self, config: SeriesAnalyzerConfig | None = None) -> None:
        self.config = config or SeriesAnalyzerConfig()

    def _same_series(self, a: Series, b: Series) -> bool:
        similarity = string_similarity(normalize_series_name(a.name), normalize_series_name(b.name))
        return similarity >= self.config.min_series_name_similarity

    def detect_relationships(
        self, title: str | None, series_list: Sequence[Series], library: Sequence[LibraryEntry]
    ) -> list[SeriesRelationship]:
        return [self.analyze(title, series, library) for series in series_list if series.name]

    def analyze(
        self, title: str | None, series: Series, library: Sequence[LibraryEntry]
    ) -> SeriesRelationship:
        members: list[tuple[LibraryEntry, float | None]] = []
        for entry in library:
            for owned in entry.series:
                if self._same_series(owned, series):
                    members.append((entry, _volume(owned)))
                    break

        volume = _volume(series)
        previous_work = next_work = None
        if volume is not None:
            for entry, owned_volume in members:
                if owned_volume == volume - 1:
                    previous_work = RelatedWork(entry.title, "prequel", confidence=0.9)
                elif owned_volume == volume + 1:
                    next_work = RelatedWork(entry.title, "sequel", confidence=0.9)

        related = tuple(
            RelatedWork(
                entry.title,
                "part_of",
                confidence=self.config.default_confidence,
                description=f"Part of the {series.name} series",
            )
            for entry, _ in members
            if entry.title != title
        )

        return SeriesRelationship(
            series=series,
            position=volume or series.position or 0,
            previous_work=previous_work,
            next_work=next_work,
            related_works=related,
            confidence=self.config.default_confidence,
            is_series_complete=bool(series.total_volumes) and len(members) >= (series.total_volumes or 0),
            missing_works=self._missing(series, volume, members),
        )

    def _missing(
        self, series: Series, volume: float | None, members: list[tuple[LibraryEntry, float | None]]
    ) -> tuple[RelatedWork, ...]:
        if not series.total_volumes or volume is None:
            return ()
        owned = {v for _, v in members if v is not None}
        return tuple(
            RelatedWork(
                f"{series.name} Volume {i}",
                "part_of",
                confidence=0.7,
                description=f"Missing volume {i} of {series.name}",
            )
            for i in range(1, series.total_volumes + 1)
            if i != volume and i not in owned
        )
