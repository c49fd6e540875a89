# ABOUTME: Publication place normalization with city and country alias tables.
# ABOUTME: Reconciles place claims by grouping on the canonical city name.

import logging
import re
from collections.abc import Sequence

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.metadata.types import MetadataSource
from bibrecon.reconciliation.similarity import string_similarity
from bibrecon.reconciliation.types import (
    Conflict,
    ConflictValue,
    PublicationInfoInput,
    PublicationPlace,
    ReconciledField,
)
from bibrecon.reconciliation.weights import MIN_CONFIDENCE, agreement_bonus, clamp_confidence

logger = logging.getLogger(__name__)

_LEADING_THE_RE = re.compile(r"^the\s+", re.IGNORECASE)
_SPECIAL_CHAR_RE = re.compile(r"[^\w\s,.-]")
_WHITESPACE_RE = re.compile(r"\s+")

_CITY_SIMILARITY = 0.9

CITY_ALIASES: dict[str, tuple[str, ...]] = {
    "new york": ("new york city", "nyc", "ny", "manhattan", "brooklyn"),
    "london": ("london, england", "london, uk"),
    "paris": ("paris, france",),
    "berlin": ("berlin, germany",),
    "tokyo": ("tokyo, japan",),
    "toronto": ("toronto, canada", "toronto, on", "toronto, ontario"),
    "sydney": ("sydney, australia",),
    "chicago": ("chicago, il", "chicago, illinois"),
    "boston": ("boston, ma", "boston, massachusetts"),
    "los angeles": ("l.a.", "los angeles, ca", "los angeles, california"),
    "san francisco": ("s.f.", "san francisco, ca", "san francisco, california"),
    "philadelphia": ("philly", "philadelphia, pa"),
    "washington": ("washington, dc", "washington d.c.", "washington, d.c."),
    "cambridge": ("cambridge, ma", "cambridge, mass", "cambridge, england", "cambridge, uk"),
    "oxford": ("oxford, england", "oxford, uk"),
    "edinburgh": ("edinburgh, scotland",),
    "dublin": ("dublin, ireland",),
    "amsterdam": ("amsterdam, netherlands",),
    "munich": ("münchen", "munchen"),
    "vienna": ("wien",),
    "zurich": ("zürich",),
    "rome": ("roma",),
    "milan": ("milano",),
    "st. petersburg": ("saint petersburg", "st petersburg"),
    "beijing": ("peking",),
    "mumbai": ("bombay",),
    "delhi": ("new delhi",),
    "bangalore": ("bengaluru",),
    "mexico city": ("ciudad de méxico", "ciudad de mexico"),
    "são paulo": ("sao paulo",),
    "bogotá": ("bogota",),
}

_US_STATES = (
    "al", "ak", "az", "ar", "ca", "co", "ct", "de", "fl", "ga", "hi", "id", "il", "in", "ia",
    "ks", "ky", "la", "me", "md", "ma", "mass", "mi", "mn", "ms", "mo", "mt", "ne", "nv", "nh",
    "nj", "nm", "ny", "nc", "nd", "oh", "ok", "or", "pa", "ri", "sc", "sd", "tn", "tx", "ut",
    "vt", "va", "wa", "wv", "wi", "wy", "dc", "d.c.", "california", "illinois", "massachusetts",
    "new jersey", "pennsylvania", "texas", "washington", "new york", "connecticut",
)  # fmt: skip

COUNTRY_ALIASES: dict[str, tuple[str, ...]] = {
    "united states": ("usa", "us", "u.s.", "u.s.a.", "america", "united states of america", *_US_STATES),
    "united kingdom": ("uk", "u.k.", "great britain", "britain", "england", "scotland", "wales"),
    "germany": ("deutschland", "de"),
    "france": ("fr",),
    "italy": ("italia", "it"),
    "spain": ("españa", "es"),
    "netherlands": ("holland", "nl"),
    "switzerland": ("schweiz", "suisse", "ch"),
    "austria": ("österreich", "at"),
    "russia": ("russian federation", "ru"),
    "china": ("people's republic of china", "prc", "cn"),
    "japan": ("jp",),
    "south korea": ("korea", "republic of korea", "kr"),
    "australia": ("au",),
    "canada": ("on", "ontario", "quebec", "bc"),
    "brazil": ("brasil", "br"),
    "mexico": ("méxico", "mx"),
    "india": (),
    "ireland": ("ie", "eire"),
}

# Cities whose country follows from the city alone.
_CITY_COUNTRIES: dict[str, str] = {
    "new york": "united states",
    "london": "united kingdom",
    "paris": "france",
    "berlin": "germany",
    "tokyo": "japan",
    "toronto": "canada",
    "sydney": "australia",
    "chicago": "united states",
    "boston": "united states",
    "los angeles": "united states",
    "san francisco": "united states",
    "philadelphia": "united states",
    "edinburgh": "united kingdom",
    "dublin": "ireland",
    "amsterdam": "netherlands",
    "munich": "germany",
    "vienna": "austria",
    "zurich": "switzerland",
    "rome": "italy",
    "milan": "italy",
    "beijing": "china",
    "mumbai": "india",
    "delhi": "india",
    "mexico city": "mexico",
}

MAJOR_PUBLISHING_CENTERS = frozenset(
    {"new york", "london", "paris", "berlin", "tokyo", "toronto", "cambridge", "oxford"}
)


def _clean(name: str) -> str:
    cleaned = _LEADING_THE_RE.sub("", name.lower().strip())
    cleaned = _SPECIAL_CHAR_RE.sub("", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def _canonical_city(candidate: str) -> str | None:
    for canonical, aliases in CITY_ALIASES.items():
        if candidate == canonical or candidate in aliases:
            return canonical
    return None


def normalize_place_name(name: str) -> str:
    """Canonical city for a place string such as "NYC" or "London, England"."""
    if not name:
        return ""
    cleaned = _clean(name)
    city = _canonical_city(cleaned)
    if city is not None:
        return city
    head = cleaned.split(",")[0].strip()
    city = _canonical_city(head)
    if city is not None:
        return city
    for canonical, aliases in CITY_ALIASES.items():
        if any(string_similarity(cleaned, alias) > _CITY_SIMILARITY for alias in (canonical, *aliases)):
            return canonical
    return cleaned


def extract_country(name: str) -> str | None:
    """Country named in a place string, checking the last comma-separated part first."""
    if not name:
        return None
    parts = [part.strip() for part in name.lower().split(",")]
    for part in reversed(parts[1:] if len(parts) > 1 else parts):
        for country, aliases in COUNTRY_ALIASES.items():
            if part == country or part in aliases:
                return country
    city = normalize_place_name(name)
    return _CITY_COUNTRIES.get(city)


def normalize_place(value: str | PublicationPlace) -> PublicationPlace:
    if isinstance(value, PublicationPlace):
        return PublicationPlace(
            name=value.name,
            normalized=value.normalized or normalize_place_name(value.name),
            country=value.country or extract_country(value.name),
        )
    return PublicationPlace(
        name=value.strip(), normalized=normalize_place_name(value), country=extract_country(value)
    )


def place_confidence(place: PublicationPlace, source: MetadataSource) -> float:
    confidence = source.reliability
    if len(place.name.strip()) < 2:
        confidence *= 0.3
    if place.normalized and place.normalized != place.name.lower():
        confidence *= 1.2
    if place.country:
        confidence *= 1.1
    if place.normalized in MAJOR_PUBLISHING_CENTERS:
        confidence *= 1.3
    return confidence


def _place_name(value: str | PublicationPlace | None) -> str:
    if value is None:
        return ""
    return value.name if isinstance(value, PublicationPlace) else value


class PlaceReconciler:
    def reconcile(self, inputs: Sequence[PublicationInfoInput]) -> ReconciledField[PublicationPlace]:
        if not inputs:
            msg = "No publication places to reconcile"
            raise ReconciliationInputError(msg)

        candidates = [
            (normalize_place(item.place), item.source)
            for item in inputs
            if _place_name(item.place).strip()
        ]
        if not candidates:
            return ReconciledField(
                value=PublicationPlace(name=""),
                confidence=MIN_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No valid publication places found",
            )

        groups: dict[str, list[tuple[PublicationPlace, MetadataSource]]] = {}
        for place, source in candidates:
            groups.setdefault(place.normalized or place.name.lower(), []).append((place, source))

        best_group = max(groups.values(), key=lambda g: sum(source.reliability for _, source in g))
        best_place, best_source = max(best_group, key=lambda pair: pair[1].reliability)
        if best_place.country is None:
            country = next((p.country for p, _ in best_group if p.country), None)
            if country is not None:
                best_place = PublicationPlace(best_place.name, best_place.normalized, country)
        agreeing = len({source.name for _, source in best_group})
        confidence = place_confidence(best_place, best_source) + agreement_bonus(agreeing)

        conflicts: tuple[Conflict, ...] = ()
        if len(groups) > 1:
            conflicts = (
                Conflict(
                    field="publication_place",
                    values=tuple(ConflictValue(p, s) for p, s in candidates),
                    resolution="Selected place from most reliable group of sources",
                ),
            )
            reasoning = "Resolved conflict by selecting place from most reliable group of sources"
        elif len(candidates) == 1:
            reasoning = "Single valid place"
        else:
            reasoning = f"{len(candidates)} sources agree on place"

        return ReconciledField(
            value=best_place,
            confidence=clamp_confidence(confidence),
            sources=tuple(source for _, source in candidates),
            conflicts=conflicts,
            reasoning=reasoning,
        )
