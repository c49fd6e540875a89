# ABOUTME: Publisher name normalization, imprint-to-family detection, and reconciliation.
# ABOUTME: Strips articles and corporate suffixes, expands abbreviations, and groups by normalized name.

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
    Publisher,
    ReconciledField,
)
from bibrecon.reconciliation.weights import MIN_CONFIDENCE, agreement_bonus, clamp_confidence

logger = logging.getLogger(__name__)

_ARTICLE_RE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
_CORPORATE_SUFFIX_RE = re.compile(r"[\s,]+(inc|corp|co|ltd|llc|plc|gmbh)\.?$", re.IGNORECASE)
_PUBLISHING_SUFFIX_RE = re.compile(
    r"\s+(publishers?|publishing|press|books?|company|group)$", re.IGNORECASE
)
_SPECIAL_CHAR_RE = re.compile(r"[^\w\s&-]")
_WHITESPACE_RE = re.compile(r"\s+")

_FAMILY_SIMILARITY = 0.8

ABBREVIATIONS: dict[str, str] = {
    "univ": "university",
    "u": "university",
    "assoc": "association",
    "assn": "association",
    "soc": "society",
    "inst": "institute",
    "intl": "international",
    "natl": "national",
    "acad": "academic",
    "pub": "publishing",
    "publ": "publishing",
    "govt": "government",
    "dept": "department",
    "div": "division",
}

# Publishing groups and the imprints or spellings that belong to them.
PUBLISHER_FAMILIES: dict[str, tuple[str, ...]] = {
    "penguin random house": (
        "penguin",
        "random house",
        "bantam",
        "dell",
        "doubleday",
        "knopf",
        "pantheon",
        "vintage",
        "ballantine",
        "del rey",
        "viking",
    ),
    "harpercollins": ("harper", "collins", "harper & row", "harper collins", "william morrow"),
    "simon & schuster": ("simon and schuster", "simon schuster", "scribner", "atria", "pocket"),
    "macmillan": ("st martins", "farrar straus giroux", "henry holt", "tor", "picador"),
    "hachette": ("hachette book group", "little brown", "grand central", "orbit", "gollancz"),
    "oxford university press": ("oxford", "oup", "oxford university"),
    "cambridge university press": ("cambridge", "cup", "cambridge university"),
    "harvard university press": ("harvard", "harvard university"),
    "yale university press": ("yale", "yale university"),
    "princeton university press": ("princeton", "princeton university"),
    "university of chicago press": ("university of chicago", "chicago university"),
    "mit press": ("mit", "massachusetts institute of technology"),
    "norton": ("w w norton", "ww norton", "norton & company"),
    "wiley": ("john wiley", "wiley & sons", "wiley-blackwell", "jossey-bass"),
    "springer": ("springer-verlag", "springer nature"),
    "elsevier": ("elsevier science", "academic press", "morgan kaufmann"),
    "pearson": ("pearson education", "addison-wesley", "prentice hall"),
    "mcgraw-hill": ("mcgraw hill", "mcgraw-hill education"),
    "routledge": ("taylor & francis", "taylor and francis", "crc"),
    "bloomsbury": ("bloomsbury academic",),
    "scholastic": ("scholastic inc",),
}

_FAMILY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (family, re.compile(r"\b(" + "|".join(re.escape(v) for v in (family, *variants)) + r")\b"))
    for family, variants in PUBLISHER_FAMILIES.items()
)


def publisher_family(name: str) -> str | None:
    """The publishing group a name or imprint belongs to, if it is a known one."""
    for family, pattern in _FAMILY_PATTERNS:
        if pattern.search(name):
            return family
    for family, variants in PUBLISHER_FAMILIES.items():
        if any(string_similarity(name, v) > _FAMILY_SIMILARITY for v in variants if len(v) > 4):
            return family
    return None


def normalize_publisher_name(name: str) -> str:
    if not name:
        return ""
    normalized = _ARTICLE_RE.sub("", name.lower().strip())
    normalized = _CORPORATE_SUFFIX_RE.sub("", normalized)
    normalized = _PUBLISHING_SUFFIX_RE.sub("", normalized)
    normalized = _CORPORATE_SUFFIX_RE.sub("", normalized)
    normalized = _PUBLISHING_SUFFIX_RE.sub("", normalized)
    normalized = _SPECIAL_CHAR_RE.sub("", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip(" &-")
    normalized = " ".join(ABBREVIATIONS.get(word, word) for word in normalized.split())

    family = publisher_family(normalized)
    return family if family is not None else normalized


def normalize_publisher(value: str | Publisher) -> Publisher:
    if isinstance(value, Publisher):
        return Publisher(
            name=value.name,
            normalized=value.normalized or normalize_publisher_name(value.name),
            location=value.location,
        )
    return Publisher(name=value.strip(), normalized=normalize_publisher_name(value))


def publisher_confidence(publisher: Publisher, source: MetadataSource) -> float:
    confidence = source.reliability
    name = publisher.name.strip()
    if len(name) < 3:
        confidence *= 0.5
    elif publisher.normalized and publisher.normalized != name.lower():
        confidence *= 1.1
    if publisher.normalized in PUBLISHER_FAMILIES:
        confidence *= 1.2
    return confidence


def _publisher_name(value: str | Publisher | None) -> str:
    if value is None:
        return ""
    return value.name if isinstance(value, Publisher) else value


class PublisherReconciler:
    """Chooses a publisher by grouping equivalent names and weighing group reliability."""

    def reconcile(self, inputs: Sequence[PublicationInfoInput]) -> ReconciledField[Publisher]:
        if not inputs:
            msg = "No publishers to reconcile"
            raise ReconciliationInputError(msg)

        candidates = [
            (normalize_publisher(item.publisher), item.source)
            for item in inputs
            if _publisher_name(item.publisher).strip()
        ]
        if not candidates:
            return ReconciledField(
                value=Publisher(name=""),
                confidence=MIN_CONFIDENCE,
                sources=tuple(item.source for item in inputs),
                reasoning="No valid publishers found",
            )

        groups: dict[str, list[tuple[Publisher, MetadataSource]]] = {}
        for publisher, source in candidates:
            key = publisher.normalized or publisher.name.lower()
            groups.setdefault(key, []).append((publisher, source))

        best_group = max(groups.values(), key=lambda g: sum(source.reliability for _, source in g))
        best_publisher, best_source = max(best_group, key=lambda pair: pair[1].reliability)
        agreeing = len({source.name for _, source in best_group})
        confidence = publisher_confidence(best_publisher, best_source) + agreement_bonus(agreeing)

        conflicts: tuple[Conflict, ...] = ()
        if len(groups) > 1:
            conflicts = (
                Conflict(
                    field="publisher",
                    values=tuple(ConflictValue(p, s) for p, s in candidates),
                    resolution="Selected publisher from most reliable group of sources",
                ),
            )
            reasoning = "Resolved conflict by selecting publisher from most reliable group of sources"
        elif len(candidates) == 1:
            reasoning = "Single valid publisher"
        else:
            reasoning = f"{len(candidates)} sources agree on publisher"

        return ReconciledField(
            value=best_publisher,
            confidence=clamp_confidence(confidence),
            sources=tuple(source for _, source in candidates),
            conflicts=conflicts,
            reasoning=reasoning,
        )
