# ABOUTME: Built-in language table resolving ISO 639-1/639-2/639-3 codes and English names to ISO 639-3.
# ABOUTME: Used by the physical description reconciler to normalize language claims.

import re
from dataclasses import dataclass

_REGION_RE = re.compile(r"^([a-z]{2,3})[-_]([a-z]{2})$", re.IGNORECASE)


@dataclass(frozen=True)
class Language:
    iso3: str
    iso1: str | None
    name: str
    # ISO 639-2/B codes that differ from the terminology code, e.g. "fre" for "fra".
    alternates: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedLanguage:
    """A resolved language; match_type is iso3, iso1, regional, or name."""

    iso3: str
    name: str
    match_type: str
    region: str | None = None


LANGUAGES: tuple[Language, ...] = (
    Language("eng", "en", "English"),
    Language("fra", "fr", "French", ("fre",)),
    Language("deu", "de", "German", ("ger",)),
    Language("spa", "es", "Spanish"),
    Language("ita", "it", "Italian"),
    Language("por", "pt", "Portuguese"),
    Language("nld", "nl", "Dutch", ("dut",)),
    Language("swe", "sv", "Swedish"),
    Language("nor", "no", "Norwegian"),
    Language("dan", "da", "Danish"),
    Language("fin", "fi", "Finnish"),
    Language("isl", "is", "Icelandic", ("ice",)),
    Language("pol", "pl", "Polish"),
    Language("ces", "cs", "Czech", ("cze",)),
    Language("slk", "sk", "Slovak", ("slo",)),
    Language("hun", "hu", "Hungarian"),
    Language("ron", "ro", "Romanian", ("rum",)),
    Language("bul", "bg", "Bulgarian"),
    Language("hrv", "hr", "Croatian"),
    Language("srp", "sr", "Serbian"),
    Language("slv", "sl", "Slovenian"),
    Language("ell", "el", "Greek", ("gre",)),
    Language("tur", "tr", "Turkish"),
    Language("rus", "ru", "Russian"),
    Language("ukr", "uk", "Ukrainian"),
    Language("heb", "he", "Hebrew"),
    Language("ara", "ar", "Arabic"),
    Language("fas", "fa", "Persian", ("per",)),
    Language("hin", "hi", "Hindi"),
    Language("ben", "bn", "Bengali"),
    Language("urd", "ur", "Urdu"),
    Language("zho", "zh", "Chinese", ("chi",)),
    Language("jpn", "ja", "Japanese"),
    Language("kor", "ko", "Korean"),
    Language("vie", "vi", "Vietnamese"),
    Language("tha", "th", "Thai"),
    Language("ind", "id", "Indonesian"),
    Language("msa", "ms", "Malay", ("may",)),
    Language("swa", "sw", "Swahili"),
    Language("lat", "la", "Latin"),
    Language("cat", "ca", "Catalan"),
    Language("eus", "eu", "Basque", ("baq",)),
    Language("gle", "ga", "Irish"),
    Language("cym", "cy", "Welsh", ("wel",)),
    Language("epo", "eo", "Esperanto"),
)

_BY_ISO3: dict[str, Language] = {}
_BY_ISO1: dict[str, Language] = {}
_BY_NAME: dict[str, Language] = {}
for _language in LANGUAGES:
    _BY_ISO3[_language.iso3] = _language
    for _alternate in _language.alternates:
        _BY_ISO3[_alternate] = _language
    if _language.iso1:
        _BY_ISO1[_language.iso1] = _language
    _BY_NAME[_language.name.lower()] = _language


def get_language_by_iso3(code: str) -> Language | None:
    return _BY_ISO3.get(code.lower())


def resolve_language(value: str) -> ResolvedLanguage | None:
    """Resolve a code ("en", "eng", "fre"), a regional tag ("en-US"), or a name ("English")."""
    cleaned = value.strip()
    if not cleaned:
        return None
    lowered = cleaned.lower()

    if lowered in _BY_ISO3:
        language = _BY_ISO3[lowered]
        return ResolvedLanguage(language.iso3, language.name, "iso3")
    if lowered in _BY_ISO1:
        language = _BY_ISO1[lowered]
        return ResolvedLanguage(language.iso3, language.name, "iso1")

    match = _REGION_RE.match(cleaned)
    if match:
        base = match.group(1).lower()
        language = _BY_ISO1.get(base) or _BY_ISO3.get(base)
        if language is not None:
            return ResolvedLanguage(
                language.iso3, language.name, "regional", region=match.group(2).upper()
            )

    if lowered in _BY_NAME:
        language = _BY_NAME[lowered]
        return ResolvedLanguage(language.iso3, language.name, "name")
    return None
