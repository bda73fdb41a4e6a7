"""Slug and text helpers shared by the atlas build."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

# Applied before NFKD so "Zählpunkt" becomes "zaehlpunkt", not "zahlpunkt"
_GERMAN_LETTERS = {
    "ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss",
    "Ä": "Ae", "Ö": "Oe", "Ü": "Ue", "ẞ": "SS",
}
_GERMAN_RE = re.compile("|".join(_GERMAN_LETTERS))
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def strip_diacritics(text: str) -> str:
    """Drop combining marks after NFKD decomposition."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(text: str) -> str:
    """Turn free text into a lowercase, hyphen-delimited identifier."""
    if not text:
        return ""
    # Decomposed input (e.g. macOS filenames) must hit the German map too
    composed = unicodedata.normalize("NFC", text)
    folded = _GERMAN_RE.sub(lambda m: _GERMAN_LETTERS[m.group(0)], composed)
    folded = strip_diacritics(folded).lower()
    return _NON_SLUG.sub("-", folded).strip("-")


def create_element_slug(element_id: str, name: str) -> str:
    parts = [slugify(element_id.replace(":", "-")), slugify(name)]
    return "-".join(p for p in parts if p)


def create_process_slug(name: str) -> str:
    return slugify(name)


def create_diagram_slug(diagram_id: str) -> str:
    return slugify(diagram_id)


def create_diagram_title(diagram_id: str) -> str:
    """UTILMD_AHB -> "UTILMD AHB"."""
    return " ".join(diagram_id.replace("_", " ").split())


def unique(values: Iterable[str | None]) -> list[str]:
    """Order-preserving dedupe that also drops empty values."""
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return list(seen)


def short_description(value: str | None, max_length: int = 220) -> str:
    if not value:
        return ""
    if len(value) <= max_length:
        return value
    return value[:max_length].strip() + "…"
