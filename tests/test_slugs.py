"""Tests for slug and text helpers."""

from __future__ import annotations

import re
import unicodedata

import pytest

from datenatlas.slugs import (
    create_diagram_slug,
    create_diagram_title,
    create_element_slug,
    create_process_slug,
    short_description,
    slugify,
    unique,
)

SLUG_SHAPE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


class TestSlugify:
    def test_german_letters_before_diacritics(self) -> None:
        assert slugify("Zählpunktbezeichnung") == "zaehlpunktbezeichnung"
        assert slugify("Größe Übergabe") == "groesse-uebergabe"
        assert slugify("Straße") == "strasse"

    def test_decomposed_umlauts_mapped(self) -> None:
        decomposed = unicodedata.normalize("NFD", "Zählpunkt Größe")
        assert decomposed != "Zählpunkt Größe"
        assert slugify(decomposed) == "zaehlpunkt-groesse"

    def test_generic_diacritics_stripped(self) -> None:
        assert slugify("Café Crème") == "cafe-creme"

    def test_delimiters_collapsed_and_trimmed(self) -> None:
        assert slugify("  --Hello,   World!!-- ") == "hello-world"
        assert slugify("a__b::c") == "a-b-c"

    def test_empty_and_symbol_only(self) -> None:
        assert slugify("") == ""
        assert slugify("???") == ""

    @pytest.mark.parametrize("text", [
        "Lieferantenwechsel",
        "StromNZV §14",
        "E1:01 Zählpunkt",
        "  Ärger mit Ölförderung  ",
        "ÀÉÎÕÜ ñ ç",
        "UTILMD_AHB",
        "İstanbul",
        "x",
    ])
    def test_shape_and_idempotence(self, text: str) -> None:
        slug = slugify(text)
        assert slug == "" or SLUG_SHAPE.match(slug)
        assert slugify(slug) == slug

    def test_deterministic(self) -> None:
        assert slugify("Messlokation ändern") == slugify("Messlokation ändern")


class TestDerivedSlugs:
    def test_element_slug_joins_id_and_name(self) -> None:
        assert create_element_slug("E1:01", "Zählpunktbezeichnung") == "e1-01-zaehlpunktbezeichnung"

    def test_element_slug_omits_empty_parts(self) -> None:
        assert create_element_slug("E1:01", "") == "e1-01"
        assert create_element_slug("", "Name") == "name"

    def test_process_and_diagram_slugs(self) -> None:
        assert create_process_slug("Stammdatenänderung") == "stammdatenaenderung"
        assert create_diagram_slug("UTILMD_AHB") == "utilmd-ahb"

    def test_diagram_title(self) -> None:
        assert create_diagram_title("UTILMD_AHB") == "UTILMD AHB"
        assert create_diagram_title("A__B  C") == "A B C"


class TestTextHelpers:
    def test_unique_preserves_order_and_drops_empty(self) -> None:
        assert unique(["b", "a", "", None, "b", "c"]) == ["b", "a", "c"]

    def test_short_description(self) -> None:
        assert short_description("kurz") == "kurz"
        assert short_description(None) == ""
        long = "x" * 300
        shortened = short_description(long, max_length=10)
        assert shortened == "x" * 10 + "…"
