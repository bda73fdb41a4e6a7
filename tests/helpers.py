"""Shared test helpers: sample atlas inputs and fake collaborators."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

from datenatlas.config import AtlasPaths
from datenatlas.storage.vector_store import ReferenceRecord

SVG = '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"><rect width="10" height="10"/></svg>'


def make_catalog() -> dict:
    """Two elements: one linked to a defined process, one to an undefined one."""
    return {
        "generatedAt": "2025-08-01T00:00:00Z",
        "collection": "willi_mako",
        "elements": [
            {
                "EDIFACT_Element_ID": "E1:01",
                "segmentName": "LOC",
                "elementCode": "3225",
                "elementName": "Zählpunktbezeichnung",
                "segmentGroup": "SG5",
                "description": "Eindeutige Bezeichnung des Zählpunkts.",
                "processContext": [
                    {
                        "processName": "Lieferantenwechsel",
                        "summary": "Wie läuft der Lieferantenwechsel ab?",
                        "keywords": ["GPKE"],
                    },
                ],
                "messages": [
                    {
                        "messageType": "UTILMD",
                        "messageVersion": "5.2",
                        "codesUsed": ["Z16"],
                        "isMandatory": True,
                        "processContext": [
                            {
                                "processName": "Lieferantenwechsel",
                                "summary": "Der Lieferantenwechsel regelt den Wechsel des Lieferanten einer Marktlokation.",
                                "relevantLaws": ["StromNZV §14"],
                                "keywords": ["Wechsel"],
                            },
                        ],
                    },
                ],
            },
            {
                "EDIFACT_Element_ID": "E2:01",
                "segmentName": "IDE",
                "elementCode": "7402",
                "elementName": "Marktlokations-ID",
                "description": "Identifikation der Marktlokation.",
                "messages": [],
                "processContext": [
                    {"processName": "Stammdatenänderung", "summary": "Änderung von Stammdaten."},
                ],
            },
        ],
    }


def make_definitions() -> list[dict]:
    return [
        {
            "process_name": "Lieferantenwechsel",
            "trigger_question": "Wie wechselt ein Kunde den Lieferanten?",
            "search_keywords": ["Wechselprozess"],
            "relevant_laws": ["EnWG §20"],
        },
        {"process_name": "Netznutzungsabrechnung"},
    ]


def write_atlas_inputs(
    paths: AtlasPaths,
    catalog: dict | None = None,
    definitions: list[dict] | None = None,
    diagrams: dict[str, set[str]] | None = None,
) -> None:
    """Write catalog, definitions and diagram files.

    ``diagrams`` maps a diagram id to the sibling kinds to create besides the
    .puml source, e.g. {"E1_01": {"svg"}}.
    """
    paths.data_dir.mkdir(parents=True, exist_ok=True)
    paths.catalog.write_text(json.dumps(catalog or make_catalog(), ensure_ascii=False), encoding="utf-8")
    paths.process_definitions.write_text(
        json.dumps(make_definitions() if definitions is None else definitions, ensure_ascii=False),
        encoding="utf-8",
    )
    if diagrams is None:
        diagrams = {"E1_01": {"svg"}, "UTILMD_AHB": {"png"}}
    paths.diagram_source_dir.mkdir(parents=True, exist_ok=True)
    paths.diagram_svg_dir.mkdir(parents=True, exist_ok=True)
    paths.diagram_png_dir.mkdir(parents=True, exist_ok=True)
    for diagram_id, kinds in diagrams.items():
        (paths.diagram_source_dir / f"{diagram_id}.puml").write_text("@startuml\n@enduml\n")
        if "svg" in kinds:
            (paths.diagram_svg_dir / f"{diagram_id}.svg").write_text(SVG)
        if "png" in kinds:
            (paths.diagram_png_dir / f"{diagram_id}.png").write_bytes(b"\x89PNG\r\n\x1a\n")


class FakeReferenceSource:
    """Pages through an in-memory list and counts scroll calls."""

    def __init__(self, records: list[ReferenceRecord], fail_after: int | None = None) -> None:
        self.records = records
        self.calls = 0
        self._fail_after = fail_after

    def scroll(self, offset: int, limit: int) -> tuple[list[ReferenceRecord], int | None]:
        if self._fail_after is not None and self.calls >= self._fail_after:
            raise ConnectionError("store unreachable")
        self.calls += 1
        page = self.records[offset: offset + limit]
        next_offset = offset + limit if offset + limit < len(self.records) else None
        return page, next_offset


def make_records(n: int, prefix: str = "Eintrag") -> list[ReferenceRecord]:
    return [
        ReferenceRecord(id=str(i), title=f"{prefix} {i}", text=f"Text zu {prefix} {i}", keywords=[f"kw{i}"])
        for i in range(n)
    ]


def make_renderer(pdf: bytes = b"%PDF-1.4 fake") -> MagicMock:
    renderer = MagicMock()
    renderer.render = MagicMock(return_value=pdf)
    return renderer
