"""Output records of the atlas build.

Every record serializes to the camelCase JSON shape read by the website.
Optional fields left at ``None`` are omitted from the JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class ProcessSummary:
    name: str
    slug: str
    summary: str | None = None
    relevant_laws: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "name": self.name,
            "slug": self.slug,
            "summary": self.summary,
            "relevantLaws": self.relevant_laws,
            "keywords": self.keywords,
        })


@dataclass
class MessageUsage:
    message_type: str
    is_mandatory: bool = False
    message_version: str | None = None
    role_context: str | None = None
    codes_used: list[str] = field(default_factory=list)
    citation_source: str | None = None
    description: str | None = None
    processes: list[ProcessSummary] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "messageType": self.message_type,
            "messageVersion": self.message_version,
            "roleContext": self.role_context,
            "codesUsed": self.codes_used,
            "isMandatory": self.is_mandatory,
            "citationSource": self.citation_source,
            "description": self.description,
            "processes": [p.to_dict() for p in self.processes],
        })


@dataclass
class ContextReference:
    """A snippet from the external reference store."""

    id: str
    title: str
    snippet: str
    url: str | None = None
    score: float | None = None
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "score": self.score,
            "tags": self.tags,
        })


@dataclass
class DataElement:
    slug: str
    edifact_id: str
    element_name: str
    element_code: str
    segment_name: str
    description: str
    updated_at: str
    segment_group: str | None = None
    keywords: list[str] = field(default_factory=list)
    processes: list[ProcessSummary] = field(default_factory=list)
    messages: list[MessageUsage] = field(default_factory=list)
    references: list[ContextReference] = field(default_factory=list)
    diagram_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "edifactId": self.edifact_id,
            "elementName": self.element_name,
            "elementCode": self.element_code,
            "segmentName": self.segment_name,
            "segmentGroup": self.segment_group,
            "description": self.description,
            "keywords": self.keywords,
            "processes": [p.to_dict() for p in self.processes],
            "messages": [m.to_dict() for m in self.messages],
            "qdrantReferences": [r.to_dict() for r in self.references],
            "diagramIds": self.diagram_ids,
            "updatedAt": self.updated_at,
        }


@dataclass
class Process:
    slug: str
    name: str
    updated_at: str
    trigger_question: str | None = None
    relevant_laws: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    summary: str | None = None
    description: str | None = None
    elements: list[str] = field(default_factory=list)
    diagram_ids: list[str] = field(default_factory=list)
    message_types: list[str] = field(default_factory=list)
    references: list[ContextReference] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "slug": self.slug,
            "name": self.name,
            "triggerQuestion": self.trigger_question,
            "relevantLaws": self.relevant_laws,
            "keywords": self.keywords,
            "summary": self.summary,
            "description": self.description,
            "elements": self.elements,
            "diagramIds": self.diagram_ids,
            "messageTypes": self.message_types,
            "qdrantReferences": [r.to_dict() for r in self.references],
            "updatedAt": self.updated_at,
        })


@dataclass
class Diagram:
    id: str
    slug: str
    title: str
    description: str
    puml_path: str
    source: str  # "data_atlas.json" or "uml_diagrams"
    updated_at: str
    element_slug: str | None = None
    svg_path: str | None = None
    png_path: str | None = None
    pdf_path: str | None = None
    keywords: list[str] = field(default_factory=list)
    related_process_slugs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "description": self.description,
            "elementSlug": self.element_slug,
            "svgPath": self.svg_path,
            "pngPath": self.png_path,
            "pdfPath": self.pdf_path,
            "pumlPath": self.puml_path,
            "keywords": self.keywords,
            "relatedProcessSlugs": self.related_process_slugs,
            "source": self.source,
            "updatedAt": self.updated_at,
        })


@dataclass(frozen=True)
class SearchItem:
    """Flattened, read-only projection of one element, process or diagram."""

    id: str
    type: str  # "element", "process" or "diagram"
    title: str
    subtitle: str
    description: str
    slug: str
    url: str
    keywords: tuple[str, ...] = ()
    related_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "subtitle": self.subtitle,
            "description": self.description,
            "slug": self.slug,
            "url": self.url,
            "keywords": list(self.keywords),
            "relatedIds": list(self.related_ids),
        }


@dataclass
class AtlasDataset:
    generated_at: str
    elements: list[DataElement] = field(default_factory=list)
    processes: list[Process] = field(default_factory=list)
    diagrams: list[Diagram] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "elements": [e.to_dict() for e in self.elements],
            "processes": [p.to_dict() for p in self.processes],
            "diagrams": [d.to_dict() for d in self.diagrams],
        }
