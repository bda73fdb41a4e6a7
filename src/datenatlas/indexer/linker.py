"""Cross-link elements, processes and diagrams into the atlas dataset."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from datenatlas import config
from datenatlas.config import AtlasPaths
from datenatlas.indexer.loader import (
    DiagramMatcher,
    ProcessDefinition,
    RawCatalog,
    RawElement,
    RawProcessContext,
)
from datenatlas.indexer.references import ReferenceEnricher
from datenatlas.models import (
    AtlasDataset,
    ContextReference,
    DataElement,
    Diagram,
    MessageUsage,
    Process,
    ProcessSummary,
)
from datenatlas.slugs import (
    create_diagram_slug,
    create_diagram_title,
    create_element_slug,
    create_process_slug,
    unique,
)

logger = logging.getLogger(__name__)

PROMPT_VERBS = (
    "Beschreibe", "Beschreibt", "Erläutere", "Erläutert", "Erkläre", "Erklärt",
    "Skizziere", "Skizziert", "Fasse", "Fasst", "Gib", "Gebe", "Gibt",
    "Nenne", "Nennt", "Zeige", "Zeigt", "Stelle", "Stellt", "Leite", "Leitet",
    "Analysiere", "Analysiert", "Was", "Wie", "Welche", "Warum", "Erstelle", "Erstellt",
)
_PROMPT_PREFIX = re.compile(r"^(?:%s)\b" % "|".join(PROMPT_VERBS), re.IGNORECASE)

DIAGRAM_KEYWORD_LIMIT = 12
FALLBACK_DIAGRAM_DESCRIPTION = "Visualisierung aus dem Daten Atlas"


def is_likely_prompt(value: str | None) -> bool:
    """True when a summary string reads like an instruction or a question."""
    if not value:
        return False
    trimmed = value.strip()
    if not trimmed:
        return False
    if trimmed.endswith("?"):
        return True
    return bool(_PROMPT_PREFIX.match(trimmed))


def pick_process_summary(current: str | None, candidate: str | None) -> str | None:
    """Keep the longest non-prompt summary seen so far."""
    if not candidate or is_likely_prompt(candidate):
        return current
    if not current:
        return candidate
    return candidate if len(candidate) > len(current) else current


@dataclass
class ProcessContribution:
    """What one element (or one of its messages) says about a process."""

    element_slug: str
    message_type: str | None = None
    keywords: list[str] = field(default_factory=list)
    relevant_laws: list[str] = field(default_factory=list)
    summary: str | None = None


class ProcessAggregate:
    """Build-time accumulator for everything known about one process."""

    def __init__(self, name: str, slug: str, definition: ProcessDefinition | None = None) -> None:
        self.name = name
        self.slug = slug
        self.definition = definition
        # dicts as insertion-ordered sets
        self.elements: dict[str, None] = {}
        self.keywords: dict[str, None] = {}
        self.relevant_laws: dict[str, None] = {}
        self.message_types: dict[str, None] = {}
        self.diagram_ids: dict[str, None] = {}
        self.summary: str | None = None
        if definition is not None:
            self.keywords.update(dict.fromkeys(k for k in definition.search_keywords if k))
            self.relevant_laws.update(dict.fromkeys(law for law in definition.relevant_laws if law))

    def merge(self, contribution: ProcessContribution) -> None:
        self.elements[contribution.element_slug] = None
        if contribution.message_type:
            self.message_types[contribution.message_type] = None
        self.keywords.update(dict.fromkeys(k for k in contribution.keywords if k))
        self.relevant_laws.update(dict.fromkeys(law for law in contribution.relevant_laws if law))
        self.summary = pick_process_summary(self.summary, contribution.summary)

    def add_diagram(self, diagram_id: str) -> None:
        self.diagram_ids[diagram_id] = None

    def to_process(self, references: list[ContextReference], updated_at: str) -> Process:
        trigger = self.definition.trigger_question if self.definition else None
        summary = pick_process_summary(None, self.summary) or trigger
        return Process(
            slug=self.slug,
            name=self.name,
            trigger_question=trigger,
            relevant_laws=list(self.relevant_laws),
            keywords=list(self.keywords),
            summary=summary,
            description=summary,
            elements=list(self.elements),
            diagram_ids=list(self.diagram_ids),
            message_types=list(self.message_types),
            references=references,
            updated_at=updated_at,
        )


class ProcessRegistry:
    """Resolves process mentions to aggregates by name, then by slug."""

    def __init__(self, definitions: list[ProcessDefinition]) -> None:
        self._aggregates: list[ProcessAggregate] = []
        self._by_name: dict[str, ProcessAggregate] = {}
        self._by_slug: dict[str, ProcessAggregate] = {}
        self.slug_map: dict[str, str] = {}
        for definition in definitions:
            slug = create_process_slug(definition.process_name)
            self.slug_map[definition.process_name] = slug
            self._register(ProcessAggregate(definition.process_name, slug, definition))

    def _register(self, aggregate: ProcessAggregate) -> None:
        # A later definition with the same name replaces the earlier one in place
        existing = self._by_name.get(aggregate.name)
        if existing is None:
            self._aggregates.append(aggregate)
        else:
            self._aggregates[self._aggregates.index(existing)] = aggregate
        self._by_name[aggregate.name] = aggregate
        if aggregate.slug and self._by_slug.get(aggregate.slug, existing) is existing:
            self._by_slug[aggregate.slug] = aggregate

    def summarize(self, contexts: list[RawProcessContext]) -> list[ProcessSummary]:
        """Project raw process contexts to ProcessSummary pointers."""
        out = []
        for ctx in contexts:
            name = ctx.process_name.strip()
            slug = self.slug_map.get(name) or create_process_slug(name)
            if not slug:
                logger.debug("Ignoring process context without a usable name: %r", ctx.process_name)
                continue
            out.append(ProcessSummary(
                name=name,
                slug=slug,
                summary=ctx.summary or None,
                relevant_laws=list(ctx.relevant_laws),
                keywords=list(ctx.keywords),
            ))
        return out

    def resolve(self, summary: ProcessSummary) -> ProcessAggregate:
        aggregate = self._by_name.get(summary.name) or self._by_slug.get(summary.slug)
        if aggregate is None:
            # Mentioned by elements but never defined
            aggregate = ProcessAggregate(summary.name, summary.slug)
            self._register(aggregate)
        return aggregate

    def aggregates(self) -> list[ProcessAggregate]:
        return list(self._aggregates)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AtlasLinker:
    """Builds the element / process / diagram graph for one catalog."""

    def __init__(
        self,
        paths: AtlasPaths,
        definitions: list[ProcessDefinition],
        diagram_ids: list[str],
        enricher: ReferenceEnricher | None = None,
        now: str | None = None,
        workers: int = config.WORKERS,
    ) -> None:
        self._paths = paths
        self._registry = ProcessRegistry(definitions)
        self._diagram_ids = diagram_ids
        self._matcher = DiagramMatcher(diagram_ids)
        self._enricher = enricher or ReferenceEnricher(None)
        self._now = now or _utc_now()
        self._workers = workers
        self._diagrams: dict[str, Diagram] = {}

    def _contribute(
        self,
        summaries: list[ProcessSummary],
        element_slug: str,
        message_type: str | None = None,
    ) -> list[ProcessAggregate]:
        aggregates = []
        for summary in summaries:
            aggregate = self._registry.resolve(summary)
            aggregate.merge(ProcessContribution(
                element_slug=element_slug,
                message_type=message_type,
                keywords=summary.keywords,
                relevant_laws=summary.relevant_laws,
                summary=summary.summary,
            ))
            aggregates.append(aggregate)
        return aggregates

    def _asset_path(self, kind: str, source_dir: Path, diagram_id: str) -> str | None:
        if (source_dir / f"{diagram_id}.{kind}").exists():
            return self._paths.public_path(kind, diagram_id)
        return None

    def _diagram(self, diagram_id: str, **fields) -> Diagram:
        svg_path = self._asset_path("svg", self._paths.diagram_svg_dir, diagram_id)
        return Diagram(
            id=diagram_id,
            slug=create_diagram_slug(diagram_id),
            svg_path=svg_path,
            png_path=self._asset_path("png", self._paths.diagram_png_dir, diagram_id),
            pdf_path=self._paths.public_path("pdf", diagram_id) if svg_path else None,
            puml_path=self._paths.public_path("puml", diagram_id),
            updated_at=self._now,
            **fields,
        )

    def _link_element(self, raw: RawElement) -> DataElement:
        slug = create_element_slug(raw.edifact_id, raw.element_name)
        process_summaries = self._registry.summarize(raw.process_context)
        element_aggregates = self._contribute(process_summaries, slug)

        messages = []
        for raw_message in raw.messages:
            processes = self._registry.summarize(raw_message.process_context)
            self._contribute(processes, slug, raw_message.message_type)
            messages.append(MessageUsage(
                message_type=raw_message.message_type,
                message_version=raw_message.message_version,
                role_context=raw_message.role_context,
                codes_used=list(raw_message.codes_used),
                is_mandatory=raw_message.is_mandatory,
                citation_source=raw_message.citation_source,
                description=raw_message.description,
                processes=processes,
            ))

        keywords = unique([
            raw.segment_name,
            raw.element_name,
            raw.element_code,
            *(v for p in process_summaries for v in (p.name, *p.keywords, *p.relevant_laws)),
            *(v for m in messages for v in (m.message_type, *m.codes_used)),
        ])

        diagram_ids = self._matcher.match(raw.edifact_id)
        for diagram_id in diagram_ids:
            for aggregate in element_aggregates:
                aggregate.add_diagram(diagram_id)
            label = f"{raw.element_name} ({raw.edifact_id})"
            self._diagrams[diagram_id] = self._diagram(
                diagram_id,
                title=label,
                description=f"{label} – Segment {raw.segment_name}",
                element_slug=slug,
                keywords=keywords[:DIAGRAM_KEYWORD_LIMIT],
                related_process_slugs=unique(p.slug for p in process_summaries),
                source="data_atlas.json",
            )

        return DataElement(
            slug=slug,
            edifact_id=raw.edifact_id,
            element_name=raw.element_name,
            element_code=raw.element_code,
            segment_name=raw.segment_name,
            segment_group=raw.segment_group,
            description=raw.description,
            keywords=keywords,
            processes=process_summaries,
            messages=messages,
            diagram_ids=diagram_ids,
            updated_at=self._now,
        )

    def link(self, catalog: RawCatalog) -> AtlasDataset:
        elements = [self._link_element(raw) for raw in catalog.elements]

        element_refs = self._enricher.fetch_many(
            [e.edifact_id for e in elements], workers=self._workers,
        )
        for element, refs in zip(elements, element_refs):
            element.references = refs

        aggregates = self._registry.aggregates()
        process_refs = self._enricher.fetch_many(
            [a.name for a in aggregates], workers=self._workers,
        )
        processes = [
            aggregate.to_process(refs, self._now)
            for aggregate, refs in zip(aggregates, process_refs)
        ]

        # Drop references to processes that did not make it into the output
        process_slugs = {p.slug for p in processes}
        for diagram in self._diagrams.values():
            diagram.related_process_slugs = [
                s for s in diagram.related_process_slugs if s in process_slugs
            ]

        for diagram_id in self._diagram_ids:
            if diagram_id not in self._diagrams:
                self._diagrams[diagram_id] = self._diagram(
                    diagram_id,
                    title=create_diagram_title(diagram_id),
                    description=FALLBACK_DIAGRAM_DESCRIPTION,
                    keywords=[diagram_id],
                    source="uml_diagrams",
                )

        logger.info(
            "Linked %d elements, %d processes, %d diagrams",
            len(elements), len(processes), len(self._diagrams),
        )
        return AtlasDataset(
            generated_at=self._now,
            elements=elements,
            processes=processes,
            diagrams=list(self._diagrams.values()),
        )


def link_catalog(
    catalog: RawCatalog,
    definitions: list[ProcessDefinition],
    diagram_ids: list[str],
    paths: AtlasPaths,
    enricher: ReferenceEnricher | None = None,
    now: str | None = None,
    workers: int = config.WORKERS,
) -> AtlasDataset:
    """Run one linking pass. See AtlasLinker."""
    linker = AtlasLinker(paths, definitions, diagram_ids, enricher=enricher, now=now, workers=workers)
    return linker.link(catalog)
