"""Pipeline step functions for the atlas build.

Each function wraps one step of the build, accepts an optional on_progress
callback, and returns a summary dict. ``run_build`` chains them.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable

from datenatlas import config
from datenatlas.config import AtlasPaths
from datenatlas.indexer.assets import AssetBuilder
from datenatlas.indexer.lexical import build_search_items
from datenatlas.indexer.linker import link_catalog
from datenatlas.indexer.loader import (
    ProcessDefinition,
    RawCatalog,
    discover_diagrams,
    load_catalog,
    load_process_definitions,
)
from datenatlas.indexer.references import ReferenceEnricher
from datenatlas.indexer.writer import write_artifacts
from datenatlas.models import AtlasDataset, SearchItem
from datenatlas.renderer import PdfRenderer

logger = logging.getLogger(__name__)


@dataclass
class BuildContext:
    """Per-run collaborators. Close it to release the render browser."""

    paths: AtlasPaths
    enricher: ReferenceEnricher = field(default_factory=lambda: ReferenceEnricher(None))
    renderer: PdfRenderer | None = None
    workers: int = config.WORKERS

    def close(self) -> None:
        if self.renderer is not None:
            self.renderer.close()

    def __enter__(self) -> BuildContext:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass
class LoadedInputs:
    catalog: RawCatalog
    definitions: list[ProcessDefinition]
    diagram_ids: list[str]


def run_load(
    paths: AtlasPaths,
    on_progress: Callable[[dict], None] | None = None,
) -> LoadedInputs:
    """Read both JSON sources in parallel and list the diagram sources."""
    if on_progress:
        on_progress({"step": "load", "status": "reading"})

    with ThreadPoolExecutor(max_workers=2) as pool:
        catalog_future = pool.submit(load_catalog, paths.catalog)
        definitions_future = pool.submit(load_process_definitions, paths.process_definitions)
        catalog = catalog_future.result()
        definitions = definitions_future.result()

    diagram_ids = discover_diagrams(paths.diagram_source_dir, config.DIAGRAM_SOURCE_EXT)

    if on_progress:
        on_progress({
            "step": "load", "status": "done",
            "elements": len(catalog.elements),
            "definitions": len(definitions),
            "diagrams": len(diagram_ids),
        })
    return LoadedInputs(catalog, definitions, diagram_ids)


def run_link(
    ctx: BuildContext,
    inputs: LoadedInputs,
    now: str | None = None,
    on_progress: Callable[[dict], None] | None = None,
) -> AtlasDataset:
    if on_progress:
        on_progress({"step": "link", "status": "linking"})
    dataset = link_catalog(
        inputs.catalog,
        inputs.definitions,
        inputs.diagram_ids,
        ctx.paths,
        enricher=ctx.enricher,
        now=now,
        workers=ctx.workers,
    )
    if on_progress:
        on_progress({
            "step": "link", "status": "done",
            "elements": len(dataset.elements),
            "processes": len(dataset.processes),
            "diagrams": len(dataset.diagrams),
        })
    return dataset


def run_search_index(
    dataset: AtlasDataset,
    section: str = config.SITE_SECTION,
    on_progress: Callable[[dict], None] | None = None,
) -> list[SearchItem]:
    items = build_search_items(dataset, section=section)
    if on_progress:
        on_progress({"step": "search", "status": "done", "items": len(items)})
    return items


def run_write(
    paths: AtlasPaths,
    dataset: AtlasDataset,
    search_items: list[SearchItem],
    on_progress: Callable[[dict], None] | None = None,
) -> dict:
    written = write_artifacts(paths, dataset, search_items)
    if on_progress:
        on_progress({"step": "write", "status": "done", **{k: str(v) for k, v in written.items()}})
    return written


def run_assets(
    ctx: BuildContext,
    diagram_ids: list[str],
    on_progress: Callable[[dict], None] | None = None,
) -> dict:
    """Mirror diagram files and render stale PDFs.

    Returns {"diagrams": N, "copied": N, "skipped": N, "rendered": N, "pdf_fresh": N}.
    """
    builder = AssetBuilder(ctx.paths, ctx.renderer, workers=ctx.workers)
    return builder.build(diagram_ids, on_progress=on_progress)


def run_build(
    ctx: BuildContext,
    now: str | None = None,
    on_progress: Callable[[dict], None] | None = None,
) -> dict:
    """Load, link, index, write, then sync assets.

    Artifacts are written before any PDF is rendered, so a render failure
    leaves metadata that the validator will flag.
    """
    ctx.paths.output_dir.mkdir(parents=True, exist_ok=True)
    inputs = run_load(ctx.paths, on_progress=on_progress)
    dataset = run_link(ctx, inputs, now=now, on_progress=on_progress)
    search_items = run_search_index(dataset, on_progress=on_progress)
    written = run_write(ctx.paths, dataset, search_items, on_progress=on_progress)
    assets = run_assets(ctx, inputs.diagram_ids, on_progress=on_progress)
    return {
        "elements": len(dataset.elements),
        "processes": len(dataset.processes),
        "diagrams": len(dataset.diagrams),
        "search_items": len(search_items),
        "artifacts": written,
        "assets": assets,
    }
