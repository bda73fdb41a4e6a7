"""Incremental copy and PDF rendering of diagram assets.

Decisions are make-style: a derived file is rebuilt only when its source has
a newer modification time, so reruns over unchanged sources do no work.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from datenatlas import config
from datenatlas.config import AtlasPaths
from datenatlas.indexer.writer import write_bytes_atomic
from datenatlas.renderer import PdfRenderer
from datenatlas.slugs import create_diagram_title

logger = logging.getLogger(__name__)


def copy_if_newer(source: Path, target: Path) -> bool:
    """Copy source over target unless target is at least as new.

    Returns True if a copy happened.
    """
    try:
        src_mtime = source.stat().st_mtime
        if target.stat().st_mtime >= src_mtime:
            return False
    except OSError:
        pass
    shutil.copy2(source, target)
    return True


def should_render_pdf(source: Path, target: Path) -> bool:
    """True if the PDF is missing or older than its SVG."""
    try:
        return source.stat().st_mtime > target.stat().st_mtime
    except OSError:
        return True


@dataclass
class RenderJob:
    diagram_id: str
    svg_path: Path
    pdf_path: Path


class AssetBuilder:
    """Mirrors diagram sources into the public tree and renders stale PDFs."""

    ASSET_KINDS = ("svg", "png", "pdf", "puml")

    def __init__(
        self,
        paths: AtlasPaths,
        renderer: PdfRenderer | None = None,
        workers: int = config.WORKERS,
    ) -> None:
        self._paths = paths
        self._renderer = renderer
        self._workers = max(1, workers)

    def ensure_dirs(self) -> None:
        for kind in self.ASSET_KINDS:
            self._paths.asset_dir(kind).mkdir(parents=True, exist_ok=True)

    def _sync_diagram(self, diagram_id: str) -> tuple[int, int, RenderJob | None]:
        """Copy one diagram's siblings. Returns (copied, skipped, render job or None)."""
        p = self._paths
        sources = [
            (p.diagram_source_dir / f"{diagram_id}.puml", p.asset_dir("puml") / f"{diagram_id}.puml"),
            (p.diagram_svg_dir / f"{diagram_id}.svg", p.asset_dir("svg") / f"{diagram_id}.svg"),
            (p.diagram_png_dir / f"{diagram_id}.png", p.asset_dir("png") / f"{diagram_id}.png"),
        ]
        copied = skipped = 0
        for source, target in sources:
            if not source.exists():
                continue
            if copy_if_newer(source, target):
                copied += 1
            else:
                skipped += 1

        job = None
        svg_source = p.diagram_svg_dir / f"{diagram_id}.svg"
        pdf_target = p.asset_dir("pdf") / f"{diagram_id}.pdf"
        if svg_source.exists() and should_render_pdf(svg_source, pdf_target):
            job = RenderJob(diagram_id, svg_source, pdf_target)
        return copied, skipped, job

    def render(self, job: RenderJob) -> None:
        if self._renderer is None:
            raise RuntimeError("PDF rendering requires a renderer")
        svg = job.svg_path.read_text(encoding="utf-8")
        pdf = self._renderer.render(svg, create_diagram_title(job.diagram_id))
        write_bytes_atomic(job.pdf_path, pdf)

    def build(
        self,
        diagram_ids: list[str],
        on_progress: Callable[[dict], None] | None = None,
    ) -> dict:
        """Sync all diagrams.

        File copies run on a bounded pool; renders run one at a time through
        the single renderer handle.

        Returns {"diagrams": N, "copied": N, "skipped": N, "rendered": N, "pdf_fresh": N}.
        """
        self.ensure_dirs()
        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            results = list(pool.map(self._sync_diagram, diagram_ids))

        copied = sum(r[0] for r in results)
        skipped = sum(r[1] for r in results)
        jobs = [r[2] for r in results if r[2] is not None]
        with_svg = sum(
            1 for d in diagram_ids if (self._paths.diagram_svg_dir / f"{d}.svg").exists()
        )

        total = len(jobs)
        for i, job in enumerate(jobs, 1):
            if on_progress:
                on_progress({"step": "assets", "current": i, "total": total, "diagram": job.diagram_id})
            logger.debug("Rendering PDF %d/%d: %s", i, total, job.diagram_id)
            self.render(job)

        return {
            "diagrams": len(diagram_ids),
            "copied": copied,
            "skipped": skipped,
            "rendered": total,
            "pdf_fresh": with_svg - total,
        }
