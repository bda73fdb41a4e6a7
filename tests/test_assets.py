"""Tests for incremental asset mirroring and PDF rendering."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from datenatlas.config import AtlasPaths
from datenatlas.indexer.assets import AssetBuilder, copy_if_newer, should_render_pdf
from tests.helpers import SVG, make_renderer

DIAGRAMS = ["E1_01", "UTILMD_AHB"]


def _set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


# ── Staleness rules ──


class TestCopyIfNewer:
    def test_copies_when_target_missing(self, tmp_path: Path) -> None:
        src = tmp_path / "a.svg"
        src.write_text("new")
        dst = tmp_path / "out.svg"
        assert copy_if_newer(src, dst)
        assert dst.read_text() == "new"

    def test_skips_when_target_as_new(self, tmp_path: Path) -> None:
        src = tmp_path / "a.svg"
        dst = tmp_path / "out.svg"
        src.write_text("new")
        dst.write_text("old")
        _set_mtime(src, 1_000)
        _set_mtime(dst, 1_000)
        assert not copy_if_newer(src, dst)
        assert dst.read_text() == "old"

    def test_copies_when_source_newer(self, tmp_path: Path) -> None:
        src = tmp_path / "a.svg"
        dst = tmp_path / "out.svg"
        src.write_text("new")
        dst.write_text("old")
        _set_mtime(dst, 1_000)
        _set_mtime(src, 2_000)
        assert copy_if_newer(src, dst)
        assert dst.read_text() == "new"
        assert not copy_if_newer(src, dst)


class TestShouldRenderPdf:
    def test_missing_pdf(self, tmp_path: Path) -> None:
        svg = tmp_path / "a.svg"
        svg.write_text(SVG)
        assert should_render_pdf(svg, tmp_path / "a.pdf")

    def test_fresh_pdf(self, tmp_path: Path) -> None:
        svg = tmp_path / "a.svg"
        pdf = tmp_path / "a.pdf"
        svg.write_text(SVG)
        pdf.write_bytes(b"%PDF")
        _set_mtime(svg, 1_000)
        _set_mtime(pdf, 1_000)
        assert not should_render_pdf(svg, pdf)

    def test_stale_pdf(self, tmp_path: Path) -> None:
        svg = tmp_path / "a.svg"
        pdf = tmp_path / "a.pdf"
        svg.write_text(SVG)
        pdf.write_bytes(b"%PDF")
        _set_mtime(pdf, 1_000)
        _set_mtime(svg, 1_001)
        assert should_render_pdf(svg, pdf)


# ── AssetBuilder ──


class TestAssetBuilder:
    def test_first_build_copies_and_renders(self, atlas_paths: AtlasPaths) -> None:
        renderer = make_renderer(b"%PDF-1.4 e1")
        summary = AssetBuilder(atlas_paths, renderer, workers=2).build(DIAGRAMS)

        assert summary == {"diagrams": 2, "copied": 4, "skipped": 0, "rendered": 1, "pdf_fresh": 0}
        out = atlas_paths.output_dir
        assert (out / "puml" / "E1_01.puml").exists()
        assert (out / "svg" / "E1_01.svg").read_text() == SVG
        assert (out / "png" / "UTILMD_AHB.png").exists()
        assert not (out / "svg" / "UTILMD_AHB.svg").exists()
        assert (out / "pdf" / "E1_01.pdf").read_bytes() == b"%PDF-1.4 e1"
        assert not (out / "pdf" / "UTILMD_AHB.pdf").exists()
        renderer.render.assert_called_once_with(SVG, "E1 01")

    def test_rerun_without_changes_does_nothing(self, atlas_paths: AtlasPaths) -> None:
        renderer = make_renderer()
        builder = AssetBuilder(atlas_paths, renderer, workers=2)
        builder.build(DIAGRAMS)
        summary = builder.build(DIAGRAMS)
        assert summary["copied"] == 0
        assert summary["skipped"] == 4
        assert summary["rendered"] == 0
        assert summary["pdf_fresh"] == 1
        assert renderer.render.call_count == 1

    def test_touched_svg_rerenders(self, atlas_paths: AtlasPaths) -> None:
        renderer = make_renderer()
        builder = AssetBuilder(atlas_paths, renderer)
        builder.build(DIAGRAMS)

        pdf = atlas_paths.output_dir / "pdf" / "E1_01.pdf"
        svg = atlas_paths.diagram_svg_dir / "E1_01.svg"
        _set_mtime(svg, pdf.stat().st_mtime + 60)

        summary = builder.build(DIAGRAMS)
        assert summary["rendered"] == 1
        assert summary["copied"] == 1
        assert renderer.render.call_count == 2

    def test_missing_siblings_skipped(self, atlas_paths: AtlasPaths) -> None:
        summary = AssetBuilder(atlas_paths, make_renderer()).build(["GHOST"])
        assert summary == {"diagrams": 1, "copied": 0, "skipped": 0, "rendered": 0, "pdf_fresh": 0}

    def test_creates_all_asset_dirs(self, atlas_paths: AtlasPaths) -> None:
        AssetBuilder(atlas_paths, make_renderer()).build([])
        for kind in ("svg", "png", "pdf", "puml"):
            assert atlas_paths.asset_dir(kind).is_dir()

    def test_progress_reported_per_render(self, atlas_paths: AtlasPaths) -> None:
        events: list[dict] = []
        AssetBuilder(atlas_paths, make_renderer()).build(DIAGRAMS, on_progress=events.append)
        assert events == [{"step": "assets", "current": 1, "total": 1, "diagram": "E1_01"}]

    def test_render_failure_propagates(self, atlas_paths: AtlasPaths) -> None:
        renderer = make_renderer()
        renderer.render.side_effect = RuntimeError("browser crashed")
        with pytest.raises(RuntimeError, match="browser crashed"):
            AssetBuilder(atlas_paths, renderer).build(DIAGRAMS)
        assert not (atlas_paths.output_dir / "pdf" / "E1_01.pdf").exists()

    def test_pending_render_without_renderer_fails(self, atlas_paths: AtlasPaths) -> None:
        with pytest.raises(RuntimeError, match="requires a renderer"):
            AssetBuilder(atlas_paths, None).build(DIAGRAMS)
