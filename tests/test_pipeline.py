"""End-to-end tests for the build pipeline and the command-line entry points."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from datenatlas.cli import build_main, enrich_main, validate_main
from datenatlas.config import AtlasPaths
from datenatlas.indexer.loader import CatalogError
from datenatlas.indexer.pipeline import BuildContext, run_build, run_load
from datenatlas.indexer.references import ReferenceEnricher
from datenatlas.indexer.validate import validate_outputs
from datenatlas.storage.vector_store import ReferenceRecord
from tests.helpers import FakeReferenceSource, make_renderer, write_atlas_inputs

NOW = "2025-08-01T12:00:00+00:00"


def _cli_args(paths: AtlasPaths) -> list[str]:
    return ["--data-dir", str(paths.data_dir), "--output-dir", str(paths.output_dir)]


# ── Pipeline ──


class TestRunLoad:
    def test_reads_both_sources_and_diagrams(self, atlas_paths: AtlasPaths) -> None:
        events: list[dict] = []
        inputs = run_load(atlas_paths, on_progress=events.append)
        assert len(inputs.catalog.elements) == 2
        assert len(inputs.definitions) == 2
        assert inputs.diagram_ids == ["E1_01", "UTILMD_AHB"]
        assert events[-1] == {"step": "load", "status": "done", "elements": 2, "definitions": 2, "diagrams": 2}

    def test_missing_definitions_fail(self, atlas_paths: AtlasPaths) -> None:
        atlas_paths.process_definitions.unlink()
        with pytest.raises(CatalogError):
            run_load(atlas_paths)


class TestRunBuild:
    def test_full_build(self, atlas_paths: AtlasPaths) -> None:
        renderer = make_renderer()
        with BuildContext(atlas_paths, renderer=renderer, workers=2) as ctx:
            result = run_build(ctx, now=NOW)
        renderer.close.assert_called_once()

        assert result["elements"] == 2
        assert result["processes"] == 3
        assert result["diagrams"] == 2
        assert result["search_items"] == 7
        assert result["assets"]["rendered"] == 1

        data = json.loads(atlas_paths.dataset_output.read_text(encoding="utf-8"))
        assert data["generatedAt"] == NOW
        assert [p["slug"] for p in data["processes"]] == [
            "lieferantenwechsel", "netznutzungsabrechnung", "stammdatenaenderung",
        ]
        index = json.loads(atlas_paths.search_index_output.read_text(encoding="utf-8"))
        assert len(index) == 7
        diagrams = json.loads(atlas_paths.diagrams_output.read_text(encoding="utf-8"))
        assert diagrams == data["diagrams"]

        report = validate_outputs(atlas_paths)
        assert report.ok
        assert report.warnings == []

    def test_build_is_idempotent(self, atlas_paths: AtlasPaths) -> None:
        renderer = make_renderer()
        ctx = BuildContext(atlas_paths, renderer=renderer)
        run_build(ctx, now=NOW)
        first = atlas_paths.dataset_output.read_bytes()
        second_result = run_build(ctx, now=NOW)
        assert atlas_paths.dataset_output.read_bytes() == first
        assert second_result["assets"]["rendered"] == 0
        assert second_result["assets"]["copied"] == 0
        assert renderer.render.call_count == 1

    def test_references_flow_into_output(self, atlas_paths: AtlasPaths) -> None:
        records = [ReferenceRecord(id="r1", title="Zählpunkt", text="E1:01 im Detail", url="https://example.org")]
        ctx = BuildContext(
            atlas_paths,
            enricher=ReferenceEnricher(FakeReferenceSource(records)),
            renderer=make_renderer(),
        )
        run_build(ctx, now=NOW)
        data = json.loads(atlas_paths.dataset_output.read_text(encoding="utf-8"))
        refs = data["elements"][0]["qdrantReferences"]
        assert refs[0]["id"] == "r1"
        assert refs[0]["url"] == "https://example.org"

    def test_render_failure_leaves_metadata_for_validation(self, atlas_paths: AtlasPaths) -> None:
        renderer = make_renderer()
        renderer.render.side_effect = RuntimeError("browser crashed")
        with pytest.raises(RuntimeError):
            run_build(BuildContext(atlas_paths, renderer=renderer), now=NOW)
        assert atlas_paths.diagrams_output.exists()
        report = validate_outputs(atlas_paths)
        assert not report.ok
        assert "E1_01" in report.errors[0]

    def test_no_diagram_directory(self, paths: AtlasPaths) -> None:
        write_atlas_inputs(paths, diagrams={})
        result = run_build(BuildContext(paths, renderer=make_renderer()), now=NOW)
        assert result["diagrams"] == 0
        assert result["assets"]["rendered"] == 0


# ── CLI ──


class TestCli:
    def test_build_then_validate(self, atlas_paths: AtlasPaths, capsys: pytest.CaptureFixture) -> None:
        renderer = make_renderer()
        with patch("datenatlas.renderer.PlaywrightRenderer", return_value=renderer):
            assert build_main([*_cli_args(atlas_paths), "--no-references"]) == 0
        renderer.close.assert_called_once()
        assert "PDFs rendered: 1" in capsys.readouterr().out

        assert validate_main(_cli_args(atlas_paths)) == 0
        assert "Atlas output OK (2 diagrams checked)" in capsys.readouterr().out

    def test_build_failure_exit_code(self, paths: AtlasPaths, capsys: pytest.CaptureFixture) -> None:
        with patch("datenatlas.renderer.PlaywrightRenderer", return_value=make_renderer()):
            assert build_main([*_cli_args(paths), "--no-references"]) == 1
        assert "Error: failed to generate atlas assets" in capsys.readouterr().err

    def test_validate_without_build(self, paths: AtlasPaths, capsys: pytest.CaptureFixture) -> None:
        assert validate_main(_cli_args(paths)) == 1
        assert "Missing artifact" in capsys.readouterr().err

    def test_enrich_requires_api_key(self, atlas_paths: AtlasPaths, capsys: pytest.CaptureFixture) -> None:
        with patch("datenatlas.config.GEMINI_API_KEY", ""):
            assert enrich_main(_cli_args(atlas_paths)) == 1
        assert "GEMINI_API_KEY" in capsys.readouterr().err

    def test_enrich_runs_with_provider(self, atlas_paths: AtlasPaths) -> None:
        with (
            patch("datenatlas.config.GEMINI_API_KEY", "test-key"),
            patch("datenatlas.config.VECTOR_STORE_URL", ""),
            patch("datenatlas.provider.GeminiProvider") as provider_cls,
        ):
            provider_cls.return_value.model = "gemini-test"
            provider_cls.return_value.generate.return_value = "Antwort."
            assert enrich_main(_cli_args(atlas_paths)) == 0
        raw = json.loads(atlas_paths.catalog.read_text(encoding="utf-8"))
        assert raw["elements"][0]["processContext"][0]["summary"] == "Antwort."
