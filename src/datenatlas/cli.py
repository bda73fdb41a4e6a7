"""Command-line entry points: atlas-build, atlas-validate, atlas-enrich-summaries."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from datenatlas import config
from datenatlas.config import AtlasPaths


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help=f"Directory with the raw atlas inputs (default: {config.DATA_DIR})",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help=f"Directory for artifacts and mirrored assets (default: {config.OUTPUT_DIR})",
    )
    return parser


def _paths(args: argparse.Namespace) -> AtlasPaths:
    return AtlasPaths(
        data_dir=args.data_dir or config.DATA_DIR,
        output_dir=args.output_dir or config.OUTPUT_DIR,
    )


def _print_progress(event: dict) -> None:
    step = event.get("step")
    if step == "assets":
        current, total = event["current"], event["total"]
        if current == 1 or current % 25 == 0 or current == total:
            print(f"  Rendering PDF {current}/{total}: {event['diagram']}")
    elif event.get("status") == "done":
        details = ", ".join(f"{k}={v}" for k, v in event.items() if k not in ("step", "status"))
        print(f"[{step}] {details}")


def build_main(argv: list[str] | None = None) -> int:
    """Run the whole pipeline. Any uncaught error fails the run."""
    parser = _parser("Build the Daten Atlas dataset, search index and diagram assets")
    parser.add_argument(
        "--no-references",
        action="store_true",
        help="Skip reference enrichment even if VECTOR_STORE_URL is set",
    )
    args = parser.parse_args(argv)
    _configure_logging()

    from datenatlas.indexer.pipeline import BuildContext, run_build
    from datenatlas.indexer.references import ReferenceEnricher, create_enricher
    from datenatlas.renderer import PlaywrightRenderer

    paths = _paths(args)
    print(f"Building atlas: {paths.data_dir} -> {paths.output_dir}")
    start = time.time()

    enricher = ReferenceEnricher(None) if args.no_references else create_enricher()
    try:
        with BuildContext(paths, enricher=enricher, renderer=PlaywrightRenderer()) as ctx:
            result = run_build(ctx, on_progress=_print_progress)
    except Exception as e:
        logging.getLogger(__name__).debug("Build failed", exc_info=True)
        print(f"Error: failed to generate atlas assets: {e}", file=sys.stderr)
        return 1

    assets = result["assets"]
    print(f"\nDone in {time.time() - start:.1f}s")
    print(f"  Elements: {result['elements']}  Processes: {result['processes']}  Diagrams: {result['diagrams']}")
    print(f"  Assets copied: {assets['copied']} (unchanged: {assets['skipped']})")
    print(f"  PDFs rendered: {assets['rendered']} (up to date: {assets['pdf_fresh']})")
    for name, path in result["artifacts"].items():
        print(f"  {name}: {path}")
    return 0


def validate_main(argv: list[str] | None = None) -> int:
    """Check the written artifacts; exit 1 on hard failures."""
    args = _parser("Validate the Daten Atlas build output").parse_args(argv)
    _configure_logging()

    from datenatlas.indexer.validate import validate_outputs

    report = validate_outputs(_paths(args))
    for warning in report.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for error in report.errors:
        print(f"Error: {error}", file=sys.stderr)
    if not report.ok:
        return 1
    print(f"Atlas output OK ({report.diagrams_checked} diagrams checked)")
    return 0


def enrich_main(argv: list[str] | None = None) -> int:
    """Answer prompt-like process summaries in data_atlas.json via Gemini."""
    args = _parser("Replace prompt-like process summaries with generated answers").parse_args(argv)
    _configure_logging()

    if not config.GEMINI_API_KEY:
        print("Error: summary enrichment requires GEMINI_API_KEY in .env", file=sys.stderr)
        return 1

    from datenatlas.indexer.references import create_enricher
    from datenatlas.indexer.summarizer import SummaryEnricher
    from datenatlas.provider import GeminiProvider

    enricher = SummaryEnricher(_paths(args), GeminiProvider(), enricher=create_enricher())
    try:
        result = enricher.run()
    except Exception as e:
        print(f"Error: summary enrichment aborted: {e}", file=sys.stderr)
        return 1

    print(
        f"Summaries: {result['summarized']} written, {result['failed']} failed, "
        f"{result['pending']} pending of {result['tasks']} total"
    )
    return 0


def _run(main) -> None:
    sys.exit(main())


def build() -> None:
    _run(build_main)


def validate() -> None:
    _run(validate_main)


def enrich_summaries() -> None:
    _run(enrich_main)
