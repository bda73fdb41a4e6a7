"""Post-build consistency checks on the written artifacts."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from datenatlas.config import AtlasPaths

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    diagrams_checked: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_outputs(paths: AtlasPaths) -> ValidationReport:
    """Check that the three artifacts exist and that declared PDFs were rendered.

    Diagrams without any image are reported as warnings; a diagram whose
    ``pdfPath`` points at a missing file is an error.
    """
    report = ValidationReport()
    artifacts = [paths.dataset_output, paths.search_index_output, paths.diagrams_output]
    for artifact in artifacts:
        if not artifact.exists():
            report.errors.append(f"Missing artifact: {artifact}")
    if report.errors:
        return report

    try:
        diagrams = json.loads(paths.diagrams_output.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        report.errors.append(f"Cannot read {paths.diagrams_output}: {e}")
        return report
    if not isinstance(diagrams, list):
        report.errors.append(f"{paths.diagrams_output} is not a list of diagrams")
        return report

    report.diagrams_checked = len(diagrams)
    without_image = [d.get("id", "?") for d in diagrams if not d.get("svgPath") and not d.get("pngPath")]
    if without_image:
        report.warnings.append(
            f"{len(without_image)} diagram(s) have neither SVG nor PNG: {', '.join(without_image[:10])}"
        )

    missing_pdf = [
        d.get("id", "?")
        for d in diagrams
        if d.get("pdfPath") and not paths.resolve_public_path(d["pdfPath"]).exists()
    ]
    if missing_pdf:
        report.errors.append(
            f"{len(missing_pdf)} diagram(s) declare a PDF that does not exist: {', '.join(missing_pdf[:10])}"
        )

    for warning in report.warnings:
        logger.warning(warning)
    return report
