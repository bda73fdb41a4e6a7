"""Write build artifacts to disk."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from datenatlas.config import AtlasPaths
from datenatlas.models import AtlasDataset, SearchItem

logger = logging.getLogger(__name__)


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """Write to a sibling temp file, then rename over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_json_atomic(path: Path, payload: Any) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
    write_bytes_atomic(path, text.encode("utf-8"))


def write_artifacts(paths: AtlasPaths, dataset: AtlasDataset, search_items: list[SearchItem]) -> dict:
    """Write the full dataset, the search index and the diagram metadata.

    Returns {"dataset": path, "search_index": path, "diagrams": path}.
    """
    diagrams = [d.to_dict() for d in dataset.diagrams]
    write_json_atomic(paths.dataset_output, dataset.to_dict())
    write_json_atomic(paths.search_index_output, [item.to_dict() for item in search_items])
    write_json_atomic(paths.diagrams_output, diagrams)
    logger.info("Wrote atlas artifacts to %s", paths.output_dir)
    return {
        "dataset": paths.dataset_output,
        "search_index": paths.search_index_output,
        "diagrams": paths.diagrams_output,
    }
