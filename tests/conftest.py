"""Shared fixtures: per-test atlas directories under tmp_path."""

import pytest

from datenatlas.config import AtlasPaths
from tests.helpers import write_atlas_inputs


@pytest.fixture
def paths(tmp_path):
    """Empty data and output roots for one build."""
    return AtlasPaths(
        data_dir=tmp_path / "data" / "atlas",
        output_dir=tmp_path / "public" / "atlas",
        public_prefix="/atlas",
    )


@pytest.fixture
def atlas_paths(paths):
    """Paths with the sample catalog, definitions and two diagrams written."""
    write_atlas_inputs(paths)
    return paths
