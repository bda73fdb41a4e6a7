"""Configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


# Paths
DATA_DIR: Path = Path(os.getenv("ATLAS_DATA_DIR", "./data/atlas"))
OUTPUT_DIR: Path = Path(os.getenv("ATLAS_OUTPUT_DIR", "./public/atlas"))
LOGO_PATH: Path = Path(os.getenv("ATLAS_LOGO_PATH", "./public/media/logo.png"))

# Public URLs
PUBLIC_PREFIX: str = os.getenv("ATLAS_PUBLIC_PREFIX", "/atlas").rstrip("/")
SITE_SECTION: str = os.getenv("ATLAS_SITE_SECTION", "/daten-atlas").rstrip("/")

# Vector store (reference enrichment)
VECTOR_STORE_URL: str = os.getenv("VECTOR_STORE_URL", "")
VECTOR_STORE_API_KEY: str = os.getenv("VECTOR_STORE_API_KEY", "")
VECTOR_STORE_COLLECTION: str = os.getenv("VECTOR_STORE_COLLECTION", "willi_mako")

# API keys
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_AI_API_KEY", "")

# Models
SUMMARY_MODEL: str = os.getenv("ATLAS_SUMMARY_MODEL", "gemini-2.0-flash")

# Build
WORKERS: int = int(os.getenv("ATLAS_WORKERS", "4"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

DIAGRAM_SOURCE_EXT = ".puml"


@dataclass(frozen=True)
class AtlasPaths:
    """Every input and output location of one build, derived from two roots."""

    data_dir: Path
    output_dir: Path
    public_prefix: str = PUBLIC_PREFIX

    # Inputs
    @property
    def catalog(self) -> Path:
        return self.data_dir / "data_atlas.json"

    @property
    def process_definitions(self) -> Path:
        return self.data_dir / "process_definitions.json"

    @property
    def summary_progress(self) -> Path:
        return self.data_dir / "summary_progress.json"

    @property
    def diagram_source_dir(self) -> Path:
        return self.data_dir / "uml_diagrams"

    @property
    def diagram_svg_dir(self) -> Path:
        return self.diagram_source_dir / "svg"

    @property
    def diagram_png_dir(self) -> Path:
        return self.diagram_source_dir / "png"

    # Outputs
    @property
    def dataset_output(self) -> Path:
        return self.output_dir / "atlas-data.json"

    @property
    def search_index_output(self) -> Path:
        return self.output_dir / "search-index.json"

    @property
    def diagrams_output(self) -> Path:
        return self.output_dir / "diagrams.json"

    def asset_dir(self, kind: str) -> Path:
        """Output directory for one asset type ("svg", "png", "pdf", "puml")."""
        return self.output_dir / kind

    def public_path(self, kind: str, diagram_id: str) -> str:
        """Public URL path of a mirrored asset, e.g. /atlas/svg/E1_01.svg."""
        return f"{self.public_prefix}/{kind}/{diagram_id}.{kind}"

    def resolve_public_path(self, public_path: str) -> Path:
        """Map a public asset path back to its file under the output dir."""
        prefix = self.public_prefix + "/"
        relative = public_path[len(prefix):] if public_path.startswith(prefix) else public_path.lstrip("/")
        return self.output_dir / relative


def default_paths() -> AtlasPaths:
    """Return the paths configured through the environment."""
    return AtlasPaths(data_dir=DATA_DIR, output_dir=OUTPUT_DIR)
