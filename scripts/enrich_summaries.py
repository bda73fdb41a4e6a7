#!/usr/bin/env python3
"""CLI: Answer prompt-like process summaries in data_atlas.json."""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the package is importable when running as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from datenatlas.cli import enrich_main

if __name__ == "__main__":
    sys.exit(enrich_main())
