#!/usr/bin/env python3
"""CLI: Build the Daten Atlas dataset, search index and diagram assets."""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the package is importable when running as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from datenatlas.cli import build_main

if __name__ == "__main__":
    sys.exit(build_main())
