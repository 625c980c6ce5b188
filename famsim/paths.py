"""
Centralised path constants for the family life simulator.

All directories are resolved relative to PROJECT_ROOT so that the engine
behaves the same whether it is driven by the CLI, the FastAPI server or the
test suite.
"""

from __future__ import annotations

import sys
from pathlib import Path


def _find_project_root() -> Path:
    """
    Resolve the project root at import time.

    - In a PyInstaller onefile bundle, sys._MEIPASS is the extraction directory
      which contains all bundled resources.
    - In normal use, the project root is two levels up from this file
      (famsim/paths.py → famsim/ → project root).
    """
    if getattr(sys, "frozen", False):
        return Path(sys._MEIPASS)  # type: ignore[attr-defined]
    return Path(__file__).parent.parent


# ── Root ──────────────────────────────────────────────────────────────────────

PROJECT_ROOT: Path = _find_project_root()

# ── Input directories ─────────────────────────────────────────────────────────

CONFIG_DIR: Path = PROJECT_ROOT / "config"
EVENTS_DIR: Path = CONFIG_DIR / "events"
NAME_LISTS_DIR: Path = PROJECT_ROOT / "name_lists"

# ── Output directories ────────────────────────────────────────────────────────

# Rendered genealogy graphs (DOT sources and, when Graphviz is installed, images)
TREE_OUTPUT_DIR: Path = PROJECT_ROOT / "Family Trees"
