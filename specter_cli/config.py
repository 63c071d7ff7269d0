"""Storage paths and runtime limits for Specter."""

from __future__ import annotations

import os
from pathlib import Path

STORE_DIR_NAME = ".specter"
GRAPH_FILE = "graph.json"
METADATA_FILE = "metadata.json"
SNAPSHOTS_DIR = "snapshots"
CONFIG_FILE_NAME = "specter.toml"
GRAPH_VERSION = "1.0.0"

SOURCE_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx"}
IGNORED_DIRS = {"node_modules", "dist", "build", ".git", STORE_DIR_NAME, "coverage"}

# Import specifiers without an extension are tried against these suffixes, in order.
IMPORT_CANDIDATE_SUFFIXES = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    "/index.ts",
    "/index.tsx",
    "/index.js",
    "/index.jsx",
)

GIT_TIMEOUT = float(os.environ.get("SPECTER_GIT_TIMEOUT", "30"))
GIT_MAX_WORKERS = int(os.environ.get("SPECTER_GIT_WORKERS", "6"))

# Functions above this complexity count as snapshot/velocity hotspots.
HOTSPOT_COMPLEXITY = 15


def store_dir(root: Path) -> Path:
    """Return the `.specter` directory for a project root."""
    return Path(root) / STORE_DIR_NAME


def is_source_file(path: str) -> bool:
    return Path(path).suffix in SOURCE_EXTENSIONS
