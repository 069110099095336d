"""Configuration paths and analysis defaults for AI Pilot."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("AIPILOT_HOME", str(Path.home() / ".aipilot"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
PROJECT_CONFIG_NAME = ".aipilot.toml"

# Output directory (relative to the project root) for scan artifacts
CONTEXT_DIR = "ai-context"
PROJECT_MAP_FILE = "project-map.json"

SOURCE_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx"}

# Suffixes tried in order when resolving an import specifier to a file
RESOLVE_SUFFIXES = (
    "",
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    "/index.ts",
    "/index.tsx",
    "/index.js",
    "/index.jsx",
)

SKIP_DIRS = {
    "node_modules", "dist", "build", ".next", ".nuxt", "out",
    "coverage", ".git", ".aipilot", "ai-context",
}

DEFAULT_IGNORE = ["*.d.ts", "*.spec.*", "*.test.*", "*.min.js"]

DEFAULT_MAX_DEPTH = 3
DEFAULT_ALIASES = {"@/": "src/"}

# Matches at or above this score carry their full source text
FULL_SOURCE_SCORE = 10
