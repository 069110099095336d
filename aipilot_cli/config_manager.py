"""Configuration manager for AI Pilot using TOML files.

Two files are consulted, the later one winning key by key:

- the global ``~/.aipilot/config.toml`` (``AIPILOT_HOME`` overrides the
  directory)
- a project-level ``.aipilot.toml`` in the analyzed project's root

Only the ``[analysis]`` section is read::

    [analysis]
    max_depth = 3
    ignore = ["*.stories.tsx"]

    [analysis.aliases]
    "@/" = "src/"
    "~/" = "src/"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config

logger = logging.getLogger(__name__)


@dataclass
class AnalysisConfig:
    """Effective analysis settings for one project."""

    max_depth: int = config.DEFAULT_MAX_DEPTH
    aliases: Dict[str, str] = field(default_factory=lambda: dict(config.DEFAULT_ALIASES))
    ignore: List[str] = field(default_factory=lambda: list(config.DEFAULT_IGNORE))


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load an entire TOML config file (all sections)."""
    return _read_toml(path or config.CONFIG_FILE)


def load_analysis_config(project_root: Optional[Path] = None) -> AnalysisConfig:
    """Merge global and project ``[analysis]`` sections over the defaults.

    Args:
        project_root: Root of the analyzed project. When given, its
            ``.aipilot.toml`` overrides the global file.

    Returns:
        AnalysisConfig with every field populated.
    """
    merged: Dict[str, Any] = {}
    sources = [config.CONFIG_FILE]
    if project_root is not None:
        sources.append(Path(project_root) / config.PROJECT_CONFIG_NAME)

    for source in sources:
        section = _read_toml(source).get("analysis", {})
        if not isinstance(section, dict):
            logger.warning("[analysis] in %s is not a table, skipping", source)
            continue
        merged.update(section)

    result = AnalysisConfig()
    if "max_depth" in merged:
        try:
            result.max_depth = max(0, int(merged["max_depth"]))
        except (TypeError, ValueError):
            logger.warning("Invalid max_depth %r, using %d", merged["max_depth"], result.max_depth)
    if isinstance(merged.get("aliases"), dict):
        result.aliases = {str(k): str(v) for k, v in merged["aliases"].items()}
    if isinstance(merged.get("ignore"), list):
        result.ignore = list(config.DEFAULT_IGNORE) + [str(p) for p in merged["ignore"]]
    return result


def save_analysis_config(settings: AnalysisConfig, path: Optional[Path] = None) -> bool:
    """Write ``[analysis]`` to the global config, preserving other sections.

    Returns:
        True if saved successfully, False otherwise
    """
    target = path or config.CONFIG_FILE
    full = load_full_config(target)
    full["analysis"] = {
        "max_depth": settings.max_depth,
        "aliases": dict(settings.aliases),
        "ignore": [p for p in settings.ignore if p not in config.DEFAULT_IGNORE],
    }
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            toml.dump(full, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", target, exc)
        return False
