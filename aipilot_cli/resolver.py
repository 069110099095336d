"""Import specifier resolution inside one project root."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Union

from . import config
from .models import ImportEdge

if TYPE_CHECKING:
    from .parser import SourceUnit

logger = logging.getLogger(__name__)


def canonical_path(path: Union[str, Path]) -> str:
    """Absolute, normalized form used as a file's identity in the graph."""
    return os.path.normpath(os.path.abspath(str(path)))


class ModuleResolver:
    """Turns ``import`` specifiers into absolute file paths.

    Only same-repository imports are resolved: relative (``./``, ``../``),
    absolute (``/``) and configured alias prefixes such as ``@/``.  Bare
    package names are treated as external and resolve to ``None``.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        aliases: Optional[Dict[str, str]] = None,
        suffixes: Sequence[str] = config.RESOLVE_SUFFIXES,
    ) -> None:
        self.project_root = canonical_path(project_root)
        source = config.DEFAULT_ALIASES if aliases is None else aliases
        # Longest prefix first so "@/components/" wins over "@/"
        self.aliases = sorted(source.items(), key=lambda item: len(item[0]), reverse=True)
        self.suffixes = tuple(suffixes)

    def _alias_target(self, specifier: str) -> Optional[str]:
        for prefix, replacement in self.aliases:
            if specifier.startswith(prefix):
                return replacement + specifier[len(prefix):]
        return None

    def is_local(self, specifier: str) -> bool:
        return (
            specifier.startswith(".")
            or specifier.startswith("/")
            or self._alias_target(specifier) is not None
        )

    def resolve(self, current_dir: Union[str, Path], specifier: str) -> Optional[str]:
        """Resolve *specifier* as imported from a file in *current_dir*.

        Returns:
            Canonical absolute path of the first existing candidate file, or
            None for external / unresolvable specifiers.
        """
        base_dir = str(current_dir)
        aliased = self._alias_target(specifier)
        if aliased is not None:
            specifier = aliased
            base_dir = self.project_root
        elif not (specifier.startswith(".") or specifier.startswith("/")):
            return None

        for suffix in self.suffixes:
            candidate = os.path.join(base_dir, specifier + suffix)
            if os.path.isfile(candidate):
                return canonical_path(candidate)

        logger.debug("Unresolved import '%s' from %s", specifier, current_dir)
        return None

    def is_inside_root(self, path: str) -> bool:
        try:
            return os.path.commonpath([self.project_root, path]) == self.project_root
        except ValueError:
            return False

    def relative(self, path: str) -> str:
        return Path(os.path.relpath(path, self.project_root)).as_posix()

    def import_edges(self, unit: "SourceUnit") -> List[ImportEdge]:
        """One ImportEdge per import statement of *unit*, resolved where local."""
        current_dir = os.path.dirname(unit.path)
        edges: List[ImportEdge] = []
        for decl in unit.import_declarations():
            local = self.is_local(decl.specifier)
            edges.append(ImportEdge(
                from_file=unit.path,
                raw_specifier=decl.specifier,
                resolved_file=self.resolve(current_dir, decl.specifier) if local else None,
                imported_names=decl.imported_names,
                is_local=local,
            ))
        return edges
