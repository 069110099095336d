"""Dependency graph builder: forward dependencies, reverse dependents, export usage."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Union

from . import config
from .errors import ParseError, TargetNotFoundError
from .models import DependencyNode, DependentRecord, ExportedSymbol, FileRole, ImpactAnalysis
from .parser import SourceUnit, get_source_unit
from .resolver import ModuleResolver, canonical_path
from .roles import DEPENDENCY_ROLE_RULES, RoleContext, classify
from .scanner import ProjectScanner

logger = logging.getLogger(__name__)


class DependencyTracer:
    """Answers "what does this file depend on, and what depends on it?".

    Every call to :meth:`analyze_impact` rebuilds its view of the project
    from the files on disk; nothing is kept between calls except the parse
    cache in :mod:`aipilot_cli.parser`.

    Args:
        project_root: Directory all paths are resolved against.
        max_depth: Depth bound for the forward walk (0 = direct imports only).
        aliases: Import alias prefixes, e.g. ``{"@/": "src/"}``.
        scanner: Inventory used to list candidate dependents.
        ignore: File-name globs skipped by the default scanner.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        max_depth: int = config.DEFAULT_MAX_DEPTH,
        aliases: Optional[Dict[str, str]] = None,
        scanner: Optional[ProjectScanner] = None,
        ignore: Optional[Sequence[str]] = None,
    ) -> None:
        self.project_root = canonical_path(project_root)
        self.max_depth = max_depth
        self.resolver = ModuleResolver(self.project_root, aliases)
        self.scanner = scanner or ProjectScanner(self.project_root, resolver=self.resolver, ignore=ignore)

    def _absolute(self, path: Union[str, Path]) -> str:
        path = str(path)
        if not os.path.isabs(path):
            path = os.path.join(self.project_root, path)
        return canonical_path(path)

    def analyze_impact(self, path: Union[str, Path]) -> ImpactAnalysis:
        """Build the impact analysis of one file.

        Raises:
            TargetNotFoundError: *path* does not exist.
            ParseError: the target itself cannot be parsed.
        """
        target = self._absolute(path)
        if not os.path.isfile(target):
            raise TargetNotFoundError(str(path))

        unit = get_source_unit(target)
        exports = unit.exported_declarations()

        visited: Set[str] = {target}
        dependencies = self._analyze_dependencies(unit, 0, visited)
        dependents = self._analyze_dependents(target)

        self._mark_external_usage(exports, dependents)

        logger.info(
            "Impact of %s: %d dependencies, %d dependents",
            self.resolver.relative(target), len(dependencies), len(dependents),
        )
        return ImpactAnalysis(
            target_file=target,
            target_relative_path=self.resolver.relative(target),
            exports=exports,
            dependencies=dependencies,
            dependents=dependents,
        )

    # ------------------------------------------------------------------
    # Forward walk
    # ------------------------------------------------------------------

    def _analyze_dependencies(
        self, unit: SourceUnit, depth: int, visited: Set[str]
    ) -> List[DependencyNode]:
        nodes: List[DependencyNode] = []
        for edge in self.resolver.import_edges(unit):
            resolved = edge.resolved_file
            if not edge.is_local or resolved is None:
                continue
            if not self.resolver.is_inside_root(resolved) or resolved in visited:
                continue
            visited.add(resolved)

            nodes.append(DependencyNode(
                file=resolved,
                relative_path=self.resolver.relative(resolved),
                role=self._dependency_role(resolved),
                imported_names=list(edge.imported_names),
            ))

            if depth < self.max_depth:
                try:
                    child = get_source_unit(resolved)
                except ParseError as exc:
                    logger.warning("Not following imports of %s: %s", resolved, exc)
                    continue
                nodes.extend(self._analyze_dependencies(child, depth + 1, visited))
        return nodes

    @staticmethod
    def _dependency_role(path: str) -> FileRole:
        try:
            content = Path(path).read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            logger.debug("Could not read %s for role detection: %s", path, exc)
            content = ""
        return classify(RoleContext(path=path, content=content), DEPENDENCY_ROLE_RULES)

    # ------------------------------------------------------------------
    # Reverse scan
    # ------------------------------------------------------------------

    def _analyze_dependents(self, target: str) -> List[DependentRecord]:
        """Files anywhere under the root that import or re-export *target*.

        The whole tree is read, not only the detected source patterns, so a
        root-level entry point counts.  Files on the ignore list (tests,
        specs, declaration files) are never dependents.  A name both
        imported and re-exported is listed once.
        """
        dependents: List[DependentRecord] = []
        for path in self.scanner.list_files(self.scanner.whole_tree_patterns()):
            if path == target:
                continue
            try:
                unit = get_source_unit(path)
            except ParseError as exc:
                logger.warning("Skipping %s during dependent scan: %s", path, exc)
                continue

            matched = [
                edge for edge in self.resolver.import_edges(unit)
                if edge.is_local and edge.resolved_file == target
            ]
            if not matched:
                continue
            names = list(dict.fromkeys(name for edge in matched for name in edge.imported_names))
            dependents.append(DependentRecord(
                file=path,
                relative_path=self.resolver.relative(path),
                imported_names=names,
                usage_count=len(names),
            ))
        return dependents

    @staticmethod
    def _mark_external_usage(
        exports: List[ExportedSymbol], dependents: List[DependentRecord]
    ) -> None:
        used = {name for record in dependents for name in record.imported_names}
        for symbol in exports:
            symbol.used_externally = symbol.name in used
