"""Project file inventory: discovery, per-file analysis and the project map."""

from __future__ import annotations

import json
import logging
import os
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from . import config
from .errors import ParseError
from .models import (
    ClassInfo,
    FileAnalysis,
    FileRole,
    FunctionInfo,
    ImportEdge,
    InterfaceInfo,
    ProjectMap,
    PropertyInfo,
    to_dict,
)
from .parser import get_source_unit
from .resolver import ModuleResolver, canonical_path
from .roles import STRUCTURE_ROLE_RULES, RoleContext, classify

logger = logging.getLogger(__name__)

_WILDCARDS = set("*?[")


def _literal_base(pattern: str) -> str:
    parts: List[str] = []
    for part in pattern.split("/"):
        if any(ch in _WILDCARDS for ch in part):
            break
        parts.append(part)
    return "/".join(parts)


def _matches(rel_path: str, pattern: str) -> bool:
    # fnmatch's "*" already crosses "/", so "**/" only needs to also match nothing
    return fnmatch(rel_path, pattern) or fnmatch(rel_path, pattern.replace("**/", ""))


class ProjectScanner:
    """Lists a project's source files and analyzes them into FileAnalysis records."""

    def __init__(
        self,
        project_root: Union[str, Path],
        resolver: Optional[ModuleResolver] = None,
        ignore: Optional[Sequence[str]] = None,
    ) -> None:
        self.project_root = canonical_path(project_root)
        self.resolver = resolver or ModuleResolver(self.project_root)
        self.ignore = list(config.DEFAULT_IGNORE if ignore is None else ignore)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @staticmethod
    def whole_tree_patterns() -> List[str]:
        """Patterns matching every source file under the root."""
        return [f"**/*{ext}" for ext in sorted(config.SOURCE_EXTENSIONS)]

    def detect_patterns(self) -> List[str]:
        """Glob patterns matching the project's layout (monorepo, src/, or flat)."""
        root = Path(self.project_root)
        exts = sorted(config.SOURCE_EXTENSIONS)
        has_apps = (root / "apps").is_dir()
        has_packages = (root / "packages").is_dir()

        if has_apps or has_packages:
            bases = [b for b, present in (("apps", has_apps), ("packages", has_packages)) if present]
            return [f"{base}/**/*{ext}" for base in bases for ext in exts]
        if (root / "src").is_dir():
            return [f"src/**/*{ext}" for ext in exts]
        return self.whole_tree_patterns()

    def _is_ignored(self, rel_path: str, ignore: Sequence[str]) -> bool:
        name = rel_path.rsplit("/", 1)[-1]
        return any(fnmatch(name, pat) or _matches(rel_path, pat) for pat in ignore)

    def list_files(
        self,
        patterns: Optional[Sequence[str]] = None,
        ignore: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Absolute paths of source files matching *patterns*, sorted."""
        patterns = list(patterns) if patterns else self.detect_patterns()
        ignore = self.ignore if ignore is None else list(ignore)
        found = set()

        for pattern in patterns:
            base = os.path.join(self.project_root, _literal_base(pattern))
            if not os.path.isdir(base):
                continue
            for dirpath, dirnames, filenames in os.walk(base):
                dirnames[:] = sorted(
                    d for d in dirnames if d not in config.SKIP_DIRS and not d.startswith(".")
                )
                for filename in filenames:
                    full = os.path.join(dirpath, filename)
                    rel = Path(os.path.relpath(full, self.project_root)).as_posix()
                    if _matches(rel, pattern) and not self._is_ignored(rel, ignore):
                        found.add(canonical_path(full))

        if len(found) > 5000:
            logger.warning(
                "Found %d files under %s; consider narrowing the scan to a sub-directory",
                len(found), self.project_root,
            )
        return sorted(found)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_file(self, path: Union[str, Path]) -> FileAnalysis:
        """Parse one file into a FileAnalysis. Raises ParseError on failure."""
        unit = get_source_unit(path)
        imports = self.resolver.import_edges(unit)
        functions = unit.functions()
        classes = unit.classes()
        interfaces = unit.interfaces()
        exports = list(dict.fromkeys(unit.exported_names()))

        role = classify(
            RoleContext(
                path=unit.path,
                content=unit.source,
                exported_names=exports,
                functions=functions,
                class_names=[c.name for c in classes],
                interface_count=len(interfaces),
                type_alias_count=len(unit.type_aliases()),
            ),
            STRUCTURE_ROLE_RULES,
        )
        dependencies = [
            self.resolver.relative(edge.resolved_file)
            for edge in imports
            if edge.is_local and edge.resolved_file
        ]
        return FileAnalysis(
            file_path=unit.path,
            relative_path=self.resolver.relative(unit.path),
            role=role,
            exports=exports,
            dependencies=dependencies,
            imports=imports,
            functions=functions,
            classes=classes,
            interfaces=interfaces,
        )

    def generate_project_map(self, patterns: Optional[Sequence[str]] = None) -> ProjectMap:
        files: List[FileAnalysis] = []
        for path in self.list_files(patterns):
            try:
                files.append(self.analyze_file(path))
            except ParseError as exc:
                logger.warning("Skipping %s: %s", path, exc)

        files_by_role = {role.value: 0 for role in FileRole}
        for analysis in files:
            files_by_role[analysis.role.value] += 1

        return ProjectMap(
            project_name=Path(self.project_root).name,
            root_path=self.project_root,
            total_files=len(files),
            files_by_role=files_by_role,
            files=files,
            dependency_graph={f.relative_path: list(f.dependencies) for f in files},
        )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def save_project_map(project_map: ProjectMap, output_dir: Union[str, Path]) -> Path:
    output = Path(output_dir)
    output.mkdir(parents=True, exist_ok=True)
    target = output / config.PROJECT_MAP_FILE
    target.write_text(json.dumps(to_dict(project_map), indent=2, ensure_ascii=False), encoding="utf-8")
    return target


def _file_analysis_from_dict(data: Dict[str, Any]) -> FileAnalysis:
    return FileAnalysis(
        file_path=data["file_path"],
        relative_path=data["relative_path"],
        role=FileRole(data.get("role", FileRole.OTHER.value)),
        exports=list(data.get("exports", [])),
        dependencies=list(data.get("dependencies", [])),
        imports=[ImportEdge(**edge) for edge in data.get("imports", [])],
        functions=[FunctionInfo(**fn) for fn in data.get("functions", [])],
        classes=[ClassInfo(**cls) for cls in data.get("classes", [])],
        interfaces=[
            InterfaceInfo(
                name=iface["name"],
                properties=[PropertyInfo(**p) for p in iface.get("properties", [])],
                is_exported=iface.get("is_exported", False),
                text=iface.get("text", ""),
            )
            for iface in data.get("interfaces", [])
        ],
    )


def load_project_map(path: Union[str, Path]) -> ProjectMap:
    """Read a project map written by :func:`save_project_map`."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return ProjectMap(
        project_name=data["project_name"],
        root_path=data["root_path"],
        total_files=data["total_files"],
        files_by_role=dict(data.get("files_by_role", {})),
        files=[_file_analysis_from_dict(f) for f in data.get("files", [])],
        dependency_graph={k: list(v) for k, v in data.get("dependency_graph", {}).items()},
    )
