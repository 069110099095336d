"""Core data models produced by the analysis layers and read by renderers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FileRole(str, Enum):
    COMPONENT = "component"
    HOOK = "hook"
    UTILITY = "utility"
    SERVICE = "service"
    TYPE = "type"
    CONFIG = "config"
    OTHER = "other"


class ChangeType(str, Enum):
    ADD = "add"
    DELETE = "delete"
    CONTEXT = "context"


class BlockKind(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    COMPONENT = "component"


# ---------------------------------------------------------------------------
# Dependency graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImportEdge:
    from_file: str
    raw_specifier: str
    resolved_file: Optional[str]
    imported_names: List[str]
    is_local: bool


@dataclass
class ExportedSymbol:
    name: str
    kind: str
    used_externally: bool = False


@dataclass
class DependencyNode:
    file: str
    relative_path: str
    role: FileRole
    imported_names: List[str] = field(default_factory=list)


@dataclass
class DependentRecord:
    file: str
    relative_path: str
    imported_names: List[str] = field(default_factory=list)
    usage_count: int = 0


@dataclass
class ImpactAnalysis:
    target_file: str
    target_relative_path: str
    exports: List[ExportedSymbol]
    dependencies: List[DependencyNode]
    dependents: List[DependentRecord]


# ---------------------------------------------------------------------------
# Change analysis
# ---------------------------------------------------------------------------

@dataclass
class ChangeHunk:
    """One body line of a unified diff, positioned in the new file."""

    start_line: int
    change_type: ChangeType
    content: str


@dataclass
class CodeBlock:
    kind: BlockKind
    name: str
    start_line: int
    end_line: int
    signature: str
    full_text: str
    changed_lines: List[int] = field(default_factory=list)

    @property
    def key(self) -> tuple:
        return (self.kind, self.name, self.start_line)


@dataclass
class FileChange:
    file_path: str
    relative_path: str
    status: str
    changed_lines: List[ChangeHunk] = field(default_factory=list)
    affected_blocks: List[CodeBlock] = field(default_factory=list)


@dataclass
class DiffAnalysis:
    total_files: int
    file_changes: List[FileChange]
    summary: Dict[str, int] = field(
        default_factory=lambda: {"added": 0, "modified": 0, "deleted": 0}
    )


# ---------------------------------------------------------------------------
# Project inventory
# ---------------------------------------------------------------------------

@dataclass
class FunctionInfo:
    name: str
    parameters: List[str] = field(default_factory=list)
    is_async: bool = False
    is_exported: bool = False
    returns_jsx: bool = False


@dataclass
class ClassInfo:
    name: str
    methods: List[str] = field(default_factory=list)
    properties: List[str] = field(default_factory=list)
    is_exported: bool = False


@dataclass
class PropertyInfo:
    name: str
    type: str
    optional: bool = False


@dataclass
class InterfaceInfo:
    name: str
    properties: List[PropertyInfo] = field(default_factory=list)
    is_exported: bool = False
    text: str = ""


@dataclass
class TypeAliasInfo:
    name: str
    definition: str
    kind: str = "type"
    is_exported: bool = False
    text: str = ""


@dataclass
class FileAnalysis:
    file_path: str
    relative_path: str
    role: FileRole
    exports: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    imports: List[ImportEdge] = field(default_factory=list)
    functions: List[FunctionInfo] = field(default_factory=list)
    classes: List[ClassInfo] = field(default_factory=list)
    interfaces: List[InterfaceInfo] = field(default_factory=list)


@dataclass
class ProjectMap:
    project_name: str
    root_path: str
    total_files: int
    files_by_role: Dict[str, int]
    files: List[FileAnalysis]
    dependency_graph: Dict[str, List[str]]


# ---------------------------------------------------------------------------
# Relevance search
# ---------------------------------------------------------------------------

@dataclass
class ExportInfo:
    name: str
    kind: str
    signature: str = ""
    is_default: bool = False


@dataclass
class CodeSummary:
    file_path: str
    exports: List[ExportInfo] = field(default_factory=list)
    interfaces: List[InterfaceInfo] = field(default_factory=list)
    types: List[TypeAliasInfo] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    source_code: Optional[str] = None


@dataclass
class RelatedFile:
    file_path: str
    relation: str
    code_summary: CodeSummary


@dataclass
class ContextMatch:
    file: FileAnalysis
    score: int
    matched_keywords: List[str]
    code_summary: CodeSummary
    related_files: List[RelatedFile] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Comment markers
# ---------------------------------------------------------------------------

@dataclass
class MarkerTask:
    kind: str
    text: str
    line: int


@dataclass
class FunctionSignature:
    name: str
    signature: str


@dataclass
class TaskContext:
    task_id: str
    file_path: str
    line: int
    description: str
    code_block: CodeBlock
    related_types: List[TypeAliasInfo] = field(default_factory=list)
    related_interfaces: List[InterfaceInfo] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    referenced_functions: List[FunctionSignature] = field(default_factory=list)


def to_dict(obj: Any) -> Any:
    """Convert a model (or list of models) into JSON-ready primitives."""
    if isinstance(obj, list):
        return [to_dict(item) for item in obj]
    return _plain(asdict(obj))


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
