"""Source model provider built on Tree-sitter for JavaScript / TypeScript.

Every analysis in AI Pilot works against a :class:`SourceUnit`: one parsed
file exposing its import statements, exported symbols, top-level
declarations and a byte-offset <-> line mapping.  Tree-sitter produces a
concrete syntax tree that tolerates broken or half-edited code, which matters
here because the files being analyzed are usually mid-edit.

Parsed units are kept in a process-wide cache keyed by absolute path; an
entry is re-parsed only when the file's mtime or size changes.
"""

from __future__ import annotations

import bisect
import importlib
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .errors import ParseError
from .models import ClassInfo, ExportedSymbol, FunctionInfo, InterfaceInfo, PropertyInfo, TypeAliasInfo

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

# language -> (grammar module, factory returning the Language capsule)
_GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "javascript": ("tree_sitter_javascript", "language"),
}

FUNCTION_TYPES = {"function_declaration", "generator_function_declaration"}
FUNCTION_VALUE_TYPES = {"arrow_function", "function_expression", "function"}
CLASS_TYPES = {"class_declaration", "abstract_class_declaration"}
VARIABLE_STATEMENT_TYPES = {"lexical_declaration", "variable_declaration"}
MARKUP_TYPES = {"jsx_element", "jsx_self_closing_element", "jsx_fragment"}


@dataclass
class ImportDeclaration:
    """One ``import ... from`` (or ``export ... from``) statement."""

    specifier: str
    default_import: Optional[str] = None
    named_imports: List[str] = field(default_factory=list)
    namespace_import: Optional[str] = None
    line: int = 0
    text: str = ""
    is_reexport: bool = False

    @property
    def imported_names(self) -> List[str]:
        names: List[str] = []
        if self.default_import:
            names.append(self.default_import)
        names.extend(self.named_imports)
        return names


# ===================================================================
# Tree helpers
# ===================================================================

def node_text(node: Any) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def node_name(node: Any) -> Optional[str]:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    return node_text(name_node)


def iter_descendants(node: Any) -> Iterator[Any]:
    """Pre-order walk over *node* and everything below it."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def is_async(node: Any) -> bool:
    return any(child.type == "async" for child in node.children)


def _unwrap_parens(node: Any) -> Any:
    while node is not None and node.type == "parenthesized_expression":
        inner = [c for c in node.named_children if c.type != "comment"]
        node = inner[0] if inner else None
    return node


def _is_markup(node: Any) -> bool:
    node = _unwrap_parens(node)
    return node is not None and node.type in MARKUP_TYPES


def returns_markup(fn_node: Any) -> bool:
    """True if a function returns a JSX element, self-closing element or fragment.

    Checks the syntax tree, so JSX-looking text inside comments or strings
    does not count.
    """
    body = fn_node.child_by_field_name("body")
    if body is None:
        return False
    if fn_node.type == "arrow_function" and body.type != "statement_block":
        return _is_markup(body)
    for node in iter_descendants(body):
        if node.type != "return_statement":
            continue
        expr = next((c for c in node.named_children if c.type != "comment"), None)
        if _is_markup(expr):
            return True
    return False


def _string_value(node: Any) -> str:
    if node is None:
        return ""
    for child in node.named_children:
        if child.type == "string_fragment":
            return node_text(child)
    raw = node_text(node)
    if len(raw) >= 2 and raw[0] in "'\"`" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw


def _parameter_names(params_node: Any) -> List[str]:
    if params_node is None:
        return []
    if params_node.type == "identifier":
        return [node_text(params_node)]
    names: List[str] = []
    for child in params_node.named_children:
        if child.type == "comment":
            continue
        pattern = child.child_by_field_name("pattern")
        if pattern is None and child.type == "assignment_pattern":
            pattern = child.child_by_field_name("left")
        names.append(node_text(pattern if pattern is not None else child))
    return names


# ===================================================================
# SourceUnit
# ===================================================================

class SourceUnit:
    """A parsed source file and the queries the analyzers run against it."""

    def __init__(self, path: str, source: str, tree: Any, language: str) -> None:
        self.path = path
        self.source = source
        self.source_bytes = source.encode("utf-8")
        self.tree = tree
        self.language = language
        self._line_starts = [0] + [m.end() for m in re.finditer(b"\n", self.source_bytes)]

    @property
    def root(self) -> Any:
        return self.tree.root_node

    # ------------------------------------------------------------------
    # Position mapping (byte offsets, 1-based lines)
    # ------------------------------------------------------------------

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._line_starts, offset)

    def offset_of_line(self, line: int) -> int:
        if line < 1:
            return 0
        if line > len(self._line_starts):
            return len(self.source_bytes)
        return self._line_starts[line - 1]

    def anchor_offset(self, line: int) -> int:
        """Offset of the first non-blank byte on *line* (line start if blank)."""
        start = self.offset_of_line(line)
        end = self._line_starts[line] if 1 <= line < len(self._line_starts) else len(self.source_bytes)
        pos = start
        while pos < end and self.source_bytes[pos:pos + 1] in (b" ", b"\t"):
            pos += 1
        if pos >= end or self.source_bytes[pos:pos + 1] in (b"\n", b"\r"):
            return start
        return pos

    def node_at(self, offset: int) -> Any:
        offset = max(0, min(offset, len(self.source_bytes)))
        return self.root.descendant_for_byte_range(offset, offset)

    def start_line(self, node: Any) -> int:
        return self.line_of(node.start_byte)

    def end_line(self, node: Any) -> int:
        return self.line_of(max(node.start_byte, node.end_byte - 1))

    def walk(self) -> Iterator[Any]:
        return iter_descendants(self.root)

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    def top_level(self) -> Iterator[Tuple[Any, Any, bool, bool]]:
        """Yield ``(declaration, statement, exported, default)`` per top-level statement."""
        for stmt in self.root.named_children:
            if stmt.type == "export_statement":
                decl = stmt.child_by_field_name("declaration")
                is_default = any(c.type == "default" for c in stmt.children)
                if decl is not None:
                    yield decl, stmt, True, is_default
            else:
                yield stmt, stmt, False, False

    def _export_clause_names(self) -> List[Tuple[str, str]]:
        """``(local, exported)`` pairs from ``export { a, b as c }`` without a source."""
        pairs: List[Tuple[str, str]] = []
        for stmt in self.root.named_children:
            if stmt.type != "export_statement" or stmt.child_by_field_name("source") is not None:
                continue
            for clause in stmt.named_children:
                if clause.type != "export_clause":
                    continue
                for spec in clause.named_children:
                    if spec.type != "export_specifier":
                        continue
                    local = node_text(spec.child_by_field_name("name"))
                    alias = spec.child_by_field_name("alias")
                    pairs.append((local, node_text(alias) if alias is not None else local))
        return pairs

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def import_declarations(self) -> List[ImportDeclaration]:
        imports: List[ImportDeclaration] = []
        for stmt in self.root.named_children:
            if stmt.type == "import_statement":
                source = stmt.child_by_field_name("source")
                if source is None:
                    continue
                decl = ImportDeclaration(
                    specifier=_string_value(source),
                    line=self.start_line(stmt),
                    text=node_text(stmt),
                )
                for clause in stmt.named_children:
                    if clause.type == "import_clause":
                        self._fill_import_clause(clause, decl)
                imports.append(decl)
            elif stmt.type == "export_statement":
                source = stmt.child_by_field_name("source")
                if source is None:
                    continue
                decl = ImportDeclaration(
                    specifier=_string_value(source),
                    line=self.start_line(stmt),
                    text=node_text(stmt),
                    is_reexport=True,
                )
                for clause in stmt.named_children:
                    if clause.type == "export_clause":
                        for spec in clause.named_children:
                            if spec.type == "export_specifier":
                                decl.named_imports.append(node_text(spec.child_by_field_name("name")))
                imports.append(decl)
        return imports

    @staticmethod
    def _fill_import_clause(clause: Any, decl: ImportDeclaration) -> None:
        for part in clause.named_children:
            if part.type == "identifier":
                decl.default_import = node_text(part)
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    if name is not None:
                        decl.named_imports.append(_string_value(name) if name.type == "string" else node_text(name))
            elif part.type == "namespace_import":
                ident = next((c for c in part.named_children if c.type == "identifier"), None)
                decl.namespace_import = node_text(ident) if ident is not None else None

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def exported_declarations(self) -> List[ExportedSymbol]:
        exports: List[ExportedSymbol] = []
        seen = set()

        def add(name: str, kind: str) -> None:
            if (name, kind) not in seen:
                seen.add((name, kind))
                exports.append(ExportedSymbol(name=name, kind=kind))

        local_kinds: Dict[str, str] = {}
        for decl, stmt, exported, is_default in self.top_level():
            for name, kind in self._declared_names(decl):
                local_kinds.setdefault(name, kind)
                if exported:
                    add(name, kind)
            if exported and is_default:
                add("default", "default")

        for stmt in self.root.named_children:
            if stmt.type != "export_statement" or stmt.child_by_field_name("declaration") is not None:
                continue
            if stmt.child_by_field_name("source") is not None:
                continue
            if any(c.type == "default" for c in stmt.children):
                add("default", "default")
        for local, exported_as in self._export_clause_names():
            if exported_as == "default":
                add("default", "default")
            else:
                add(exported_as, local_kinds.get(local, "const"))
        return exports

    @staticmethod
    def _declared_names(decl: Any) -> List[Tuple[str, str]]:
        if decl.type in FUNCTION_TYPES:
            return [(node_name(decl) or "anonymous", "function")]
        if decl.type in CLASS_TYPES:
            return [(node_name(decl) or "anonymous", "class")]
        if decl.type == "interface_declaration":
            return [(node_name(decl) or "", "interface")]
        if decl.type == "type_alias_declaration":
            return [(node_name(decl) or "", "type")]
        if decl.type == "enum_declaration":
            return [(node_name(decl) or "", "enum")]
        if decl.type in VARIABLE_STATEMENT_TYPES:
            return [
                (node_text(d.child_by_field_name("name")), "const")
                for d in decl.named_children
                if d.type == "variable_declarator"
            ]
        return []

    def exported_names(self) -> List[str]:
        return [e.name for e in self.exported_declarations()]

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def function_nodes(self) -> Iterator[Tuple[str, Any, bool]]:
        """Yield ``(name, function node, exported)`` for top-level functions.

        Covers function declarations and variables bound to arrow functions
        or function expressions.
        """
        exported_locals = {local for local, _ in self._export_clause_names()}
        for decl, stmt, exported, _ in self.top_level():
            if decl.type in FUNCTION_TYPES:
                name = node_name(decl) or "anonymous"
                yield name, decl, exported or name in exported_locals
            elif decl.type in VARIABLE_STATEMENT_TYPES:
                for declarator in decl.named_children:
                    if declarator.type != "variable_declarator":
                        continue
                    value = declarator.child_by_field_name("value")
                    if value is None or value.type not in FUNCTION_VALUE_TYPES:
                        continue
                    name = node_text(declarator.child_by_field_name("name"))
                    yield name, value, exported or name in exported_locals

    def functions(self) -> List[FunctionInfo]:
        infos: List[FunctionInfo] = []
        for name, fn, exported in self.function_nodes():
            params = fn.child_by_field_name("parameters") or fn.child_by_field_name("parameter")
            infos.append(FunctionInfo(
                name=name,
                parameters=_parameter_names(params),
                is_async=is_async(fn),
                is_exported=exported,
                returns_jsx=returns_markup(fn),
            ))
        return infos

    def classes(self) -> List[ClassInfo]:
        infos: List[ClassInfo] = []
        for decl, _, exported, _ in self.top_level():
            if decl.type not in CLASS_TYPES:
                continue
            methods: List[str] = []
            properties: List[str] = []
            body = decl.child_by_field_name("body")
            for member in body.named_children if body is not None else []:
                if member.type == "method_definition":
                    methods.append(node_name(member) or "")
                elif member.type in ("public_field_definition", "field_definition"):
                    prop = member.child_by_field_name("name") or member.child_by_field_name("property")
                    if prop is not None:
                        properties.append(node_text(prop))
            infos.append(ClassInfo(
                name=node_name(decl) or "anonymous",
                methods=methods,
                properties=properties,
                is_exported=exported,
            ))
        return infos

    def interfaces(self) -> List[InterfaceInfo]:
        infos: List[InterfaceInfo] = []
        for decl, stmt, exported, _ in self.top_level():
            if decl.type != "interface_declaration":
                continue
            properties: List[PropertyInfo] = []
            body = decl.child_by_field_name("body")
            for member in body.named_children if body is not None else []:
                if member.type != "property_signature":
                    continue
                type_node = member.child_by_field_name("type")
                type_text = node_text(type_node).lstrip(":").strip() if type_node is not None else "any"
                properties.append(PropertyInfo(
                    name=node_text(member.child_by_field_name("name")),
                    type=type_text,
                    optional=any(c.type == "?" for c in member.children),
                ))
            infos.append(InterfaceInfo(
                name=node_name(decl) or "",
                properties=properties,
                is_exported=exported,
                text=node_text(stmt),
            ))
        return infos

    def type_aliases(self) -> List[TypeAliasInfo]:
        """Type aliases and enums declared at the top level."""
        infos: List[TypeAliasInfo] = []
        for decl, stmt, exported, _ in self.top_level():
            if decl.type == "type_alias_declaration":
                infos.append(TypeAliasInfo(
                    name=node_name(decl) or "",
                    definition=node_text(decl.child_by_field_name("value")),
                    kind="type",
                    is_exported=exported,
                    text=node_text(stmt),
                ))
            elif decl.type == "enum_declaration":
                infos.append(TypeAliasInfo(
                    name=node_name(decl) or "",
                    definition=node_text(decl.child_by_field_name("body")),
                    kind="enum",
                    is_exported=exported,
                    text=node_text(stmt),
                ))
        return infos

    def comments(self) -> List[Any]:
        return [node for node in self.walk() if node.type == "comment"]


# ===================================================================
# Provider
# ===================================================================

class SourceModelProvider:
    """Loads tree-sitter grammars lazily and turns files into SourceUnits."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Any] = {}

    @staticmethod
    def language_for(path: PathLike) -> Optional[str]:
        return LANGUAGE_MAP.get(Path(path).suffix.lower())

    def _parser_for(self, lang: str) -> Optional[Any]:
        if lang in self._parsers:
            return self._parsers[lang]

        from tree_sitter import Language, Parser as TSParser

        mod_name, factory = _GRAMMAR_MODULES[lang]
        try:
            mod = importlib.import_module(mod_name)
        except ImportError:
            logger.warning(
                "Grammar package '%s' not installed for language '%s'. Install with: pip install %s",
                mod_name, lang, mod_name.replace("_", "-"),
            )
            self._parsers[lang] = None
            return None
        parser = TSParser(Language(getattr(mod, factory)()))
        self._parsers[lang] = parser
        logger.debug("Loaded tree-sitter parser for %s", lang)
        return parser

    def parse_source(self, path: PathLike, source: str) -> SourceUnit:
        lang = self.language_for(path)
        if lang is None:
            raise ParseError(str(path), "unsupported file type")
        parser = self._parser_for(lang)
        if parser is None:
            raise ParseError(str(path), f"no tree-sitter grammar for {lang}")
        tree = parser.parse(source.encode("utf-8"))
        return SourceUnit(os.path.abspath(str(path)), source, tree, lang)

    def parse(self, path: PathLike) -> SourceUnit:
        try:
            source = Path(path).read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            raise ParseError(str(path), str(exc)) from exc
        return self.parse_source(path, source)


_PROVIDER = SourceModelProvider()
_UNIT_CACHE: Dict[str, Tuple[Tuple[int, int], SourceUnit]] = {}


def get_source_unit(path: PathLike) -> SourceUnit:
    """Return the cached SourceUnit for *path*, parsing it on first use."""
    key = os.path.abspath(str(path))
    try:
        stat = os.stat(key)
    except OSError as exc:
        raise ParseError(key, str(exc)) from exc
    stamp = (stat.st_mtime_ns, stat.st_size)

    cached = _UNIT_CACHE.get(key)
    if cached is not None and cached[0] == stamp:
        return cached[1]
    unit = _PROVIDER.parse(key)
    _UNIT_CACHE[key] = (stamp, unit)
    return unit


def clear_cache() -> None:
    _UNIT_CACHE.clear()
