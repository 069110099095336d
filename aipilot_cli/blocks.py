"""Mapping source lines onto named declarations.

A line is attributed to a :class:`Declaration` in one of two ways:

- ``Direction.ENCLOSING``: the innermost declaration containing the line
  (used for diff lines).
- ``Direction.FOLLOWING``: the declaration starting closest *after* the
  line anywhere in the file (used for comment markers, which sit above the
  code they describe).

Recognized declarations are function declarations, arrow functions bound to
a variable, methods, classes and interfaces.  ``export`` wrappers and
single-declarator ``const`` / ``let`` / ``var`` statements are looked
through so that a line holding ``export const f = () => ...`` still maps to
``f``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from .models import BlockKind, CodeBlock
from .parser import (
    CLASS_TYPES,
    FUNCTION_TYPES,
    VARIABLE_STATEMENT_TYPES,
    SourceUnit,
    is_async,
    node_name,
    node_text,
    returns_markup,
)


class Direction(Enum):
    ENCLOSING = "enclosing"
    FOLLOWING = "following"


@dataclass
class Declaration:
    kind: BlockKind
    name: str
    node: Any
    fn_node: Optional[Any] = None
    text_node: Optional[Any] = None

    @property
    def body_node(self) -> Any:
        return self.text_node if self.text_node is not None else self.node


def _look_through(node: Any) -> Any:
    """Unwrap ``export`` statements and single-declarator variable statements."""
    while node is not None:
        if node.type == "export_statement":
            node = node.child_by_field_name("declaration")
        elif node.type in VARIABLE_STATEMENT_TYPES:
            declarators = [c for c in node.named_children if c.type == "variable_declarator"]
            if len(declarators) != 1:
                return node
            node = declarators[0]
        else:
            return node
    return None


def _statement_of(declarator: Any) -> Any:
    stmt = declarator.parent
    if stmt is not None and stmt.parent is not None and stmt.parent.type == "export_statement":
        return stmt.parent
    return stmt


def _enclosing_class_name(method: Any) -> Optional[str]:
    body = method.parent
    if body is None or body.type != "class_body" or body.parent is None:
        return None
    return node_name(body.parent)


def _function_kind(fn_node: Any) -> BlockKind:
    return BlockKind.COMPONENT if returns_markup(fn_node) else BlockKind.FUNCTION


def as_declaration(node: Any) -> Optional[Declaration]:
    """The Declaration *node* itself stands for, without looking through wrappers."""
    if node is None:
        return None
    if node.type in FUNCTION_TYPES:
        return Declaration(_function_kind(node), node_name(node) or "anonymous", node, fn_node=node)
    if node.type == "variable_declarator":
        value = node.child_by_field_name("value")
        if value is None or value.type != "arrow_function":
            return None
        name = node_text(node.child_by_field_name("name"))
        return Declaration(_function_kind(value), name, node, fn_node=value, text_node=_statement_of(node))
    if node.type == "method_definition":
        method = node_name(node) or "anonymous"
        owner = _enclosing_class_name(node)
        name = f"{owner}.{method}" if owner else method
        return Declaration(BlockKind.METHOD, name, node, fn_node=node)
    if node.type in CLASS_TYPES:
        return Declaration(BlockKind.CLASS, node_name(node) or "anonymous", node)
    if node.type == "interface_declaration":
        return Declaration(BlockKind.INTERFACE, node_name(node) or "", node)
    return None


def _enclosing(unit: SourceUnit, line: int) -> Optional[Declaration]:
    current = unit.node_at(unit.anchor_offset(line))
    while current is not None:
        decl = as_declaration(_look_through(current))
        if decl is not None:
            return decl
        current = current.parent
    return None


def _following(unit: SourceUnit, line: int) -> Optional[Declaration]:
    best: Optional[Declaration] = None
    best_distance = None
    for node in unit.walk():
        decl = as_declaration(node)
        if decl is None:
            continue
        distance = unit.start_line(decl.node) - line
        if distance <= 0:
            continue
        if best_distance is None or distance < best_distance:
            best, best_distance = decl, distance
    return best


def find_declaration(unit: SourceUnit, line: int, direction: Direction) -> Optional[Declaration]:
    """Nearest declaration to 1-based *line* in the given direction, or None."""
    if direction is Direction.ENCLOSING:
        return _enclosing(unit, line)
    return _following(unit, line)


# ---------------------------------------------------------------------------
# CodeBlock construction
# ---------------------------------------------------------------------------

def _params_text(fn_node: Any) -> str:
    params = fn_node.child_by_field_name("parameters")
    if params is not None:
        return node_text(params)
    single = fn_node.child_by_field_name("parameter")
    return f"({node_text(single)})" if single is not None else "()"


def _return_text(fn_node: Any) -> str:
    return node_text(fn_node.child_by_field_name("return_type"))


def function_signature(name: str, fn_node: Any) -> str:
    """One-line signature of a function declaration or arrow function bound to *name*."""
    prefix = "async " if is_async(fn_node) else ""
    params = _params_text(fn_node)
    ret = _return_text(fn_node)
    if fn_node.type == "arrow_function":
        return f"const {name} = {prefix}{params}{ret} => {{...}}"
    return f"{prefix}function {name}{params}{ret}"


def signature_of(decl: Declaration) -> str:
    if decl.kind is BlockKind.CLASS:
        return f"class {decl.name}"
    if decl.kind is BlockKind.INTERFACE:
        return f"interface {decl.name}"
    fn = decl.fn_node
    if decl.kind is BlockKind.METHOD:
        prefix = "async " if is_async(fn) else ""
        return f"{prefix}{node_name(fn)}{_params_text(fn)}{_return_text(fn)}"
    return function_signature(decl.name, fn)


def build_code_block(unit: SourceUnit, decl: Declaration, changed_lines: Optional[List[int]] = None) -> CodeBlock:
    return CodeBlock(
        kind=decl.kind,
        name=decl.name,
        start_line=unit.start_line(decl.node),
        end_line=unit.end_line(decl.node),
        signature=signature_of(decl),
        full_text=node_text(decl.body_node),
        changed_lines=list(changed_lines or []),
    )
