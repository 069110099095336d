"""Comment-marker scanning: plain TODO lists and ``@AI-TODO`` task contexts."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator, List, Set, Tuple

from .blocks import Declaration, Direction, build_code_block, find_declaration
from .models import FunctionSignature, MarkerTask, TaskContext
from .parser import SourceUnit, is_async, iter_descendants, node_text

logger = logging.getLogger(__name__)

MARKER_PATTERN = re.compile(r"^(TODO|FIXME|HACK|NOTE):\s*(.+)", re.IGNORECASE)
AI_TODO_PATTERN = re.compile(r"@AI-TODO\s+(.+)")

_COMMENT_DELIMITERS = re.compile(r"^\s*(?://+|/\*+|\*+(?!/))?\s*")


def comment_lines(unit: SourceUnit, comment: Any) -> Iterator[Tuple[int, str]]:
    """Yield ``(line, text)`` for each line of a comment node, delimiters removed."""
    first_line = unit.start_line(comment)
    raw = node_text(comment)
    if raw.endswith("*/"):
        raw = raw[:-2]
    for offset, line in enumerate(raw.splitlines()):
        text = _COMMENT_DELIMITERS.sub("", line, count=1).strip()
        if text:
            yield first_line + offset, text


def _parameter_signature(param: Any) -> str:
    pattern = param.child_by_field_name("pattern")
    if pattern is None:
        return f"{node_text(param)}: any"
    type_node = param.child_by_field_name("type")
    type_text = node_text(type_node).lstrip(":").strip() if type_node is not None else "any"
    return f"{node_text(pattern)}: {type_text}"


def _function_signature(name: str, fn: Any) -> str:
    params_node = fn.child_by_field_name("parameters")
    if params_node is not None:
        params = [_parameter_signature(p) for p in params_node.named_children if p.type != "comment"]
    else:
        single = fn.child_by_field_name("parameter")
        params = [f"{node_text(single)}: any"] if single is not None else []
    joined = ", ".join(params)

    if fn.type in ("arrow_function", "function_expression", "function"):
        declarator = fn.parent
        type_node = declarator.child_by_field_name("type") if declarator is not None else None
        declared = node_text(type_node).lstrip(":").strip() if type_node is not None else "unknown"
        return f"const {name}: {declared} = ({joined}) => {{ /* ... */ }}"

    ret = fn.child_by_field_name("return_type")
    ret_text = node_text(ret).lstrip(":").strip() if ret is not None else "void"
    prefix = "async " if is_async(fn) else ""
    return f"{prefix}function {name}({joined}): {ret_text}"


class TaskHydrator:
    """Finds task markers in comments and gathers the code context around them."""

    def extract_tasks(self, unit: SourceUnit) -> List[MarkerTask]:
        """``TODO:``, ``FIXME:``, ``HACK:`` and ``NOTE:`` comments, in file order."""
        tasks: List[MarkerTask] = []
        for comment in unit.comments():
            for line, text in comment_lines(unit, comment):
                match = MARKER_PATTERN.match(text)
                if match:
                    tasks.append(MarkerTask(kind=match.group(1).upper(), text=match.group(2).strip(), line=line))
        return tasks

    def extract_ai_tasks(self, unit: SourceUnit) -> List[TaskContext]:
        """One TaskContext per ``@AI-TODO`` comment that has a declaration after it."""
        tasks: List[TaskContext] = []
        for comment in unit.comments():
            for line, text in comment_lines(unit, comment):
                match = AI_TODO_PATTERN.search(text)
                if not match:
                    continue
                decl = find_declaration(unit, line, Direction.FOLLOWING)
                if decl is None:
                    logger.debug("@AI-TODO at %s:%d has no following declaration", unit.path, line)
                    continue
                tasks.append(self._build_context(unit, decl, line, match.group(1).strip(), len(tasks) + 1))
        return tasks

    def _build_context(
        self, unit: SourceUnit, decl: Declaration, line: int, description: str, number: int
    ) -> TaskContext:
        used_types = self._used_type_names(decl.body_node)
        called = self._called_names(decl.body_node)
        wanted = used_types | called

        return TaskContext(
            task_id=f"task-{number}",
            file_path=unit.path,
            line=line,
            description=description,
            code_block=build_code_block(unit, decl),
            related_types=[t for t in unit.type_aliases() if t.name in used_types],
            related_interfaces=[i for i in unit.interfaces() if i.name in used_types],
            imports=[
                d.text for d in unit.import_declarations()
                if not d.is_reexport and any(name in wanted for name in d.imported_names)
            ],
            referenced_functions=[
                FunctionSignature(name=name, signature=_function_signature(name, fn))
                for name, fn, _ in unit.function_nodes()
                if name in called and name != decl.name
            ],
        )

    @staticmethod
    def _used_type_names(node: Any) -> Set[str]:
        return {node_text(n) for n in iter_descendants(node) if n.type == "type_identifier"}

    @staticmethod
    def _called_names(node: Any) -> Set[str]:
        names: Set[str] = set()
        for n in iter_descendants(node):
            if n.type != "call_expression":
                continue
            callee = n.child_by_field_name("function")
            if callee is None:
                continue
            if callee.type == "identifier":
                names.add(node_text(callee))
            elif callee.type == "member_expression":
                prop = callee.child_by_field_name("property")
                if prop is not None:
                    names.add(node_text(prop))
        return names
