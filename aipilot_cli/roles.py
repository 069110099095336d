"""File-role classification as ordered ``(predicate, role)`` rule tables.

Rules are evaluated top to bottom and the first predicate that holds decides
the role; a file no rule matches is :attr:`FileRole.OTHER`.  Two tables
exist:

- ``DEPENDENCY_ROLE_RULES`` looks only at the file name and raw text.  The
  dependency tracer uses it for every file it reaches, including files it
  never parses (the ones at the depth limit).
- ``STRUCTURE_ROLE_RULES`` uses the parsed declarations and is what the
  project scanner records in the inventory.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, NamedTuple, Sequence

from .models import FileRole, FunctionInfo

_HOOK_NAME = re.compile(r"^use[A-Z]")


@dataclass
class RoleContext:
    path: str
    content: str = ""
    exported_names: List[str] = field(default_factory=list)
    functions: List[FunctionInfo] = field(default_factory=list)
    class_names: List[str] = field(default_factory=list)
    interface_count: int = 0
    type_alias_count: int = 0

    @property
    def file_name(self) -> str:
        return Path(self.path).name

    @property
    def lower_name(self) -> str:
        return self.file_name.lower()


class RoleRule(NamedTuple):
    name: str
    predicate: Callable[[RoleContext], bool]
    role: FileRole


def classify(ctx: RoleContext, rules: Sequence[RoleRule]) -> FileRole:
    for rule in rules:
        if rule.predicate(ctx):
            return rule.role
    return FileRole.OTHER


def _name_has(*needles: str) -> Callable[[RoleContext], bool]:
    return lambda ctx: any(n in ctx.lower_name for n in needles)


# ---------------------------------------------------------------------------
# Name / content heuristics
# ---------------------------------------------------------------------------

def _is_hook_file(ctx: RoleContext) -> bool:
    return bool(_HOOK_NAME.match(ctx.file_name))


def _has_markup_extension(ctx: RoleContext) -> bool:
    return ctx.lower_name.endswith((".tsx", ".jsx"))


def _content_looks_like_markup(ctx: RoleContext) -> bool:
    return "return (" in ctx.content and "<" in ctx.content and "/>" in ctx.content


def _is_type_file(ctx: RoleContext) -> bool:
    return "type" in ctx.lower_name or ctx.lower_name.endswith(".d.ts")


DEPENDENCY_ROLE_RULES: List[RoleRule] = [
    RoleRule("hook-file-name", _is_hook_file, FileRole.HOOK),
    RoleRule("markup-extension", _has_markup_extension, FileRole.COMPONENT),
    RoleRule("markup-content", _content_looks_like_markup, FileRole.COMPONENT),
    RoleRule("service-name", _name_has("service", "api", "client"), FileRole.SERVICE),
    RoleRule("type-name", _is_type_file, FileRole.TYPE),
    RoleRule("utility-name", _name_has("util", "helper", "tool"), FileRole.UTILITY),
]


# ---------------------------------------------------------------------------
# Structural heuristics
# ---------------------------------------------------------------------------

def _exports_hook(ctx: RoleContext) -> bool:
    return any(_HOOK_NAME.match(name) for name in ctx.exported_names)


def _exports_component(ctx: RoleContext) -> bool:
    jsx_functions = {f.name for f in ctx.functions if f.returns_jsx}
    return any(name[:1].isupper() and name in jsx_functions for name in ctx.exported_names)


def _has_exported_jsx_function(ctx: RoleContext) -> bool:
    return any(f.returns_jsx and f.is_exported for f in ctx.functions)


def _only_types(ctx: RoleContext) -> bool:
    has_types = ctx.interface_count > 0 or ctx.type_alias_count > 0
    return has_types and not ctx.functions and not ctx.class_names


def _service_class(ctx: RoleContext) -> bool:
    if not ctx.class_names:
        return False
    first = ctx.class_names[0]
    return any(token in first for token in ("Service", "API", "Client"))


STRUCTURE_ROLE_RULES: List[RoleRule] = [
    RoleRule("config-name", _name_has("config"), FileRole.CONFIG),
    RoleRule("exports-hook", _exports_hook, FileRole.HOOK),
    RoleRule("exports-component", _exports_component, FileRole.COMPONENT),
    RoleRule("exported-jsx-function", _has_exported_jsx_function, FileRole.COMPONENT),
    RoleRule("types-only", _only_types, FileRole.TYPE),
    RoleRule("service-name", _name_has("service", "api", "client"), FileRole.SERVICE),
    RoleRule("service-class", _service_class, FileRole.SERVICE),
    RoleRule("has-functions", lambda ctx: bool(ctx.functions), FileRole.UTILITY),
]
