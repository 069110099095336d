"""Keyword relevance search over a project map."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from . import config
from .blocks import function_signature
from .errors import AIPilotError, ParseError
from .models import CodeSummary, ContextMatch, ExportInfo, FileAnalysis, ProjectMap, RelatedFile
from .parser import CLASS_TYPES, FUNCTION_TYPES, VARIABLE_STATEMENT_TYPES, get_source_unit, node_name, node_text
from .resolver import ModuleResolver

logger = logging.getLogger(__name__)

STOP_WORDS = {
    "的", "是", "在", "我", "要", "请", "帮", "和", "或", "与", "为", "了",
    "到", "对", "进行", "实现", "添加", "修改", "删除", "更新", "给", "把",
}

CJK_RUN = re.compile(r"[\u4e00-\u9fa5]{2,}")
WORD_RUN = re.compile(r"[a-zA-Z][a-zA-Z0-9]*")
FILE_NAME = re.compile(r"[\w-]+\.(ts|tsx|js|jsx)")

# Points per keyword hit
FILE_NAME_SCORE = 10
PATH_SCORE = 5
EXPORT_SCORE = 8
FUNCTION_SCORE = 6
INTERFACE_SCORE = 6


def extract_keywords(text: str) -> List[str]:
    """Split free text into search keywords.

    >>> extract_keywords("optimize getUserProfile")
    ['optimize', 'getuserprofile', 'get', 'user', 'profile']
    """
    keywords: List[str] = []

    def add(word: str) -> None:
        if word not in keywords:
            keywords.append(word)

    for token in text.split():
        for word in CJK_RUN.findall(token):
            if word not in STOP_WORDS:
                add(word)
        for word in WORD_RUN.findall(token):
            if len(word) < 2:
                continue
            add(word.lower())
            for part in re.split(r"(?=[A-Z])", word):
                if len(part) > 1:
                    add(part.lower())
        if FILE_NAME.search(token):
            add(token)
    return keywords


def calculate_match_score(file: FileAnalysis, keywords: List[str]) -> Tuple[int, List[str]]:
    """Score one inventory entry against *keywords*.

    Returns:
        ``(score, matched_keywords)`` with matched keywords deduplicated.
    """
    score = 0
    matched: List[str] = []
    path_lower = file.relative_path.lower()
    name_lower = Path(file.file_path).name.lower()

    for keyword in keywords:
        needle = keyword.lower()
        hits = 0
        if needle in name_lower:
            hits += FILE_NAME_SCORE
        elif needle in path_lower:
            hits += PATH_SCORE
        hits += EXPORT_SCORE * sum(1 for name in file.exports if needle in name.lower())
        hits += FUNCTION_SCORE * sum(1 for fn in file.functions if needle in fn.name.lower())
        hits += INTERFACE_SCORE * sum(1 for iface in file.interfaces if needle in iface.name.lower())
        if hits:
            score += hits
            if keyword not in matched:
                matched.append(keyword)
    return score, matched


class ContextFinder:
    """Ranks the files of a project map by how well they match a request."""

    def __init__(self, project_root: Union[str, Path], aliases: Optional[Dict[str, str]] = None) -> None:
        self.project_root = str(project_root)
        self.resolver = ModuleResolver(project_root, aliases)
        self.project_map: Optional[ProjectMap] = None

    def set_project_map(self, project_map: ProjectMap) -> None:
        self.project_map = project_map

    def extract_keywords(self, text: str) -> List[str]:
        return extract_keywords(text)

    def find_matching_files(self, keywords: List[str]) -> List[ContextMatch]:
        if self.project_map is None:
            raise AIPilotError("No project map loaded; run 'ai-pilot scan' first")

        matches: List[ContextMatch] = []
        for file in self.project_map.files:
            score, matched = calculate_match_score(file, keywords)
            if score <= 0:
                continue
            matches.append(ContextMatch(
                file=file,
                score=score,
                matched_keywords=matched,
                code_summary=self.extract_code_summary(
                    file.file_path, include_source=score >= config.FULL_SOURCE_SCORE
                ),
                related_files=self._related_files(file),
            ))
        # sorted() is stable, so equal scores keep inventory order
        return sorted(matches, key=lambda m: m.score, reverse=True)

    def _related_files(self, file: FileAnalysis) -> List[RelatedFile]:
        related: List[RelatedFile] = []
        seen = {file.file_path}
        for edge in file.imports:
            target = edge.resolved_file
            if not edge.is_local or target is None or target in seen:
                continue
            seen.add(target)
            related.append(RelatedFile(
                file_path=target,
                relation="import",
                code_summary=self.extract_code_summary(target),
            ))
        return related

    def extract_code_summary(self, path: str, include_source: bool = False) -> CodeSummary:
        """Exports, interfaces, types and local imports of *path*.

        A file that cannot be parsed yields an empty summary.
        """
        try:
            unit = get_source_unit(path)
        except ParseError as exc:
            logger.warning("No summary for %s: %s", path, exc)
            return CodeSummary(file_path=path)

        exports: List[ExportInfo] = []
        for decl, _, exported, is_default in unit.top_level():
            if not exported:
                continue
            if decl.type in FUNCTION_TYPES:
                name = node_name(decl) or "anonymous"
                exports.append(ExportInfo(name, "function", function_signature(name, decl), is_default))
            elif decl.type in CLASS_TYPES:
                name = node_name(decl) or "anonymous"
                exports.append(ExportInfo(name, "class", f"class {name} {{ ... }}", is_default))
            elif decl.type == "interface_declaration":
                exports.append(ExportInfo(node_name(decl) or "", "interface"))
            elif decl.type == "type_alias_declaration":
                exports.append(ExportInfo(node_name(decl) or "", "type"))
            elif decl.type == "enum_declaration":
                exports.append(ExportInfo(node_name(decl) or "", "enum"))
            elif decl.type in VARIABLE_STATEMENT_TYPES:
                for declarator in decl.named_children:
                    if declarator.type != "variable_declarator":
                        continue
                    name = node_text(declarator.child_by_field_name("name"))
                    value = declarator.child_by_field_name("value")
                    signature = function_signature(name, value) if value is not None and value.type == "arrow_function" else ""
                    exports.append(ExportInfo(name, "const", signature))

        return CodeSummary(
            file_path=path,
            exports=exports,
            interfaces=unit.interfaces(),
            types=unit.type_aliases(),
            dependencies=[
                d.specifier for d in unit.import_declarations()
                if not d.is_reexport and self.resolver.is_local(d.specifier)
            ],
            source_code=unit.source if include_source else None,
        )
