"""Staged-change analysis: which files changed, and which declarations in them."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .blocks import Direction, build_code_block, find_declaration
from .errors import GitCommandError, ParseError
from .models import ChangeHunk, ChangeType, CodeBlock, DiffAnalysis, FileChange
from .parser import get_source_unit
from .resolver import canonical_path
from .vcs import GitClient, is_source_file, parse_unified_diff

logger = logging.getLogger(__name__)


class GitDiffAnalyzer:
    """Maps a git diff onto the functions, methods and classes it touches.

    Args:
        project_root: Directory git is run in; paths are reported relative to it.
        staged: Inspect the index (default) rather than the working tree.
        client: Pre-built :class:`GitClient`, mainly for tests.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        staged: bool = True,
        client: Optional[GitClient] = None,
    ) -> None:
        self.project_root = canonical_path(project_root)
        self.client = client or GitClient(self.project_root, staged=staged)

    def analyze_staged_changes(self) -> DiffAnalysis:
        """Analyze every changed source file.

        Raises:
            NotAGitRepositoryError: the project root is not inside a git repository.
        """
        file_changes: List[FileChange] = []
        summary = {"added": 0, "modified": 0, "deleted": 0}

        for relative_path, status in self.client.list_staged_files():
            if not is_source_file(relative_path):
                continue
            absolute = canonical_path(os.path.join(self.project_root, relative_path))
            change = self.analyze_file_change(relative_path, status, absolute)
            if change is None:
                continue
            file_changes.append(change)
            summary[status] += 1

        logger.info("Analyzed %d changed source files", len(file_changes))
        return DiffAnalysis(total_files=len(file_changes), file_changes=file_changes, summary=summary)

    def analyze_file_change(
        self, relative_path: str, status: str, absolute_path: str
    ) -> Optional[FileChange]:
        """Build the FileChange for one file, or None if it has no changed lines."""
        if status == "deleted":
            return FileChange(file_path=absolute_path, relative_path=relative_path, status=status)

        changed_lines = self.changed_lines(relative_path)
        if not changed_lines:
            return None

        return FileChange(
            file_path=absolute_path,
            relative_path=relative_path,
            status=status,
            changed_lines=changed_lines,
            affected_blocks=self.locate_affected_blocks(absolute_path, changed_lines),
        )

    def changed_lines(self, relative_path: str) -> List[ChangeHunk]:
        try:
            diff_text = self.client.unified_diff(relative_path, context_lines=0)
        except GitCommandError as exc:
            logger.warning("Could not diff %s: %s", relative_path, exc)
            return []
        return parse_unified_diff(diff_text)

    def locate_affected_blocks(
        self, path: Union[str, Path], changed_lines: Sequence[ChangeHunk]
    ) -> List[CodeBlock]:
        """Attribute added lines to their enclosing declarations.

        Lines outside any declaration are dropped.  Several lines inside the
        same declaration produce one block listing all of them.
        """
        if not os.path.isfile(path):
            return []
        try:
            unit = get_source_unit(path)
        except ParseError as exc:
            logger.warning("Cannot map changes in %s: %s", path, exc)
            return []

        blocks: List[CodeBlock] = []
        by_key: Dict[Tuple, CodeBlock] = {}
        for hunk in changed_lines:
            if hunk.change_type is not ChangeType.ADD:
                continue
            decl = find_declaration(unit, hunk.start_line, Direction.ENCLOSING)
            if decl is None:
                logger.debug("Line %d of %s is outside any declaration", hunk.start_line, path)
                continue

            block = build_code_block(unit, decl, [hunk.start_line])
            existing = by_key.get(block.key)
            if existing is None:
                by_key[block.key] = block
                blocks.append(block)
            elif hunk.start_line not in existing.changed_lines:
                existing.changed_lines.append(hunk.start_line)
        return blocks
