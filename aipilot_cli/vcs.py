"""Git access and unified-diff parsing."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import List, Tuple, Union

from . import config
from .errors import GitCommandError, NotAGitRepositoryError
from .models import ChangeHunk, ChangeType

logger = logging.getLogger(__name__)

HUNK_HEADER = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,(\d+))? @@")

STATUS_MAP = {
    "A": "added",
    "M": "modified",
    "D": "deleted",
}


def is_source_file(path: str) -> bool:
    """True for .ts/.tsx/.js/.jsx files that are not tests or specs."""
    name = Path(path).name
    if Path(name).suffix not in config.SOURCE_EXTENSIONS:
        return False
    return ".test." not in name and ".spec." not in name


def parse_unified_diff(text: str, include_context: bool = False) -> List[ChangeHunk]:
    """Turn a unified diff into one ChangeHunk per body line.

    Line numbers refer to the new file.  A ``@@`` header resets the cursor
    to the new-file start; added and context lines advance it, deleted lines
    do not, so a replaced line shows up as a delete and an add on the same
    line number.

    Args:
        text: Output of ``git diff`` (any context size).
        include_context: Also emit events for unchanged context lines.
    """
    hunks: List[ChangeHunk] = []
    cursor = 0
    in_hunk = False

    for line in text.splitlines():
        header = HUNK_HEADER.match(line)
        if header:
            cursor = int(header.group(1))
            in_hunk = True
            continue
        if line.startswith("diff --git"):
            in_hunk = False
            continue
        # "---" / "+++" file headers only occur outside a hunk; inside one
        # they are body lines such as "++i;" added or "--n;" deleted
        if not in_hunk:
            continue

        if line.startswith("+"):
            hunks.append(ChangeHunk(cursor, ChangeType.ADD, line[1:]))
            cursor += 1
        elif line.startswith("-"):
            hunks.append(ChangeHunk(cursor, ChangeType.DELETE, line[1:]))
        elif line.startswith(" "):
            if include_context:
                hunks.append(ChangeHunk(cursor, ChangeType.CONTEXT, line[1:]))
            cursor += 1
    return hunks


class GitClient:
    """Runs git in a project directory.

    With ``staged=True`` (the default) every query looks at the index
    (``git diff --cached``); otherwise at the working tree.  The first query
    checks with ``git rev-parse`` that the root is inside a work tree, since
    outside one ``git diff`` falls back to ``--no-index`` mode and fails
    with an unrelated usage error.
    """

    def __init__(self, root: Union[str, Path], staged: bool = True) -> None:
        self.root = str(root)
        self.staged = staged
        self._repository_checked = False

    def _exec(self, command: List[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                command,
                cwd=self.root,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise GitCommandError(" ".join(command), "git executable not found") from exc

    def ensure_repository(self) -> None:
        """Raise NotAGitRepositoryError unless the root is inside a work tree."""
        if self._repository_checked:
            return
        result = self._exec(["git", "rev-parse", "--is-inside-work-tree"])
        if result.returncode != 0 or result.stdout.strip() != "true":
            logger.debug("git rev-parse in %s: %s", self.root, result.stderr.strip())
            raise NotAGitRepositoryError(self.root)
        self._repository_checked = True

    def _run(self, *args: str) -> str:
        self.ensure_repository()
        command = ["git", *args]
        result = self._exec(command)
        if result.returncode != 0:
            stderr = result.stderr.strip()
            if "not a git repository" in stderr.lower():
                raise NotAGitRepositoryError(self.root)
            raise GitCommandError(" ".join(command), stderr)
        return result.stdout

    def _diff_args(self) -> List[str]:
        args = ["diff"]
        if self.staged:
            args.append("--cached")
        return args

    def list_staged_files(self) -> List[Tuple[str, str]]:
        """``(path, status)`` pairs for added, modified and deleted files.

        Paths are relative to the client's root.  Renames and copies are
        skipped.
        """
        output = self._run(*self._diff_args(), "--name-status", "--relative")
        files: List[Tuple[str, str]] = []
        for line in output.splitlines():
            parts = line.split("\t")
            if len(parts) < 2 or not parts[0]:
                continue
            status = STATUS_MAP.get(parts[0][0])
            if status is None:
                logger.debug("Ignoring '%s' entry for %s", parts[0], parts[-1])
                continue
            files.append((parts[1], status))
        return files

    def unified_diff(self, path: str, context_lines: int = 0) -> str:
        return self._run(*self._diff_args(), f"-U{context_lines}", "--relative", "--", path)
