"""Tests for mapping diffs onto code blocks."""

import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

from aipilot_cli.diff_analyzer import GitDiffAnalyzer
from aipilot_cli.errors import GitCommandError, NotAGitRepositoryError
from aipilot_cli.models import BlockKind, ChangeHunk, ChangeType


class FakeGitClient:
    """Stands in for GitClient with canned output."""

    def __init__(self, files: List[Tuple[str, str]], diffs: Dict[str, str]):
        self.files = files
        self.diffs = diffs

    def list_staged_files(self):
        return list(self.files)

    def unified_diff(self, path, context_lines=0):
        if path not in self.diffs:
            raise GitCommandError(f"git diff -- {path}", "fatal: bad path")
        return self.diffs[path]


class TestLocateAffectedBlocks:
    """Tests for GitDiffAnalyzer.locate_affected_blocks."""

    def test_two_lines_in_one_function_make_one_block(self, temp_dir, write_file, sample_ts_source):
        """Test dedup by (kind, name, start_line) with both lines recorded."""
        path = write_file("src/sample.ts", sample_ts_source)
        analyzer = GitDiffAnalyzer(temp_dir, client=FakeGitClient([], {}))
        hunks = [
            ChangeHunk(4, ChangeType.ADD, "  const sum = a + b;"),
            ChangeHunk(5, ChangeType.ADD, "  return sum;"),
        ]

        blocks = analyzer.locate_affected_blocks(path, hunks)

        assert len(blocks) == 1
        assert blocks[0].name == "add"
        assert blocks[0].changed_lines == [4, 5]

    def test_deletes_and_unattributed_lines_are_dropped(self, temp_dir, write_file, sample_ts_source):
        """Test that delete events and import-line changes produce no block."""
        path = write_file("src/sample.ts", sample_ts_source)
        analyzer = GitDiffAnalyzer(temp_dir, client=FakeGitClient([], {}))
        hunks = [
            ChangeHunk(1, ChangeType.ADD, "import { helper } from './helper';"),
            ChangeHunk(12, ChangeType.DELETE, "    this.total = 1;"),
            ChangeHunk(12, ChangeType.ADD, "    this.total = 0;"),
            ChangeHunk(16, ChangeType.ADD, "export const double = (n: number) => n * 2;"),
        ]

        blocks = analyzer.locate_affected_blocks(path, hunks)

        assert [(b.kind, b.name, b.changed_lines) for b in blocks] == [
            (BlockKind.METHOD, "Calculator.reset", [12]),
            (BlockKind.FUNCTION, "double", [16]),
        ]

    def test_missing_file_has_no_blocks(self, temp_dir):
        """Test that a vanished file maps to nothing."""
        analyzer = GitDiffAnalyzer(temp_dir, client=FakeGitClient([], {}))
        hunks = [ChangeHunk(1, ChangeType.ADD, "x")]
        assert analyzer.locate_affected_blocks(temp_dir / "gone.ts", hunks) == []


class TestAnalyzeStagedChanges:
    """Tests for the whole-diff pipeline with a fake git client."""

    def test_filters_and_summarizes(self, temp_dir, write_file, sample_ts_source):
        """Test source filtering, deleted files and empty-diff files."""
        write_file("src/sample.ts", sample_ts_source)
        write_file("src/empty.ts", "export const e = 1;\n")
        client = FakeGitClient(
            files=[
                ("src/sample.ts", "modified"),
                ("src/sample.test.ts", "added"),
                ("README.md", "modified"),
                ("src/old.ts", "deleted"),
                ("src/empty.ts", "modified"),
            ],
            diffs={
                "src/sample.ts": "@@ -4 +4 @@\n-  const sum = b + a;\n+  const sum = a + b;\n",
                "src/empty.ts": "",
            },
        )

        analysis = GitDiffAnalyzer(temp_dir, client=client).analyze_staged_changes()

        assert analysis.total_files == 2
        assert analysis.summary == {"added": 0, "modified": 1, "deleted": 1}
        sample, old = analysis.file_changes
        assert sample.relative_path == "src/sample.ts"
        assert [(h.start_line, h.change_type) for h in sample.changed_lines] == [
            (4, ChangeType.DELETE),
            (4, ChangeType.ADD),
        ]
        assert [b.name for b in sample.affected_blocks] == ["add"]
        assert old.status == "deleted"
        assert old.changed_lines == []
        assert old.affected_blocks == []

    def test_per_file_git_failure_is_not_fatal(self, temp_dir, write_file):
        """Test that one failing 'git diff' just drops that file."""
        write_file("src/a.ts", "export const a = 1;\n")
        client = FakeGitClient(files=[("src/a.ts", "modified")], diffs={})

        analysis = GitDiffAnalyzer(temp_dir, client=client).analyze_staged_changes()

        assert analysis.total_files == 0


@pytest.fixture
def committed_repo(git_repo: Path, sample_ts_source: str) -> Path:
    """A repository with src/sample.ts committed."""
    src = git_repo / "src"
    src.mkdir()
    (src / "sample.ts").write_text(sample_ts_source, encoding="utf-8")
    subprocess.run(["git", "add", "."], cwd=git_repo, check=True, capture_output=True)
    subprocess.run(["git", "commit", "-q", "-m", "init"], cwd=git_repo, check=True, capture_output=True)
    return git_repo


class TestRealGit:
    """End-to-end tests against a real git repository."""

    def test_staged_edit_maps_to_method(self, committed_repo: Path):
        """Test that a staged edit inside a method is attributed to it."""
        path = committed_repo / "src" / "sample.ts"
        path.write_text(
            path.read_text(encoding="utf-8").replace("this.total = 0;", "this.total = 42;"),
            encoding="utf-8",
        )
        (committed_repo / "src" / "fresh.ts").write_text(
            "export function fresh() {\n  return 1;\n}\n", encoding="utf-8"
        )
        subprocess.run(["git", "add", "."], cwd=committed_repo, check=True, capture_output=True)

        analysis = GitDiffAnalyzer(committed_repo).analyze_staged_changes()

        changes = {c.relative_path: c for c in analysis.file_changes}
        assert analysis.summary == {"added": 1, "modified": 1, "deleted": 0}
        assert [b.name for b in changes["src/sample.ts"].affected_blocks] == ["Calculator.reset"]
        assert changes["src/sample.ts"].affected_blocks[0].changed_lines == [12]
        assert [b.name for b in changes["src/fresh.ts"].affected_blocks] == ["fresh"]

    def test_unstaged_changes_are_ignored_unless_requested(self, committed_repo: Path):
        """Test the staged/working-tree switch."""
        path = committed_repo / "src" / "sample.ts"
        path.write_text(
            path.read_text(encoding="utf-8").replace("a + b", "b + a"), encoding="utf-8"
        )

        assert GitDiffAnalyzer(committed_repo).analyze_staged_changes().total_files == 0
        working = GitDiffAnalyzer(committed_repo, staged=False).analyze_staged_changes()
        assert [b.name for b in working.file_changes[0].affected_blocks] == ["add"]

    def test_not_a_repository(self, temp_dir: Path, monkeypatch):
        """Test that running outside a repository raises NotAGitRepositoryError."""
        if shutil.which("git") is None:
            pytest.skip("git is not installed")
        monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(temp_dir.parent))

        with pytest.raises(NotAGitRepositoryError):
            GitDiffAnalyzer(temp_dir).analyze_staged_changes()
