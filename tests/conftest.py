"""Pytest configuration and fixtures for AI Pilot tests."""

import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from aipilot_cli import parser
from aipilot_cli.resolver import canonical_path


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the global config file at an empty temp location.

    Keeps a developer's ~/.aipilot/config.toml from changing test results.
    """
    home = tmp_path_factory.mktemp("aipilot_home")
    monkeypatch.setattr("aipilot_cli.config.BASE_DIR", home)
    monkeypatch.setattr("aipilot_cli.config.CONFIG_FILE", home / "config.toml")


@pytest.fixture(autouse=True)
def _fresh_parse_cache():
    """Start every test with an empty parse cache."""
    parser.clear_cache()
    yield
    parser.clear_cache()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the sample TypeScript/React project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def src_file(sample_project_path: Path) -> Callable[[str], str]:
    """Absolute path of a file under the sample project's src/."""
    def _path(relative: str) -> str:
        return canonical_path(sample_project_path / "src" / relative)
    return _path


@pytest.fixture
def write_file(temp_dir: Path) -> Callable[[str, str], Path]:
    """Write *content* to *relative* under temp_dir, creating parents."""
    def _write(relative: str, content: str) -> Path:
        path = temp_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def git_repo(temp_dir: Path, monkeypatch) -> Path:
    """An initialized git repository with a committer identity."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(temp_dir.parent))

    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=temp_dir, check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.email", "dev@example.com")
    git("config", "user.name", "Dev")
    git("config", "commit.gpgsign", "false")
    return temp_dir


@pytest.fixture
def sample_ts_source() -> str:
    """TypeScript source with one of each declaration kind."""
    return """import { helper } from './helper';

export function add(a: number, b: number): number {
  const sum = a + b;
  return sum;
}

export class Calculator {
  private total = 0;

  async reset(): Promise<void> {
    this.total = 0;
  }
}

export const double = (n: number) => n * 2;

interface Shape {
  area: number;
}
"""
