"""Exception types raised by the analysis core."""

from __future__ import annotations


class AIPilotError(Exception):
    """Base class for all AI Pilot failures surfaced to callers."""


class TargetNotFoundError(AIPilotError, FileNotFoundError):
    """The file an analysis was asked about does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class NotAGitRepositoryError(AIPilotError, EnvironmentError):
    """The working directory is not inside a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class GitCommandError(AIPilotError):
    """A git subprocess failed for a reason other than a missing repository."""

    def __init__(self, command: str, stderr: str) -> None:
        super().__init__(f"git command failed ({command}): {stderr.strip()}")
        self.command = command
        self.stderr = stderr


class ParseError(AIPilotError):
    """A source file could not be read or has no grammar available."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot parse {path}: {reason}")
        self.path = path
        self.reason = reason
