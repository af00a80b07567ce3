"""Exception hierarchy for gitdeck."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitdeck.models import BatchReport


class GitDeckError(Exception):
    """Base error for all gitdeck exceptions."""


class ConfigError(GitDeckError):
    """Raised when a config file cannot be parsed or is invalid."""


class RepositoryNotFoundError(GitDeckError):
    """Raised when the store has no repository with the requested id."""

    def __init__(self, repo_id: str):
        super().__init__(f"repository {repo_id!r} not found")
        self.repo_id = repo_id


class AmbiguousInputError(GitDeckError):
    """Raised when user input cannot be mapped to a remote or repository."""


class NoCandidatesError(GitDeckError):
    """Raised when there is nothing to fuzzy-match or select."""


class UserCancelledError(GitDeckError):
    """Raised when the user cancels an interactive flow. Never printed."""


class GitCommandFailedError(GitDeckError):
    """Raised when a git invocation fails."""

    def __init__(self, command: list[str], status: int | None, stdout: str = "", stderr: str = ""):
        message = f"git command {' '.join(command)!r} failed"
        if status is not None:
            message += f" with exit status {status}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)
        self.command = command
        self.status = status
        self.stdout = stdout
        self.stderr = stderr


class RemoteAPIError(GitDeckError):
    """Raised when a remote API adapter fails or is not configured."""


class BatchError(GitDeckError):
    """Raised after a batch run in which at least one task failed."""

    def __init__(self, report: BatchReport):
        super().__init__(f"{report.desc} task failed")
        self.report = report

    @property
    def messages(self) -> list[str]:
        """Failure messages in submission order."""
        return [f"{failure.name}: {failure.message}" for failure in self.report.failures]
