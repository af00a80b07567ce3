"""Protocols and abstract interfaces for dependency injection."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, TypeVar

from gitdeck.models import Branch, Repository, Tag

if TYPE_CHECKING:
    from gitdeck.remoteapi import RemoteRepository
    from gitdeck.store import RepositoryQuery

R = TypeVar("R", covariant=True)


class GitRepository(Protocol):
    """Protocol for git repository operations"""

    def fetch(self, remote: str = 'origin', prune: bool = True) -> None: ...
    def checkout(self, branch: str) -> None: ...
    def push(self) -> None: ...
    def pull(self) -> None: ...
    def delete_branch(self, name: str) -> None: ...
    def count_uncommitted_changes(self) -> int: ...
    def list_branches(self, remote: str = 'origin') -> list[Branch]: ...
    def list_tags(self) -> list[Tag]: ...
    def default_branch(self, remote: str = 'origin') -> str: ...

    @property
    def path(self) -> Path: ...

    @property
    def current_branch(self) -> str | None: ...


class OutputHandler(Protocol):
    """Protocol for handling output"""

    def info(self, message: str, indent: int = 0) -> None: ...
    def success(self, message: str, indent: int = 0) -> None: ...
    def warning(self, message: str, indent: int = 0) -> None: ...
    def error(self, message: str, indent: int = 0) -> None: ...
    def section(self, title: str) -> None: ...
    def debug(self, message: str) -> None: ...


class Selector(Protocol):
    """Interactive chooser. Raises UserCancelledError when the user aborts."""

    def select(self, items: list[str]) -> int: ...


class RepositoryStore(Protocol):
    """Persistent repository index"""

    def get(self, repo_id: str) -> Repository: ...
    def insert(self, repo: Repository) -> None: ...
    def update(self, repo_id: str, **fields) -> None: ...
    def delete(self, repo_id: str) -> None: ...
    def query(self, query: RepositoryQuery) -> list[Repository]: ...
    def count(self, query: RepositoryQuery) -> int: ...


class RemoteAPI(Protocol):
    """The slice of a GitHub/GitLab client that gitdeck consumes"""

    def list_repos(self, owner: str) -> list[str]: ...
    def get_repo(self, owner: str, name: str) -> RemoteRepository: ...


class Task(Protocol[R]):
    """A unit of work for the batch executor. `run` raises on failure."""

    @property
    def name(self) -> str: ...

    def run(self) -> R: ...
