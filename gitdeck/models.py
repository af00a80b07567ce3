"""Domain models: enums, dataclasses, and configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any

from gitdeck.errors import AmbiguousInputError

GITHUB_HOST = "github.com"


def build_repo_id(remote: str, owner: str, name: str) -> str:
    """Return the canonical repository id, e.g. 'github:acme/widget'."""
    return f"{remote}:{owner}/{name}"


class DisplayLevel(Enum):
    """How much of a repository identity to show in listings"""
    REMOTE = auto()
    OWNER = auto()
    NAME = auto()


@dataclass
class Repository:
    """A repository tracked in the local index"""
    remote: str
    owner: str
    name: str
    path: str | None = None
    pin: bool = False
    sync: bool = False
    language: str | None = None
    visit_time: int = 0
    visit_count: int = 0
    score: int = 0
    new_created: bool = field(default=False, compare=False)
    size: int | None = field(default=None, compare=False)

    @property
    def id(self) -> str:
        return build_repo_id(self.remote, self.owner, self.name)

    def display(self, level: DisplayLevel = DisplayLevel.REMOTE) -> str:
        """Render the identity at the given granularity."""
        if level == DisplayLevel.OWNER:
            return f"{self.owner}/{self.name}"
        if level == DisplayLevel.NAME:
            return self.name
        return self.id

    def __str__(self) -> str:
        return self.id

    def get_path(self, workspace: Path) -> Path:
        """Explicit path if attached, otherwise workspace/remote/owner/name."""
        if self.path:
            return Path(self.path)
        return Path(workspace) / self.remote / self.owner / self.name

    def disk_usage(self, workspace: Path) -> int:
        """Total size in bytes of the files under the repository path, computed once."""
        if self.size is None:
            total = 0
            for dirpath, _dirnames, filenames in os.walk(self.get_path(workspace)):
                for filename in filenames:
                    try:
                        total += os.lstat(os.path.join(dirpath, filename)).st_size
                    except OSError:
                        continue
            self.size = total
        return self.size


class BranchStatus(Enum):
    """Status of a local branch relative to its upstream"""
    SYNC = "sync"
    GONE = "gone"
    AHEAD = "ahead"
    BEHIND = "behind"
    CONFLICT = "conflict"
    DETACHED = "detached"


@dataclass(frozen=True)
class Branch:
    """A local branch as reported by `git branch -vv`"""
    name: str
    status: BranchStatus
    current: bool = False
    commit_id: str = ""
    commit_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON output."""
        return {
            'name': self.name,
            'status': self.status.value,
            'current': self.current,
            'commit_id': self.commit_id,
            'commit_message': self.commit_message,
        }


@dataclass(frozen=True)
class Tag:
    """A tag as reported by `git for-each-ref refs/tags`"""
    name: str
    commit_id: str = ""
    commit_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'commit_id': self.commit_id,
            'commit_message': self.commit_message,
        }


@dataclass(frozen=True)
class SyncResult:
    """Immutable outcome of syncing one repository"""
    name: str
    uncommitted: int = 0
    pushed: tuple[str, ...] = ()
    pulled: tuple[str, ...] = ()
    deleted: tuple[str, ...] = ()
    conflict: tuple[str, ...] = ()
    detached: tuple[str, ...] = ()

    def is_empty(self) -> bool:
        """Return True if there is nothing to report."""
        return not (
            self.uncommitted or self.pushed or self.pulled or
            self.deleted or self.conflict or self.detached
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON output."""
        return {
            'name': self.name,
            'uncommitted': self.uncommitted,
            'pushed': list(self.pushed),
            'pulled': list(self.pulled),
            'deleted': list(self.deleted),
            'conflict': list(self.conflict),
            'detached': list(self.detached),
        }


@dataclass(frozen=True)
class TaskFailure:
    """A failed batch task"""
    index: int
    name: str
    message: str


@dataclass
class BatchReport:
    """Aggregate outcome of a batch run"""
    desc: str
    total: int
    ok_count: int = 0
    fail_count: int = 0
    failures: list[TaskFailure] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.fail_count == 0


class RemoteType(Enum):
    """Supported remote API providers"""
    GITHUB = "github"
    GITLAB = "gitlab"


@dataclass(frozen=True)
class RemoteAPIConfig:
    """Remote API settings for one remote"""
    type: RemoteType
    token: str = ""
    timeout: float = 5.0
    cache_hours: int = 24
    list_limit: int = 100
    host: str = ""
    url: str = ""

    @property
    def cache_seconds(self) -> int:
        return self.cache_hours * 3600


@dataclass(frozen=True)
class OwnerConfig:
    """Per-owner settings; unset fields fall back to the remote default"""
    sync: bool | None = None
    pin: bool | None = None
    ssh: bool | None = None
    user: str = ""
    email: str = ""

    def merge(self, other: OwnerConfig | None) -> OwnerConfig:
        """Return a copy with every field set in `other` taking precedence."""
        if other is None:
            return self
        return OwnerConfig(
            sync=other.sync if other.sync is not None else self.sync,
            pin=other.pin if other.pin is not None else self.pin,
            ssh=other.ssh if other.ssh is not None else self.ssh,
            user=other.user or self.user,
            email=other.email or self.email,
        )


@dataclass(frozen=True)
class RemoteConfig:
    """A configured remote (one file under remotes/)"""
    name: str
    clone: str = ""
    icon: str = ""
    api: RemoteAPIConfig | None = None
    default: OwnerConfig = field(default_factory=OwnerConfig)
    owners: dict[str, OwnerConfig] = field(default_factory=dict)

    @property
    def is_github(self) -> bool:
        return self.clone == GITHUB_HOST

    def owner_config(self, owner: str) -> OwnerConfig:
        """Default owner settings merged with the owner-specific table."""
        return self.default.merge(self.owners.get(owner))

    def clone_url(self, owner: str, name: str) -> str:
        """Clone URL for a repository, SSH when the owner config asks for it."""
        if self.owner_config(owner).ssh:
            return f"git@{self.clone}:{owner}/{name}.git"
        return f"https://{self.clone}/{owner}/{name}.git"


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration"""
    workspace: Path = field(default_factory=lambda: Path.home() / "dev")
    data_dir: Path = field(default_factory=lambda: Path.home() / ".local" / "share" / "gitdeck")
    remotes: list[RemoteConfig] = field(default_factory=list)
    verbose: bool = False

    def has_remote(self, name: str) -> bool:
        return any(remote.name == name for remote in self.remotes)

    def get_remote(self, name: str) -> RemoteConfig:
        """Return the remote with the given name, raising AmbiguousInputError if unknown."""
        for remote in self.remotes:
            if remote.name == name:
                return remote
        raise AmbiguousInputError(f"cannot find remote {name!r}")

    def with_updates(self, **kwargs) -> AppConfig:
        """Return a new AppConfig with the given fields replaced."""
        current = {f.name: getattr(self, f.name) for f in self.__dataclass_fields__.values()}
        current.update(kwargs)
        return AppConfig(**current)
