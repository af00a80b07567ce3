"""Concrete GitPython-based repository implementation and porcelain parsers."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from git import GitCommandNotFound, Repo

from gitdeck.errors import GitCommandFailedError
from gitdeck.models import Branch, BranchStatus, Tag
from gitdeck.output import NullOutputHandler
from gitdeck.protocols import OutputHandler

logger = logging.getLogger(__name__)

HEAD_BRANCH_PREFIX = "HEAD branch:"

# `git branch -vv` line: marker, name, short commit, optional [tracking], subject
_BRANCH_LINE = re.compile(r"^([*+])?\s*(\S+)\s+(\S+)\s*(\[[^\]]*\])?\s*(.*)$")


def classify_tracking(description: str | None, remote: str = 'origin') -> BranchStatus:
    """Classify a branch from its bracketed tracking description.

    No description means the branch tracks nothing. A tracking ref outside
    `remote` is reported as in sync so no push or pull is planned for it.
    """
    if not description:
        return BranchStatus.DETACHED

    ref, _, state = description.strip().strip("[]").partition(":")
    if not ref.strip().startswith(f"{remote}/"):
        return BranchStatus.SYNC

    if "gone" in state:
        return BranchStatus.GONE
    ahead = "ahead" in state
    behind = "behind" in state
    if ahead and behind:
        return BranchStatus.CONFLICT
    if ahead:
        return BranchStatus.AHEAD
    if behind:
        return BranchStatus.BEHIND
    return BranchStatus.SYNC


def parse_branch_line(line: str, remote: str = 'origin') -> Branch | None:
    """Parse one `git branch -vv` line. Returns None for a detached HEAD entry."""
    stripped = line.strip()
    if not stripped or stripped.lstrip("*+ ").startswith("("):
        return None

    match = _BRANCH_LINE.match(stripped)
    if match is None:
        raise ValueError(f"invalid branch line {line!r}, please check your git version")

    marker, name, commit_id, description, message = match.groups()
    return Branch(
        name=name,
        status=classify_tracking(description, remote),
        current=marker == "*",
        commit_id=commit_id,
        commit_message=message.strip(),
    )


def parse_tag_line(line: str) -> Tag | None:
    """Parse one `%(refname:short) %(objectname:short) %(subject)` line."""
    fields = line.split(maxsplit=2)
    if len(fields) < 2:
        return None
    message = fields[2] if len(fields) > 2 else ""
    return Tag(name=fields[0], commit_id=fields[1], commit_message=message)


class GitPythonRepository:
    """Concrete implementation using GitPython"""

    def __init__(self, repo_path: Path, output: OutputHandler | None = None):
        """Open a git repository at the given path."""
        self._path = Path(repo_path)
        self._repo = Repo(repo_path)
        self.output = output or NullOutputHandler()

    def close(self) -> None:
        """Release underlying git resources."""
        self._repo.close()

    def __enter__(self) -> GitPythonRepository:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def path(self) -> Path:
        """Absolute path to the repository root."""
        return self._path

    @property
    def current_branch(self) -> str | None:
        """Name of the checked-out branch, or None if HEAD is detached."""
        if self._repo.head.is_detached:
            return None
        try:
            return self._repo.active_branch.name
        except TypeError:
            return None

    def run(self, *args: str, info: str | None = None) -> str:
        """Run a git command in the repository and return its stdout."""
        command = ["git", *args]
        if info:
            self.output.info(info)
        self.output.debug(" ".join(command))
        logger.debug("%s: %s", self._path, " ".join(command))
        try:
            status, stdout, stderr = self._repo.git.execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
                strip_newline_in_stdout=False,
            )
        except GitCommandNotFound as e:
            raise GitCommandFailedError(command, None, stderr=str(e)) from e
        if status != 0:
            raise GitCommandFailedError(command, status, stdout, stderr)
        return stdout

    def lines(self, *args: str, info: str | None = None) -> list[str]:
        """Run a git command and return its non-blank output lines."""
        return [line for line in self.run(*args, info=info).splitlines() if line.strip()]

    def fetch(self, remote: str = 'origin', prune: bool = True) -> None:
        args = ["fetch", remote]
        if prune:
            args.append("--prune")
        self.run(*args, info=f"Fetching {remote} remote")

    def checkout(self, branch: str) -> None:
        self.run("checkout", branch, info=f"Checkout to branch {branch!r}")

    def push(self) -> None:
        self.run("push", info=f"Pushing branch {self.current_branch!r}")

    def pull(self) -> None:
        self.run("pull", info=f"Pulling branch {self.current_branch!r}")

    def delete_branch(self, name: str) -> None:
        self.run("branch", "-D", name, info=f"Deleting branch {name!r}")

    def count_uncommitted_changes(self) -> int:
        """Number of entries in `git status -s` (staged, unstaged and untracked)."""
        return len(self.lines("status", "-s"))

    def list_branches(self, remote: str = 'origin') -> list[Branch]:
        """All local branches with their status against `remote`."""
        branches = []
        for line in self.lines("branch", "-vv"):
            branch = parse_branch_line(line, remote)
            if branch is not None:
                branches.append(branch)
        return branches

    def list_tags(self) -> list[Tag]:
        """Tags sorted by creation date, newest first."""
        lines = self.lines(
            "for-each-ref",
            "--sort=-creatordate",
            "refs/tags/",
            "--format=%(refname:short) %(objectname:short) %(subject)",
        )
        return [tag for tag in map(parse_tag_line, lines) if tag is not None]

    def default_branch(self, remote: str = 'origin') -> str:
        """The branch `remote` designates as primary."""
        head_ref = f"refs/remotes/{remote}/HEAD"
        try:
            out = self.run("symbolic-ref", head_ref).strip()
        except GitCommandFailedError:
            out = ""
        if out:
            branch = out.removeprefix(f"refs/remotes/{remote}/").strip()
            if branch:
                return branch

        # origin/HEAD is not set when the clone was not made by `git clone`
        for line in self.lines("remote", "show", remote):
            line = line.strip()
            if line.startswith(HEAD_BRANCH_PREFIX):
                branch = line.removeprefix(HEAD_BRANCH_PREFIX).strip()
                if branch and branch != "(unknown)":
                    return branch
        raise GitCommandFailedError(
            ["git", "remote", "show", remote], None,
            stderr=f"no default branch reported for remote {remote!r}",
        )

    def set_identity(self, user: str = "", email: str = "") -> None:
        """Write user.name / user.email into the repository config."""
        if not user and not email:
            return
        with self._repo.config_writer() as writer:
            if user:
                self.output.info(f"Set user to {user}")
                writer.set_value("user", "name", user)
            if email:
                self.output.info(f"Set email to {email}")
                writer.set_value("user", "email", email)

    def ensure_origin(self, url: str, remote: str = 'origin') -> None:
        """Point `remote` at `url`, adding the remote when it is missing."""
        try:
            current = self._repo.remote(remote).url
        except ValueError:
            self.run("remote", "add", remote, url, info=f"Add {remote} remote {url}")
            return
        if current != url:
            self.run("remote", "set-url", remote, url, info=f"Set {remote} remote URL to {url}")
