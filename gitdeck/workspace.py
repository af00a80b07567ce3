"""Workspace operations: locating, creating, recording and removing repositories.

Repositories live at `workspace/remote/owner/name` unless attached to an
explicit directory elsewhere.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from gitdeck import frecency
from gitdeck.errors import GitCommandFailedError, GitDeckError, RepositoryNotFoundError
from gitdeck.language import detect_language
from gitdeck.models import AppConfig, OwnerConfig, RemoteConfig, Repository, build_repo_id
from gitdeck.protocols import OutputHandler, RepositoryStore
from gitdeck.repository import GitPythonRepository
from gitdeck.resolver import parse_owner
from gitdeck.store import RepositoryQuery

logger = logging.getLogger(__name__)


def parse_workspace_path(workspace: Path, directory: Path) -> str | None:
    """Repository id encoded by a directory under the workspace, if any."""
    workspace, directory = Path(workspace), Path(directory)
    if not directory.is_relative_to(workspace):
        return None
    parts = directory.relative_to(workspace).parts
    if len(parts) < 3:
        return None
    owner, name = parse_owner("/".join(parts[1:]))
    if not owner or not name:
        return None
    return build_repo_id(parts[0], owner, name)


def _repository_at(config: AppConfig, store: RepositoryStore, directory: Path) -> Repository | None:
    repo_id = parse_workspace_path(config.workspace, directory)
    if repo_id is None:
        repos = store.query(RepositoryQuery(path=str(directory), limit=1))
        return repos[0] if repos else None
    try:
        return store.get(repo_id)
    except RepositoryNotFoundError:
        return None


def current_repository(config: AppConfig, store: RepositoryStore, work_dir: Path) -> Repository | None:
    """The indexed repository containing `work_dir`, searching up to the root."""
    work_dir = Path(work_dir)
    for directory in (work_dir, *work_dir.parents):
        repo = _repository_at(config, store, directory)
        if repo is not None:
            return repo
    return None


def require_current_repository(config: AppConfig, store: RepositoryStore, work_dir: Path) -> Repository:
    repo = current_repository(config, store, work_dir)
    if repo is None:
        raise GitDeckError("you are not in any repository")
    return repo


def apply_identity(path: Path, owner: OwnerConfig, output: OutputHandler) -> None:
    """Write the owner's user.name / user.email into the repository config."""
    if not owner.user and not owner.email:
        return
    with GitPythonRepository(path, output) as repo:
        repo.set_identity(owner.user, owner.email)


def ensure_create(
    repo: Repository,
    remote: RemoteConfig,
    workspace: Path,
    output: OutputHandler,
    thin: bool = False,
) -> Path:
    """Make sure the repository directory exists, cloning or initializing it.

    Remotes without a clone host hold local-only repositories, which are
    created with `git init`.
    """
    path = repo.get_path(workspace)
    if path.exists():
        if not path.is_dir():
            raise GitDeckError(f"repo path {str(path)!r} is not a directory")
        return path

    owner = remote.owner_config(repo.owner)
    if not remote.clone:
        output.info(f"Create directory {str(path)!r}")
        path.mkdir(parents=True, exist_ok=True)
        try:
            Repo.init(path).close()
        except GitCommandError as e:
            raise GitCommandFailedError(["git", "init"], e.status, stderr=str(e.stderr)) from e
        return path

    url = remote.clone_url(repo.owner, repo.name)
    output.info(f"Cloning from {url}")
    options = {"depth": 1} if thin else {}
    try:
        Repo.clone_from(url, path, **options).close()
    except GitCommandError as e:
        command = ["git", "clone", url, str(path)]
        raise GitCommandFailedError(command, e.status, stderr=str(e.stderr)) from e

    apply_identity(path, owner, output)
    return path


def ensure_origin(path: Path, repo: Repository, remote: RemoteConfig, output: OutputHandler) -> None:
    """Reset the origin URL to the configured clone URL. Local-only remotes have none."""
    if not remote.clone:
        return
    with GitPythonRepository(path, output) as git_repo:
        git_repo.ensure_origin(remote.clone_url(repo.owner, repo.name))


def ensure_language(store: RepositoryStore, repo: Repository, path: Path, output: OutputHandler) -> str | None:
    """Store the language detected in `path` when it differs from the indexed one."""
    language = detect_language(path)
    if language == repo.language:
        return language
    if language is None:
        output.info("Reset repo language")
    else:
        output.info(f"Update repo language to {language!r}")
    store.update(repo.id, language=language)
    repo.language = language
    return language


def record_visit(
    store: RepositoryStore,
    repo: Repository,
    remote: RemoteConfig,
    timestamp: int | None = None,
) -> Repository:
    """Insert a new repository or bump the visit score of a known one.

    Owner `sync` / `pin` settings override the stored flags when set.
    """
    owner = remote.owner_config(repo.owner)
    if owner.sync is not None:
        repo.sync = owner.sync
    if owner.pin is not None:
        repo.pin = owner.pin

    if repo.new_created:
        frecency.init_score(repo, timestamp)
        store.insert(repo)
        return repo

    frecency.update_on_visit(repo, timestamp)
    store.update(
        repo.id,
        visit_time=repo.visit_time,
        visit_count=repo.visit_count,
        score=repo.score,
        sync=repo.sync,
        pin=repo.pin,
    )
    return repo


def attach(
    config: AppConfig,
    store: RepositoryStore,
    repo: Repository,
    work_dir: Path,
    output: OutputHandler,
) -> Repository:
    """Bind the existing git directory `work_dir` to a not yet indexed identity."""
    work_dir = Path(work_dir)
    in_workspace = work_dir.is_relative_to(config.workspace)
    if in_workspace:
        repo_id = parse_workspace_path(config.workspace, work_dir)
        if repo_id is None:
            raise GitDeckError("you are in workspace, but not in any repository")
        try:
            store.get(repo_id)
        except RepositoryNotFoundError:
            pass
        else:
            raise GitDeckError(f"the current directory has already been bound to {repo_id!r}")

    bound = store.query(RepositoryQuery(path=str(work_dir), limit=1))
    if bound:
        raise GitDeckError(f"the current directory has already been bound to {bound[0].id!r}")

    if not repo.new_created:
        raise GitDeckError(
            f"repository {repo.id!r} has already been bound to "
            f"{str(repo.get_path(config.workspace))!r}, please detach it first"
        )

    try:
        Repo(work_dir).close()
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise GitDeckError(f"{str(work_dir)!r} is not a git repository") from e

    if not in_workspace:
        repo.path = str(work_dir)
    remote = config.get_remote(repo.remote)
    repo.language = detect_language(work_dir)
    record_visit(store, repo, remote)
    ensure_origin(work_dir, repo, remote, output)
    apply_identity(work_dir, remote.owner_config(repo.owner), output)
    output.success(f"Attached current directory to {repo.id!r}")
    return repo


def detach(store: RepositoryStore, repo: Repository, output: OutputHandler) -> None:
    """Drop the repository from the index, keeping its files."""
    store.delete(repo.id)
    output.success(f"The current directory has been detached from {repo.id!r}")


def _remove_dir(workspace: Path, directory: Path, output: OutputHandler) -> None:
    if not directory.exists():
        return
    if not directory.is_dir():
        raise GitDeckError(f"{str(directory)!r} is not a directory")

    output.info(f"Remove dir {str(directory)!r}")
    shutil.rmtree(directory)

    if not directory.is_relative_to(workspace):
        return
    parent = directory.parent
    while parent != workspace and not any(parent.iterdir()):
        output.info(f"Remove empty dir {str(parent)!r}")
        parent.rmdir()
        parent = parent.parent


def remove(config: AppConfig, store: RepositoryStore, repo: Repository, output: OutputHandler) -> None:
    """Delete the repository directory, prune empty parents, and drop it from the index."""
    _remove_dir(Path(config.workspace), repo.get_path(config.workspace), output)
    output.info(f"Remove repo {repo.id!r} from database")
    store.delete(repo.id)
    logger.debug("Removed repository %s", repo.id)
