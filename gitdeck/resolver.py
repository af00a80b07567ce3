"""Resolution of user input (URLs, SSH endpoints, names, keywords) to repositories.

Input is given as `head` and `query`, the two positional arguments of the
navigation commands:

    (none)                  top-scored repository
    github                  a repository in remote "github"
    widget                  fuzzy keyword over all names
    -                       one of the most recently visited repositories
    https://host/o/n/...    the repository the URL points into
    git@host:o/n.git        the repository the SSH endpoint points at
    github acme/            pick a repository of owner "acme"
    github acme/widget      exactly github:acme/widget (created if missing)
    github wid              fuzzy keyword within remote "github"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from urllib.parse import urlparse

from gitdeck.errors import (
    AmbiguousInputError,
    NoCandidatesError,
    RemoteAPIError,
    RepositoryNotFoundError,
)
from gitdeck.models import GITHUB_HOST, AppConfig, DisplayLevel, Repository, build_repo_id
from gitdeck.protocols import RepositoryStore, Selector
from gitdeck.remoteapi import RemoteAPIRegistry
from gitdeck.store import OrderBy, RepositoryQuery

logger = logging.getLogger(__name__)

LATEST_KEYWORD = "-"
LATEST_LIMIT = 5
GITLAB_PATH_BOUNDARY = "-"


class ResolveMode(Enum):
    """How a keyword search turns into a single repository"""
    FUZZY = auto()
    SELECT = auto()


@dataclass(frozen=True)
class ResolveOptions:
    mode: ResolveMode = ResolveMode.FUZZY
    force_local: bool = False
    list_remote: bool = False
    exclude_local: bool = False


def parse_owner(path: str) -> tuple[str, str]:
    """Split 'group/sub/name' into ('group/sub', 'name'); no '/' gives ('', path)."""
    owner, _, name = path.rpartition("/")
    return owner, name


def ssh_to_url(endpoint: str) -> str:
    """Rewrite 'git@host:owner/name.git' as 'https://host/owner/name'."""
    full_name = endpoint.removeprefix("git@").removesuffix(".git")
    return "https://" + full_name.replace(":", "/", 1)


def is_ssh_endpoint(value: str) -> bool:
    return value.startswith("git@") and value.endswith(".git")


def is_http_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def _is_inside(work_dir: Path, path: Path) -> bool:
    return work_dir != path and work_dir.is_relative_to(path)


class RepositoryResolver:
    """Maps (head, query) to one repository, or to a set of repositories."""

    def __init__(
        self,
        config: AppConfig,
        store: RepositoryStore,
        selector: Selector,
        work_dir: Path,
        remote_apis: RemoteAPIRegistry | None = None,
    ):
        self.config = config
        self.store = store
        self.selector = selector
        self.work_dir = Path(work_dir)
        self.remote_apis = remote_apis

    def resolve(self, head: str = "", query: str = "", options: ResolveOptions | None = None) -> Repository:
        """Resolve the input to one repository.

        A store miss on a fully specified identity yields a placeholder with
        `new_created` set, unless `force_local` is requested.
        """
        options = options or ResolveOptions()
        if not head:
            return self._choose_one(None, None, options, allow_inside=True)

        if not query:
            if is_ssh_endpoint(head):
                return self._resolve_url(ssh_to_url(head), options)
            if is_http_url(head):
                return self._resolve_url(head, options)
            if head == LATEST_KEYWORD:
                return self._select_one(None, None, latest=True)
            if self.config.has_remote(head):
                return self._choose_one(head, None, options)
            return self._fuzzy_one(None, head)

        return self._resolve_in_remote(head, query, options)

    def _resolve_url(self, raw: str, options: ResolveOptions) -> Repository:
        try:
            url = urlparse(raw)
            host = url.hostname
        except ValueError as e:
            raise AmbiguousInputError(f"invalid URL {raw!r}: {e}") from e
        if not host:
            raise AmbiguousInputError(f"invalid URL {raw!r}, host cannot be empty")

        remote = next((r for r in self.config.remotes if r.clone and r.clone == host), None)
        if remote is None:
            raise AmbiguousInputError(f"cannot find remote with host {host!r}")

        parts: list[str] = []
        for part in url.path.split("/"):
            if not part:
                continue
            if remote.clone == GITHUB_HOST:
                if len(parts) == 2:
                    break
            elif part == GITLAB_PATH_BOUNDARY:
                break
            parts.append(part)

        if len(parts) < 2:
            raise AmbiguousInputError(f"invalid URL {raw!r}, should be in a repository")

        owner, name = parse_owner("/".join(parts))
        name = name.removesuffix(".git")
        logger.debug("URL %s resolved to %s", raw, build_repo_id(remote.name, owner, name))
        return self._get_by_id(remote.name, owner, name, options)

    def _resolve_in_remote(self, head: str, query: str, options: ResolveOptions) -> Repository:
        if not self.config.has_remote(head):
            raise AmbiguousInputError(f"cannot find remote {head!r}")
        remote = self.config.get_remote(head)

        if query.endswith("/"):
            owner = query.rstrip("/")
            if options.list_remote and not options.force_local and remote.api is not None:
                return self._select_from_remote_api(remote.name, owner, options)
            return self._select_one(remote.name, owner)

        owner, name = parse_owner(query)
        if not owner:
            if name == LATEST_KEYWORD:
                return self._select_one(remote.name, None, latest=True)
            return self._choose_one(remote.name, name, options)
        return self._get_by_id(remote.name, owner, name, options)

    def _select_from_remote_api(self, remote: str, owner: str, options: ResolveOptions) -> Repository:
        if self.remote_apis is None:
            raise RemoteAPIError(f"no remote api available for {remote!r}")
        names = self.remote_apis.get(remote).list_repos(owner)
        if options.exclude_local:
            local = {repo.name for repo in self.store.query(RepositoryQuery(remote=remote, owner=owner))}
            names = [name for name in names if name not in local]
        if not names:
            raise NoCandidatesError(f"no repository in {owner!r}")
        idx = self.selector.select(names)
        return self._get_by_id(remote, owner, names[idx], options)

    def _get_by_id(self, remote: str, owner: str, name: str, options: ResolveOptions) -> Repository:
        repo_id = build_repo_id(remote, owner, name)
        try:
            return self.store.get(repo_id)
        except RepositoryNotFoundError:
            if options.force_local:
                raise
        logger.debug("Repository %s is not indexed yet", repo_id)
        return Repository(remote=remote, owner=owner, name=name, new_created=True)

    def _choose_one(
        self,
        remote: str | None,
        keyword: str | None,
        options: ResolveOptions,
        allow_inside: bool = False,
    ) -> Repository:
        if options.mode == ResolveMode.SELECT:
            return self._select_one(remote, None, name_search=keyword)
        return self._fuzzy_one(remote, keyword, allow_inside=allow_inside)

    def _fuzzy_one(self, remote: str | None, keyword: str | None, allow_inside: bool = False) -> Repository:
        """Top-scored match, never the repository the working directory is at."""
        query = RepositoryQuery(remote=remote, name_search=keyword, order_by=OrderBy.SCORE)
        candidates = []
        for repo in self.store.query(query):
            path = repo.get_path(self.config.workspace)
            if self.work_dir == path:
                continue
            if allow_inside and _is_inside(self.work_dir, path):
                logger.debug("Working directory is inside %s", repo.id)
                return repo
            candidates.append(repo)

        if not candidates:
            raise NoCandidatesError("cannot find matched repository")
        return candidates[0]

    def _select_one(
        self,
        remote: str | None,
        owner: str | None,
        latest: bool = False,
        name_search: str | None = None,
    ) -> Repository:
        """Interactive pick, excluding the repository containing the working directory."""
        query = RepositoryQuery(remote=remote, owner=owner, name_search=name_search)
        if latest:
            query.order_by = OrderBy.VISIT_TIME
            query.limit = LATEST_LIMIT
        else:
            query.order_by = OrderBy.SCORE

        if remote is None and owner is None:
            level = DisplayLevel.REMOTE
        elif owner is None:
            level = DisplayLevel.OWNER
        else:
            level = DisplayLevel.NAME

        candidates = [
            repo for repo in self.store.query(query)
            if not self.work_dir.is_relative_to(repo.get_path(self.config.workspace))
        ]
        if not candidates:
            raise NoCandidatesError("no repository to select")

        idx = self.selector.select([repo.display(level) for repo in candidates])
        return candidates[idx]

    def resolve_many(
        self,
        head: str = "",
        query: str = "",
        sync_only: bool = False,
        pin_only: bool = False,
    ) -> tuple[list[Repository], DisplayLevel]:
        """Non-interactive selection of every repository the input covers.

        Returns the repositories in score order and the display granularity
        that identifies them unambiguously.
        """
        filters = RepositoryQuery(
            order_by=OrderBy.SCORE,
            sync=True if sync_only else None,
            pin=True if pin_only else None,
        )

        if not head:
            level = DisplayLevel.REMOTE
        elif not query:
            if self.config.has_remote(head):
                filters.remote = head
            else:
                filters.name_search = head
            level = DisplayLevel.OWNER
        else:
            if not self.config.has_remote(head):
                raise AmbiguousInputError(f"cannot find remote {head!r}")
            filters.remote = head
            level = DisplayLevel.NAME
            if query.endswith("/"):
                filters.owner = query.rstrip("/")
            else:
                owner, name = parse_owner(query)
                if not owner:
                    filters.name_search = name
                else:
                    try:
                        repo = self.store.get(build_repo_id(head, owner, name))
                    except RepositoryNotFoundError:
                        return [], level
                    if (sync_only and not repo.sync) or (pin_only and not repo.pin):
                        return [], level
                    return [repo], level

        return self.store.query(filters), level
