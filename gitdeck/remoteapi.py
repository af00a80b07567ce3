"""Remote API capability: the registry of configured APIs and the TTL cache."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from gitdeck import frecency
from gitdeck.errors import RemoteAPIError
from gitdeck.models import AppConfig, RemoteAPIConfig, RemoteType
from gitdeck.protocols import RemoteAPI
from gitdeck.store import RemoteCacheListRecord, RemoteCacheRepoRecord, RepositoryStore

logger = logging.getLogger(__name__)

RemoteAPIFactory = Callable[[RemoteAPIConfig], RemoteAPI]


@dataclass(frozen=True)
class RemoteUpstream:
    """The repository a fork was created from"""
    owner: str
    name: str
    default_branch: str


@dataclass(frozen=True)
class RemoteRepository:
    """Remote-side facts about a repository"""
    default_branch: str
    web_url: str
    upstream: RemoteUpstream | None = None


class CachedRemoteAPI:
    """Wraps a RemoteAPI and keeps its answers in the store for `expire_seconds`."""

    def __init__(
        self,
        remote_name: str,
        store: RepositoryStore,
        upstream: RemoteAPI,
        expire_seconds: int,
        force: bool = False,
    ):
        self.remote_name = remote_name
        self.store = store
        self.upstream = upstream
        self.expire_seconds = expire_seconds
        self.force = force
        self.list_repos_hit = 0
        self.get_repo_hit = 0

    def list_repos(self, owner: str) -> list[str]:
        now = frecency.now()
        cache_id = f"{self.remote_name}_{owner}"

        cached = self.store.get_remote_cache_list(cache_id)
        if cached is not None:
            if not self.force and now < cached.expire_time:
                self.list_repos_hit += 1
                logger.debug("Remote cache hit %s", cache_id)
                return [name for name in cached.repos.split(",") if name]
            self.store.delete_remote_cache(RemoteCacheListRecord, cache_id)

        logger.debug("Remote cache miss %s", cache_id)
        repos = self.upstream.list_repos(owner)
        self.store.put_remote_cache(RemoteCacheListRecord(
            id=cache_id,
            repos=",".join(repos),
            expire_time=now + self.expire_seconds,
        ))
        return repos

    def get_repo(self, owner: str, name: str) -> RemoteRepository:
        now = frecency.now()
        cache_id = f"{self.remote_name}_{owner}_{name}"

        cached = self.store.get_remote_cache_repo(cache_id)
        if cached is not None:
            if not self.force and now < cached.expire_time:
                self.get_repo_hit += 1
                logger.debug("Remote cache hit %s", cache_id)
                upstream = None
                if cached.upstream_owner and cached.upstream_name and cached.upstream_default_branch:
                    upstream = RemoteUpstream(
                        owner=cached.upstream_owner,
                        name=cached.upstream_name,
                        default_branch=cached.upstream_default_branch,
                    )
                return RemoteRepository(
                    default_branch=cached.default_branch,
                    web_url=cached.web_url,
                    upstream=upstream,
                )
            self.store.delete_remote_cache(RemoteCacheRepoRecord, cache_id)

        logger.debug("Remote cache miss %s", cache_id)
        repo = self.upstream.get_repo(owner, name)
        upstream = repo.upstream
        self.store.put_remote_cache(RemoteCacheRepoRecord(
            id=cache_id,
            default_branch=repo.default_branch,
            web_url=repo.web_url,
            upstream_owner=upstream.owner if upstream else None,
            upstream_name=upstream.name if upstream else None,
            upstream_default_branch=upstream.default_branch if upstream else None,
            expire_time=now + self.expire_seconds,
        ))
        return repo


class RemoteAPIRegistry:
    """Builds one RemoteAPI per configured remote, on first use.

    Concrete HTTP clients are supplied as factories keyed by RemoteType.
    """

    def __init__(
        self,
        config: AppConfig,
        store: RepositoryStore,
        factories: dict[RemoteType, RemoteAPIFactory] | None = None,
        force_no_cache: bool = False,
    ):
        self.config = config
        self.store = store
        self.factories = dict(factories or {})
        self.force_no_cache = force_no_cache
        self._apis: dict[str, RemoteAPI] = {}
        self._lock = threading.Lock()

    def get(self, remote_name: str) -> RemoteAPI:
        """The API for a remote. Raises RemoteAPIError if none can be built."""
        with self._lock:
            api = self._apis.get(remote_name)
            if api is None:
                api = self._build(remote_name)
                self._apis[remote_name] = api
            return api

    def _build(self, remote_name: str) -> RemoteAPI:
        remote = self.config.get_remote(remote_name)
        if remote.api is None:
            raise RemoteAPIError(f"remote {remote_name!r} has no api config")
        factory = self.factories.get(remote.api.type)
        if factory is None:
            raise RemoteAPIError(f"no client available for remote api type {remote.api.type.value!r}")

        api = factory(remote.api)
        if remote.api.cache_hours > 0:
            api = CachedRemoteAPI(
                remote_name,
                self.store,
                api,
                remote.api.cache_seconds,
                force=self.force_no_cache,
            )
        logger.debug("Built %s api for remote %s", remote.api.type.value, remote_name)
        return api
