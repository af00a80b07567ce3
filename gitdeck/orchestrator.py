"""SyncOrchestrator: coordinates sync across multiple repositories."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TextIO

from gitdeck.batch import run_batch
from gitdeck.models import AppConfig, DisplayLevel, Repository, SyncResult
from gitdeck.output import BufferedOutputHandler, NullOutputHandler, deferred_logging
from gitdeck.protocols import OutputHandler, RepositoryStore
from gitdeck.repository import GitPythonRepository
from gitdeck.synchronizer import BranchSynchronizer
from gitdeck.workspace import apply_identity, current_repository, ensure_create, ensure_language

logger = logging.getLogger(__name__)


def sync_repository(
    repo: Repository,
    config: AppConfig,
    store: RepositoryStore,
    output: OutputHandler,
    name: str | None = None,
) -> SyncResult:
    """Create the repository if missing, refresh its index entry and origin, then sync its branches.

    Repositories of remotes without a clone host have nothing to sync with.
    """
    name = name or repo.id
    remote = config.get_remote(repo.remote)
    if not remote.clone:
        return SyncResult(name=name)

    path = ensure_create(repo, remote, config.workspace, output)
    apply_identity(path, remote.owner_config(repo.owner), output)
    ensure_language(store, repo, path, output)
    with GitPythonRepository(path, output) as git_repo:
        git_repo.ensure_origin(remote.clone_url(repo.owner, repo.name))
        return BranchSynchronizer(git_repo, output, name).sync()


class SyncTask:
    """Batch task syncing one repository."""

    def __init__(self, repo: Repository, config: AppConfig, store: RepositoryStore, output: OutputHandler, name: str):
        self.repo = repo
        self.config = config
        self.store = store
        self.output = output
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def run(self) -> SyncResult:
        return sync_repository(self.repo, self.config, self.store, self.output, self._name)


class SyncOrchestrator:
    """Main orchestrator - coordinates all sync operations"""

    def __init__(
        self,
        config: AppConfig,
        store: RepositoryStore,
        output: OutputHandler,
        stream: TextIO | None = None,
    ):
        """Create an orchestrator; `stream` receives the batch status line."""
        self.config = config
        self.store = store
        self.output = output
        self.stream = stream

    def sync_current(self, work_dir: Path) -> SyncResult | None:
        """Sync the repository containing work_dir. Returns None outside any repository."""
        repo = current_repository(self.config, self.store, work_dir)
        if repo is None:
            return None
        self.output.section(f"Processing: {repo.id}")
        return sync_repository(repo, self.config, self.store, self.output)

    def sync_many(
        self,
        repos: list[Repository],
        level: DisplayLevel = DisplayLevel.REMOTE,
    ) -> list[SyncResult]:
        """Sync repositories concurrently behind the batch status line.

        Tasks write to silent handlers; in verbose mode their messages are
        buffered and shown once the batch has finished. Log records are
        held back the same way so the status line stays the only writer.
        """
        buffers: list[BufferedOutputHandler] = []
        tasks = []
        for repo in repos:
            name = repo.display(level)
            if self.config.verbose:
                task_output = BufferedOutputHandler(title=f"Processing: {name}")
                buffers.append(task_output)
            else:
                task_output = NullOutputHandler()
            tasks.append(SyncTask(repo, self.config, self.store, task_output, name))

        logger.debug("Syncing %d repositories", len(tasks))
        try:
            with deferred_logging():
                return run_batch("Sync", tasks, stream=self.stream)
        finally:
            for buf in buffers:
                buf.flush_to(self.output)
