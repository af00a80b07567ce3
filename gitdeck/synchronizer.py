"""BranchSynchronizer: syncs a single repository's branches."""

from __future__ import annotations

import logging

from gitdeck.models import SyncResult
from gitdeck.protocols import GitRepository, OutputHandler
from gitdeck.strategies import BranchAction, SyncPlan, build_plan

logger = logging.getLogger(__name__)


class BranchSynchronizer:
    """Responsible for synchronizing a single repository"""

    def __init__(
        self,
        repo: GitRepository,
        output: OutputHandler,
        name: str,
        remote: str = 'origin',
    ):
        """Create a synchronizer for the repository displayed as `name`."""
        self.repo = repo
        self.output = output
        self.name = name
        self.remote = remote

    def sync(self) -> SyncResult:
        """Fetch, plan and execute branch operations.

        A dirty working tree stops the sync after the fetch and is reported
        through the uncommitted count. Any failing git call propagates as
        GitCommandFailedError; operations already performed are kept.
        """
        self.repo.fetch(self.remote, prune=True)

        uncommitted = self.repo.count_uncommitted_changes()
        if uncommitted > 0:
            logger.debug("%s: %d uncommitted changes, skip branch sync", self.name, uncommitted)
            return SyncResult(name=self.name, uncommitted=uncommitted)

        branches = self.repo.list_branches(self.remote)
        default_branch = self.repo.default_branch(self.remote)
        plan = build_plan(branches, default_branch)
        result = plan.result(self.name)

        if not plan.tasks:
            self.output.info("No branch to sync")
            return result

        self.output.info(f"Backup branch is {plan.backup_branch}")
        self._execute(plan)
        return result

    def _execute(self, plan: SyncPlan) -> None:
        current = plan.current_branch
        for task in plan.tasks:
            if task.action == BranchAction.DELETE:
                if current == task.branch:
                    # a checked-out branch cannot be deleted
                    self.repo.checkout(plan.default_branch)
                    current = plan.default_branch
                self.repo.delete_branch(task.branch)
                continue

            if current != task.branch:
                self.repo.checkout(task.branch)
                current = task.branch
            if task.action == BranchAction.PUSH:
                self.repo.push()
            else:
                self.repo.pull()

        if current != plan.backup_branch:
            self.repo.checkout(plan.backup_branch)
