"""Branch sync strategies: one class per branch state.

Each strategy contributes to a SyncPlan; the plan is executed afterwards by
BranchSynchronizer so that planning stays free of git side effects.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from gitdeck.models import Branch, BranchStatus, SyncResult


class BranchAction(Enum):
    """Git operation planned for a branch"""
    PUSH = "push"
    PULL = "pull"
    DELETE = "delete"


@dataclass(frozen=True)
class BranchTask:
    """One planned operation on one branch"""
    branch: str
    action: BranchAction


@dataclass
class SyncPlan:
    """Ordered branch operations plus the branches that are only reported"""
    default_branch: str
    backup_branch: str
    current_branch: str | None = None
    tasks: list[BranchTask] = field(default_factory=list)
    pushed: list[str] = field(default_factory=list)
    pulled: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    conflict: list[str] = field(default_factory=list)
    detached: list[str] = field(default_factory=list)

    def result(self, name: str) -> SyncResult:
        """Freeze the plan into the result reported for the repository."""
        return SyncResult(
            name=name,
            pushed=tuple(self.pushed),
            pulled=tuple(self.pulled),
            deleted=tuple(self.deleted),
            conflict=tuple(self.conflict),
            detached=tuple(self.detached),
        )


class BranchSyncStrategy(ABC):
    """Abstract strategy for planning a branch."""

    status: BranchStatus

    def can_handle(self, branch: Branch) -> bool:
        """Return True if this strategy applies to the given branch state."""
        return branch.status == self.status

    @abstractmethod
    def apply(self, branch: Branch, plan: SyncPlan) -> None:
        """Record what has to happen to the branch in the plan."""


class AheadOfRemoteStrategy(BranchSyncStrategy):
    """Branches with unpushed commits are pushed."""

    status = BranchStatus.AHEAD

    def apply(self, branch: Branch, plan: SyncPlan) -> None:
        plan.tasks.append(BranchTask(branch.name, BranchAction.PUSH))
        plan.pushed.append(branch.name)


class BehindRemoteStrategy(BranchSyncStrategy):
    """Branches missing remote commits are pulled."""

    status = BranchStatus.BEHIND

    def apply(self, branch: Branch, plan: SyncPlan) -> None:
        plan.tasks.append(BranchTask(branch.name, BranchAction.PULL))
        plan.pulled.append(branch.name)


class GoneUpstreamStrategy(BranchSyncStrategy):
    """Branches whose upstream was deleted are removed, except the default branch."""

    status = BranchStatus.GONE

    def apply(self, branch: Branch, plan: SyncPlan) -> None:
        if branch.name == plan.default_branch:
            return
        plan.tasks.append(BranchTask(branch.name, BranchAction.DELETE))
        plan.deleted.append(branch.name)


class DivergedBranchStrategy(BranchSyncStrategy):
    """Diverged branches need manual resolution; report them only."""

    status = BranchStatus.CONFLICT

    def apply(self, branch: Branch, plan: SyncPlan) -> None:
        plan.conflict.append(branch.name)


class DetachedBranchStrategy(BranchSyncStrategy):
    """Branches without upstream are reported only."""

    status = BranchStatus.DETACHED

    def apply(self, branch: Branch, plan: SyncPlan) -> None:
        plan.detached.append(branch.name)


class UpToDateStrategy(BranchSyncStrategy):
    """Branches already in sync need nothing."""

    status = BranchStatus.SYNC

    def apply(self, branch: Branch, plan: SyncPlan) -> None:
        pass


DEFAULT_STRATEGIES: tuple[BranchSyncStrategy, ...] = (
    AheadOfRemoteStrategy(),
    BehindRemoteStrategy(),
    GoneUpstreamStrategy(),
    DivergedBranchStrategy(),
    DetachedBranchStrategy(),
    UpToDateStrategy(),
)


def build_plan(
    branches: list[Branch],
    default_branch: str,
    strategies: tuple[BranchSyncStrategy, ...] = DEFAULT_STRATEGIES,
) -> SyncPlan:
    """Plan branch operations in enumeration order.

    The backup branch, checked out once the plan has run, is the current
    branch unless that branch is about to be deleted, else the default branch.
    """
    plan = SyncPlan(default_branch=default_branch, backup_branch=default_branch)
    for branch in branches:
        if branch.current:
            plan.current_branch = branch.name
            if branch.status != BranchStatus.GONE:
                plan.backup_branch = branch.name
        for strategy in strategies:
            if strategy.can_handle(branch):
                strategy.apply(branch, plan)
                break
    return plan
