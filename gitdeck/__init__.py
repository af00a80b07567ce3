"""
gitdeck: Git Workspace Navigator

Keeps an index of locally cloned repositories ranked by frecency, resolves
URLs and fuzzy keywords to repositories, and keeps their branches in sync
with their remotes.
"""

from colorama import init as colorama_init

colorama_init(autoreset=True)

__version__ = "0.3.0"

# Re-export public API so `from gitdeck import X` works.
from gitdeck.batch import BatchTracker, run_batch  # noqa: E402
from gitdeck.cli import main  # noqa: E402
from gitdeck.config import create_argument_parser, load_config  # noqa: E402
from gitdeck.errors import (  # noqa: E402
    AmbiguousInputError,
    BatchError,
    ConfigError,
    GitCommandFailedError,
    GitDeckError,
    NoCandidatesError,
    RemoteAPIError,
    RepositoryNotFoundError,
    UserCancelledError,
)
from gitdeck.models import (  # noqa: E402
    AppConfig,
    BatchReport,
    Branch,
    BranchStatus,
    DisplayLevel,
    OwnerConfig,
    RemoteAPIConfig,
    RemoteConfig,
    RemoteType,
    Repository,
    SyncResult,
    Tag,
    TaskFailure,
)
from gitdeck.orchestrator import SyncOrchestrator  # noqa: E402
from gitdeck.output import (  # noqa: E402
    SECTION_WIDTH,
    BufferedOutputHandler,
    ConsoleOutputHandler,
    NullOutputHandler,
)
from gitdeck.protocols import GitRepository, OutputHandler, Selector, Task  # noqa: E402
from gitdeck.remoteapi import CachedRemoteAPI, RemoteAPIRegistry, RemoteRepository  # noqa: E402
from gitdeck.reporter import SummaryReporter, render_sync_result  # noqa: E402
from gitdeck.repository import GitPythonRepository, parse_branch_line  # noqa: E402
from gitdeck.resolver import RepositoryResolver, ResolveMode, ResolveOptions  # noqa: E402
from gitdeck.store import RepositoryQuery, RepositoryStore  # noqa: E402
from gitdeck.strategies import (  # noqa: E402
    AheadOfRemoteStrategy,
    BehindRemoteStrategy,
    BranchSyncStrategy,
    DetachedBranchStrategy,
    DivergedBranchStrategy,
    GoneUpstreamStrategy,
    UpToDateStrategy,
    build_plan,
)
from gitdeck.synchronizer import BranchSynchronizer  # noqa: E402

__all__ = [
    "__version__",
    # Models
    "AppConfig",
    "BatchReport",
    "Branch",
    "BranchStatus",
    "DisplayLevel",
    "OwnerConfig",
    "RemoteAPIConfig",
    "RemoteConfig",
    "RemoteType",
    "Repository",
    "SyncResult",
    "Tag",
    "TaskFailure",
    # Errors
    "AmbiguousInputError",
    "BatchError",
    "ConfigError",
    "GitCommandFailedError",
    "GitDeckError",
    "NoCandidatesError",
    "RemoteAPIError",
    "RepositoryNotFoundError",
    "UserCancelledError",
    # Protocols
    "GitRepository",
    "OutputHandler",
    "Selector",
    "Task",
    # Implementations
    "GitPythonRepository",
    "parse_branch_line",
    "RepositoryStore",
    "RepositoryQuery",
    "CachedRemoteAPI",
    "RemoteAPIRegistry",
    "RemoteRepository",
    "BufferedOutputHandler",
    "ConsoleOutputHandler",
    "NullOutputHandler",
    "SECTION_WIDTH",
    # Strategies
    "AheadOfRemoteStrategy",
    "BehindRemoteStrategy",
    "BranchSyncStrategy",
    "DetachedBranchStrategy",
    "DivergedBranchStrategy",
    "GoneUpstreamStrategy",
    "UpToDateStrategy",
    "build_plan",
    # Services
    "BatchTracker",
    "run_batch",
    "BranchSynchronizer",
    "RepositoryResolver",
    "ResolveMode",
    "ResolveOptions",
    "SyncOrchestrator",
    "SummaryReporter",
    "render_sync_result",
    # Config / CLI
    "create_argument_parser",
    "load_config",
    "main",
]
