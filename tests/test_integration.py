"""Integration tests using real git repositories.

Creates bare repos (acting as remotes) and local clones to test the
full sync pipeline end-to-end.
"""

import io
import logging
import subprocess
from pathlib import Path

import pytest

from gitdeck import (
    AppConfig,
    BatchError,
    BranchSynchronizer,
    BufferedOutputHandler,
    DisplayLevel,
    GitCommandFailedError,
    GitDeckError,
    GitPythonRepository,
    NullOutputHandler,
    RemoteConfig,
    Repository,
    RepositoryNotFoundError,
    RepositoryStore,
    SyncOrchestrator,
)
from gitdeck import workspace as ws_ops

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _git(cwd: Path, *args: str) -> str:
    """Run a git command and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def _commit_file(repo: Path, filename: str, content: str, message: str) -> str:
    """Create/overwrite a file and commit it. Returns the commit hash."""
    filepath = repo / filename
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(content)
    _git(repo, "add", filename)
    _git(repo, "commit", "-m", message)
    return _git(repo, "rev-parse", "HEAD")


def _push_via_clone(tmp_path: Path, bare_remote: Path, name: str,
                    files: dict[str, str], message: str,
                    branch: str = "main") -> Path:
    """Clone the bare remote, commit files, and push. Returns pusher path."""
    pusher = tmp_path / name
    _git(tmp_path, "clone", str(bare_remote), name)
    _git(pusher, "config", "user.email", "test@test.com")
    _git(pusher, "config", "user.name", "Test")
    if branch != "main":
        _git(pusher, "checkout", branch)
    for filename, content in files.items():
        (pusher / filename).write_text(content)
        _git(pusher, "add", filename)
    _git(pusher, "commit", "-m", message)
    _git(pusher, "push", "origin", branch)
    return pusher


def _sync(path: Path, output=None):
    """Sync the branches of one local clone."""
    with GitPythonRepository(path) as repo:
        return BranchSynchronizer(repo, output or NullOutputHandler(), path.name).sync()


def _clone_into_workspace(workspace: Path, bare_remote: Path, owner: str = "acme", name: str = "widget") -> Path:
    """Clone the bare remote to its workspace path, reachable through its github clone URL."""
    parent = workspace / "github" / owner
    parent.mkdir(parents=True, exist_ok=True)
    _git(parent, "clone", str(bare_remote), name)
    path = parent / name
    _git(path, "config", f"url.{bare_remote}.insteadOf", f"https://github.com/{owner}/{name}.git")
    return path


def _current_branch(path: Path) -> str:
    return _git(path, "rev-parse", "--abbrev-ref", "HEAD")


def _local_branches(path: Path) -> list[str]:
    return _git(path, "branch", "--format=%(refname:short)").splitlines()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """Create a bare repo that acts as a remote."""
    remote = tmp_path / "remote.git"
    remote.mkdir()
    _git(remote, "init", "--bare", "-b", "main")
    return remote


@pytest.fixture
def local_clone(tmp_path: Path, bare_remote: Path) -> Path:
    """Clone the bare remote into a local working repo."""
    local = tmp_path / "local"
    _git(tmp_path, "clone", str(bare_remote), "local")
    _git(local, "config", "user.email", "test@test.com")
    _git(local, "config", "user.name", "Test")
    # Create main branch with initial commit (clone of empty repo has no branch)
    _git(local, "checkout", "-b", "main")
    _commit_file(local, "init.txt", "initial", "Initial commit")
    _git(local, "push", "-u", "origin", "main")
    return local


@pytest.fixture
def store():
    store = RepositoryStore.in_memory()
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Tests: Branch sync against a real remote
# ---------------------------------------------------------------------------

class TestBranchSync:
    def test_behind_branch_is_pulled(self, tmp_path, bare_remote, local_clone):
        _push_via_clone(tmp_path, bare_remote, "pusher", {"new.txt": "hello"}, "Second commit")

        result = _sync(local_clone)

        assert result.pulled == ("main",)
        assert (local_clone / "new.txt").read_text() == "hello"

    def test_ahead_branch_is_pushed(self, bare_remote, local_clone):
        head = _commit_file(local_clone, "local.txt", "mine", "Local commit")

        result = _sync(local_clone)

        assert result.pushed == ("main",)
        assert _git(bare_remote, "rev-parse", "main") == head

    def test_gone_branch_is_deleted(self, local_clone):
        _git(local_clone, "checkout", "-b", "feature")
        _git(local_clone, "push", "-u", "origin", "feature")
        _git(local_clone, "checkout", "main")
        _git(local_clone, "push", "origin", "--delete", "feature")

        result = _sync(local_clone)

        assert result.deleted == ("feature",)
        assert _local_branches(local_clone) == ["main"]

    def test_gone_current_branch_ends_on_default(self, local_clone):
        _git(local_clone, "checkout", "-b", "feature")
        _git(local_clone, "push", "-u", "origin", "feature")
        _git(local_clone, "push", "origin", "--delete", "feature")

        result = _sync(local_clone)

        assert result.deleted == ("feature",)
        assert _current_branch(local_clone) == "main"

    def test_dirty_tree_reports_uncommitted_only(self, tmp_path, bare_remote, local_clone):
        _push_via_clone(tmp_path, bare_remote, "pusher", {"new.txt": "hello"}, "Second commit")
        (local_clone / "scratch.txt").write_text("untracked")
        (local_clone / "init.txt").write_text("modified")

        result = _sync(local_clone)

        assert result.uncommitted == 2
        assert result.pulled == ()
        assert not (local_clone / "new.txt").exists()

    def test_diverged_branch_is_reported(self, tmp_path, bare_remote, local_clone):
        _push_via_clone(tmp_path, bare_remote, "pusher", {"theirs.txt": "x"}, "Remote commit")
        local_head = _commit_file(local_clone, "ours.txt", "y", "Local commit")

        result = _sync(local_clone)

        assert result.conflict == ("main",)
        assert result.pushed == ()
        assert _git(local_clone, "rev-parse", "HEAD") == local_head

    def test_branch_without_upstream_is_reported(self, local_clone):
        _git(local_clone, "checkout", "-b", "scratch")
        output = BufferedOutputHandler()

        result = _sync(local_clone, output)

        assert result.detached == ("scratch",)
        assert "No branch to sync" in output.messages

    def test_backup_branch_is_restored(self, tmp_path, bare_remote, local_clone):
        _git(local_clone, "checkout", "-b", "topic")
        _git(local_clone, "push", "-u", "origin", "topic")
        _push_via_clone(tmp_path, bare_remote, "pusher", {"new.txt": "hello"}, "Second commit")
        output = BufferedOutputHandler()

        result = _sync(local_clone, output)

        assert result.pulled == ("main",)
        assert _current_branch(local_clone) == "topic"
        assert "Backup branch is topic" in output.messages
        assert _git(local_clone, "rev-parse", "main") == _git(bare_remote, "rev-parse", "main")

    def test_up_to_date(self, local_clone):
        output = BufferedOutputHandler()

        result = _sync(local_clone, output)

        assert result.is_empty()
        assert "No branch to sync" in output.messages


# ---------------------------------------------------------------------------
# Tests: GitPythonRepository queries
# ---------------------------------------------------------------------------

class TestGitPythonRepository:
    def test_default_branch_without_remote_head(self, local_clone):
        # cloned while empty, so refs/remotes/origin/HEAD was never set
        with GitPythonRepository(local_clone) as repo:
            assert repo.default_branch() == "main"

    def test_current_branch(self, local_clone):
        with GitPythonRepository(local_clone) as repo:
            assert repo.current_branch == "main"
        _git(local_clone, "checkout", "--detach")
        with GitPythonRepository(local_clone) as repo:
            assert repo.current_branch is None

    def test_list_tags(self, local_clone):
        _git(local_clone, "tag", "-a", "v1.0", "-m", "first release")
        _git(local_clone, "tag", "v1.1")
        with GitPythonRepository(local_clone) as repo:
            tags = {tag.name: tag for tag in repo.list_tags()}
        assert set(tags) == {"v1.0", "v1.1"}
        assert tags["v1.0"].commit_message == "first release"
        assert tags["v1.1"].commit_message == "Initial commit"

    def test_checkout_missing_branch_raises(self, local_clone):
        with GitPythonRepository(local_clone) as repo:
            with pytest.raises(GitCommandFailedError) as excinfo:
                repo.checkout("does-not-exist")
        assert excinfo.value.status != 0
        assert "checkout" in str(excinfo.value)

    def test_set_identity(self, local_clone):
        with GitPythonRepository(local_clone) as repo:
            repo.set_identity("Dev", "dev@acme.io")
        assert _git(local_clone, "config", "user.name") == "Dev"
        assert _git(local_clone, "config", "user.email") == "dev@acme.io"

    def test_ensure_origin_resets_url(self, local_clone):
        url = "https://github.com/acme/widget.git"
        with GitPythonRepository(local_clone) as repo:
            repo.ensure_origin(url)
            repo.ensure_origin(url)
        assert _git(local_clone, "config", "--get", "remote.origin.url") == url

    def test_ensure_origin_adds_missing_remote(self, local_clone):
        _git(local_clone, "remote", "remove", "origin")
        output = BufferedOutputHandler()
        with GitPythonRepository(local_clone, output) as repo:
            repo.ensure_origin("git@github.com:acme/widget.git")
        assert _git(local_clone, "config", "--get", "remote.origin.url") == "git@github.com:acme/widget.git"
        assert "Add origin remote git@github.com:acme/widget.git" in output.messages


# ---------------------------------------------------------------------------
# Tests: Workspace layout and batch sync
# ---------------------------------------------------------------------------

def _config(workspace: Path) -> AppConfig:
    return AppConfig(
        workspace=workspace,
        remotes=[
            RemoteConfig(name="github", clone="github.com"),
            RemoteConfig(name="local"),
        ],
    )


class TestOrchestrator:
    def test_sync_many(self, tmp_path, bare_remote, local_clone, store):
        workspace = tmp_path / "ws"
        _clone_into_workspace(workspace, bare_remote)
        _push_via_clone(tmp_path, bare_remote, "pusher", {"new.txt": "hello"}, "Second commit")

        repos = [
            Repository(remote="github", owner="acme", name="widget"),
            Repository(remote="local", owner="me", name="notes"),
        ]
        stream = io.StringIO()
        orchestrator = SyncOrchestrator(_config(workspace), store, NullOutputHandler(), stream=stream)

        results = orchestrator.sync_many(repos, DisplayLevel.OWNER)

        assert [r.name for r in results] == ["acme/widget", "me/notes"]
        assert results[0].pulled == ("main",)
        assert results[1].is_empty()
        assert not (workspace / "local").exists()
        assert "2 ok; 0 failed" in stream.getvalue()

    def test_sync_many_collects_failures(self, tmp_path, store):
        workspace = tmp_path / "ws"
        broken = workspace / "github" / "acme" / "broken"
        broken.parent.mkdir(parents=True)
        broken.write_text("not a directory")

        orchestrator = SyncOrchestrator(_config(workspace), store, NullOutputHandler(), stream=io.StringIO())
        with pytest.raises(BatchError) as excinfo:
            orchestrator.sync_many([Repository(remote="github", owner="acme", name="broken")])

        assert len(excinfo.value.messages) == 1
        assert excinfo.value.messages[0].startswith("github:acme/broken: ")
        assert "is not a directory" in excinfo.value.messages[0]

    def test_sync_current(self, tmp_path, bare_remote, local_clone, store):
        workspace = tmp_path / "ws"
        repo_dir = _clone_into_workspace(workspace, bare_remote)
        store.insert(Repository(remote="github", owner="acme", name="widget"))
        orchestrator = SyncOrchestrator(_config(workspace), store, NullOutputHandler())

        result = orchestrator.sync_current(repo_dir / "sub" / "dir")

        assert result.name == "github:acme/widget"
        assert result.is_empty()
        assert orchestrator.sync_current(tmp_path) is None

    def test_sync_updates_origin_and_language(self, tmp_path, bare_remote, local_clone, store):
        _commit_file(local_clone, "go.mod", "module example.com/widget\n", "Add module")
        _git(local_clone, "push", "origin", "main")
        workspace = tmp_path / "ws"
        repo_dir = _clone_into_workspace(workspace, bare_remote)
        store.insert(Repository(remote="github", owner="acme", name="widget"))
        orchestrator = SyncOrchestrator(_config(workspace), store, NullOutputHandler())

        result = orchestrator.sync_current(repo_dir)

        assert result.is_empty()
        assert store.get("github:acme/widget").language == "go"
        assert _git(repo_dir, "config", "--get", "remote.origin.url") == "https://github.com/acme/widget.git"

    def test_sync_many_holds_log_records_until_batch_ends(self, tmp_path, bare_remote, local_clone, store):
        workspace = tmp_path / "ws"
        _clone_into_workspace(workspace, bare_remote)
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter("LOG %(name)s %(message)s"))
        root = logging.getLogger()
        previous_level = root.level
        root.addHandler(handler)
        root.setLevel(logging.DEBUG)
        orchestrator = SyncOrchestrator(_config(workspace), store, NullOutputHandler(), stream=stream)
        try:
            orchestrator.sync_many([Repository(remote="github", owner="acme", name="widget")])
        finally:
            root.removeHandler(handler)
            root.setLevel(previous_level)

        text = stream.getvalue()
        batch = text[text.index("Sync with 1 workers"):text.index("Sync result:")]
        assert "LOG " not in batch
        assert "LOG gitdeck.repository" in text[text.index("Sync result:"):]


class TestWorkspace:
    def test_parse_workspace_path(self, tmp_path):
        assert ws_ops.parse_workspace_path(tmp_path, tmp_path / "github" / "acme" / "widget") == \
            "github:acme/widget"
        assert ws_ops.parse_workspace_path(tmp_path, tmp_path / "gitlab" / "g" / "s" / "p") == "gitlab:g/s/p"
        assert ws_ops.parse_workspace_path(tmp_path, tmp_path / "github" / "acme") is None
        assert ws_ops.parse_workspace_path(tmp_path / "ws", tmp_path / "other" / "a" / "b") is None

    def test_ensure_create_initializes_local_repository(self, tmp_path):
        config = _config(tmp_path / "ws")
        repo = Repository(remote="local", owner="me", name="notes")

        path = ws_ops.ensure_create(repo, config.get_remote("local"), config.workspace, NullOutputHandler())

        assert path == tmp_path / "ws" / "local" / "me" / "notes"
        assert (path / ".git").is_dir()

    def test_ensure_create_rejects_file(self, tmp_path):
        config = _config(tmp_path / "ws")
        repo = Repository(remote="local", owner="me", name="notes")
        target = repo.get_path(config.workspace)
        target.parent.mkdir(parents=True)
        target.write_text("")

        with pytest.raises(GitDeckError, match="not a directory"):
            ws_ops.ensure_create(repo, config.get_remote("local"), config.workspace, NullOutputHandler())

    def test_record_visit(self, tmp_path, store):
        remote = RemoteConfig(name="github", clone="github.com")
        repo = Repository(remote="github", owner="acme", name="widget", new_created=True)

        ws_ops.record_visit(store, repo, remote, timestamp=1000)
        stored = store.get("github:acme/widget")
        assert (stored.visit_count, stored.score) == (1, 16)

        ws_ops.record_visit(store, stored, remote, timestamp=1010)
        stored = store.get("github:acme/widget")
        assert (stored.visit_count, stored.visit_time, stored.score) == (2, 1010, 32)

    def test_remove_prunes_empty_parents(self, tmp_path, store):
        config = _config(tmp_path / "ws")
        repo = Repository(remote="local", owner="me", name="notes")
        path = ws_ops.ensure_create(repo, config.get_remote("local"), config.workspace, NullOutputHandler())
        store.insert(repo)

        ws_ops.remove(config, store, repo, NullOutputHandler())

        assert not path.exists()
        assert not (config.workspace / "local").exists()
        assert config.workspace.is_dir()
        with pytest.raises(RepositoryNotFoundError):
            store.get(repo.id)

    def test_remove_keeps_non_empty_parents(self, tmp_path, store):
        config = _config(tmp_path / "ws")
        remote = config.get_remote("local")
        keep = Repository(remote="local", owner="me", name="keep")
        drop = Repository(remote="local", owner="me", name="drop")
        ws_ops.ensure_create(keep, remote, config.workspace, NullOutputHandler())
        ws_ops.ensure_create(drop, remote, config.workspace, NullOutputHandler())
        store.insert(drop)

        ws_ops.remove(config, store, drop, NullOutputHandler())

        assert keep.get_path(config.workspace).is_dir()

    def test_current_repository(self, tmp_path, store):
        config = _config(tmp_path / "ws")
        store.insert(Repository(remote="github", owner="acme", name="widget"))
        store.insert(Repository(remote="github", owner="acme", name="side", path=str(tmp_path / "side")))

        inside = config.workspace / "github" / "acme" / "widget" / "src"
        assert ws_ops.current_repository(config, store, inside).id == "github:acme/widget"
        assert ws_ops.current_repository(config, store, tmp_path / "side" / "docs").id == "github:acme/side"
        assert ws_ops.current_repository(config, store, tmp_path / "elsewhere") is None
        with pytest.raises(GitDeckError, match="not in any repository"):
            ws_ops.require_current_repository(config, store, tmp_path / "elsewhere")

    def test_attach_and_detach(self, tmp_path, local_clone, store):
        config = _config(tmp_path / "ws")
        repo = Repository(remote="github", owner="acme", name="attached", new_created=True)

        ws_ops.attach(config, store, repo, local_clone, NullOutputHandler())

        stored = store.get("github:acme/attached")
        assert stored.path == str(local_clone)
        assert stored.language is None
        assert _git(local_clone, "config", "--get", "remote.origin.url") == "https://github.com/acme/attached.git"
        assert ws_ops.current_repository(config, store, local_clone).id == stored.id

        again = Repository(remote="github", owner="acme", name="other", new_created=True)
        with pytest.raises(GitDeckError, match="already been bound"):
            ws_ops.attach(config, store, again, local_clone, NullOutputHandler())

        ws_ops.detach(store, stored, NullOutputHandler())
        assert ws_ops.current_repository(config, store, local_clone) is None
        assert local_clone.is_dir()

    def test_attach_requires_git_directory(self, tmp_path, store):
        config = _config(tmp_path / "ws")
        plain = tmp_path / "plain"
        plain.mkdir()
        repo = Repository(remote="github", owner="acme", name="plain", new_created=True)

        with pytest.raises(GitDeckError, match="not a git repository"):
            ws_ops.attach(config, store, repo, plain, NullOutputHandler())
