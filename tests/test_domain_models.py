"""Tests for domain models, frecency scoring and config loading."""

import dataclasses
from pathlib import Path

import pytest

from gitdeck import (
    AmbiguousInputError,
    AppConfig,
    Branch,
    BranchStatus,
    ConfigError,
    DisplayLevel,
    OwnerConfig,
    RemoteConfig,
    RemoteType,
    Repository,
    SyncResult,
    load_config,
)
from gitdeck import frecency
from gitdeck.models import build_repo_id


class TestRepository:
    def _make(self, **kwargs) -> Repository:
        defaults = dict(remote="github", owner="acme", name="widget")
        defaults.update(kwargs)
        return Repository(**defaults)

    def test_id(self):
        assert self._make().id == "github:acme/widget"
        assert build_repo_id("gitlab", "group/sub", "project") == "gitlab:group/sub/project"

    def test_display_levels(self):
        repo = self._make()
        assert repo.display(DisplayLevel.REMOTE) == "github:acme/widget"
        assert repo.display(DisplayLevel.OWNER) == "acme/widget"
        assert repo.display(DisplayLevel.NAME) == "widget"
        assert str(repo) == "github:acme/widget"

    def test_path_in_workspace(self, tmp_path):
        assert self._make().get_path(tmp_path) == tmp_path / "github" / "acme" / "widget"

    def test_explicit_path_wins(self, tmp_path):
        repo = self._make(path="/srv/widget")
        assert repo.get_path(tmp_path) == Path("/srv/widget")

    def test_disk_usage_computed_once(self, tmp_path):
        repo = self._make()
        path = repo.get_path(tmp_path)
        path.mkdir(parents=True)
        (path / "a.txt").write_text("12345")
        assert repo.disk_usage(tmp_path) == 5
        (path / "b.txt").write_text("more")
        assert repo.disk_usage(tmp_path) == 5

    def test_new_created_not_compared(self):
        assert self._make(new_created=True) == self._make()


class TestFrecency:
    def test_buckets(self):
        assert frecency.score(1, 0) == 16
        assert frecency.score(1, 3601) == 8
        assert frecency.score(1, 90000) == 2
        assert frecency.score(1, 700000) == 1

    def test_monotonic_in_count_within_bucket(self):
        for seconds in (0, 4000, 100000, 10**7):
            scores = [frecency.score(count, seconds) for count in range(1, 6)]
            assert scores == sorted(scores)

    def test_init_score(self):
        repo = Repository(remote="github", owner="acme", name="widget")
        frecency.init_score(repo, 1000)
        assert (repo.visit_count, repo.visit_time, repo.score) == (1, 1000, 16)

    def test_update_on_visit_uses_previous_visit(self):
        repo = Repository(remote="github", owner="acme", name="widget")
        frecency.init_score(repo, 1000)
        frecency.update_on_visit(repo, 1000 + frecency.DAY_SECONDS + 1)
        assert repo.visit_count == 2
        assert repo.visit_time == 1000 + frecency.DAY_SECONDS + 1
        assert repo.score == 4  # 2 visits, within a week

    def test_clock_going_backwards_clamps(self):
        repo = Repository(remote="github", owner="acme", name="widget", visit_time=5000, visit_count=1)
        frecency.update_on_visit(repo, 10)
        assert repo.score == 32


class TestBranchAndResult:
    def test_branch_frozen(self):
        branch = Branch("main", BranchStatus.SYNC)
        with pytest.raises(dataclasses.FrozenInstanceError):
            branch.name = "other"

    def test_branch_to_dict(self):
        branch = Branch("dev", BranchStatus.AHEAD, current=True, commit_id="abc1234")
        assert branch.to_dict()["status"] == "ahead"
        assert branch.to_dict()["current"] is True

    def test_sync_result_empty(self):
        assert SyncResult(name="x").is_empty()
        assert not SyncResult(name="x", uncommitted=2).is_empty()
        assert not SyncResult(name="x", detached=("tmp",)).is_empty()

    def test_sync_result_to_dict(self):
        result = SyncResult(name="github:acme/widget", pushed=("a",), deleted=("b", "c"))
        data = result.to_dict()
        assert data["pushed"] == ["a"]
        assert data["deleted"] == ["b", "c"]
        assert data["uncommitted"] == 0


class TestRemoteConfig:
    def test_owner_merge(self):
        remote = RemoteConfig(
            name="github",
            clone="github.com",
            default=OwnerConfig(sync=False, ssh=False, user="dev"),
            owners={"acme": OwnerConfig(sync=True, email="dev@acme.io")},
        )
        merged = remote.owner_config("acme")
        assert merged.sync is True
        assert merged.ssh is False
        assert merged.user == "dev"
        assert merged.email == "dev@acme.io"
        assert remote.owner_config("other").sync is False

    def test_clone_url(self):
        remote = RemoteConfig(
            name="github",
            clone="github.com",
            owners={"acme": OwnerConfig(ssh=True)},
        )
        assert remote.clone_url("acme", "widget") == "git@github.com:acme/widget.git"
        assert remote.clone_url("other", "widget") == "https://github.com/other/widget.git"
        assert remote.is_github

    def test_get_remote_unknown(self):
        config = AppConfig(remotes=[RemoteConfig(name="github")])
        assert config.has_remote("github")
        with pytest.raises(AmbiguousInputError):
            config.get_remote("gitlab")

    def test_with_updates(self, tmp_path):
        config = AppConfig().with_updates(workspace=tmp_path, verbose=True)
        assert config.workspace == tmp_path
        assert config.verbose is True


class TestLoadConfig:
    def _write(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)

    def test_missing_directory_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nothing")
        assert config.workspace == Path.home() / "dev"
        assert config.remotes == []

    def test_env_var_selects_directory(self, tmp_path, monkeypatch):
        self._write(tmp_path / "config.toml", f'workspace = "{tmp_path / "ws"}"\n')
        monkeypatch.setenv("GITDECK_CONFIG", str(tmp_path))
        assert load_config().workspace == tmp_path / "ws"

    def test_remote_files(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "secret")
        self._write(tmp_path / "remotes" / "github.toml", """
clone = "github.com"
icon = "gh"

[api]
type = "github"
token = "$GH_TOKEN"

[default]
sync = false

[owners.acme]
sync = true
ssh = true
""")
        self._write(tmp_path / "remotes" / "local.toml", "")

        config = load_config(tmp_path)
        assert [r.name for r in config.remotes] == ["github", "local"]
        github = config.get_remote("github")
        assert github.api.type == RemoteType.GITHUB
        assert github.api.token == "secret"
        assert github.api.cache_hours == 24
        assert github.api.list_limit == 100
        assert github.owner_config("acme").sync is True
        assert config.get_remote("local").clone == ""
        assert config.get_remote("local").api is None

    def test_unknown_api_type(self, tmp_path):
        self._write(tmp_path / "remotes" / "forge.toml", '[api]\ntype = "forgejo"\n')
        with pytest.raises(ConfigError, match="unknown api type"):
            load_config(tmp_path)

    def test_invalid_toml(self, tmp_path):
        self._write(tmp_path / "config.toml", "workspace = \n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_wrong_value_type(self, tmp_path):
        self._write(tmp_path / "remotes" / "github.toml", '[default]\nsync = "yes"\n')
        with pytest.raises(ConfigError):
            load_config(tmp_path)
