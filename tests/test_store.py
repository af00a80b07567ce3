"""Tests for the SQLAlchemy repository index."""

import pytest

from gitdeck import GitDeckError, Repository, RepositoryNotFoundError, RepositoryQuery, RepositoryStore
from gitdeck.store import OrderBy


@pytest.fixture
def store():
    store = RepositoryStore.in_memory()
    yield store
    store.close()


def _repo(remote="github", owner="acme", name="widget", **kwargs) -> Repository:
    return Repository(remote=remote, owner=owner, name=name, **kwargs)


class TestRepositoryStore:
    def test_insert_and_get(self, store):
        store.insert(_repo(pin=True, language="Python", score=16, visit_count=1, visit_time=100))
        repo = store.get("github:acme/widget")
        assert repo == _repo(pin=True, language="Python", score=16, visit_count=1, visit_time=100)
        assert repo.new_created is False

    def test_get_missing(self, store):
        with pytest.raises(RepositoryNotFoundError) as excinfo:
            store.get("github:acme/missing")
        assert excinfo.value.repo_id == "github:acme/missing"

    def test_insert_duplicate(self, store):
        store.insert(_repo())
        with pytest.raises(GitDeckError, match="already exists"):
            store.insert(_repo())

    def test_update(self, store):
        store.insert(_repo())
        store.update("github:acme/widget", sync=True, score=42, path="/srv/widget")
        repo = store.get("github:acme/widget")
        assert (repo.sync, repo.score, repo.path) == (True, 42, "/srv/widget")

    def test_update_rejects_identity_fields(self, store):
        store.insert(_repo())
        with pytest.raises(ValueError, match="name"):
            store.update("github:acme/widget", name="gadget")

    def test_update_and_delete_missing(self, store):
        with pytest.raises(RepositoryNotFoundError):
            store.update("github:acme/missing", score=1)
        with pytest.raises(RepositoryNotFoundError):
            store.delete("github:acme/missing")

    def test_delete(self, store):
        store.insert(_repo())
        store.delete("github:acme/widget")
        assert store.count(RepositoryQuery()) == 0

    def test_owner_path_is_kept(self, store):
        store.insert(_repo(remote="gitlab", owner="group/sub", name="project"))
        repo = store.get("gitlab:group/sub/project")
        assert repo.owner == "group/sub"


class TestQuery:
    @pytest.fixture
    def filled(self, store):
        store.insert(_repo(name="widget", score=10, visit_time=300, sync=True))
        store.insert(_repo(name="gadget", score=30, visit_time=100, pin=True))
        store.insert(_repo(owner="other", name="widget-docs", score=20, visit_time=200, sync=True))
        store.insert(_repo(remote="gitlab", owner="group", name="tool", score=30, visit_time=50))
        return store

    def test_default_order_is_id(self, filled):
        ids = [r.id for r in filled.query(RepositoryQuery())]
        assert ids == sorted(ids)

    def test_order_by_score_ties_by_id(self, filled):
        ids = [r.id for r in filled.query(RepositoryQuery(order_by=OrderBy.SCORE))]
        assert ids == [
            "github:acme/gadget",
            "gitlab:group/tool",
            "github:other/widget-docs",
            "github:acme/widget",
        ]

    def test_order_by_visit_time_with_limit(self, filled):
        repos = filled.query(RepositoryQuery(order_by=OrderBy.VISIT_TIME, limit=2))
        assert [r.name for r in repos] == ["widget", "widget-docs"]

    def test_offset(self, filled):
        repos = filled.query(RepositoryQuery(order_by=OrderBy.SCORE, limit=2, offset=1))
        assert [r.name for r in repos] == ["tool", "widget-docs"]

    def test_filters(self, filled):
        assert len(filled.query(RepositoryQuery(remote="github"))) == 3
        assert len(filled.query(RepositoryQuery(remote="github", owner="acme"))) == 2
        assert [r.name for r in filled.query(RepositoryQuery(name_search="widget"))] == ["widget", "widget-docs"]
        assert [r.name for r in filled.query(RepositoryQuery(sync=True, owner="other"))] == ["widget-docs"]
        assert [r.name for r in filled.query(RepositoryQuery(pin=True))] == ["gadget"]

    def test_name_search_is_literal(self, filled):
        assert filled.query(RepositoryQuery(name_search="%")) == []
        assert filled.query(RepositoryQuery(name_search="_idget")) == []

    def test_count(self, filled):
        assert filled.count(RepositoryQuery()) == 4
        assert filled.count(RepositoryQuery(sync=True)) == 2
        assert filled.count(RepositoryQuery(remote="none")) == 0


def test_open_creates_database_file(tmp_path):
    store = RepositoryStore.open(tmp_path / "data")
    try:
        store.insert(_repo())
    finally:
        store.close()
    assert (tmp_path / "data" / "gitdeck.db").is_file()

    reopened = RepositoryStore.open(tmp_path / "data")
    try:
        assert reopened.get("github:acme/widget").name == "widget"
    finally:
        reopened.close()
