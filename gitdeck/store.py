"""SQLite-backed repository index and remote API cache tables."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from sqlalchemy import Boolean, Column, Integer, String, create_engine, func, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from gitdeck.errors import GitDeckError, RepositoryNotFoundError
from gitdeck.models import Repository

logger = logging.getLogger(__name__)

DATABASE_FILE = "gitdeck.db"

Base = declarative_base()

UPDATABLE_FIELDS = frozenset({
    "path", "pin", "sync", "language", "visit_time", "visit_count", "score",
})


class RepositoryRecord(Base):
    """One indexed repository."""
    __tablename__ = "repo"

    id = Column(String, primary_key=True)
    remote = Column(String, index=True, nullable=False)
    owner = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    path = Column(String, nullable=True, index=True)
    pin = Column(Boolean, nullable=False, default=False)
    sync = Column(Boolean, nullable=False, default=False)
    language = Column(String, nullable=True)
    visit_time = Column(Integer, nullable=False, default=0)
    visit_count = Column(Integer, nullable=False, default=0)
    score = Column(Integer, nullable=False, default=0, index=True)

    def __repr__(self):
        return f"<RepositoryRecord(id='{self.id}', score={self.score})>"


class RemoteCacheListRecord(Base):
    """Cached `list_repos` answer, keyed `remote_owner`."""
    __tablename__ = "remote_cache_list"

    id = Column(String, primary_key=True)
    repos = Column(String, nullable=False)
    expire_time = Column(Integer, nullable=False)


class RemoteCacheRepoRecord(Base):
    """Cached `get_repo` answer, keyed `remote_owner_name`."""
    __tablename__ = "remote_cache_repo"

    id = Column(String, primary_key=True)
    default_branch = Column(String, nullable=False)
    web_url = Column(String, nullable=False)
    upstream_owner = Column(String, nullable=True)
    upstream_name = Column(String, nullable=True)
    upstream_default_branch = Column(String, nullable=True)
    expire_time = Column(Integer, nullable=False)


class OrderBy(Enum):
    """Result ordering for repository queries"""
    SCORE = "score"
    VISIT_TIME = "visit_time"


@dataclass
class RepositoryQuery:
    """Filters for listing repositories. Unset fields do not filter."""
    remote: str | None = None
    owner: str | None = None
    name_search: str | None = None
    path: str | None = None
    pin: bool | None = None
    sync: bool | None = None
    language: str | None = None
    order_by: OrderBy | None = None
    limit: int | None = None
    offset: int | None = None


def _to_repository(record: RepositoryRecord) -> Repository:
    return Repository(
        remote=record.remote,
        owner=record.owner,
        name=record.name,
        path=record.path,
        pin=record.pin,
        sync=record.sync,
        language=record.language,
        visit_time=record.visit_time,
        visit_count=record.visit_count,
        score=record.score,
    )


def _apply_filters(stmt, query: RepositoryQuery):
    if query.remote is not None:
        stmt = stmt.where(RepositoryRecord.remote == query.remote)
    if query.owner is not None:
        stmt = stmt.where(RepositoryRecord.owner == query.owner)
    if query.name_search:
        stmt = stmt.where(RepositoryRecord.name.contains(query.name_search, autoescape=True))
    if query.path is not None:
        stmt = stmt.where(RepositoryRecord.path == query.path)
    if query.pin is not None:
        stmt = stmt.where(RepositoryRecord.pin == query.pin)
    if query.sync is not None:
        stmt = stmt.where(RepositoryRecord.sync == query.sync)
    if query.language is not None:
        stmt = stmt.where(RepositoryRecord.language == query.language)
    return stmt


class RepositoryStore:
    """Repository index persisted through SQLAlchemy.

    Writes are serialized with a lock; reads run concurrently.
    """

    def __init__(self, url: str, **engine_kwargs):
        self._engine = create_engine(url, **engine_kwargs)
        Base.metadata.create_all(self._engine)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._lock = threading.Lock()

    @classmethod
    def open(cls, data_dir: Path) -> RepositoryStore:
        """Open (creating if needed) the database file under `data_dir`."""
        data_dir = Path(data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        path = data_dir / DATABASE_FILE
        logger.debug("Opening repository store %s", path)
        return cls(f"sqlite:///{path}", connect_args={"check_same_thread": False})

    @classmethod
    def in_memory(cls) -> RepositoryStore:
        """A private in-memory database shared by all threads."""
        return cls(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    def close(self) -> None:
        self._engine.dispose()

    def _session(self) -> Session:
        return self._sessions()

    def get(self, repo_id: str) -> Repository:
        with self._session() as session:
            record = session.get(RepositoryRecord, repo_id)
            if record is None:
                raise RepositoryNotFoundError(repo_id)
            return _to_repository(record)

    def insert(self, repo: Repository) -> None:
        with self._lock, self._session() as session:
            if session.get(RepositoryRecord, repo.id) is not None:
                raise GitDeckError(f"repository {repo.id!r} already exists")
            session.add(RepositoryRecord(
                id=repo.id,
                remote=repo.remote,
                owner=repo.owner,
                name=repo.name,
                path=repo.path,
                pin=repo.pin,
                sync=repo.sync,
                language=repo.language,
                visit_time=repo.visit_time,
                visit_count=repo.visit_count,
                score=repo.score,
            ))
            session.commit()
        logger.debug("Inserted repository %s", repo.id)

    def update(self, repo_id: str, **fields) -> None:
        """Set the given columns of a stored repository."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update repository fields: {', '.join(sorted(unknown))}")
        with self._lock, self._session() as session:
            record = session.get(RepositoryRecord, repo_id)
            if record is None:
                raise RepositoryNotFoundError(repo_id)
            for key, value in fields.items():
                setattr(record, key, value)
            session.commit()
        logger.debug("Updated repository %s: %s", repo_id, fields)

    def delete(self, repo_id: str) -> None:
        with self._lock, self._session() as session:
            record = session.get(RepositoryRecord, repo_id)
            if record is None:
                raise RepositoryNotFoundError(repo_id)
            session.delete(record)
            session.commit()
        logger.debug("Deleted repository %s", repo_id)

    def query(self, query: RepositoryQuery) -> list[Repository]:
        stmt = _apply_filters(select(RepositoryRecord), query)
        if query.order_by == OrderBy.SCORE:
            stmt = stmt.order_by(RepositoryRecord.score.desc(), RepositoryRecord.id)
        elif query.order_by == OrderBy.VISIT_TIME:
            stmt = stmt.order_by(RepositoryRecord.visit_time.desc(), RepositoryRecord.id)
        else:
            stmt = stmt.order_by(RepositoryRecord.id)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)
        if query.offset is not None:
            stmt = stmt.offset(query.offset)
        with self._session() as session:
            return [_to_repository(record) for record in session.scalars(stmt)]

    def count(self, query: RepositoryQuery) -> int:
        stmt = _apply_filters(select(func.count()).select_from(RepositoryRecord), query)
        with self._session() as session:
            return session.scalar(stmt) or 0

    def get_remote_cache_list(self, cache_id: str) -> RemoteCacheListRecord | None:
        with self._session() as session:
            return session.get(RemoteCacheListRecord, cache_id)

    def get_remote_cache_repo(self, cache_id: str) -> RemoteCacheRepoRecord | None:
        with self._session() as session:
            return session.get(RemoteCacheRepoRecord, cache_id)

    def put_remote_cache(self, record: RemoteCacheListRecord | RemoteCacheRepoRecord) -> None:
        """Insert or replace a cache entry."""
        with self._lock, self._session() as session:
            session.merge(record)
            session.commit()
        logger.debug("Cached remote API answer %s until %d", record.id, record.expire_time)

    def delete_remote_cache(self, record_type: type[Base], cache_id: str) -> None:
        with self._lock, self._session() as session:
            record = session.get(record_type, cache_id)
            if record is not None:
                session.delete(record)
                session.commit()
