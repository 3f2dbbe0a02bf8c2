from pathlib import Path
from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from version_plane.impl.memory import (
    MemoryObjectData,
    MemoryRefData,
    create_memory_repository,
)
from version_plane.impl.sql import Base, create_sql_repository
from version_plane.objects import Ident
from version_plane.repo import Repository

IDENT = Ident("Ident", "ident@example.com")


class Ticker:
    """Deterministic clock: every call returns one second later than the last."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


# Providers build a Repository for a test. Calling create() twice on the same
# provider and path reopens the same underlying data, which is how
# persistence is checked.


class RepoProvider:
    def create(self, path: Path, clock: Callable[[], int] | None = None) -> Repository:
        raise NotImplementedError()

    def cleanup(self, repo: Repository) -> None:
        pass


class MemoryRepoProvider(RepoProvider):
    def __init__(self):
        self.objects: MemoryObjectData = {}
        self.refs: MemoryRefData = {}

    def create(self, path: Path, clock: Callable[[], int] | None = None) -> Repository:
        # Memory repo ignores path, but shares dicts between instances
        return create_memory_repository(self.objects, self.refs, clock=clock or Ticker())


class SqlRepoProvider(RepoProvider):
    def __init__(self):
        self.engine = None

    def create(self, path: Path, clock: Callable[[], int] | None = None) -> Repository:
        db_url = f"sqlite:///{path / 'versions.db'}"

        if self.engine:
            self.engine.dispose()

        self.engine = create_engine(db_url)
        Base.metadata.create_all(self.engine)
        Session = sessionmaker(bind=self.engine)
        return create_sql_repository(Session, clock=clock or Ticker())

    def cleanup(self, repo: Repository) -> None:
        if self.engine:
            self.engine.dispose()


PROVIDERS = [
    MemoryRepoProvider,
    SqlRepoProvider,
]
PROVIDER_IDS = ["memory", "sql"]
