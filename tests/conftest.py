"""Shared fixtures for tiny-migrator tests."""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from tinydb import TinyDB
from tinydb.storages import MemoryStorage

from tiny_migrator.migrations import Migration, MigrationError


class StubMigration(Migration):
    """Migration that records its calls and can be told to fail."""

    def __init__(
        self,
        category: str,
        version: int,
        description: str = "stub",
        log: list["StubMigration"] | None = None,
        fail: bool = False,
    ):
        super().__init__(category, version)
        self._description = description
        self.log = log if log is not None else []
        self.fail = fail
        self.calls = 0

    def description(self) -> str:
        return self._description

    def execute(self, db: TinyDB) -> None:
        self.calls += 1
        self.log.append(self)
        if self.fail:
            raise MigrationError(f"{self._description} failed")
        db.table("changes").insert({"category": self.category, "version": self.version})


@pytest.fixture
def db() -> Iterator[TinyDB]:
    """In-memory TinyDB database."""
    database = TinyDB(storage=MemoryStorage)
    yield database
    database.close()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path for a TinyDB JSON file."""
    return tmp_path / "state.json"


@pytest.fixture
def execution_log() -> list[StubMigration]:
    """Order in which stub migrations were executed."""
    return []


@pytest.fixture
def make_migration(execution_log: list[StubMigration]) -> Callable[..., StubMigration]:
    """Factory for stub migrations sharing one execution log."""

    def _make(category: str, version: int, description: str = "stub", fail: bool = False) -> StubMigration:
        return StubMigration(category, version, description, log=execution_log, fail=fail)

    return _make
