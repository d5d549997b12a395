"""Versioned migration engine for TinyDB databases."""

from .base import DataMigration, Migration, MigrationError, MigrationType, SchemaMigration
from .resources import MigrationResources
from .runner import (
    MigrationEngine,
    MigrationOutcome,
    MigrationReport,
    RunState,
    UnitResult,
    run_migrations,
)
from .versioner import DEFAULT_VERSION_TABLE, VersionRecord, VersionStore, VersionStoreError

__all__ = [
    "DEFAULT_VERSION_TABLE",
    "DataMigration",
    "Migration",
    "MigrationEngine",
    "MigrationError",
    "MigrationOutcome",
    "MigrationReport",
    "MigrationResources",
    "MigrationType",
    "RunState",
    "SchemaMigration",
    "UnitResult",
    "VersionRecord",
    "VersionStore",
    "VersionStoreError",
    "run_migrations",
]
