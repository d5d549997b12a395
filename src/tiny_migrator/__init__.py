"""tiny-migrator: versioned, per-category migrations for TinyDB stores."""

from .migrations import (
    DataMigration,
    Migration,
    MigrationEngine,
    MigrationError,
    MigrationResources,
    MigrationType,
    SchemaMigration,
    VersionStore,
    run_migrations,
)

__version__ = "0.1.0"

__all__ = [
    "DataMigration",
    "Migration",
    "MigrationEngine",
    "MigrationError",
    "MigrationResources",
    "MigrationType",
    "SchemaMigration",
    "VersionStore",
    "run_migrations",
    "__version__",
]
