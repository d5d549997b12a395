"""Ordered collection of migrations handed to the engine."""

from collections.abc import Iterable, Iterator

from .base import Migration


class MigrationResources:
    """
    Caller-ordered sequence of migrations.

    Migrations are kept exactly in the order they were added. Nothing is
    sorted or deduplicated: producing a correctly ordered sequence is the
    caller's job, and units sharing a version in different categories (or
    even the same one) are legitimate.
    """

    def __init__(self, migrations: Iterable[Migration] | None = None):
        self._migrations: list[Migration] = []
        if migrations is not None:
            self.add_migrations(migrations)

    def add_migration(self, migration: Migration) -> "MigrationResources":
        """
        Append a migration to the end of the sequence.

        Returns:
            self, so calls can be chained

        Raises:
            TypeError: If migration is not a Migration instance
        """
        if not isinstance(migration, Migration):
            raise TypeError(f"Expected a Migration, got {type(migration).__name__}")
        self._migrations.append(migration)
        return self

    def add_migrations(self, migrations: Iterable[Migration]) -> "MigrationResources":
        """Append several migrations, preserving their order."""
        for migration in migrations:
            self.add_migration(migration)
        return self

    def get_migration(self, index: int) -> Migration:
        """Return the migration at ``index`` (0-based)."""
        return self._migrations[index]

    @property
    def migrations(self) -> tuple[Migration, ...]:
        return tuple(self._migrations)

    def __iter__(self) -> Iterator[Migration]:
        return iter(tuple(self._migrations))

    def __len__(self) -> int:
        return len(self._migrations)

    def __repr__(self) -> str:
        return f"<MigrationResources({len(self._migrations)} migrations)>"
