"""Durable per-category version ledger stored in a TinyDB table."""

import logging
from datetime import UTC, datetime

from pydantic import BaseModel, Field
from tinydb import Query, TinyDB
from tinydb.table import Table

from .base import Migration, MigrationType, category_name

logger = logging.getLogger(__name__)

DEFAULT_VERSION_TABLE = "schema_version"

# Version reported for a category that has never been recorded.
INITIAL_VERSION = 0


class VersionStoreError(Exception):
    """
    Raised when the version ledger cannot be created, read or written.

    Wraps the underlying storage error (I/O, permissions, corrupt JSON).
    """

    pass


class VersionRecord(BaseModel):
    """One applied migration, as stored in the version table."""

    category: str
    version: int = Field(ge=1)
    applied_at: datetime
    description: str


class VersionStore:
    """Tracks the highest applied version per migration category.

    Every successfully applied migration appends one record; the current
    version of a category is the maximum recorded version, so it can only
    move forward.
    """

    def __init__(self, db: TinyDB, table_name: str = DEFAULT_VERSION_TABLE):
        """
        Initialize version store.

        Args:
            db: TinyDB database instance (owned by the caller)
            table_name: Name of the table holding version records
        """
        self.db = db
        self.table_name = table_name

    @property
    def table(self) -> Table:
        return self.db.table(self.table_name)

    def bootstrap(self) -> None:
        """
        Create the version table if it does not exist yet.

        Safe to call on every start: existing records are never touched.

        Raises:
            VersionStoreError: If the storage cannot be read or written
        """
        try:
            data = self.db.storage.read() or {}
            if self.table_name not in data:
                data[self.table_name] = {}
                self.db.storage.write(data)
                logger.debug("Created version table '%s'", self.table_name)
        except (OSError, ValueError, TypeError) as e:
            raise VersionStoreError(f"Could not bootstrap version table '{self.table_name}': {e}") from e

        self.table.clear_cache()

    def current_version(self, category: str | MigrationType) -> int:
        """
        Get current version for a category.

        Returns:
            Highest recorded version, or 0 if the category was never recorded

        Raises:
            VersionStoreError: If the storage cannot be read
        """
        records = self._search(category_name(category))
        if not records:
            return INITIAL_VERSION
        return max(record.version for record in records)

    def mark_applied(self, migration: Migration) -> VersionRecord:
        """
        Record that ``migration.version`` is now current for its category.

        Must only be called after the migration's change has completed.

        Returns:
            The stored record

        Raises:
            VersionStoreError: If the record cannot be written, or the version
                is lower than the one already recorded
        """
        current = self.current_version(migration.category)
        if migration.version < current:
            raise VersionStoreError(
                f"Refusing to record {migration.category} v{migration.version}: "
                f"ledger is already at v{current}"
            )

        record = VersionRecord(
            category=migration.category,
            version=migration.version,
            applied_at=datetime.now(UTC),
            description=migration.description(),
        )
        try:
            self.table.insert(record.model_dump(mode="json"))
        except (OSError, ValueError, TypeError) as e:
            raise VersionStoreError(
                f"Could not record {migration.category} v{migration.version}: {e}"
            ) from e
        return record

    def get_record(self, category: str | MigrationType, version: int) -> VersionRecord | None:
        """Return the record for an exact category/version, if any."""
        for record in self._search(category_name(category)):
            if record.version == version:
                return record
        return None

    def latest(self, category: str | MigrationType) -> VersionRecord | None:
        """Return the record holding the current version of a category."""
        records = self._search(category_name(category))
        if not records:
            return None
        return max(records, key=lambda record: record.version)

    def history(self, category: str | MigrationType | None = None) -> list[VersionRecord]:
        """
        List applied records, ordered by category then version.

        Args:
            category: Optional category to filter on
        """
        if category is None:
            records = self._all()
        else:
            records = self._search(category_name(category))
        return sorted(records, key=lambda record: (record.category, record.version))

    def categories(self) -> list[str]:
        """Return every category with at least one record."""
        return sorted({record.category for record in self._all()})

    def current_versions(self) -> dict[str, int]:
        """Return the current version of every recorded category."""
        versions: dict[str, int] = {}
        for record in self._all():
            versions[record.category] = max(versions.get(record.category, INITIAL_VERSION), record.version)
        return dict(sorted(versions.items()))

    def _search(self, category: str) -> list[VersionRecord]:
        # Always hit storage so writes from another process are visible.
        self.table.clear_cache()
        try:
            docs = self.table.search(Query().category == category)
            return [VersionRecord.model_validate(doc) for doc in docs]
        except (OSError, ValueError, TypeError) as e:
            raise VersionStoreError(f"Could not read version table '{self.table_name}': {e}") from e

    def _all(self) -> list[VersionRecord]:
        try:
            return [VersionRecord.model_validate(doc) for doc in self.table.all()]
        except (OSError, ValueError, TypeError) as e:
            raise VersionStoreError(f"Could not read version table '{self.table_name}': {e}") from e
