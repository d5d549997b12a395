"""Base classes for database migrations."""

import copy
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable

from tinydb import TinyDB
from tinydb.queries import QueryLike

Document = dict[str, Any]

_READ_ONLY_ATTRIBUTES = frozenset({"category", "version"})


class MigrationType(str, Enum):
    """Built-in migration categories, each with its own version lineage."""

    SCHEMA = "schema"
    DATA = "data"


class MigrationError(Exception):
    """
    Raised when a migration fails to apply its change.

    Concrete migrations raise this from execute() with a message describing
    what went wrong; the helpers on SchemaMigration and DataMigration wrap
    storage and document errors in it.
    """

    pass


def category_name(category: str | MigrationType) -> str:
    """Normalize a category (enum member or plain string) to its string key."""
    if isinstance(category, Enum):
        return str(category.value)
    return str(category)


class Migration(ABC):
    """Base class for database migrations.

    Subclasses declare ``category`` and ``version`` as class attributes (or
    pass them to the constructor), and implement description() and execute().
    Both attributes are read-only once the migration is constructed.
    """

    category: str
    version: int

    def __init__(self, category: str | MigrationType | None = None, version: int | None = None):
        resolved_category = category if category is not None else getattr(self, "category", None)
        resolved_version = version if version is not None else getattr(self, "version", None)

        if not resolved_category:
            raise ValueError(f"{type(self).__name__} has no category")
        if not isinstance(resolved_version, int) or isinstance(resolved_version, bool):
            raise ValueError(f"{type(self).__name__} version must be an int, got {resolved_version!r}")
        if resolved_version < 1:
            raise ValueError(f"Migration version must be >= 1, got {resolved_version}")

        object.__setattr__(self, "category", category_name(resolved_category))
        object.__setattr__(self, "version", resolved_version)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _READ_ONLY_ATTRIBUTES:
            raise AttributeError(f"Migration attribute '{name}' is read-only")
        super().__setattr__(name, value)

    @abstractmethod
    def description(self) -> str:
        """Return a human-readable description of this migration."""
        pass

    @abstractmethod
    def execute(self, db: TinyDB) -> None:
        """
        Perform the migration on the database.

        Args:
            db: TinyDB database instance

        Raises:
            MigrationError: If the change cannot be applied
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.category} v{self.version}, {self.description()!r})>"


class SchemaMigration(Migration):
    """Migration that changes the shape of stored documents."""

    category = MigrationType.SCHEMA.value

    def add_field(self, db: TinyDB, table: str, field: str, default: Any) -> None:
        """Add ``field`` with ``default`` to every document that lacks it."""

        def _add(doc: Document) -> None:
            doc.setdefault(field, default)

        self._update_all(db, table, _add, f"add field '{field}' to '{table}'")

    def rename_field(self, db: TinyDB, table: str, old: str, new: str) -> None:
        """Rename ``old`` to ``new`` in every document that has it."""

        def _rename(doc: Document) -> None:
            if old in doc:
                doc[new] = doc.pop(old)

        self._update_all(db, table, _rename, f"rename field '{old}' to '{new}' in '{table}'")

    def drop_field(self, db: TinyDB, table: str, field: str) -> None:
        """Remove ``field`` from every document."""

        def _drop(doc: Document) -> None:
            doc.pop(field, None)

        self._update_all(db, table, _drop, f"drop field '{field}' from '{table}'")

    @staticmethod
    def _update_all(db: TinyDB, table: str, operation: Callable[[Document], None], what: str) -> None:
        try:
            db.table(table).update(operation)
        except (OSError, ValueError, TypeError) as e:
            raise MigrationError(f"Failed to {what}: {e}") from e


class DataMigration(Migration):
    """Migration that rewrites the contents of stored documents."""

    category = MigrationType.DATA.value

    def transform(
        self,
        db: TinyDB,
        table: str,
        fn: Callable[[Document], Document],
        cond: QueryLike | None = None,
    ) -> None:
        """
        Replace each document (optionally only those matching ``cond``) with fn(doc).

        Every replacement is computed before anything is written, so a failing
        ``fn`` leaves the table untouched.

        Args:
            db: TinyDB database instance
            table: Table name
            fn: Receives a copy of the document, returns the new document
            cond: Optional TinyDB query restricting which documents change

        Raises:
            MigrationError: If fn fails or returns a non-mapping, or the storage fails
        """
        docs_table = db.table(table)

        try:
            docs = docs_table.search(cond) if cond is not None else docs_table.all()
            replacements: list[tuple[int, Document]] = []
            for doc in docs:
                new_doc = fn(copy.deepcopy(dict(doc)))
                if not isinstance(new_doc, Mapping):
                    raise MigrationError(
                        f"Transform of document {doc.doc_id} in '{table}' returned "
                        f"{type(new_doc).__name__}, expected a mapping"
                    )
                replacements.append((doc.doc_id, dict(new_doc)))

            for doc_id, new_doc in replacements:
                docs_table.update(_replace_with(new_doc), doc_ids=[doc_id])
        except (OSError, ValueError, TypeError, KeyError) as e:
            raise MigrationError(f"Failed to transform documents in '{table}': {e}") from e


def _replace_with(new_doc: Document) -> Callable[[Document], None]:
    def _replace(doc: Document) -> None:
        doc.clear()
        doc.update(new_doc)

    return _replace
