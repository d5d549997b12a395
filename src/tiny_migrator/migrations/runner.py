"""Migration engine: applies pending migrations in caller order."""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from tinydb import TinyDB

from .base import Migration
from .versioner import DEFAULT_VERSION_TABLE, VersionStore

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Lifecycle of a single migrate() call."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MigrationOutcome(str, Enum):
    """What happened to one migration during a run."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    # execute() (or the version read before it) failed: nothing changed
    FAILED = "failed"
    # execute() succeeded but the version could not be recorded
    UNRECORDED = "unrecorded"


@dataclass
class UnitResult:
    """Result of processing one migration."""

    migration: Migration
    outcome: MigrationOutcome
    current_version: int | None = None
    duration: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (MigrationOutcome.APPLIED, MigrationOutcome.SKIPPED)


@dataclass
class MigrationReport:
    """Per-migration results of a run, in processing order."""

    results: list[UnitResult] = field(default_factory=list)
    # set when the migration sequence itself failed while being iterated
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and all(result.ok for result in self.results)

    @property
    def applied(self) -> list[Migration]:
        return [r.migration for r in self.results if r.outcome is MigrationOutcome.APPLIED]

    @property
    def skipped(self) -> list[Migration]:
        return [r.migration for r in self.results if r.outcome is MigrationOutcome.SKIPPED]

    @property
    def failure(self) -> UnitResult | None:
        """The result that stopped the run, or None if it succeeded."""
        for result in self.results:
            if not result.ok:
                return result
        return None

    def summary(self) -> str:
        text = f"{len(self.applied)} applied, {len(self.skipped)} skipped"
        failure = self.failure
        if failure is not None:
            text += (
                f", {failure.outcome.value} at {failure.migration.category} "
                f"v{failure.migration.version}"
            )
        if self.error is not None:
            text += f", sequence failed: {self.error}"
        return text


class MigrationEngine:
    """Runs migrations against a TinyDB database.

    The engine trusts the order it is given: it never sorts, and uses
    versions only to decide whether a migration was already applied
    (``version <= current`` skips). The first failure stops the run.
    """

    def __init__(
        self,
        db: TinyDB,
        version_store: VersionStore | None = None,
        table_name: str = DEFAULT_VERSION_TABLE,
    ):
        """
        Initialize migration engine and bootstrap its version table.

        Args:
            db: TinyDB database instance (owned by the caller)
            version_store: Optional version store, defaults to one on ``db``
            table_name: Version table name for the default store

        Raises:
            VersionStoreError: If the version table cannot be bootstrapped
        """
        self.db = db
        self.versioner = version_store if version_store is not None else VersionStore(db, table_name)
        self.state = RunState.NOT_STARTED
        self.versioner.bootstrap()

    def migrate(self, migrations: Iterable[Migration]) -> bool:
        """
        Apply every migration whose version is above the recorded one.

        Args:
            migrations: Migrations in the order they must be applied

        Returns:
            True if every migration was applied or skipped, False on the first failure
        """
        return self.run(migrations).success

    def run(self, migrations: Iterable[Migration]) -> MigrationReport:
        """
        Apply pending migrations and report what happened to each one.

        Args:
            migrations: Migrations in the order they must be applied

        Returns:
            MigrationReport; processing stops after the first failed result
        """
        report = MigrationReport()
        self.state = RunState.RUNNING
        started = time.monotonic()
        logger.debug("Start migration")

        try:
            pending = iter(migrations)
        except Exception as e:
            return self._abort_sequence(report, e, started)

        while True:
            try:
                migration = next(pending)
            except StopIteration:
                break
            except Exception as e:
                return self._abort_sequence(report, e, started)

            try:
                result = self._process(migration)
            except Exception as e:
                logger.error(
                    "Could not process %s migration %s version %s: %s",
                    getattr(migration, "category", "?"),
                    type(migration).__name__,
                    getattr(migration, "version", "?"),
                    e,
                )
                result = UnitResult(migration, MigrationOutcome.FAILED, error=str(e))
            report.results.append(result)
            if not result.ok:
                return self._abort(report, started)

        self.state = RunState.SUCCEEDED
        logger.info(
            "Migration run finished in %.2f seconds: %s", time.monotonic() - started, report.summary()
        )
        return report

    def _abort(self, report: MigrationReport, started: float) -> MigrationReport:
        self.state = RunState.FAILED
        logger.error(
            "Migration run aborted after %.2f seconds: %s", time.monotonic() - started, report.summary()
        )
        return report

    def _abort_sequence(self, report: MigrationReport, error: Exception, started: float) -> MigrationReport:
        logger.error(
            "Could not read the next migration after %d processed: %s", len(report.results), error
        )
        report.error = str(error)
        return self._abort(report, started)

    def _process(self, migration: Migration) -> UnitResult:
        category = migration.category
        version = migration.version
        description = migration.description()

        try:
            current = self.versioner.current_version(category)
        except Exception as e:
            logger.error("Could not read current %s version before migration %s: %s", category, version, e)
            return UnitResult(migration, MigrationOutcome.FAILED, error=str(e))

        logger.info("Db is version %s for type %s.", current, category)

        if version <= current:
            if version == current:
                self._check_conflict(migration, description)
            logger.warning(
                "Skipping migration [%s] with version %s since db is on version %s.",
                description,
                version,
                current,
            )
            return UnitResult(migration, MigrationOutcome.SKIPPED, current_version=current)

        logger.info("Start executing %s migration to version %s: %s", category, version, description)
        start = time.monotonic()

        try:
            migration.execute(self.db)
        except Exception as e:
            duration = time.monotonic() - start
            logger.error(
                "Failed to execute %s migration [%s] version %s: %s", category, description, version, e
            )
            logger.debug("Migration failure details", exc_info=True)
            return UnitResult(
                migration, MigrationOutcome.FAILED, current_version=current, duration=duration, error=str(e)
            )

        duration = time.monotonic() - start
        logger.info("Migration [%s] to version %s finished in %.2f seconds.", description, version, duration)

        try:
            self.versioner.mark_applied(migration)
        except Exception as e:
            logger.error(
                "Version update failed for %s migration [%s] version %s after it was applied: %s",
                category,
                description,
                version,
                e,
            )
            return UnitResult(
                migration,
                MigrationOutcome.UNRECORDED,
                current_version=current,
                duration=duration,
                error=str(e),
            )

        return UnitResult(migration, MigrationOutcome.APPLIED, current_version=current, duration=duration)

    def _check_conflict(self, migration: Migration, description: str) -> None:
        try:
            record = self.versioner.get_record(migration.category, migration.version)
        except Exception as e:
            logger.debug("Could not load record for conflict check: %s", e)
            return
        if record is not None and record.description != description:
            logger.warning(
                "Version conflict: %s v%s [%s] was already recorded as [%s].",
                migration.category,
                migration.version,
                description,
                record.description,
            )


def run_migrations(
    db: TinyDB,
    migrations: Iterable[Migration],
    table_name: str = DEFAULT_VERSION_TABLE,
) -> bool:
    """
    Convenience function to run all pending migrations.

    Args:
        db: TinyDB database instance
        migrations: Migrations in the order they must be applied
        table_name: Version table name

    Returns:
        True if the run succeeded

    Raises:
        VersionStoreError: If the version table cannot be bootstrapped
    """
    return MigrationEngine(db, table_name=table_name).migrate(migrations)
