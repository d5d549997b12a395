"""Tests for the CLI."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from tinydb import TinyDB

from tiny_migrator.cli import cli
from tiny_migrator.migrations import VersionStore


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> CliRunner:
    """CLI runner with the config file kept inside tmp_path."""
    monkeypatch.setenv("TINY_MIGRATOR_CONFIG", str(tmp_path / "config.toml"))
    return CliRunner()


class TestInit:
    """Tests for the init command."""

    def test_creates_version_table(self, runner: CliRunner, db_path: Path) -> None:
        """Test init bootstraps the version table."""
        result = runner.invoke(cli, ["--db", str(db_path), "init"])

        assert result.exit_code == 0, result.output
        with TinyDB(db_path) as db:
            assert "schema_version" in db.tables()

    def test_twice(self, runner: CliRunner, db_path: Path) -> None:
        """Test init can be repeated."""
        runner.invoke(cli, ["--db", str(db_path), "init"])
        result = runner.invoke(cli, ["--db", str(db_path), "init"])

        assert result.exit_code == 0, result.output


class TestMigrateCommand:
    """Tests for the migrate command."""

    def test_applies_migrations(self, runner: CliRunner, db_path: Path) -> None:
        """Test migrations from a module attribute are applied."""
        result = runner.invoke(cli, ["--db", str(db_path), "migrate", "migration_fixtures:MIGRATIONS"])

        assert result.exit_code == 0, result.output
        assert "Migrations complete: 3 applied, 0 skipped" in result.output
        with TinyDB(db_path) as db:
            items = {doc["name"]: doc["priority"] for doc in db.table("items").all()}
            store = VersionStore(db)
            assert store.current_versions() == {"data": 1, "schema": 2}
        assert items == {"first": 5, "second": 0}

    def test_rerun_skips(self, runner: CliRunner, db_path: Path) -> None:
        """Test a second run applies nothing."""
        runner.invoke(cli, ["--db", str(db_path), "migrate", "migration_fixtures:MIGRATIONS"])
        result = runner.invoke(cli, ["--db", str(db_path), "migrate", "migration_fixtures:build"])

        assert result.exit_code == 0, result.output
        assert "0 applied, 3 skipped" in result.output
        with TinyDB(db_path) as db:
            assert len(db.table("items")) == 2

    def test_failure_exit_code(self, runner: CliRunner, db_path: Path) -> None:
        """Test a failing migration exits with status 1."""
        result = runner.invoke(cli, ["--db", str(db_path), "migrate", "migration_fixtures:BROKEN"])

        assert result.exit_code == 1
        assert "disk on fire" in result.output
        with TinyDB(db_path) as db:
            assert VersionStore(db).current_version("schema") == 1

    @pytest.mark.parametrize(
        "target",
        ["migration_fixtures", "no_such_module:MIGRATIONS", "migration_fixtures:MISSING", "migration_fixtures:NOT_MIGRATIONS"],
    )
    def test_bad_target(self, runner: CliRunner, db_path: Path, target: str) -> None:
        """Test unresolvable targets are reported."""
        result = runner.invoke(cli, ["--db", str(db_path), "migrate", target])

        assert result.exit_code == 1
        assert "Loading migrations" in result.output


class TestStatusAndHistory:
    """Tests for the status and history commands."""

    def test_status_empty(self, runner: CliRunner, db_path: Path) -> None:
        """Test status on a fresh database."""
        result = runner.invoke(cli, ["--db", str(db_path), "status"])

        assert result.exit_code == 0, result.output
        assert "No migrations applied." in result.output

    def test_status_json(self, runner: CliRunner, db_path: Path) -> None:
        """Test status reports the current version per category."""
        runner.invoke(cli, ["--db", str(db_path), "migrate", "migration_fixtures:MIGRATIONS"])

        result = runner.invoke(cli, ["--db", str(db_path), "status", "--format", "json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"data": 1, "schema": 2}

    def test_status_table(self, runner: CliRunner, db_path: Path) -> None:
        """Test status renders a table."""
        runner.invoke(cli, ["--db", str(db_path), "migrate", "migration_fixtures:MIGRATIONS"])

        result = runner.invoke(cli, ["--db", str(db_path), "status"])

        assert result.exit_code == 0, result.output
        assert "Current Versions" in result.output

    def test_history_json_filtered(self, runner: CliRunner, db_path: Path) -> None:
        """Test history for a single category."""
        runner.invoke(cli, ["--db", str(db_path), "migrate", "migration_fixtures:MIGRATIONS"])

        result = runner.invoke(
            cli, ["--db", str(db_path), "history", "--category", "schema", "--format", "json"]
        )

        assert result.exit_code == 0, result.output
        records = json.loads(result.stdout)
        assert [(r["version"], r["description"]) for r in records] == [
            (1, "Create items"),
            (2, "Add priority to items"),
        ]
