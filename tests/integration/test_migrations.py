import sqlite3
from pathlib import Path

import pytest

from src.adapters.sqlite.migrator import SQLiteMigrator

MIGRATIONS_DIR = str(Path(__file__).resolve().parents[2] / "migrations")


@pytest.fixture
def temp_db_path(tmp_path):
    return str(tmp_path / "test_db.sqlite")


@pytest.fixture
def migrations_dir():
    # Real directory, so the actual SQL gets exercised too.
    return MIGRATIONS_DIR


def test_migrator_creates_migration_table(temp_db_path, migrations_dir):
    migrator = SQLiteMigrator(temp_db_path, migrations_dir)
    migrator.run_migrations()

    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='_migrations'"
    )
    assert cursor.fetchone() is not None
    conn.close()


def test_migrator_applies_signup_schema(temp_db_path, migrations_dir):
    migrator = SQLiteMigrator(temp_db_path, migrations_dir)
    applied = migrator.run_migrations()

    assert applied == ["001_signup.sql"]

    conn = sqlite3.connect(temp_db_path)

    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='signup'")
    assert cursor.fetchone() is not None

    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name='idx_signup_last_sent_at'"
    )
    assert cursor.fetchone() is not None

    cursor = conn.execute("SELECT filename FROM _migrations WHERE filename='001_signup.sql'")
    assert cursor.fetchone() is not None

    conn.close()


def test_migrator_is_idempotent(temp_db_path, migrations_dir):
    migrator = SQLiteMigrator(temp_db_path, migrations_dir)

    # Run twice
    migrator.run_migrations()
    assert migrator.run_migrations() == []

    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute("SELECT count(*) FROM _migrations WHERE filename='001_signup.sql'")
    assert cursor.fetchone()[0] == 1
    conn.close()


def test_down_section_is_not_applied(temp_db_path, migrations_dir):
    SQLiteMigrator(temp_db_path, migrations_dir).run_migrations()

    conn = sqlite3.connect(temp_db_path)
    # The Down part drops the table; it must survive the Up run.
    cursor = conn.execute("SELECT count(*) FROM signup")
    assert cursor.fetchone()[0] == 0
    conn.close()


def test_failed_migration_raises(tmp_path, temp_db_path):
    bad_dir = tmp_path / "bad_migrations"
    bad_dir.mkdir()
    (bad_dir / "001_broken.sql").write_text("CREATE TABLE (;")

    with pytest.raises(RuntimeError, match="001_broken.sql"):
        SQLiteMigrator(temp_db_path, str(bad_dir)).run_migrations()


def test_signup_constraints(temp_db_path, migrations_dir):
    SQLiteMigrator(temp_db_path, migrations_dir).run_migrations()

    conn = sqlite3.connect(temp_db_path)
    insert = (
        "INSERT INTO signup (email, token, created_at, last_sent_at) "
        "VALUES (?, ?, '2024-01-01T00:00:00+00:00', '2024-01-01T00:00:00+00:00')"
    )
    conn.execute(insert, ("foo@example.com", "t1"))

    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(insert, ("foo@example.com", "t2"))
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(insert, ("bar@example.com", "t1"))
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(insert, ("x" * 501, "t3"))

    row = conn.execute("SELECT num_attempts, completed_at FROM signup").fetchone()
    assert row == (1, None)
    conn.close()
