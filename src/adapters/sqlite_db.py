"""
SQLite Database Adapter (P1 Implementation).

Implements the signup repository and unit of work using SQLite.
Designed to be Postgres-compatible (uses standard SQL patterns).

Timestamps are stored as ISO-8601 strings in UTC.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from typing import Any

from src.components.signup.models import Signup
from src.core.ports.db import DuplicateSignupError, StorageError

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def parse_dt(s: str | None) -> datetime | None:
    """Parse ISO datetime string (naive values are treated as UTC)."""
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def format_dt(dt: datetime | None) -> str | None:
    """Format datetime as ISO string in UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


# Seconds a connection waits for another transaction's write lock. A start holds
# its lock while the confirmation mail goes out, so this has to outlast the
# mail client's request timeout (mailgun.DEFAULT_TIMEOUT_SECONDS).
BUSY_TIMEOUT_SECONDS = 30.0


def is_unique_violation(e: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(e)


def connect(db_path: str, timeout: float = BUSY_TIMEOUT_SECONDS) -> sqlite3.Connection:
    """Open a connection configured the way every repo expects."""
    conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn
        return connect(self.db_path)

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None


# -----------------------------------------------------------------------------
# Signup Repository
# -----------------------------------------------------------------------------


class SQLiteSignupRepo(SQLiteRepoBase):
    """SQLite implementation of SignupRepoPort."""

    def get_by_email(self, email: str) -> Signup | None:
        return self._get_one("SELECT * FROM signup WHERE email = ?", (email,))

    def get_by_token(self, token: str) -> Signup | None:
        return self._get_one("SELECT * FROM signup WHERE token = ?", (token,))

    def create(self, signup: Signup) -> Signup:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                INSERT INTO signup (
                    email, token, created_at, last_sent_at, num_attempts, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    signup.email,
                    signup.token,
                    format_dt(signup.created_at),
                    format_dt(signup.last_sent_at),
                    signup.num_attempts,
                    format_dt(signup.completed_at),
                ),
            )
            if self._should_close():
                conn.commit()
            signup.id = cursor.lastrowid
            return signup
        except sqlite3.IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateSignupError(signup.email) from e
            raise StorageError("insert", str(e)) from e
        except sqlite3.Error as e:
            raise StorageError("insert", str(e)) from e
        finally:
            if self._should_close():
                conn.close()

    def record_resend(self, signup_id: int, last_sent_at: datetime, num_attempts: int) -> None:
        self._execute(
            "update",
            """
            UPDATE signup
            SET last_sent_at = ?, num_attempts = ?
            WHERE id = ?
            """,
            (format_dt(last_sent_at), num_attempts, signup_id),
        )

    def mark_completed(self, signup_id: int, completed_at: datetime) -> None:
        self._execute(
            "update",
            "UPDATE signup SET completed_at = ? WHERE id = ?",
            (format_dt(completed_at), signup_id),
        )

    def count(self) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT COUNT(*) AS n FROM signup").fetchone()
            return int(row["n"]) if row else 0
        except sqlite3.Error as e:
            raise StorageError("count", str(e)) from e
        finally:
            if self._should_close():
                conn.close()

    def _get_one(self, query: str, params: tuple[Any, ...]) -> Signup | None:
        conn = self._get_conn()
        try:
            row = conn.execute(query, params).fetchone()
            return self._map_row(row) if row else None
        except sqlite3.Error as e:
            raise StorageError("lookup", str(e)) from e
        finally:
            if self._should_close():
                conn.close()

    def _execute(self, operation: str, query: str, params: tuple[Any, ...]) -> None:
        conn = self._get_conn()
        try:
            conn.execute(query, params)
            if self._should_close():
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(operation, str(e)) from e
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> Signup:
        created_at = parse_dt(row["created_at"])
        last_sent_at = parse_dt(row["last_sent_at"])
        assert created_at is not None and last_sent_at is not None
        return Signup(
            id=row["id"],
            email=row["email"],
            token=row["token"],
            created_at=created_at,
            last_sent_at=last_sent_at,
            num_attempts=row["num_attempts"],
            completed_at=parse_dt(row["completed_at"]),
        )


# -----------------------------------------------------------------------------
# Unit of Work
# -----------------------------------------------------------------------------


class SQLiteUnitOfWork:
    """
    SQLite Unit of Work implementation.

    Provides transaction management and access to the signup repository.
    Uses a shared connection for all operations within a transaction:
    commits when the block exits normally, rolls back when it raises.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

        # Lazy-initialized repositories
        self._signups: SQLiteSignupRepo | None = None

    def __enter__(self) -> SQLiteUnitOfWork:
        try:
            self._conn = connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageError("begin", str(e)) from e
        self._signups = None
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        try:
            if exc_type is not None:
                self.rollback()
            else:
                self.commit()
        finally:
            if self._conn:
                self._conn.close()
                self._conn = None
            self._signups = None

    def commit(self) -> None:
        if self._conn:
            try:
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageError("commit", str(e)) from e

    def rollback(self) -> None:
        if self._conn:
            try:
                self._conn.rollback()
            except sqlite3.Error as e:
                # The original exception is already propagating.
                logger.error("Error rolling back: %s", e)

    @property
    def signups(self) -> SQLiteSignupRepo:
        if self._conn is None:
            raise RuntimeError("Unit of work is not active; use it as a context manager")
        if self._signups is None:
            self._signups = SQLiteSignupRepo(self.db_path, self._conn)
        return self._signups
