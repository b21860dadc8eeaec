"""
Database Adapter Interfaces (P1).

Transaction management and storage errors shared by every repository.
Implementations: SQLite (now), Postgres (future).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from src.components.signup.ports import SignupRepoPort


# -----------------------------------------------------------------------------
# Unit of Work (Transaction Management)
# -----------------------------------------------------------------------------


class UnitOfWorkPort(Protocol):
    """
    Unit of Work pattern for transaction management.

    Usage:
        with uow:
            starter.run(inp, uow.signups)

    Leaving the block normally commits; leaving it with an exception rolls
    back and lets the exception propagate.
    """

    signups: SignupRepoPort

    def __enter__(self) -> UnitOfWorkPort:
        """Enter transaction context."""
        ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit transaction context (commit, or rollback on exception)."""
        ...

    def commit(self) -> None:
        """Commit the transaction."""
        ...

    def rollback(self) -> None:
        """Rollback the transaction."""
        ...


# --- Error Types ---


class StorageError(Exception):
    """Base exception for storage failures."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage error during {operation}: {reason}")


class DuplicateSignupError(StorageError):
    """Insert rejected by the email or token unique constraint."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("insert", f"signup for '{email}' already exists")
