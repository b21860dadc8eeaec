"""
Signup component ports.

Protocol interfaces for signup mediator dependencies.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.components.signup.models import Signup
from src.core.ports.mail import MailAPIPort
from src.core.ports.render import RendererPort


class SignupRepoPort(Protocol):
    """
    Signup repository interface.

    Calls run on the connection of the active unit of work, so reads observe
    writes made earlier in the same transaction.
    """

    def get_by_email(self, email: str) -> Signup | None:
        """Get signup by exact (case-sensitive) email."""
        ...

    def get_by_token(self, token: str) -> Signup | None:
        """Get signup by confirmation token."""
        ...

    def create(self, signup: Signup) -> Signup:
        """
        Insert a new signup row and return it with its id.

        Raises:
            DuplicateSignupError: If the email or token already exists
            StorageError: On any other database failure
        """
        ...

    def record_resend(self, signup_id: int, last_sent_at: datetime, num_attempts: int) -> None:
        """Update resend bookkeeping."""
        ...

    def mark_completed(self, signup_id: int, completed_at: datetime) -> None:
        """Set completed_at."""
        ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...


__all__ = [
    "MailAPIPort",
    "RendererPort",
    "SignupRepoPort",
    "TimePort",
]
