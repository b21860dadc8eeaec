"""
Signup component models.

Data models for the double opt-in newsletter signup flow.

Lifecycle of a Signup row:
- created on the first start for an email (num_attempts = 1)
- resent: last_sent_at bumped, num_attempts bumped while not completed
- completed: completed_at set by finish (may be set again on repeat finish)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

# --- Entity ---


@dataclass
class Signup:
    """
    Signup entity, one row per email address.

    The token is the secret carried in the confirmation link; whoever holds
    it can finish the signup.
    """

    email: str
    token: str
    created_at: datetime
    last_sent_at: datetime
    num_attempts: int = 1
    completed_at: datetime | None = None
    id: int | None = None  # Assigned by the store on insert

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


# --- Outcomes ---


class StartOutcome(Enum):
    """Mutually exclusive results of starting a signup."""

    NEW_SIGNUP = "new_signup"
    CONFIRMATION_RESENT = "confirmation_resent"
    CONFIRMATION_RATE_LIMITED = "confirmation_rate_limited"
    MAX_NUM_ATTEMPTS = "max_num_attempts"


class FinishOutcome(Enum):
    """Mutually exclusive results of finishing a signup."""

    SIGNUP_FINISHED = "signup_finished"
    TOKEN_NOT_FOUND = "token_not_found"


# --- Input Models ---


@dataclass(frozen=True)
class StartSignupInput:
    """Input for starting a signup."""

    email: str


@dataclass(frozen=True)
class FinishSignupInput:
    """Input for finishing a signup."""

    token: str


# --- Output Models ---


@dataclass(frozen=True)
class StartSignupOutput:
    """Output from starting a signup."""

    outcome: StartOutcome
    email: str
    num_attempts: int

    @property
    def sent_message(self) -> bool:
        """Whether a confirmation message went out on this run."""
        return self.outcome in (StartOutcome.NEW_SIGNUP, StartOutcome.CONFIRMATION_RESENT)


@dataclass(frozen=True)
class FinishSignupOutput:
    """Output from finishing a signup."""

    outcome: FinishOutcome
    email: str | None = None  # Set when the signup was finished


@dataclass(frozen=True)
class ConfirmationMessage:
    """Rendered confirmation email."""

    subject: str
    contents_plain: str
    contents_html: str  # CSS already inlined


# --- Configuration ---

DEFAULT_MAX_NUM_SIGNUP_ATTEMPTS = 3
DEFAULT_NO_RESEND_HOURS = 24


@dataclass(frozen=True)
class SignupConfig:
    """Signup mediator configuration."""

    list_address: str
    reply_to_address: str
    newsletter_name: str
    public_url: str
    max_num_attempts: int = DEFAULT_MAX_NUM_SIGNUP_ATTEMPTS
    no_resend_hours: int = DEFAULT_NO_RESEND_HOURS

    @property
    def resend_cooldown(self) -> timedelta:
        return timedelta(hours=self.no_resend_hours)


# --- Error Types ---


class SignupError(Exception):
    """Base signup error."""

    pass


class InvalidEmailError(SignupError):
    """Email failed the syntactic check; nothing was stored or sent."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("That doesn't look like a valid email address")


class SignupFailedError(SignupError):
    """
    Infrastructure failure while running a mediator.

    Always chained to the underlying adapter exception. The unit of work
    rolls back when this propagates out of it.
    """

    retryable = False

    def __init__(self, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"Signup failed during {stage}: {reason}")


class SignupConflictError(SignupFailedError):
    """A concurrent start inserted the same email first."""

    retryable = True

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("insert", f"concurrent signup for '{email}'")
