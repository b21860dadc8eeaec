"""
Mailing Service Interface.

Protocol-based interface for the mailing provider used by the signup flow.
The provider owns list membership and message delivery; we only ever need
two operations from it.

Implementation strategies:
1. FakeMailClient: Records calls in memory (dev/test)
2. MailgunClient: Talks to the Mailgun HTTP API (production)

Both implement the same MailAPIPort interface.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Protocol


@dataclass(frozen=True)
class SendMessageParams:
    """
    A single transactional message.

    Every field is required; adapters call validate() before sending.
    """

    recipient: str
    subject: str
    contents_plain: str
    contents_html: str
    reply_to: str
    list_address: str
    newsletter_name: str

    def validate(self) -> None:
        """Raise MailValidationError if any field is empty."""
        missing = [f.name for f in fields(self) if not getattr(self, f.name)]
        if missing:
            raise MailValidationError(f"Missing required message fields: {', '.join(missing)}")

    @property
    def sender(self) -> str:
        """From header: newsletter name at the list address."""
        return f"{self.newsletter_name} <{self.list_address}>"


class MailAPIPort(Protocol):
    """
    Mailing service interface.

    Implementations:
    - FakeMailClient: records calls without network I/O
    - MailgunClient: sends via Mailgun
    """

    def add_member(self, list_address: str, email: str) -> None:
        """
        Add a member to a mailing list.

        Adding an address that is already a member is a no-op at the
        provider, so callers may repeat this safely.

        Raises:
            MailError: If the provider rejects the request
        """
        ...

    def send_message(self, params: SendMessageParams) -> None:
        """
        Send a message to a single recipient.

        Raises:
            MailValidationError: If params are incomplete
            MailError: If the provider rejects the request
        """
        ...


# --- Error Types ---


class MailError(Exception):
    """Base exception for mailing service errors."""

    pass


class MailValidationError(MailError):
    """Message parameters are incomplete."""

    pass


class MailSendError(MailError):
    """The provider failed or rejected the request."""

    def __init__(
        self,
        operation: str,
        error: str,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.error = error
        self.status_code = status_code
        if status_code is not None:
            message = f"Got unexpected status code {status_code} from mail provider during {operation}. Message: {error}"
        else:
            message = f"Mail provider error during {operation}: {error}"
        super().__init__(message)
