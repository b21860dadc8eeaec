"""
Fake Mail Client (MailAPIPort Implementation).

Records mailing-service calls instead of reaching out to the provider.
Used for local development and testing.

Key behaviors:
- Validates message params the same way the real client does
- Stores added members and sent messages in memory for test assertions
- Logs each call
- Can be told to fail, to exercise rollback paths
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from src.core.ports.mail import MailSendError, SendMessageParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberAdded:
    """Record of a list membership add."""

    list_address: str
    email: str


@dataclass(frozen=True)
class MessageSent:
    """Record of a sent message for test assertions."""

    recipient: str
    subject: str
    contents_plain: str
    contents_html: str
    reply_to: str
    sender: str
    logged_at: datetime


@dataclass
class FakeMailClient:
    """
    Mail client that records instead of sending.

    Implements MailAPIPort protocol.
    """

    members_added: list[MemberAdded] = field(default_factory=list)
    messages_sent: list[MessageSent] = field(default_factory=list)

    # Failure injection
    fail_add_member: bool = False
    fail_send_message: bool = False

    # Configuration
    log_level: int = logging.INFO
    body_preview_length: int = 100  # Max chars of plain body to log

    def add_member(self, list_address: str, email: str) -> None:
        if self.fail_add_member:
            raise MailSendError("add_member", "simulated failure")

        self.members_added.append(MemberAdded(list_address=list_address, email=email))
        logger.log(self.log_level, "MAIL (fake): added %s to %s", email, list_address)

    def send_message(self, params: SendMessageParams) -> None:
        params.validate()

        if self.fail_send_message:
            raise MailSendError("send_message", "simulated failure")

        self.messages_sent.append(
            MessageSent(
                recipient=params.recipient,
                subject=params.subject,
                contents_plain=params.contents_plain,
                contents_html=params.contents_html,
                reply_to=params.reply_to,
                sender=params.sender,
                logged_at=datetime.now(UTC),
            )
        )

        preview = params.contents_plain[: self.body_preview_length]
        if len(params.contents_plain) > self.body_preview_length:
            preview += "..."
        logger.log(
            self.log_level,
            "MAIL (fake): To=%s, Subject=%s, From=%s, Body=%s",
            params.recipient,
            params.subject,
            params.sender,
            preview,
        )

    # --- Test Helper Methods ---

    def get_last_message(self) -> MessageSent | None:
        """Get the most recently sent message."""
        return self.messages_sent[-1] if self.messages_sent else None

    def get_messages_to(self, recipient: str) -> list[MessageSent]:
        """Get all messages sent to a specific recipient."""
        return [m for m in self.messages_sent if m.recipient == recipient]

    def clear(self) -> None:
        """Clear all recorded calls (for test isolation)."""
        self.members_added.clear()
        self.messages_sent.clear()

    @property
    def message_count(self) -> int:
        return len(self.messages_sent)
