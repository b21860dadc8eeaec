"""
Mailgun Mail Client (MailAPIPort Implementation).

Talks to the Mailgun HTTP API with httpx.

- add_member: POST /lists/{list}/members with upsert, so repeating it for an
  existing member is a no-op
- send_message: POST /{domain}/messages with plain + HTML bodies

Non-2xx responses and transport errors become MailSendError. The API key is
never logged.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from src.core.ports.mail import MailSendError, SendMessageParams

logger = logging.getLogger(__name__)

MAILGUN_API_BASE = "https://api.mailgun.net/v3"
# Keep below sqlite_db.BUSY_TIMEOUT_SECONDS: a start holds the database write
# lock while its confirmation message is being sent.
DEFAULT_TIMEOUT_SECONDS = 10.0

# Member vars tagging where a list member came from.
MEMBER_SOURCE_VAR = "passages-signup"
MEMBER_TIMESTAMP_VAR = "passages-signup-timestamp"


class MailgunClient:
    """
    MailAPIPort implementation backed by Mailgun.

    Accepts an httpx.Client for tests (httpx.MockTransport) or custom
    transports; otherwise builds one with basic auth and a timeout.
    """

    def __init__(
        self,
        mail_domain: str,
        api_key: str,
        *,
        base_url: str = MAILGUN_API_BASE,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("Mailgun API key is required")
        if not mail_domain:
            raise ValueError("Mailgun mail domain is required")

        self.mail_domain = mail_domain
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(auth=("api", api_key), timeout=timeout)

    def add_member(self, list_address: str, email: str) -> None:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S%z")
        data = {
            "address": email,
            "subscribed": "yes",
            "upsert": "yes",
            "vars": json.dumps({MEMBER_SOURCE_VAR: True, MEMBER_TIMESTAMP_VAR: timestamp}),
        }
        self._post("add_member", f"/lists/{list_address}/members", data)

    def send_message(self, params: SendMessageParams) -> None:
        params.validate()

        data = {
            "from": params.sender,
            "to": params.recipient,
            "subject": params.subject,
            "text": params.contents_plain,
            "html": params.contents_html,
            "h:Reply-To": params.reply_to,
        }
        body = self._post("send_message", f"/{self.mail_domain}/messages", data)
        logger.info('Sent to: %s (response: "%s")', params.recipient, body.get("message", ""))

    def close(self) -> None:
        self._client.close()

    def _post(self, operation: str, path: str, data: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.post(url, data=data)
        except httpx.HTTPError as e:
            logger.error("Mailgun %s transport error: %s", operation, e)
            raise MailSendError(operation, str(e)) from e

        if response.status_code >= 400:
            message = _extract_message(response) or "(empty)"
            logger.error(
                "Mailgun %s failed with status %s: %s",
                operation,
                response.status_code,
                message,
            )
            raise MailSendError(operation, message, status_code=response.status_code)

        try:
            parsed = response.json()
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}


def _extract_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a Mailgun error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text.strip()
