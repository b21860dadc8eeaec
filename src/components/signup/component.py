"""
Signup component.

Functional core for the double opt-in newsletter signup flow, plus the two
mediators that drive it inside a single transaction.

Key behaviors:
- Syntactic email check before anything touches the database
- One row per email; the token from that row is reused on every resend
- Resends suppressed within a cooldown window (24h)
- Unconfirmed addresses get at most max_num_attempts (3) messages
- Completed signups can still be resent; unsubscribing happens at the
  mailing provider, so local state cannot tell us the address left the list
- Finishing is idempotent: it re-sets completed_at and re-adds the member

Invariants:
- Policy outcomes (rate limited, max attempts, token not found) are results,
  never exceptions
- Infrastructure failures raise SignupFailedError chained to their cause, so
  the enclosing unit of work rolls back
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from src.components.signup.models import (
    ConfirmationMessage,
    FinishOutcome,
    FinishSignupInput,
    FinishSignupOutput,
    InvalidEmailError,
    Signup,
    SignupConfig,
    SignupConflictError,
    SignupFailedError,
    StartOutcome,
    StartSignupInput,
    StartSignupOutput,
)
from src.components.signup.ports import (
    MailAPIPort,
    RendererPort,
    SignupRepoPort,
    TimePort,
)
from src.core.ports.db import DuplicateSignupError, StorageError
from src.core.ports.mail import MailError, SendMessageParams
from src.core.ports.render import TemplateRenderError

logger = logging.getLogger(__name__)

# A regex won't catch every undeliverable address; the mailing provider does
# the rest of that work for us.
EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)

CONFIRM_HTML_TEMPLATE = "messages/confirm.html"
CONFIRM_PLAIN_TEMPLATE = "messages/confirm_plain.txt"

TokenFactory = Callable[[], str]


# --- Pure Functions (Functional Core) ---


def validate_email(email: str) -> bool:
    """Single-pass syntactic check. Does not guarantee deliverability."""
    return bool(email) and EMAIL_REGEX.match(email) is not None


def is_rate_limited(last_sent_at: datetime, now: datetime, cooldown: timedelta) -> bool:
    """True if the last confirmation went out less than `cooldown` ago."""
    return last_sent_at + cooldown > now


def has_reached_max_attempts(
    num_attempts: int,
    completed_at: datetime | None,
    max_num_attempts: int,
) -> bool:
    """True if an unconfirmed signup has used up its confirmation messages."""
    if completed_at is not None:
        return False
    return num_attempts >= max_num_attempts


def generate_token() -> str:
    """Generate an opaque confirmation token."""
    return str(uuid4())


def build_confirmation_url(public_url: str, token: str) -> str:
    """
    Build the confirmation URL for email.

    Args:
        public_url: Public base URL of the signup site
        token: Confirmation token

    Returns:
        Full confirmation URL
    """
    return f"{public_url.rstrip('/')}/confirm/{token}"


def build_confirmation_message(
    renderer: RendererPort,
    config: SignupConfig,
    token: str,
) -> ConfirmationMessage:
    """
    Render the plain and HTML confirmation bodies for a token.

    CSS is inlined into the HTML body because most mail clients ignore
    stylesheets. Inlining failures propagate; an un-inlined body is never sent.

    Raises:
        TemplateRenderError: If rendering or inlining fails
    """
    locals: dict[str, Any] = {
        "token": token,
        "confirm_url": build_confirmation_url(config.public_url, token),
    }

    contents_plain = renderer.render(CONFIRM_PLAIN_TEMPLATE, locals).strip()
    contents_html = renderer.inline_css(renderer.render(CONFIRM_HTML_TEMPLATE, locals))

    return ConfirmationMessage(
        subject=f"{config.newsletter_name} signup confirmation",
        contents_plain=contents_plain,
        contents_html=contents_html,
    )


# --- Mediators ---


class SignupStarter:
    """
    Takes an email and begins the signup process for it.

    Usually that means storing a signup row and mailing a secret link that
    finishes it. An address that already started may be sent the link again,
    but only outside the cooldown window and while under the attempt cap.
    """

    def __init__(
        self,
        *,
        mail_api: MailAPIPort,
        renderer: RendererPort,
        config: SignupConfig,
        clock: TimePort,
        token_factory: TokenFactory | None = None,
    ) -> None:
        self.mail_api = mail_api
        self.renderer = renderer
        self.config = config
        self._clock = clock
        self._token_factory = token_factory or generate_token

    def run(self, inp: StartSignupInput, repo: SignupRepoPort) -> StartSignupOutput:
        """
        Run inside the caller's unit of work.

        Raises:
            InvalidEmailError: If the email fails the syntactic check
            SignupConflictError: If a concurrent start inserted the email first
            SignupFailedError: On storage, render or mail failures
        """
        logger.info("SignupStarter running")

        email = inp.email
        if not validate_email(email):
            raise InvalidEmailError(email)

        try:
            existing = repo.get_by_email(email)
        except StorageError as e:
            raise SignupFailedError("lookup", str(e)) from e

        now = self._clock.now_utc()

        if existing is None:
            return self._start_new(repo, email, now)

        if has_reached_max_attempts(
            existing.num_attempts, existing.completed_at, self.config.max_num_attempts
        ):
            logger.info("Too many signup attempts for email: %s", email)
            return StartSignupOutput(
                outcome=StartOutcome.MAX_NUM_ATTEMPTS,
                email=email,
                num_attempts=existing.num_attempts,
            )

        # Limits how often a malicious submitter can mail an innocent address.
        if is_rate_limited(existing.last_sent_at, now, self.config.resend_cooldown):
            logger.info("Last send was too soon so not re-sending confirmation: %s", email)
            return StartSignupOutput(
                outcome=StartOutcome.CONFIRMATION_RATE_LIMITED,
                email=email,
                num_attempts=existing.num_attempts,
            )

        num_attempts = existing.num_attempts
        if not existing.is_completed:
            num_attempts += 1

        assert existing.id is not None
        try:
            repo.record_resend(existing.id, now, num_attempts)
        except StorageError as e:
            raise SignupFailedError("update", str(e)) from e

        self._send_confirmation(email, existing.token)

        return StartSignupOutput(
            outcome=StartOutcome.CONFIRMATION_RESENT,
            email=email,
            num_attempts=num_attempts,
        )

    def _start_new(self, repo: SignupRepoPort, email: str, now: datetime) -> StartSignupOutput:
        try:
            token = self._token_factory()
        except Exception as e:
            raise SignupFailedError("token", str(e)) from e
        if not token:
            raise SignupFailedError("token", "token factory returned an empty token")

        signup = Signup(email=email, token=token, created_at=now, last_sent_at=now)
        try:
            created = repo.create(signup)
        except DuplicateSignupError as e:
            raise SignupConflictError(email) from e
        except StorageError as e:
            raise SignupFailedError("insert", str(e)) from e

        self._send_confirmation(email, token)

        return StartSignupOutput(
            outcome=StartOutcome.NEW_SIGNUP,
            email=email,
            num_attempts=created.num_attempts,
        )

    def _send_confirmation(self, email: str, token: str) -> None:
        logger.info("Sending confirmation mail to %s", email)

        try:
            message = build_confirmation_message(self.renderer, self.config, token)
        except TemplateRenderError as e:
            raise SignupFailedError("render", str(e)) from e

        params = SendMessageParams(
            recipient=email,
            subject=message.subject,
            contents_plain=message.contents_plain,
            contents_html=message.contents_html,
            reply_to=self.config.reply_to_address,
            list_address=self.config.list_address,
            newsletter_name=self.config.newsletter_name,
        )
        try:
            self.mail_api.send_message(params)
        except MailError as e:
            raise SignupFailedError("send", str(e)) from e


class SignupFinisher:
    """
    Takes a token from a confirmation link and adds the matching email to
    the mailing list.

    Safe to repeat: if adding the member fails after the row was updated,
    the transaction rolls back and the user can click the link again.
    """

    def __init__(
        self,
        *,
        mail_api: MailAPIPort,
        config: SignupConfig,
        clock: TimePort,
    ) -> None:
        self.mail_api = mail_api
        self.config = config
        self._clock = clock

    def run(self, inp: FinishSignupInput, repo: SignupRepoPort) -> FinishSignupOutput:
        """
        Run inside the caller's unit of work.

        Raises:
            SignupFailedError: On storage or mail failures
        """
        logger.info("SignupFinisher running")

        if not inp.token:
            return FinishSignupOutput(outcome=FinishOutcome.TOKEN_NOT_FOUND)

        try:
            signup = repo.get_by_token(inp.token)
        except StorageError as e:
            raise SignupFailedError("lookup", str(e)) from e

        if signup is None:
            return FinishSignupOutput(outcome=FinishOutcome.TOKEN_NOT_FOUND)

        assert signup.id is not None
        try:
            repo.mark_completed(signup.id, self._clock.now_utc())
        except StorageError as e:
            raise SignupFailedError("update", str(e)) from e

        logger.info("Adding %s to the list", signup.email)
        try:
            self.mail_api.add_member(self.config.list_address, signup.email)
        except MailError as e:
            raise SignupFailedError("add_member", str(e)) from e

        return FinishSignupOutput(
            outcome=FinishOutcome.SIGNUP_FINISHED,
            email=signup.email,
        )


# --- Run Handler (Atomic Component Pattern) ---


def run(
    inp: StartSignupInput | FinishSignupInput,
    *,
    repo: SignupRepoPort,
    mail_api: MailAPIPort,
    config: SignupConfig,
    clock: TimePort,
    renderer: RendererPort | None = None,
    token_factory: TokenFactory | None = None,
) -> StartSignupOutput | FinishSignupOutput:
    """
    Main component entry point.

    Args:
        inp: Input command
        repo: Repository bound to the active unit of work (Required)
        mail_api: Mailing service (Required)
        config: Signup configuration (Required)
        clock: Time source (Required)
        renderer: Template renderer (Required for StartSignupInput)
        token_factory: Token generator (Optional)

    Returns:
        Operation result
    """
    if isinstance(inp, StartSignupInput):
        if renderer is None:
            raise ValueError("renderer is required to start a signup")
        starter = SignupStarter(
            mail_api=mail_api,
            renderer=renderer,
            config=config,
            clock=clock,
            token_factory=token_factory,
        )
        return starter.run(inp, repo)
    elif isinstance(inp, FinishSignupInput):
        finisher = SignupFinisher(mail_api=mail_api, config=config, clock=clock)
        return finisher.run(inp, repo)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
