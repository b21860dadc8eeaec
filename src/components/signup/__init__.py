"""
Signup component.

Double opt-in newsletter signup: start (store + confirmation email) and
finish (mark complete + add to mailing list).
"""

from src.components.signup.component import (
    CONFIRM_HTML_TEMPLATE,
    CONFIRM_PLAIN_TEMPLATE,
    EMAIL_REGEX,
    SignupFinisher,
    SignupStarter,
    build_confirmation_message,
    build_confirmation_url,
    generate_token,
    has_reached_max_attempts,
    is_rate_limited,
    run,
    validate_email,
)
from src.components.signup.models import (
    DEFAULT_MAX_NUM_SIGNUP_ATTEMPTS,
    DEFAULT_NO_RESEND_HOURS,
    ConfirmationMessage,
    FinishOutcome,
    FinishSignupInput,
    FinishSignupOutput,
    InvalidEmailError,
    Signup,
    SignupConfig,
    SignupConflictError,
    SignupError,
    SignupFailedError,
    StartOutcome,
    StartSignupInput,
    StartSignupOutput,
)
from src.components.signup.ports import SignupRepoPort, TimePort

__all__ = [
    # Component
    "run",
    "SignupStarter",
    "SignupFinisher",
    # Pure functions
    "validate_email",
    "is_rate_limited",
    "has_reached_max_attempts",
    "generate_token",
    "build_confirmation_url",
    "build_confirmation_message",
    # Constants
    "EMAIL_REGEX",
    "CONFIRM_HTML_TEMPLATE",
    "CONFIRM_PLAIN_TEMPLATE",
    "DEFAULT_MAX_NUM_SIGNUP_ATTEMPTS",
    "DEFAULT_NO_RESEND_HOURS",
    # Models
    "Signup",
    "SignupConfig",
    "ConfirmationMessage",
    "StartOutcome",
    "FinishOutcome",
    # Input/Output
    "StartSignupInput",
    "StartSignupOutput",
    "FinishSignupInput",
    "FinishSignupOutput",
    # Errors
    "SignupError",
    "InvalidEmailError",
    "SignupFailedError",
    "SignupConflictError",
    # Ports
    "SignupRepoPort",
    "TimePort",
]
