# passages-signup: Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.db import DuplicateSignupError, StorageError, UnitOfWorkPort
from src.core.ports.mail import (
    MailAPIPort,
    MailError,
    MailSendError,
    MailValidationError,
    SendMessageParams,
)
from src.core.ports.render import RendererPort, TemplateRenderError

__all__ = [
    # Database (P1)
    "DuplicateSignupError",
    "StorageError",
    "UnitOfWorkPort",
    # Mail
    "MailAPIPort",
    "MailError",
    "MailSendError",
    "MailValidationError",
    "SendMessageParams",
    # Render
    "RendererPort",
    "TemplateRenderError",
]
