import logging
import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends, HTTPException, Request, status

from src.adapters.clock import SystemClock
from src.adapters.dev_mail import FakeMailClient
from src.adapters.mailgun import MailgunClient
from src.adapters.render.jinja_renderer import JinjaRenderer
from src.adapters.sqlite_db import SQLiteUnitOfWork
from src.app_shell.rate_limit import RateLimiter
from src.components.signup import SignupConfig, SignupFinisher, SignupStarter
from src.core.ports.mail import MailAPIPort
from src.domain.newsletters import PASSAGES_ID, NewsletterMeta, meta_for
from src.rules.loader import load_rules
from src.rules.models import Rules

logger = logging.getLogger(__name__)

ENV_PRODUCTION = "production"
ENV_DEVELOPMENT = "development"
ENV_TESTING = "testing"

DEFAULT_PUBLIC_URL = "https://passages-signup.herokuapp.com"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.env = os.environ.get("SIGNUP_ENV", ENV_PRODUCTION)
        self.data_dir = Path(os.environ.get("SIGNUP_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "signup.db")
        self.rules_path = Path(os.environ.get("SIGNUP_RULES_PATH", str(self.base_dir / "rules.yaml")))
        self.newsletter_id = os.environ.get("NEWSLETTER_ID", PASSAGES_ID)
        self.mailgun_api_key = os.environ.get("MAILGUN_API_KEY", "")
        self.public_url = os.environ.get("PUBLIC_URL", DEFAULT_PUBLIC_URL)
        self.enable_rate_limiter = _env_flag("ENABLE_RATE_LIMITER", True)
        self.maintenance_mode = _env_flag("MAINTENANCE_MODE", False)

    @property
    def is_production(self) -> bool:
        return self.env == ENV_PRODUCTION

    @property
    def uses_fake_mail(self) -> bool:
        if self.env == ENV_TESTING:
            return True
        return not self.is_production and not self.mailgun_api_key


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


# Cached providers are keyed on Settings only; Rules is not hashable.
@lru_cache
def get_newsletter_meta(settings: Settings = Depends(get_settings)) -> NewsletterMeta:
    rules = get_rules(settings)
    return meta_for(rules.mail.mail_domain, settings.newsletter_id)


def get_signup_config(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
    meta: NewsletterMeta = Depends(get_newsletter_meta),
) -> SignupConfig:
    return SignupConfig(
        list_address=meta.list_address,
        reply_to_address=rules.mail.reply_to_address,
        newsletter_name=meta.name,
        public_url=settings.public_url,
        max_num_attempts=rules.signup.max_num_attempts,
        no_resend_hours=rules.signup.no_resend_hours,
    )


# --- Adapters ---
@lru_cache
def get_mail_api(settings: Settings = Depends(get_settings)) -> MailAPIPort:
    if settings.uses_fake_mail:
        logger.info("Using fake mail client (env: %s)", settings.env)
        return FakeMailClient()
    rules = get_rules(settings)
    return MailgunClient(rules.mail.mail_domain, settings.mailgun_api_key)


@lru_cache
def get_renderer(settings: Settings = Depends(get_settings)) -> JinjaRenderer:
    return JinjaRenderer(
        newsletter=get_newsletter_meta(settings),
        public_url=settings.public_url,
        auto_reload=not settings.is_production,
    )


def get_uow(settings: Settings = Depends(get_settings)) -> SQLiteUnitOfWork:
    return SQLiteUnitOfWork(settings.db_path)


@lru_cache
def get_rate_limiter(settings: Settings = Depends(get_settings)) -> RateLimiter:
    return RateLimiter(get_rules(settings).rate_limit)


# --- Mediators ---
def get_signup_starter(
    mail_api: MailAPIPort = Depends(get_mail_api),
    renderer: JinjaRenderer = Depends(get_renderer),
    config: SignupConfig = Depends(get_signup_config),
) -> SignupStarter:
    return SignupStarter(
        mail_api=mail_api, renderer=renderer, config=config, clock=SystemClock()
    )


def get_signup_finisher(
    mail_api: MailAPIPort = Depends(get_mail_api),
    config: SignupConfig = Depends(get_signup_config),
) -> SignupFinisher:
    return SignupFinisher(mail_api=mail_api, config=config, clock=SystemClock())


# --- Request helpers ---
def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    # Check X-Forwarded-For header (proxy)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


RATE_LIMITED_DETAIL = "Rate limit exceeded. Sorry about that -- please try again in a few seconds."


def enforce_submit_rate_limit(
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    if settings.enable_rate_limiter and not limiter.check_submit(get_client_ip(request)):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=RATE_LIMITED_DETAIL)


def enforce_confirm_rate_limit(
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    if settings.enable_rate_limiter and not limiter.check_confirm(get_client_ip(request)):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=RATE_LIMITED_DETAIL)
