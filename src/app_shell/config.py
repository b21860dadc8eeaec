import logging
import os
import sys
from collections.abc import Mapping

from src.rules.models import Rules

logger = logging.getLogger(__name__)


def missing_required_env(rules: Rules, environ: Mapping[str, str] | None = None) -> list[str]:
    """Names from ops.required_env that are unset or empty."""
    env = os.environ if environ is None else environ
    return [name for name in rules.ops.required_env if not env.get(name)]


def validate_ops_rules(rules: Rules, is_production: bool) -> None:
    """
    Validate operational requirements before startup.

    Outside production the fake mail client and default URLs are used, so
    required env vars are only enforced in production.
    """
    if not is_production:
        logger.info("Skipping required env check outside production")
        return

    missing = missing_required_env(rules)
    if missing:
        logger.critical("Missing required environment variables: %s", ", ".join(missing))
        sys.exit(1)

    logger.info("Configuration validated.")
