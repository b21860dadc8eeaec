import argparse
import logging
import sys
from collections.abc import Sequence

from src.adapters.clock import SystemClock
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite_db import SQLiteUnitOfWork
from src.api.deps import (
    Settings,
    get_mail_api,
    get_newsletter_meta,
    get_renderer,
    get_rules,
    get_settings,
    get_signup_config,
)
from src.components.signup import (
    FinishSignupInput,
    InvalidEmailError,
    SignupConfig,
    SignupFailedError,
    SignupFinisher,
    SignupStarter,
    StartSignupInput,
)
from src.core.ports.db import StorageError
from src.domain.newsletters import UnknownNewsletterError

logger = logging.getLogger("cli")


def build_signup_config(settings: Settings) -> SignupConfig:
    return get_signup_config(settings, get_rules(settings), get_newsletter_meta(settings))


def handle_migrate(settings: Settings, args: argparse.Namespace) -> int:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(settings.db_path).run_migrations()
    print(f"Applied {len(applied)} migration(s) to {settings.db_path}.")
    return 0


def handle_start_signup(settings: Settings, args: argparse.Namespace) -> int:
    starter = SignupStarter(
        mail_api=get_mail_api(settings),
        renderer=get_renderer(settings),
        config=build_signup_config(settings),
        clock=SystemClock(),
    )
    try:
        with SQLiteUnitOfWork(settings.db_path) as uow:
            result = starter.run(StartSignupInput(email=args.email.strip()), uow.signups)
    except InvalidEmailError as e:
        logger.error("%s: %s", e, args.email)
        return 2

    print(f"{result.outcome.name} email={result.email} attempts={result.num_attempts}")
    return 0


def handle_finish_signup(settings: Settings, args: argparse.Namespace) -> int:
    finisher = SignupFinisher(
        mail_api=get_mail_api(settings),
        config=build_signup_config(settings),
        clock=SystemClock(),
    )
    with SQLiteUnitOfWork(settings.db_path) as uow:
        result = finisher.run(FinishSignupInput(token=args.token), uow.signups)

    if result.email is None:
        print(result.outcome.name)
        return 1
    print(f"{result.outcome.name} email={result.email}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Passages signup CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending SQL migrations")

    # start-signup
    start_parser = subparsers.add_parser("start-signup", help="Start a signup for an email")
    start_parser.add_argument("email", help="Email address to sign up")

    # finish-signup
    finish_parser = subparsers.add_parser("finish-signup", help="Finish a signup by token")
    finish_parser.add_argument("token", help="Confirmation token")

    args = parser.parse_args(argv)

    settings = get_settings()

    handlers = {
        "migrate": handle_migrate,
        "start-signup": handle_start_signup,
        "finish-signup": handle_finish_signup,
    }
    try:
        return handlers[args.command](settings, args)
    except (SignupFailedError, StorageError, RuntimeError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    except (FileNotFoundError, UnknownNewsletterError, ValueError) as e:
        # Bad rules file or NEWSLETTER_ID
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
