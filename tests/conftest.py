from pathlib import Path

import pytest

from src.adapters.dev_mail import FakeMailClient
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.components.signup import SignupConfig
from src.rules.loader import load_rules
from src.rules.models import Rules

PROJECT_ROOT = Path(__file__).resolve().parents[1]
RULES_PATH = PROJECT_ROOT / "rules.yaml"
MIGRATIONS_DIR = str(PROJECT_ROOT / "migrations")


@pytest.fixture
def db_path(tmp_path) -> str:
    """A fresh SQLite database with all migrations applied."""
    path = str(tmp_path / "signup.db")
    SQLiteMigrator(path, MIGRATIONS_DIR).run_migrations()
    return path


@pytest.fixture
def rules() -> Rules:
    # Load REAL rules from project root
    return load_rules(RULES_PATH)


@pytest.fixture
def mail_api() -> FakeMailClient:
    return FakeMailClient()


@pytest.fixture
def signup_config() -> SignupConfig:
    return SignupConfig(
        list_address="passages@list.example.com",
        reply_to_address="editor@example.com",
        newsletter_name="Passages & Glass",
        public_url="https://signup.example.com",
    )
