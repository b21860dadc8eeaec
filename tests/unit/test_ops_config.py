import logging

import pytest

from src.app_shell.config import missing_required_env, validate_ops_rules
from src.rules.models import Rules


def test_missing_required_env(rules: Rules) -> None:
    environ = {"MAILGUN_API_KEY": "key-abc", "PUBLIC_URL": ""}
    assert missing_required_env(rules, environ) == ["PUBLIC_URL"]


def test_all_present(rules: Rules) -> None:
    environ = {"MAILGUN_API_KEY": "key-abc", "PUBLIC_URL": "https://signup.example.com"}
    assert missing_required_env(rules, environ) == []


def test_skipped_outside_production(rules: Rules, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MAILGUN_API_KEY", raising=False)
    monkeypatch.delenv("PUBLIC_URL", raising=False)

    # Does not exit
    validate_ops_rules(rules, is_production=False)


def test_exits_in_production_when_missing(
    rules: Rules, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.delenv("MAILGUN_API_KEY", raising=False)
    monkeypatch.setenv("PUBLIC_URL", "https://signup.example.com")

    with caplog.at_level(logging.CRITICAL), pytest.raises(SystemExit) as exc_info:
        validate_ops_rules(rules, is_production=True)

    assert exc_info.value.code == 1
    assert "MAILGUN_API_KEY" in caplog.text


def test_passes_in_production(rules: Rules, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAILGUN_API_KEY", "key-abc")
    monkeypatch.setenv("PUBLIC_URL", "https://signup.example.com")

    validate_ops_rules(rules, is_production=True)
