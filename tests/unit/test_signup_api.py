"""
Unit tests for the public signup API endpoints.

Each test builds its own app from Settings read out of a patched
environment, backed by a fresh SQLite file in tmp_path.
"""

import logging
from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.adapters.dev_mail import FakeMailClient
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite_db import SQLiteSignupRepo
from src.api.deps import Settings, get_mail_api, get_rate_limiter, get_signup_starter
from src.api.main import create_app
from src.app_shell.rate_limit import RateLimiter
from src.components.signup import (
    SignupConflictError,
    StartOutcome,
    StartSignupInput,
    StartSignupOutput,
)
from src.components.signup.ports import SignupRepoPort
from src.rules.models import RateLimitRules, RateLimitWindow

PROJECT_ROOT = Path(__file__).resolve().parents[2]
RULES_PATH = PROJECT_ROOT / "rules.yaml"
MIGRATIONS_DIR = str(PROJECT_ROOT / "migrations")

ClientFactory = Callable[..., TestClient]


# --- Test Fixtures ---


@pytest.fixture
def db_file(tmp_path: Path) -> str:
    return str(tmp_path / "signup.db")


@pytest.fixture
def make_client(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    mail_api: FakeMailClient,
) -> ClientFactory:
    def _make(migrate: bool = True, **env: str) -> TestClient:
        values = {
            "SIGNUP_ENV": "testing",
            "SIGNUP_DATA_DIR": str(tmp_path),
            "SIGNUP_RULES_PATH": str(RULES_PATH),
            "NEWSLETTER_ID": "passages",
            "PUBLIC_URL": "https://signup.example.com",
            "ENABLE_RATE_LIMITER": "false",
            "MAINTENANCE_MODE": "false",
        }
        values.update(env)
        for key, value in values.items():
            monkeypatch.setenv(key, value)

        settings = Settings()
        if migrate:
            SQLiteMigrator(settings.db_path, MIGRATIONS_DIR).run_migrations()

        app = create_app(settings)
        app.dependency_overrides[get_mail_api] = lambda: mail_api
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client: ClientFactory) -> TestClient:
    return make_client()


# --- Submit ---


class TestSubmit:
    def test_new_signup(self, client: TestClient, mail_api: FakeMailClient, db_file: str) -> None:
        response = client.post("/submit", data={"email": "foo@example.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["outcome"] == "new_signup"
        assert "I've sent a confirmation email to foo@example.com" in data["message"]
        assert "Passages & Glass" in data["message"]

        assert mail_api.message_count == 1
        assert SQLiteSignupRepo(db_file).count() == 1

    def test_email_trimmed(self, client: TestClient, db_file: str) -> None:
        response = client.post("/submit", data={"email": "  foo@example.com \n"})

        assert response.status_code == 200
        assert SQLiteSignupRepo(db_file).get_by_email("foo@example.com") is not None

    def test_rate_limited_resubmit(self, client: TestClient, mail_api: FakeMailClient) -> None:
        client.post("/submit", data={"email": "foo@example.com"})
        response = client.post("/submit", data={"email": "foo@example.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "confirmation_rate_limited"
        assert "don't want to send another one so soon" in data["message"]
        assert mail_api.message_count == 1

    def test_missing_email(self, client: TestClient) -> None:
        response = client.post("/submit", data={})
        assert response.status_code == 422

    def test_blank_email(self, client: TestClient) -> None:
        response = client.post("/submit", data={"email": "   "})
        assert response.status_code == 422

    def test_invalid_email(self, client: TestClient, mail_api: FakeMailClient, db_file: str) -> None:
        response = client.post("/submit", data={"email": "not-an-email"})

        assert response.status_code == 400
        assert response.json()["detail"] == "That doesn't look like a valid email address"
        assert mail_api.message_count == 0
        assert SQLiteSignupRepo(db_file).count() == 0

    def test_mail_failure_is_500_and_rolls_back(
        self, client: TestClient, mail_api: FakeMailClient, db_file: str
    ) -> None:
        mail_api.fail_send_message = True

        response = client.post("/submit", data={"email": "foo@example.com"})

        assert response.status_code == 500
        # No infrastructure details leak out
        assert "simulated" not in response.text
        assert SQLiteSignupRepo(db_file).count() == 0

    def test_over_length_email_not_retried(
        self,
        client: TestClient,
        mail_api: FakeMailClient,
        db_file: str,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO):
            response = client.post("/submit", data={"email": "a" * 600 + "@example.com"})

        assert response.status_code == 500
        assert "Signup conflict" not in caplog.text
        assert mail_api.message_count == 0
        assert SQLiteSignupRepo(db_file).count() == 0

    def test_conflict_retried_once(self, make_client: ClientFactory) -> None:
        class ConflictingStarter:
            def __init__(self) -> None:
                self.calls = 0

            def run(self, inp: StartSignupInput, repo: SignupRepoPort) -> StartSignupOutput:
                self.calls += 1
                if self.calls == 1:
                    raise SignupConflictError(inp.email)
                return StartSignupOutput(
                    outcome=StartOutcome.CONFIRMATION_RATE_LIMITED,
                    email=inp.email,
                    num_attempts=1,
                )

        starter = ConflictingStarter()
        client = make_client()
        client.app.dependency_overrides[get_signup_starter] = lambda: starter  # type: ignore[attr-defined]

        response = client.post("/submit", data={"email": "foo@example.com"})

        assert response.status_code == 200
        assert response.json()["outcome"] == "confirmation_rate_limited"
        assert starter.calls == 2

    def test_request_rate_limit(self, make_client: ClientFactory) -> None:
        client = make_client(ENABLE_RATE_LIMITER="true")
        limiter = RateLimiter(
            RateLimitRules(
                submit=RateLimitWindow(window_seconds=3600, max_requests=2),
                confirm=RateLimitWindow(window_seconds=3600, max_requests=2),
            )
        )
        client.app.dependency_overrides[get_rate_limiter] = lambda: limiter  # type: ignore[attr-defined]

        statuses = [
            client.post("/submit", data={"email": f"user{i}@example.com"}).status_code
            for i in range(3)
        ]

        assert statuses == [200, 200, 429]
        assert "Rate limit exceeded" in client.post(
            "/submit", data={"email": "foo@example.com"}
        ).json()["detail"]

    def test_request_rate_limit_disabled(self, make_client: ClientFactory) -> None:
        client = make_client(ENABLE_RATE_LIMITER="false")
        limiter = RateLimiter(
            RateLimitRules(
                submit=RateLimitWindow(window_seconds=3600, max_requests=1),
                confirm=RateLimitWindow(window_seconds=3600, max_requests=1),
            )
        )
        client.app.dependency_overrides[get_rate_limiter] = lambda: limiter  # type: ignore[attr-defined]

        for i in range(3):
            assert client.post("/submit", data={"email": f"user{i}@example.com"}).status_code == 200


# --- Confirm ---


class TestConfirm:
    def test_confirm(self, client: TestClient, mail_api: FakeMailClient, db_file: str) -> None:
        client.post("/submit", data={"email": "foo@example.com"})
        signup = SQLiteSignupRepo(db_file).get_by_email("foo@example.com")
        assert signup is not None

        response = client.get(f"/confirm/{signup.token}")

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "signup_finished"
        assert data["email"] == "foo@example.com"
        assert "signed up successfully" in data["message"]

        assert [m.email for m in mail_api.members_added] == ["foo@example.com"]
        assert mail_api.members_added[0].list_address == "passages@list.brandur.org"

    def test_confirm_twice(self, client: TestClient, mail_api: FakeMailClient, db_file: str) -> None:
        client.post("/submit", data={"email": "foo@example.com"})
        signup = SQLiteSignupRepo(db_file).get_by_email("foo@example.com")
        assert signup is not None

        assert client.get(f"/confirm/{signup.token}").status_code == 200
        assert client.get(f"/confirm/{signup.token}").status_code == 200
        assert len(mail_api.members_added) == 2

    def test_unknown_token(self, client: TestClient, mail_api: FakeMailClient) -> None:
        response = client.get("/confirm/does-not-exist")

        assert response.status_code == 404
        assert response.json()["detail"] == "We couldn't find that confirmation token."
        assert mail_api.members_added == []

    def test_add_member_failure(
        self, client: TestClient, mail_api: FakeMailClient, db_file: str
    ) -> None:
        client.post("/submit", data={"email": "foo@example.com"})
        signup = SQLiteSignupRepo(db_file).get_by_email("foo@example.com")
        assert signup is not None
        mail_api.fail_add_member = True

        response = client.get(f"/confirm/{signup.token}")

        assert response.status_code == 500
        refreshed = SQLiteSignupRepo(db_file).get_by_token(signup.token)
        assert refreshed is not None
        assert refreshed.completed_at is None


# --- Previews, health, maintenance ---


class TestMessagePreviews:
    def test_html_preview(self, client: TestClient) -> None:
        response = client.get("/messages/confirm")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "/confirm/bc492bd9-2aea-458a-aea1-cd7861c334d1" in response.text

    def test_plain_preview(self, client: TestClient) -> None:
        response = client.get("/messages/confirm_plain")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "https://signup.example.com/confirm/" in response.text

    def test_not_mounted_in_production(self, make_client: ClientFactory) -> None:
        client = make_client(SIGNUP_ENV="production", MAILGUN_API_KEY="key-test")

        assert client.get("/messages/confirm").status_code == 404
        assert client.get("/messages/confirm_plain").status_code == 404


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_maintenance_mode(make_client: ClientFactory) -> None:
    client = make_client(MAINTENANCE_MODE="true")

    for response in (
        client.get("/health"),
        client.post("/submit", data={"email": "foo@example.com"}),
    ):
        assert response.status_code == 503
        assert "maintenance mode" in response.json()["detail"]


def test_lifespan_runs_migrations(make_client: ClientFactory, tmp_path: Path) -> None:
    data_dir = tmp_path / "fresh"
    client = make_client(migrate=False, SIGNUP_DATA_DIR=str(data_dir))

    with client:
        response = client.post("/submit", data={"email": "foo@example.com"})

    assert response.status_code == 200
    assert SQLiteSignupRepo(str(data_dir / "signup.db")).count() == 1
