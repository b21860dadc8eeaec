import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import Settings, get_settings
from src.api.middleware import MaintenanceModeMiddleware
from src.app_shell.config import validate_ops_rules
from src.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings

    # Load rules and validate on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
        logger.info("Rules loaded from %s", settings.rules_path)
    except (FileNotFoundError, ValueError) as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    validate_ops_rules(rules, settings.is_production)

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(settings.db_path).run_migrations()

    yield
    # Shutdown cleanup if needed


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Passages Signup",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    # Dependencies resolve against the settings this app was built with.
    app.dependency_overrides[get_settings] = lambda: settings

    # --- Routers ---
    from src.api.routes import message_preview, signup

    app.include_router(signup.router, prefix="", tags=["Signup"])
    if not settings.is_production:
        app.include_router(message_preview.router, prefix="", tags=["Previews"])

    app.add_middleware(MaintenanceModeMiddleware, maintenance_mode=settings.maintenance_mode)

    @app.get("/health")
    def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "service": "passages-signup", "env": settings.env}

    return app


app = create_app()
