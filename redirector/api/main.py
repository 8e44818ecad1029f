import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI

from redirector.adapters.sqlite.migrator import SQLiteMigrator
from redirector.api.deps import default_resolver, get_settings
from redirector.api.routes import admin_redirects
from redirector.api.routes.public_redirects import ResolverFactory, install_redirect_middleware
from redirector.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and migrate on startup (fail-fast)
    try:
        load_rules(settings.rules_path)
        logger.info("Rules loaded from %s", settings.rules_path)

        Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
        applied = SQLiteMigrator(settings.db_path).run_migrations()
        logger.info("Database ready at %s (%d migrations applied)", settings.db_path, len(applied))
    except Exception as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)

    yield


def create_app(resolver_factory: ResolverFactory = default_resolver) -> FastAPI:
    app = FastAPI(
        title="Redirector API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.include_router(admin_redirects.router, prefix="/api/admin", tags=["Admin Redirects"])
    install_redirect_middleware(app, resolver_factory)

    @app.get("/health")
    def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "service": "redirector"}

    return app


app = create_app()
