"""FastAPI application entry point.

Start with:
    uvicorn linkhop.main:app --reload

The app is assembled from:
- Lifespan startup that configures logging and builds the alias registry
- The GitHub webhook receiver, health, and admin routers
- The catch-all redirect router, registered last so it never shadows them
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from linkhop.config import Settings, get_settings
from linkhop.core.alias_source import GitHubAliasSource
from linkhop.core.registry import AliasRegistry

assert sys.version_info >= (3, 12), "linkhop requires Python 3.12+"

logger = logging.getLogger(__name__)


def build_registry(settings: Settings) -> AliasRegistry:
    """Create the alias registry, bootstrapping from cache or GitHub.

    Raises:
        RegistryInitError: If the cache directory cannot be created.
    """
    source = GitHubAliasSource(
        repository=settings.github_repository,
        branch=settings.github_branch,
        file_name=settings.alias_file_name,
        url=settings.alias_source_url,
        timeout=settings.alias_source_timeout,
    )
    return AliasRegistry(source, settings.alias_cache_file)


# ---------------------------------------------------------------------------
#  Lifespan: startup / shutdown
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: configure logging and load the alias table."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("linkhop starting up")

    if not settings.github_webhook_secret:
        logger.warning(
            "GITHUB_WEBHOOK_SECRET is not set; webhook signatures will NOT be verified"
        )

    app.state.registry = build_registry(settings)

    yield

    logger.info("linkhop shutting down")


# ---------------------------------------------------------------------------
#  FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="linkhop",
    description="Short-path redirects backed by an aliases.json in GitHub",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
#  Router Registration
# ---------------------------------------------------------------------------

# Import routers lazily to avoid circular-import issues.
from linkhop.api.webhooks import router as webhook_router  # noqa: E402
from linkhop.api.health import router as health_router  # noqa: E402
from linkhop.api.admin import router as admin_router  # noqa: E402
from linkhop.api.redirects import router as redirect_router  # noqa: E402

app.include_router(webhook_router, prefix="/webhooks")
app.include_router(health_router)
app.include_router(admin_router, prefix="/admin")
app.include_router(redirect_router)
