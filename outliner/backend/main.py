"""
FastAPI application factory.

    uvicorn outliner.backend.main:app

`app` is resolved lazily through the module __getattr__, so importing this
module does not read configuration.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from outliner.backend.api import health
from outliner.backend.api.v1 import router as api_v1_router
from outliner.backend.core.config import get_app_config
from outliner.backend.core.database import create_tables, dispose_engine
from outliner.backend.core.exception_handlers import register_exception_handlers
from outliner.backend.core.logging import get_logger, setup_logging
from outliner.backend.core.middleware import RequestContextMiddleware

logger = get_logger(__name__)

_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config = get_app_config()
    setup_logging(level=config.logging.level)
    if config.database.create_tables_on_startup:
        await create_tables()

    logger.info(
        "Outliner started",
        extra={
            "app_name": config.application.name,
            "env": config.application.environment,
            "max_depth": config.tree.max_depth,
        },
    )
    try:
        yield
    finally:
        await dispose_engine()
        logger.info("Outliner stopped")


def create_app() -> FastAPI:
    """Build a new application from the current configuration."""
    settings = get_app_config().application
    docs = settings.docs_enabled

    app = FastAPI(
        title=settings.name,
        description=settings.description,
        version=settings.version,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        lifespan=lifespan,
    )

    # Added last runs first: CORS wraps the request context.
    app.add_middleware(RequestContextMiddleware)
    if settings.cors.origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors.origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.include_router(health.router, tags=["health"])
    app.include_router(api_v1_router, prefix=settings.api_prefix)
    return app


def get_app() -> FastAPI:
    """The process-wide application, created on first call."""
    global _app
    if _app is None:
        _app = create_app()
    return _app


def __getattr__(name: str) -> FastAPI:
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
