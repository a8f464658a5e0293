"""
Database Engine and Sessions.

The engine is built on first use, not at import, so modules that only need
models or schemas can be imported before config/ is in place.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from outliner.backend.core.logging import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _sqlite_url(driver: str, name: str) -> str:
    # Relative paths resolve against the project root; the directory is created.
    if name == ":memory:":
        return f"{driver}:///{name}"
    from outliner.backend.core.config import find_project_root

    db_path = Path(name)
    if not db_path.is_absolute():
        db_path = find_project_root() / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"{driver}:///{db_path}"


def _create_engine() -> AsyncEngine:
    from outliner.backend.core.config import get_app_config, get_database_url

    db = get_app_config().database
    if db.driver.startswith("sqlite"):
        # SQLite ignores pool sizing
        engine = create_async_engine(_sqlite_url(db.driver, db.name), echo=db.echo)
    else:
        engine = create_async_engine(
            get_database_url(),
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )
    logger.debug("Database engine created", extra={"driver": db.driver})
    return engine


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory over the shared engine. Sessions keep attributes after commit."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def create_tables() -> None:
    """Create any missing tables. Existing tables are left alone."""
    from outliner.backend.models import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def dispose_engine() -> None:
    """Close pooled connections. The next get_engine() builds a new engine."""
    global _engine, _async_session_factory
    engine, _engine, _async_session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()
        logger.debug("Database engine disposed")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session per request.

    Commits after the endpoint returns and rolls back if it raised, so a
    failed request leaves no partial writes.

        @router.get("/nodes")
        async def list_roots(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()
