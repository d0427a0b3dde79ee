from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from session_store.core.config import Settings, settings


def get_connect_args(database_url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if database_url.startswith("sqlite"):
        # The pool hands connections to whichever task asks next
        return {"check_same_thread": False}
    # PostgreSQL and other databases don't need special args
    return {}


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database"""
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_engine_from_settings(config: Optional[Settings] = None) -> AsyncEngine:
    """Create the async engine described by the given (or global) settings"""
    config = config or settings
    _ensure_sqlite_directory(config.database_url)
    return create_async_engine(
        config.database_url,
        echo=config.echo_sql,
        connect_args=get_connect_args(config.database_url),
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory shared by every repository call"""
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@asynccontextmanager
async def get_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get a DB session with proper resource management"""
    db = session_factory()
    try:
        yield db
    finally:
        await db.close()
