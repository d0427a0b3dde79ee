"""Initialize the database with the session table"""

import asyncio
import logging
from typing import List, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from session_store.core.config import Settings
from session_store.core.exceptions import StorageError
from session_store.db.base import Base
from session_store.db.session import create_engine_from_settings

# Import models explicitly to register them with SQLAlchemy
from session_store.db.models import session_record as _model_session_record  # noqa: F401

logger = logging.getLogger("session_store.database")


async def init_database(engine: AsyncEngine) -> List[str]:
    """Create all tables that do not exist yet and return the table names

    Raises:
        StorageError: If the database rejects schema creation
    """
    try:
        logger.info("Creating session store tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
            table_names = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )

        logger.info("Session store tables ready", extra={
            "table_count": len(table_names),
            "tables": table_names
        })
        return table_names

    except SQLAlchemyError as e:
        logger.error(f"Error initializing database: {e}", extra={
            "error_type": type(e).__name__,
            "database_url": "[REDACTED]"  # Don't log connection strings
        })
        logger.error("Please check database connection settings and permissions.")
        raise StorageError(f"Schema creation failed: {e}") from e


async def _main(config: Optional[Settings] = None) -> None:
    engine = create_engine_from_settings(config)
    try:
        await init_database(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(_main())
