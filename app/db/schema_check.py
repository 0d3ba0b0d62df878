"""
Create any missing tables.

Runs on application startup when CREATE_TABLES_ON_STARTUP is set, and can be
run by hand:  python -m app.db.schema_check
"""
import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

# Imported for their side effect of registering tables on Base.metadata
import app.auth.models  # noqa: F401
import app.core.models  # noqa: F401
from app.core.logging_config import get_logger, setup_logging
from app.db.session import Base, engine

logger = get_logger(__name__)


def _missing_tables(sync_conn) -> List[str]:
    existing = set(inspect(sync_conn).get_table_names())
    return [name for name in Base.metadata.tables if name not in existing]


async def ensure_tables(target: AsyncEngine = engine) -> List[str]:
    """Create tables (and their partial unique indexes) that do not exist yet.

    Returns the names of the tables that were created.
    """
    async with target.begin() as conn:
        missing = await conn.run_sync(_missing_tables)
        await conn.run_sync(Base.metadata.create_all)
    if missing:
        logger.info(f"Created tables: {', '.join(sorted(missing))}")
    else:
        logger.debug("All tables present")
    return missing


async def main() -> None:
    setup_logging()
    await ensure_tables()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
