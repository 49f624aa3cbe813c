"""
Database initialization script.

Creates the incidents table and, when the table is empty, inserts the
bootstrap incidents. Runs on application startup and can be invoked
directly: ``python -m crisissync.core.init_db``.
"""

import asyncio

from crisissync.core.config import get_settings
from crisissync.core.database import Base, engine, get_db_context
from crisissync.core.logging import get_logger, setup_logging
from crisissync.models.incident_orm import IncidentORM  # noqa: F401
from crisissync.services.incident_store import IncidentStore

settings = get_settings()
logger = get_logger(__name__)


async def init_database(seed: bool = True) -> int:
    """Create tables; seed if requested and empty. Returns the number of seeded rows."""
    logger.info(f"Initializing incident database at {settings.database_url}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not seed:
        return 0

    async with get_db_context() as db:
        seeded = await IncidentStore(db).seed_if_empty()
    if seeded:
        logger.info(f"Seeded {seeded} example incidents")
    return seeded


if __name__ == "__main__":
    setup_logging(level=settings.log_level)
    asyncio.run(init_database(seed=settings.seed_on_startup))
