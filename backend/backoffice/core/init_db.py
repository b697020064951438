# backend/backoffice/core/init_db.py
import asyncio
import logging
from backoffice.core.database import engine, Base
# Import all models to register them with Base
import backoffice.models  # noqa: F401

logger = logging.getLogger(__name__)


async def init_db():
    """Create missing tables. Alembic owns schema changes after that."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables are ready")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_db())
