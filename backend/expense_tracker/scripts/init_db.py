"""Initialize database tables.

Usage::

    python -m expense_tracker.scripts.init_db
"""

import asyncio
import logging

from expense_tracker.core.config import settings
from expense_tracker.core.database import build_engine, init_db

logger = logging.getLogger(__name__)


async def main():
    engine = build_engine(settings.DATABASE_URL)
    logger.info("Initializing database tables...")
    try:
        await init_db(engine)
    finally:
        await engine.dispose()
    logger.info("Database initialization complete!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
