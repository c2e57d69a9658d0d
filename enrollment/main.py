"""
Tournament registration core — schema bootstrap entry point.

    python -m enrollment.main

Configures logging and creates every table on the configured database.
Production deployments run the Alembic migrations instead.
"""
import asyncio
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from enrollment.config import settings
from enrollment.models.base import Base, engine

logger = logging.getLogger(__name__)


def setup_logging(level: str = settings.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )


async def create_tables() -> None:
    """Create all database tables."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready.")
    except (SQLAlchemyError, OSError) as e:
        logger.critical(
            "Cannot connect to database!\n"
            "   URL: %s\n"
            "   Error: %s\n\n"
            "   → Locally: use SQLite (DATABASE_URL=sqlite+aiosqlite:///./enrollment.db)",
            settings.DATABASE_URL.split("@")[-1],   # hide credentials in log
            e,
        )
        sys.exit(1)


async def main() -> None:
    setup_logging()
    logger.info("Bootstrapping registration database…")
    try:
        await create_tables()
    finally:
        await engine.dispose()
        logger.info("Done.")


if __name__ == "__main__":
    asyncio.run(main())
