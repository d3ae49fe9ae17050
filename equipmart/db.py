"""Database connection and initialization."""

import logging

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from .config import settings
from .schemas.listings import CategoryDocument, ListingDocument

logger = logging.getLogger(__name__)


async def init_db() -> AsyncIOMotorClient:
    """Initialize the database connection and document models."""
    logger.info(f"Connecting to MongoDB: {settings.database.uri}")

    client = AsyncIOMotorClient(settings.database.uri)

    logger.info(f"Initializing Beanie with database: {settings.database.database_name}")

    try:
        await init_beanie(
            database=client[settings.database.database_name],
            document_models=[ListingDocument, CategoryDocument],
        )
        logger.info("Database initialization successful")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    return client


async def check_connection() -> bool:
    """Check if the database connection is healthy.

    Returns:
        bool: True if connection is healthy, False otherwise
    """
    client = AsyncIOMotorClient(
        settings.database.uri,
        serverSelectionTimeoutMS=5000,
    )
    try:
        await client.admin.command("ping")
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
    finally:
        client.close()
