"""MongoDB client lifecycle and index management."""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from src.config import get_settings
from src.services.user_directory import USERS_COLLECTION, MongoUserDirectory, UserDirectory

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None


def get_client() -> AsyncIOMotorClient:
    """Get (or lazily create) the process-wide Motor client."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """Get the application database."""
    return get_client()[get_settings().mongo_db_name]


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the user directory relies on.

    The unique indexes on username and email are what actually prevents
    duplicate accounts when registrations race.
    """
    users = db[USERS_COLLECTION]
    await users.create_index("username", unique=True)
    await users.create_index("email", unique=True)
    await users.create_index("mobile")
    await users.create_index("roleId")


async def init_database() -> None:
    """Connect to MongoDB and make sure indexes exist."""
    await ensure_indexes(get_database())
    logger.info(f"Connected to MongoDB database '{get_settings().mongo_db_name}'")


async def close_database() -> None:
    """Close the Motor client if one was created."""
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed")


def get_user_directory() -> UserDirectory:
    """Dependency that provides the user directory."""
    return MongoUserDirectory(get_database()[USERS_COLLECTION])
