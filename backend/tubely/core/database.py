"""
Tubely MongoDB Database Client Module

Async MongoDB connection management for the video record store using Motor.
It provides:
- Connection pooling with configurable pool size
- Health checks using the MongoDB ping command
- The ``videos`` collection accessor
- Index creation for the per-user listing queries
- Startup/shutdown lifecycle management for FastAPI integration
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from tubely.config import Settings


# Configure module logger
logger = logging.getLogger(__name__)

VIDEOS_COLLECTION = "videos"


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Attributes:
        _settings: Settings instance containing MongoDB configuration
        _client: Motor async MongoDB client instance
        _database: Motor async database instance

    Example usage:
        ```python
        db_client = DatabaseClient(get_settings())
        await db_client.connect()

        videos = db_client.get_videos_collection()
        await videos.find_one({"_id": str(video_id)})

        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

        logger.info(
            "DatabaseClient initialized with pool size %d-%d for database: %s",
            self._min_pool_size,
            self._max_pool_size,
            self._db_name,
        )

    async def connect(self, max_retries: int = 3) -> bool:
        """
        Establish the MongoDB connection, retrying with exponential backoff.

        Each attempt creates an AsyncIOMotorClient with the configured pool
        bounds and verifies it with a ping. Delays between attempts are 1s, 2s,
        4s and so on.

        Returns:
            bool: True if connected, False once all attempts have failed.
        """
        retry_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    "Attempting MongoDB connection (attempt %d/%d) to %s...",
                    attempt,
                    max_retries,
                    self._db_name,
                )

                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                    tz_aware=True,
                )
                self._database = self._client[self._db_name]

                await self._client.admin.command("ping")

                logger.info("Successfully connected to MongoDB database: %s", self._db_name)
                return True

            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception(
                    "MongoDB connection failure (attempt %d/%d)", attempt, max_retries
                )
                if attempt < max_retries:
                    logger.warning("Retrying in %.0f seconds...", retry_delay)
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2

        logger.error(
            "Failed to connect to MongoDB after %d attempts. "
            "Check connection URI and server availability.",
            max_retries,
        )
        return False

    async def close(self) -> None:
        """Close the Motor client. Safe to call when not connected."""
        if self._client is None:
            logger.warning("MongoDB close called but no active connection exists")
            return

        self._client.close()
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed for database: %s", self._db_name)

    async def ping(self) -> bool:
        """
        Health check using the MongoDB admin ping command.

        Returns:
            bool: True if the server answered, False otherwise.
        """
        if self._client is None:
            logger.warning("MongoDB ping failed: No active connection")
            return False

        try:
            await self._client.admin.command("ping")
        except PyMongoError:
            logger.exception("MongoDB ping failed")
            return False
        return True

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance for direct operations.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(
                "MongoDB database not available. Call connect() first or check connection status."
            )
        return self._database

    def get_videos_collection(self) -> AsyncIOMotorCollection:
        """
        Get the videos collection.

        Each document is one video record keyed by its UUID string (``_id``)
        and carrying the owner's ``user_id``, title, description, asset URLs
        and timestamps.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        return self.get_database()[VIDEOS_COLLECTION]

    async def create_indexes(self) -> None:
        """
        Create the indexes backing the per-user listing queries:
        ``user_id`` and the compound ``(user_id, created_at desc)``.
        """
        videos = self.get_videos_collection()
        try:
            await videos.create_index("user_id")
            await videos.create_index([("user_id", 1), ("created_at", -1)])
        except PyMongoError:
            logger.exception("Error creating MongoDB indexes")
            raise
        logger.info("Created indexes on %s collection", VIDEOS_COLLECTION)


# Container class for database client singleton to avoid global statements
class _DatabaseClientContainer:
    """Container for database client singleton to avoid global statements."""

    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings | None = None) -> DatabaseClient:
    """
    Initialize the global database client singleton.

    Connects to MongoDB and creates indexes. Called from the FastAPI lifespan.

    Raises:
        RuntimeError: If the connection fails after all retries.
    """
    if _container.client is not None:
        logger.warning("Database client already initialized, returning existing instance")
        return _container.client

    if settings is None:
        settings = Settings()

    logger.info("Initializing MongoDB database client...")

    client = DatabaseClient(settings)
    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )

    await client.create_indexes()
    _container.client = client

    logger.info("MongoDB database client initialization complete")
    return client


async def close_db() -> None:
    """Close the global database client connection, if any."""
    if _container.client is None:
        logger.warning("close_db called but no database client exists")
        return

    logger.info("Closing MongoDB database client...")
    await _container.client.close()
    _container.client = None


def get_db_client() -> DatabaseClient:
    """
    Get the global database client singleton instance.

    Raises:
        RuntimeError: If init_db() has not been called.
    """
    if _container.client is None:
        raise RuntimeError(
            "Database client not initialized. Call init_db() first during application startup."
        )
    return _container.client
