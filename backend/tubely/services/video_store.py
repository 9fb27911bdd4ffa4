"""
Video Record Store for Tubely.

Reads and writes video records in the MongoDB ``videos`` collection through
Motor. The store never enforces ownership itself; handlers fetch the record,
compare ``user_id`` with the authenticated user, and only then call
``update``.

Example usage:
    ```python
    store = VideoStore(get_db_client().get_videos_collection())
    record = await store.get(video_id)
    record.thumbnail_url = url
    await store.update(record)
    ```
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from tubely.models.video import IMMUTABLE_FIELDS, VideoRecord


logger = logging.getLogger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class VideoStoreError(Exception):
    """Raised when the record store cannot complete an operation."""


class VideoNotFoundError(VideoStoreError):
    """Raised when no record exists for the requested id."""

    def __init__(self, video_id: UUID) -> None:
        super().__init__(f"video {video_id} not found")
        self.video_id = video_id


# =============================================================================
# Store
# =============================================================================


class VideoStore:
    """Motor-backed persistence for VideoRecord documents."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def create(self, user_id: UUID, title: str, description: str = "") -> VideoRecord:
        """Insert a new draft record owned by ``user_id``."""
        record = VideoRecord(user_id=user_id, title=title, description=description)
        try:
            await self._collection.insert_one(record.to_document())
        except PyMongoError as e:
            raise VideoStoreError(f"failed to create video: {e}") from e

        logger.info("Created video record", extra={"video_id": str(record.id), "user_id": str(user_id)})
        return record

    async def get(self, video_id: UUID) -> VideoRecord:
        """
        Fetch a record by id.

        Raises:
            VideoNotFoundError: If no record has this id.
            VideoStoreError: On driver errors or an unreadable document.
        """
        try:
            document = await self._collection.find_one({"_id": str(video_id)})
        except PyMongoError as e:
            raise VideoStoreError(f"failed to fetch video {video_id}: {e}") from e

        if document is None:
            raise VideoNotFoundError(video_id)

        try:
            return VideoRecord.from_document(document)
        except ValidationError as e:
            raise VideoStoreError(f"stored video {video_id} is malformed: {e}") from e

    async def list_for_user(self, user_id: UUID) -> list[VideoRecord]:
        """
        Return the user's records, newest first.

        Raises:
            VideoStoreError: On driver errors or an unreadable document.
        """
        try:
            cursor = self._collection.find({"user_id": str(user_id)}).sort(
                "created_at", DESCENDING
            )
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise VideoStoreError(f"failed to list videos for user {user_id}: {e}") from e

        try:
            return [VideoRecord.from_document(document) for document in documents]
        except ValidationError as e:
            raise VideoStoreError(f"stored video for user {user_id} is malformed: {e}") from e

    async def update(self, record: VideoRecord) -> VideoRecord:
        """
        Persist the mutable fields of ``record`` and refresh ``updated_at``.

        ``user_id`` and ``created_at`` are never written, so an update cannot
        transfer ownership.

        Returns:
            VideoRecord: The record as stored.

        Raises:
            VideoNotFoundError: If the record no longer exists.
            VideoStoreError: On driver errors.
        """
        record.updated_at = datetime.now(UTC)
        changes = record.model_dump(exclude=set(IMMUTABLE_FIELDS))

        try:
            result = await self._collection.update_one({"_id": str(record.id)}, {"$set": changes})
        except PyMongoError as e:
            raise VideoStoreError(f"failed to update video {record.id}: {e}") from e

        if result.matched_count == 0:
            raise VideoNotFoundError(record.id)

        logger.debug("Updated video record", extra={"video_id": str(record.id)})
        return record
