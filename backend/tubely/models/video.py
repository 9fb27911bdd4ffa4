"""
Video Pydantic models for Tubely.

A video record is created as a draft (title and description only) and later
receives its thumbnail and video URLs through the upload endpoints. Records
live in the MongoDB ``videos`` collection with the UUID string as ``_id``.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_TITLE_LENGTH: int = 200
MAX_DESCRIPTION_LENGTH: int = 5000

# Fields an update must never write back
IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "user_id", "created_at"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# MODELS
# =============================================================================


class VideoRecord(BaseModel):
    """
    Persistent metadata for one uploaded video.

    Attributes:
        id: Record identifier
        user_id: Owner of the record; fixed at creation
        title: Display title
        description: Free-form description
        thumbnail_url: Public URL of the thumbnail, once uploaded
        video_url: Public URL of the processed MP4, once uploaded
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)

    Example:
        ```python
        record = VideoRecord(user_id=user_id, title="Boots demo")
        await collection.insert_one(record.to_document())
        ```
    """

    id: UUID = Field(default_factory=uuid4, description="Video record identifier")

    user_id: UUID = Field(..., description="Owning user's identifier")

    title: str = Field(default="", max_length=MAX_TITLE_LENGTH, description="Video title")

    description: str = Field(
        default="", max_length=MAX_DESCRIPTION_LENGTH, description="Video description"
    )

    thumbnail_url: str | None = Field(default=None, description="Public thumbnail URL")

    video_url: str | None = Field(default=None, description="Public video URL")

    created_at: datetime = Field(default_factory=_utcnow, description="Creation time (UTC)")

    updated_at: datetime = Field(default_factory=_utcnow, description="Last update time (UTC)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0f7e2a8c-6c1e-4a43-9d3a-5b2e9f1f6a10",
                "user_id": "9b1deb4d-3b7d-4bad-9bdd-2b0d7b3dcb6d",
                "title": "Boots demo",
                "description": "Unboxing the new boots",
                "thumbnail_url": "http://localhost:8091/assets/0f7e2a8c-6c1e-4a43-9d3a-5b2e9f1f6a10.png",
                "video_url": "https://d111111abcdef8.cloudfront.net/landscape/p3u8G0zq.mp4",
                "created_at": "2025-01-15T10:30:00Z",
                "updated_at": "2025-01-15T10:35:00Z",
            }
        },
    )

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.user_id == user_id

    def to_document(self) -> dict[str, Any]:
        """Render the record as a MongoDB document keyed by ``_id``."""
        document = self.model_dump(exclude={"id"})
        document["_id"] = str(self.id)
        document["user_id"] = str(self.user_id)
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "VideoRecord":
        """Build a record from a MongoDB document."""
        data = dict(document)
        data["id"] = data.pop("_id")
        return cls.model_validate(data)


class VideoCreate(BaseModel):
    """Request body for creating a draft video record."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)

    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v
