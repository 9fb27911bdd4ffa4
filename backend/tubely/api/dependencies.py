"""
Shared FastAPI dependencies for the Tubely API routers.

Long-lived collaborators (asset store, media tool) are built on first use
and kept on ``app.state``; tests replace them through
``app.dependency_overrides``.
"""

import logging
from uuid import UUID

from fastapi import Depends, Request, status

from tubely.config import Settings, get_settings
from tubely.core.database import get_db_client
from tubely.core.storage import AssetStore, create_asset_store
from tubely.models.video import VideoRecord
from tubely.services.media_service import FFmpegMediaTool, MediaTool
from tubely.services.video_store import VideoNotFoundError, VideoStore, VideoStoreError
from tubely.utils.responses import APIError


logger = logging.getLogger(__name__)


# =============================================================================
# Dependency Injection Functions
# =============================================================================


def get_video_store() -> VideoStore:
    """Video record store over the initialized MongoDB client."""
    return VideoStore(get_db_client().get_videos_collection())


def get_asset_store(request: Request, settings: Settings = Depends(get_settings)) -> AssetStore:
    """Asset store for the configured storage backend."""
    store = getattr(request.app.state, "asset_store", None)
    if store is None:
        store = create_asset_store(settings)
        request.app.state.asset_store = store
    return store


def get_media_tool(request: Request, settings: Settings = Depends(get_settings)) -> MediaTool:
    """ffprobe/ffmpeg wrapper built from settings."""
    tool = getattr(request.app.state, "media_tool", None)
    if tool is None:
        tool = FFmpegMediaTool.from_settings(settings)
        request.app.state.media_tool = tool
    return tool


def parse_video_id(video_id: str) -> UUID:
    """
    Parse the ``{video_id}`` path parameter.

    Raises:
        APIError: 400 "Invalid ID" if it is not a UUID.
    """
    try:
        return UUID(video_id)
    except ValueError as e:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Invalid ID", e) from e


# =============================================================================
# Ownership
# =============================================================================


async def get_owned_video(store: VideoStore, video_id: UUID, user_id: UUID) -> VideoRecord:
    """
    Fetch a record and check that ``user_id`` owns it.

    Raises:
        APIError: 400 when the record cannot be fetched, 401 "Unauthorized"
            when it belongs to another user.
    """
    try:
        video = await store.get(video_id)
    except VideoNotFoundError as e:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Something went wrong", e) from e
    except VideoStoreError as e:
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Couldn't fetch video", e) from e

    if not video.is_owned_by(user_id):
        logger.warning(
            "Rejected upload to another user's video",
            extra={"video_id": str(video_id), "user_id": str(user_id)},
        )
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    return video
