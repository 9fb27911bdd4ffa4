"""
Video endpoints.

- POST /api/videos                Create a draft video record (201)
- GET  /api/videos                List the caller's video records
- GET  /api/videos/{video_id}     Fetch one of the caller's records
- POST /api/videos/{video_id}     Upload the video file for a record

Upload flow:
1. Authenticate, fetch the record and check ownership
2. Read the ``video`` part (``video/mp4``, at most ``max_video_upload_bytes``)
   into a temporary file
3. Probe the first video stream with ffprobe and classify its aspect ratio
4. Remux with ffmpeg so the index sits at the front of the file
5. Store the processed file under ``<landscape|portrait|other>/<token>.mp4``
6. Write the asset URL to the record's ``video_url``

Temporary and processed files are removed however the request ends.
"""

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from tubely.api.dependencies import (
    get_asset_store,
    get_media_tool,
    get_owned_video,
    get_video_store,
    parse_video_id,
)
from tubely.config import Settings, get_settings
from tubely.core.auth import get_current_user_id
from tubely.core.storage import AssetStore, StorageWriteError, generate_video_key
from tubely.models.video import VideoCreate
from tubely.services.media_service import (
    MediaTool,
    ProbeFailedError,
    ProcessingFailedError,
    get_video_aspect_ratio,
)
from tubely.services.upload_service import (
    VIDEO_CONTENT_TYPE,
    BadUploadError,
    read_form_file,
    removing,
    require_video_mp4,
    spooled_temp_file,
)
from tubely.services.video_store import VideoNotFoundError, VideoStore, VideoStoreError
from tubely.utils.logger import add_log_context
from tubely.utils.responses import APIError, respond_with_json


logger = logging.getLogger(__name__)

router = APIRouter()

VIDEO_FIELD = "video"


# =============================================================================
# Record Endpoints
# =============================================================================


@router.post("/videos", status_code=status.HTTP_201_CREATED)
async def create_video(
    body: VideoCreate,
    user_id: UUID = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
) -> JSONResponse:
    """Create a draft video record owned by the caller."""
    try:
        video = await store.create(user_id, body.title, body.description)
    except VideoStoreError as e:
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Couldn't create video", e) from e
    return respond_with_json(status.HTTP_201_CREATED, video)


@router.get("/videos")
async def list_videos(
    user_id: UUID = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
) -> JSONResponse:
    """List the caller's video records, newest first."""
    try:
        videos = await store.list_for_user(user_id)
    except VideoStoreError as e:
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Couldn't retrieve videos", e) from e
    return respond_with_json(status.HTTP_200_OK, videos)


@router.get("/videos/{video_id}")
async def get_video(
    video_id: UUID = Depends(parse_video_id),
    user_id: UUID = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
) -> JSONResponse:
    """Fetch one of the caller's video records."""
    video = await get_owned_video(store, video_id, user_id)
    return respond_with_json(status.HTTP_200_OK, video)


# =============================================================================
# Upload Endpoint
# =============================================================================


@router.post("/videos/{video_id}")
async def upload_video(
    request: Request,
    video_id: UUID = Depends(parse_video_id),
    user_id: UUID = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
    assets: AssetStore = Depends(get_asset_store),
    media_tool: MediaTool = Depends(get_media_tool),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Process and store an uploaded MP4 for a video the caller owns."""
    ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
    ctx_logger.info("Uploading video")

    video = await get_owned_video(store, video_id, user_id)

    max_bytes = settings.max_video_upload_bytes
    try:
        upload = await read_form_file(request, VIDEO_FIELD, max_bytes)
    except BadUploadError as e:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Unable to parse form file", e) from e

    try:
        try:
            require_video_mp4(upload.content_type)
        except BadUploadError as e:
            raise APIError(status.HTTP_400_BAD_REQUEST, "Invalid file type", e) from e

        try:
            async with spooled_temp_file(upload, max_bytes) as temp_path:
                url = await _process_and_store(temp_path, media_tool, assets, ctx_logger)
        except BadUploadError as e:
            raise APIError(status.HTTP_400_BAD_REQUEST, "Unable to parse form file", e) from e
    finally:
        await upload.close()

    video.video_url = url
    try:
        video = await store.update(video)
    except VideoNotFoundError as e:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Something went wrong", e) from e
    except VideoStoreError as e:
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Couldn't update video", e) from e

    ctx_logger.info("Video uploaded", extra={"url": url})
    return respond_with_json(status.HTTP_200_OK, video)


async def _process_and_store(
    temp_path: str,
    media_tool: MediaTool,
    assets: AssetStore,
    ctx_logger: logging.LoggerAdapter,
) -> str:
    """Probe, remux and store the spooled upload; return the asset URL."""
    try:
        aspect_ratio = await asyncio.to_thread(get_video_aspect_ratio, media_tool, temp_path)
    except ProbeFailedError as e:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Unable to get aspect ratio", e) from e

    try:
        processed_path = await asyncio.to_thread(media_tool.remux_faststart, temp_path)
    except ProcessingFailedError as e:
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error processing video", e) from e

    with removing(processed_path):
        key = generate_video_key(aspect_ratio)
        try:
            with open(processed_path, "rb") as processed:
                url = await assets.put(key, processed, VIDEO_CONTENT_TYPE)
        except OSError as e:
            raise APIError(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Could not open processed file", e
            ) from e
        except StorageWriteError as e:
            raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Couldn't upload video", e) from e

    ctx_logger.info(
        "Stored processed video",
        extra={"key": key, "aspect_ratio": aspect_ratio.value},
    )
    return url
