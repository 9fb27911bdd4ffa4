"""
Thumbnail upload endpoint.

POST /api/thumbnails/{video_id}
    Multipart field ``thumbnail`` (jpeg, png, gif or webp, at most
    ``max_thumbnail_upload_bytes``). The image is stored under
    ``<video_id>.<ext>`` and its URL written to the record's
    ``thumbnail_url``. Only the record's owner may upload.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from tubely.api.dependencies import get_asset_store, get_owned_video, get_video_store, parse_video_id
from tubely.config import Settings, get_settings
from tubely.core.auth import get_current_user_id
from tubely.core.storage import AssetStore, StorageWriteError, thumbnail_key
from tubely.services.upload_service import (
    BadUploadError,
    extension_for_content_type,
    parse_media_type,
    read_form_file,
)
from tubely.services.video_store import VideoNotFoundError, VideoStore, VideoStoreError
from tubely.utils.logger import add_log_context
from tubely.utils.responses import APIError, respond_with_json


logger = logging.getLogger(__name__)

router = APIRouter()

THUMBNAIL_FIELD = "thumbnail"


@router.post("/thumbnails/{video_id}")
async def upload_thumbnail(
    request: Request,
    video_id: UUID = Depends(parse_video_id),
    user_id: UUID = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
    assets: AssetStore = Depends(get_asset_store),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Attach an uploaded thumbnail image to a video the caller owns."""
    ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
    ctx_logger.info("Uploading thumbnail")

    video = await get_owned_video(store, video_id, user_id)

    try:
        upload = await read_form_file(request, THUMBNAIL_FIELD, settings.max_thumbnail_upload_bytes)
    except BadUploadError as e:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Unable to parse form file", e) from e

    try:
        try:
            extension = extension_for_content_type(upload.content_type)
        except BadUploadError as e:
            raise APIError(status.HTTP_400_BAD_REQUEST, "Invalid file type", e) from e

        key = thumbnail_key(video_id, extension)
        try:
            url = await assets.put(key, upload.file, parse_media_type(upload.content_type))
        except StorageWriteError as e:
            raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Couldn't save thumbnail", e) from e
    finally:
        await upload.close()

    video.thumbnail_url = url
    try:
        video = await store.update(video)
    except VideoNotFoundError as e:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Something went wrong", e) from e
    except VideoStoreError as e:
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Couldn't update video", e) from e

    ctx_logger.info("Thumbnail uploaded", extra={"key": key, "url": url})
    return respond_with_json(status.HTTP_200_OK, video)
