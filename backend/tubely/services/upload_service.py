"""
Upload Ingestion Service for Tubely.

Turns a multipart request into a bounded, typed file part:
1. Reject a declared Content-Length that cannot fit the size bound
2. Parse the multipart body (Starlette spools file parts to disk)
3. Locate the named part and re-check its size
4. Validate the declared content type and derive the stored extension

Videos are additionally copied into a named temporary file so the media
tools can read them from a path. The temporary file is removed on every exit
path of the ``spooled_temp_file`` context manager.
"""

import logging
import os
import tempfile
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager

import aiofiles
from fastapi import Request, UploadFile
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Chunk size used when copying an upload to a temporary file (1 MiB)
CHUNK_SIZE: int = 1 << 20

# Room left for multipart boundaries and part headers when comparing the
# request Content-Length against a part size bound
MULTIPART_OVERHEAD_BYTES: int = 64 << 10

TEMP_FILE_PREFIX: str = "tubely-upload-"

VIDEO_CONTENT_TYPE: str = "video/mp4"

# Accepted thumbnail media types and the extension they are stored under
THUMBNAIL_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


# =============================================================================
# Exception Classes
# =============================================================================


class BadUploadError(Exception):
    """Raised when the request does not carry an acceptable file part."""


# =============================================================================
# Form Parsing
# =============================================================================


async def read_form_file(request: Request, field_name: str, max_bytes: int) -> UploadFile:
    """
    Parse the multipart body and return the file part named ``field_name``.

    Args:
        request: Incoming request
        field_name: Multipart field carrying the file
        max_bytes: Largest accepted part size in bytes

    Returns:
        UploadFile: The spooled file part, positioned at its start.

    Raises:
        BadUploadError: If the body is too large, is not multipart, lacks the
            field, or the field is not a file.
    """
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            declared = int(content_length)
        except ValueError as e:
            raise BadUploadError(f"invalid Content-Length: {content_length!r}") from e
        if declared > max_bytes + MULTIPART_OVERHEAD_BYTES:
            raise BadUploadError(f"request body of {declared} bytes exceeds {max_bytes} bytes")

    content_type = request.headers.get("content-type", "")
    if parse_media_type(content_type) != "multipart/form-data":
        raise BadUploadError(f"expected multipart/form-data, got {content_type or 'nothing'}")

    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        raise BadUploadError(f"malformed multipart body: {e}") from e

    part = form.get(field_name)
    if part is None:
        raise BadUploadError(f"missing form field {field_name!r}")
    if not isinstance(part, StarletteUploadFile):
        raise BadUploadError(f"form field {field_name!r} is not a file")

    size = _part_size(part)
    if size > max_bytes:
        raise BadUploadError(f"file of {size} bytes exceeds {max_bytes} bytes")

    await part.seek(0)
    return part


def _part_size(part: StarletteUploadFile) -> int:
    if part.size is not None:
        return part.size
    current = part.file.tell()
    part.file.seek(0, os.SEEK_END)
    size = part.file.tell()
    part.file.seek(current)
    return size


# =============================================================================
# Content Type Helpers
# =============================================================================


def parse_media_type(content_type: str | None) -> str:
    """
    Return the bare, lower-cased media type of a Content-Type value.

    >>> parse_media_type("image/PNG; charset=binary")
    'image/png'
    """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def extension_for_content_type(content_type: str | None) -> str:
    """
    Map a thumbnail content type onto its stored file extension.

    Raises:
        BadUploadError: If the type is not a supported image type.
    """
    media_type = parse_media_type(content_type)
    try:
        return THUMBNAIL_EXTENSIONS[media_type]
    except KeyError:
        raise BadUploadError(f"unsupported thumbnail type {media_type or 'none'}") from None


def require_video_mp4(content_type: str | None) -> str:
    """
    Check that an upload declares ``video/mp4``.

    Raises:
        BadUploadError: For any other declared type.
    """
    media_type = parse_media_type(content_type)
    if media_type != VIDEO_CONTENT_TYPE:
        raise BadUploadError(f"unsupported video type {media_type or 'none'}")
    return media_type


# =============================================================================
# Temporary Files
# =============================================================================


@asynccontextmanager
async def spooled_temp_file(
    upload: UploadFile,
    max_bytes: int,
    suffix: str = ".mp4",
) -> AsyncIterator[str]:
    """
    Copy ``upload`` into a new temporary file and yield its path.

    The copy is made in CHUNK_SIZE pieces; counting stops the copy as soon as
    ``max_bytes`` is exceeded. The file is removed when the block exits,
    whether it succeeded or raised.

    Raises:
        BadUploadError: If the upload is larger than ``max_bytes``.
    """
    fd, path = tempfile.mkstemp(prefix=TEMP_FILE_PREFIX, suffix=suffix)
    os.close(fd)
    try:
        written = 0
        await upload.seek(0)
        async with aiofiles.open(path, "wb") as temp_file:
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise BadUploadError(f"file exceeds {max_bytes} bytes")
                await temp_file.write(chunk)

        logger.debug("Spooled %d bytes to %s", written, path)
        yield path
    finally:
        _remove(path)


@contextmanager
def removing(path: str) -> Iterator[str]:
    """Yield ``path`` and remove the file on exit."""
    try:
        yield path
    finally:
        _remove(path)


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove temporary file %s", path, exc_info=True)
