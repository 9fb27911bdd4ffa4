"""
Media Service for Tubely.

Wraps the ffprobe and ffmpeg command-line tools:
- ``probe`` reads the stream descriptors of a file as JSON
- ``classify_aspect_ratio`` maps a frame size onto 16:9, 9:16 or other
- ``remux_faststart`` rewrites an MP4 so its index (moov atom) precedes the
  media data, letting players start before the whole file has downloaded

Both tools are run synchronously with ``subprocess.run``. Async callers hand
them to a worker thread with ``asyncio.to_thread``.
"""

import json
import logging
import os
import subprocess
from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, ConfigDict, ValidationError

from tubely.config import Settings


logger = logging.getLogger(__name__)

PROCESSING_SUFFIX = ".processing"


# =============================================================================
# Exception Classes
# =============================================================================


class MediaToolError(Exception):
    """Base exception for ffprobe / ffmpeg failures."""


class ProbeFailedError(MediaToolError):
    """Raised when stream metadata cannot be read from a file."""


class ProcessingFailedError(MediaToolError):
    """Raised when the faststart remux does not produce a usable file."""


# =============================================================================
# Models
# =============================================================================


class AspectRatio(str, Enum):
    """Aspect ratio categories of an uploaded video."""

    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    OTHER = "other"

    @property
    def prefix(self) -> str:
        """Storage key prefix for videos of this ratio."""
        return _ASPECT_PREFIXES[self]


_ASPECT_PREFIXES: dict[AspectRatio, str] = {
    AspectRatio.LANDSCAPE: "landscape",
    AspectRatio.PORTRAIT: "portrait",
    AspectRatio.OTHER: "other",
}


class StreamInfo(BaseModel):
    """One entry of ffprobe's ``streams`` array."""

    index: int
    codec_name: str | None = None
    codec_type: str | None = None
    width: int | None = None
    height: int | None = None
    avg_frame_rate: str | None = None
    duration: str | None = None
    bit_rate: str | None = None
    sample_rate: str | None = None
    channels: int | None = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_video(self) -> bool:
        return self.codec_type == "video"


# =============================================================================
# Aspect Ratio Classification
# =============================================================================


def classify_aspect_ratio(width: int, height: int) -> AspectRatio:
    """
    Classify a frame size using exact integer arithmetic.

    A frame is 16:9 when ``width == 16 * height // 9`` and 9:16 when
    ``height == 16 * width // 9``. Anything else, including non-positive
    dimensions, is "other". 1920x1080 is landscape; 1921x1080 is not.

    Examples:
        >>> classify_aspect_ratio(1920, 1080)
        <AspectRatio.LANDSCAPE: '16:9'>
        >>> classify_aspect_ratio(608, 1080)
        <AspectRatio.PORTRAIT: '9:16'>
        >>> classify_aspect_ratio(1080, 1080)
        <AspectRatio.OTHER: 'other'>
    """
    if width <= 0 or height <= 0:
        return AspectRatio.OTHER
    if width == 16 * height // 9:
        return AspectRatio.LANDSCAPE
    if height == 16 * width // 9:
        return AspectRatio.PORTRAIT
    return AspectRatio.OTHER


# =============================================================================
# Media Tools
# =============================================================================


class MediaTool(ABC):
    """Interface over the external media tools, swappable in tests."""

    @abstractmethod
    def probe(self, path: str) -> list[StreamInfo]:
        """Return the stream descriptors of the file at ``path``."""

    @abstractmethod
    def remux_faststart(self, path: str) -> str:
        """Write a faststart copy of ``path`` and return the new file's path."""


class FFmpegMediaTool(MediaTool):
    """
    MediaTool backed by the ffprobe and ffmpeg executables.

    Args:
        ffprobe_path: ffprobe executable name or path
        ffmpeg_path: ffmpeg executable name or path
        timeout: Seconds before a run is abandoned; None waits indefinitely
    """

    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        ffmpeg_path: str = "ffmpeg",
        timeout: float | None = None,
    ) -> None:
        self.ffprobe_path = ffprobe_path
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "FFmpegMediaTool":
        return cls(
            ffprobe_path=settings.ffprobe_path,
            ffmpeg_path=settings.ffmpeg_path,
            timeout=settings.media_tool_timeout_seconds,
        )

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=self.timeout,
            check=False,
        )

    def probe(self, path: str) -> list[StreamInfo]:
        """
        Run ``ffprobe -v error -print_format json -show_streams <path>``.

        Raises:
            ProbeFailedError: If ffprobe is missing, exits non-zero, times
                out, or prints something other than ``{"streams": [...]}``.
        """
        cmd = [
            self.ffprobe_path,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            path,
        ]
        try:
            result = self._run(cmd)
        except FileNotFoundError as e:
            raise ProbeFailedError(f"ffprobe not found: {self.ffprobe_path}") from e
        except subprocess.TimeoutExpired as e:
            raise ProbeFailedError(f"ffprobe timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ProbeFailedError(f"ffprobe exited with status {result.returncode}: {stderr}")

        try:
            payload = json.loads(result.stdout)
        except (ValueError, UnicodeDecodeError) as e:
            raise ProbeFailedError(f"ffprobe output is not JSON: {e}") from e

        streams = payload.get("streams") if isinstance(payload, dict) else None
        if not isinstance(streams, list):
            raise ProbeFailedError("ffprobe output has no streams array")

        try:
            return [StreamInfo.model_validate(stream) for stream in streams]
        except ValidationError as e:
            raise ProbeFailedError(f"unexpected ffprobe stream format: {e}") from e

    def remux_faststart(self, path: str) -> str:
        """
        Run ``ffmpeg -nostdin -i <path> -movflags faststart -codec copy -f mp4 <path>.processing``.

        Streams are copied, not re-encoded. The input is left untouched; the
        caller owns the returned file and removes it after use.

        Raises:
            ProcessingFailedError: If ffmpeg is missing, exits non-zero, times
                out, or leaves no output or an empty one. Any partial output
                is removed first.
        """
        output_path = path + PROCESSING_SUFFIX
        cmd = [
            self.ffmpeg_path,
            "-nostdin",
            "-i",
            path,
            "-movflags",
            "faststart",
            "-codec",
            "copy",
            "-f",
            "mp4",
            output_path,
        ]
        try:
            result = self._run(cmd)
        except FileNotFoundError as e:
            raise ProcessingFailedError(f"ffmpeg not found: {self.ffmpeg_path}") from e
        except subprocess.TimeoutExpired as e:
            _remove_quietly(output_path)
            raise ProcessingFailedError(f"ffmpeg timed out after {self.timeout}s") from e

        if result.returncode != 0:
            _remove_quietly(output_path)
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ProcessingFailedError(f"ffmpeg exited with status {result.returncode}: {stderr}")

        try:
            size = os.path.getsize(output_path)
        except OSError as e:
            raise ProcessingFailedError(f"could not stat processed file: {e}") from e

        if size == 0:
            _remove_quietly(output_path)
            raise ProcessingFailedError("processed file is empty")

        logger.debug("Remuxed %s with faststart (%d bytes)", path, size)
        return output_path


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove %s", path, exc_info=True)


def get_video_aspect_ratio(tool: MediaTool, path: str) -> AspectRatio:
    """
    Probe ``path`` and classify its first video stream.

    Raises:
        ProbeFailedError: If probing fails or the file has no video stream
            with dimensions.
    """
    streams = tool.probe(path)
    video_stream = next((stream for stream in streams if stream.is_video), None)
    if video_stream is None:
        raise ProbeFailedError("no video streams found")
    if video_stream.width is None or video_stream.height is None:
        raise ProbeFailedError("video stream has no dimensions")

    return classify_aspect_ratio(video_stream.width, video_stream.height)
