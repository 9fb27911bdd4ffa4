"""
Tubely Asset Storage Module

Decides where an uploaded asset is stored and what URL it is served from.
Two backends share the AssetStore interface:
- LocalAssetStore: files under the assets root, served by the /assets mount
- S3AssetStore: objects in an S3-compatible bucket (AWS S3, MinIO), served
  through CloudFront, the custom endpoint, or the bucket's virtual-hosted URL

Key layout:
- videos: ``<landscape|portrait|other>/<token>.mp4`` where ``token`` is 32
  random bytes as unpadded URL-safe base64
- thumbnails: ``<video_id>.<ext>``

Writes are single attempts and a failed write surfaces as StorageWriteError.
Local writes go through a sibling temporary file that replaces the target
only once complete.
"""

import asyncio
import contextlib
import logging
import os
import secrets
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import BinaryIO
from uuid import UUID

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from tubely.config import Settings
from tubely.services.media_service import AspectRatio


# Number of random bytes in a video key token
VIDEO_KEY_TOKEN_BYTES = 32

# Configure module-level logger
logger = logging.getLogger(__name__)


class StorageWriteError(Exception):
    """Raised when an asset could not be written to its backend."""


# =============================================================================
# Key Builders
# =============================================================================


def generate_video_key(aspect_ratio: AspectRatio) -> str:
    """
    Build a fresh storage key for a processed video.

    Uniqueness is probabilistic (256 bits of randomness); existing keys are
    not checked.

    Example:
        >>> generate_video_key(AspectRatio.PORTRAIT)  # doctest: +SKIP
        'portrait/0Yk3b...Qw.mp4'
    """
    token = secrets.token_urlsafe(VIDEO_KEY_TOKEN_BYTES)
    return f"{aspect_ratio.prefix}/{token}.mp4"


def thumbnail_key(video_id: UUID, extension: str) -> str:
    """Storage key of a video's thumbnail, e.g. ``<video_id>.png``."""
    return f"{video_id}.{extension}"


# =============================================================================
# Asset Stores
# =============================================================================


class AssetStore(ABC):
    """Persists assets under a key and reports their public URL."""

    @abstractmethod
    async def put(self, key: str, source: BinaryIO, content_type: str) -> str:
        """
        Write the contents of ``source`` under ``key``.

        Returns:
            str: The public URL of the stored asset.

        Raises:
            StorageWriteError: If the write fails.
        """

    @abstractmethod
    def url_for(self, key: str) -> str:
        """Public URL of the asset stored under ``key``."""


class LocalAssetStore(AssetStore):
    """
    Stores assets as files below ``assets_root``.

    Args:
        assets_root: Directory holding the assets
        base_url: Public base URL of the server, without trailing slash
        url_path: Path the assets root is mounted at, e.g. "assets"
    """

    def __init__(self, assets_root: str, base_url: str, url_path: str = "assets") -> None:
        self.assets_root = os.path.abspath(assets_root)
        self.base_url = base_url.rstrip("/")
        self.url_path = url_path.strip("/")

    def path_for(self, key: str) -> str:
        """
        Filesystem path of ``key``.

        Raises:
            StorageWriteError: If the key would resolve outside the assets root.
        """
        path = os.path.abspath(os.path.join(self.assets_root, key))
        if os.path.commonpath([self.assets_root, path]) != self.assets_root or path == self.assets_root:
            raise StorageWriteError(f"key {key!r} escapes the assets root")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{self.url_path}/{key}"

    async def put(self, key: str, source: BinaryIO, content_type: str) -> str:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._write, path, source)
        except OSError as e:
            logger.exception("Failed to write asset", extra={"key": key, "path": path})
            raise StorageWriteError(f"failed to write {key}: {e}") from e

        logger.info(
            "Stored asset locally",
            extra={"key": key, "path": path, "content_type": content_type},
        )
        return self.url_for(key)

    @staticmethod
    def _write(path: str, source: BinaryIO) -> None:
        # Readers of ``path`` see either the old file or the complete new one.
        directory = os.path.dirname(path)
        os.makedirs(directory, exist_ok=True)
        fd, partial_path = tempfile.mkstemp(prefix=".partial-", dir=directory)
        try:
            with os.fdopen(fd, "wb") as target:
                shutil.copyfileobj(source, target)
            os.chmod(partial_path, 0o644)
            os.replace(partial_path, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.remove(partial_path)
            raise


class S3AssetStore(AssetStore):
    """
    Stores assets in an S3-compatible bucket.

    The boto3 client is created with retries disabled (``max_attempts=1``);
    a failed ``put_object`` is reported, not repeated.

    Example usage:
        ```python
        store = S3AssetStore(bucket="tubely-assets", region="us-east-1",
                             cf_distribution="d111111abcdef8.cloudfront.net")
        with open(path, "rb") as f:
            url = await store.put("landscape/abc.mp4", f, "video/mp4")
        ```
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        cf_distribution: str | None = None,
        client: object | None = None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        # Distribution is a bare host; a pasted "https://" prefix is dropped.
        self.cf_distribution = (
            cf_distribution.split("://", 1)[-1].strip("/") if cf_distribution else None
        )

        if client is None:
            client_config = Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"} if endpoint_url else {},
                retries={"max_attempts": 1, "mode": "standard"},
            )
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
                config=client_config,
            )
        self.s3_client = client

        logger.info(
            "S3 asset store initialized",
            extra={
                "bucket": bucket,
                "region": region,
                "endpoint": endpoint_url or "AWS S3 (default)",
                "cf_distribution": cf_distribution,
            },
        )

    def url_for(self, key: str) -> str:
        if self.cf_distribution:
            return f"https://{self.cf_distribution}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, key: str, source: BinaryIO, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=source,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.exception(
                "Failed to upload asset to S3",
                extra={"bucket": self.bucket, "key": key},
            )
            raise StorageWriteError(f"failed to upload {key} to bucket {self.bucket}: {e}") from e

        logger.info(
            "Uploaded asset to S3",
            extra={"bucket": self.bucket, "key": key, "content_type": content_type},
        )
        return self.url_for(key)


def create_asset_store(settings: Settings) -> AssetStore:
    """
    Build the asset store selected by ``settings.storage_backend``.

    Raises:
        ValueError: If the S3 backend is selected without a bucket.
    """
    if settings.uses_s3:
        if not settings.s3_bucket:
            raise ValueError("s3_bucket must be set when storage_backend is 's3'")
        return S3AssetStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            cf_distribution=settings.s3_cf_distribution,
        )

    return LocalAssetStore(
        assets_root=settings.assets_root,
        base_url=settings.local_base_url,
        url_path=settings.assets_url_path,
    )
