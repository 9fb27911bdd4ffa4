"""
Asset Storage Test Suite

Tests key generation, the local store (including a round trip through the
/assets static mount), and the S3 store's put_object parameters, error
mapping and URL templates. boto3 is replaced by a Mock client.
"""

import io
import os
import re
from unittest.mock import Mock, patch
from uuid import uuid4

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from fastapi.testclient import TestClient

from tubely.config import Settings
from tubely.core.storage import (
    LocalAssetStore,
    S3AssetStore,
    StorageWriteError,
    create_asset_store,
    generate_video_key,
    thumbnail_key,
)
from tubely.main import create_app
from tubely.services.media_service import AspectRatio


# =============================================================================
# Key Builders
# =============================================================================


@pytest.mark.unit
class TestKeys:
    """Tests for storage key layout."""

    @pytest.mark.parametrize(
        ("aspect_ratio", "prefix"),
        [
            (AspectRatio.LANDSCAPE, "landscape"),
            (AspectRatio.PORTRAIT, "portrait"),
            (AspectRatio.OTHER, "other"),
        ],
    )
    def test_video_key_layout(self, aspect_ratio: AspectRatio, prefix: str) -> None:
        key = generate_video_key(aspect_ratio)

        # 32 bytes -> 43 chars of unpadded URL-safe base64
        assert re.fullmatch(rf"{prefix}/[A-Za-z0-9_-]{{43}}\.mp4", key)

    def test_video_keys_are_fresh(self) -> None:
        keys = {generate_video_key(AspectRatio.OTHER) for _ in range(100)}
        assert len(keys) == 100

    def test_thumbnail_key(self) -> None:
        video_id = uuid4()
        assert thumbnail_key(video_id, "png") == f"{video_id}.png"


# =============================================================================
# Local Store
# =============================================================================


class TestLocalAssetStore:
    """Tests for LocalAssetStore."""

    @pytest.fixture
    def store(self, tmp_path) -> LocalAssetStore:
        return LocalAssetStore(str(tmp_path / "assets"), "http://localhost:8091/", "/assets/")

    @pytest.mark.asyncio
    async def test_put_writes_file_and_returns_url(self, store: LocalAssetStore) -> None:
        url = await store.put("landscape/abc.mp4", io.BytesIO(b"video-bytes"), "video/mp4")

        assert url == "http://localhost:8091/assets/landscape/abc.mp4"
        with open(os.path.join(store.assets_root, "landscape", "abc.mp4"), "rb") as f:
            assert f.read() == b"video-bytes"

    @pytest.mark.asyncio
    async def test_put_overwrites_existing_key(self, store: LocalAssetStore) -> None:
        await store.put("thumb.png", io.BytesIO(b"first"), "image/png")
        await store.put("thumb.png", io.BytesIO(b"second"), "image/png")

        with open(store.path_for("thumb.png"), "rb") as f:
            assert f.read() == b"second"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["../escape.png", "landscape/../../escape.png", ""])
    async def test_rejects_keys_outside_root(self, store: LocalAssetStore, key: str) -> None:
        with pytest.raises(StorageWriteError):
            await store.put(key, io.BytesIO(b"x"), "image/png")

    @pytest.mark.asyncio
    async def test_write_failure_is_storage_error(self, store: LocalAssetStore) -> None:
        with patch("tubely.core.storage.shutil.copyfileobj", side_effect=OSError("disk full")):
            with pytest.raises(StorageWriteError, match="disk full"):
                await store.put("thumb.png", io.BytesIO(b"x"), "image/png")

    @pytest.mark.asyncio
    async def test_failed_overwrite_keeps_previous_file(self, store: LocalAssetStore) -> None:
        await store.put("thumb.png", io.BytesIO(b"complete-thumbnail"), "image/png")

        def copy_partially(source, target):
            target.write(source.read(3))
            raise OSError("connection reset")

        with patch("tubely.core.storage.shutil.copyfileobj", side_effect=copy_partially):
            with pytest.raises(StorageWriteError):
                await store.put("thumb.png", io.BytesIO(b"replacement"), "image/png")

        with open(store.path_for("thumb.png"), "rb") as f:
            assert f.read() == b"complete-thumbnail"
        assert os.listdir(store.assets_root) == ["thumb.png"]

    @pytest.mark.asyncio
    async def test_round_trip_through_static_mount(self, mock_settings: Settings) -> None:
        store = create_asset_store(mock_settings)
        url = await store.put("portrait/clip.mp4", io.BytesIO(b"served-bytes"), "video/mp4")

        client = TestClient(create_app(mock_settings))
        response = client.get(url.removeprefix(mock_settings.local_base_url))

        assert response.status_code == 200
        assert response.content == b"served-bytes"


# =============================================================================
# S3 Store
# =============================================================================


class TestS3AssetStore:
    """Tests for S3AssetStore with a mocked boto3 client."""

    @pytest.fixture
    def s3_client(self) -> Mock:
        client = Mock()
        client.put_object.return_value = {"ETag": '"abc"'}
        return client

    @pytest.mark.asyncio
    async def test_put_object_parameters(self, s3_client: Mock) -> None:
        store = S3AssetStore(bucket="tubely-assets", region="us-east-2", client=s3_client)
        body = io.BytesIO(b"video-bytes")

        url = await store.put("landscape/abc.mp4", body, "video/mp4")

        s3_client.put_object.assert_called_once_with(
            Bucket="tubely-assets",
            Key="landscape/abc.mp4",
            Body=body,
            ContentType="video/mp4",
        )
        assert url == "https://tubely-assets.s3.us-east-2.amazonaws.com/landscape/abc.mp4"

    @pytest.mark.asyncio
    async def test_client_error_is_storage_error_without_retry(self, s3_client: Mock) -> None:
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )
        store = S3AssetStore(bucket="tubely-assets", client=s3_client)

        with pytest.raises(StorageWriteError):
            await store.put("other/abc.mp4", io.BytesIO(b"x"), "video/mp4")
        assert s3_client.put_object.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_is_storage_error(self, s3_client: Mock) -> None:
        s3_client.put_object.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")
        store = S3AssetStore(bucket="tubely-assets", client=s3_client)

        with pytest.raises(StorageWriteError):
            await store.put("other/abc.mp4", io.BytesIO(b"x"), "video/mp4")

    def test_cloudfront_url(self, s3_client: Mock) -> None:
        store = S3AssetStore(
            bucket="tubely-assets", client=s3_client, cf_distribution="d111111abcdef8.cloudfront.net"
        )
        assert store.url_for("portrait/k.mp4") == "https://d111111abcdef8.cloudfront.net/portrait/k.mp4"

    @pytest.mark.parametrize(
        "distribution",
        ["https://d111111abcdef8.cloudfront.net", "http://d111111abcdef8.cloudfront.net/"],
    )
    def test_cloudfront_url_ignores_scheme(self, s3_client: Mock, distribution: str) -> None:
        store = S3AssetStore(bucket="tubely-assets", client=s3_client, cf_distribution=distribution)

        assert store.url_for("portrait/k.mp4") == "https://d111111abcdef8.cloudfront.net/portrait/k.mp4"

    def test_custom_endpoint_url(self, s3_client: Mock) -> None:
        store = S3AssetStore(
            bucket="tubely-assets", client=s3_client, endpoint_url="http://localhost:9000/"
        )
        assert store.url_for("portrait/k.mp4") == "http://localhost:9000/tubely-assets/portrait/k.mp4"

    def test_client_created_without_retries(self) -> None:
        with patch("tubely.core.storage.boto3.client") as boto_client:
            S3AssetStore(bucket="tubely-assets", region="eu-west-1")

        kwargs = boto_client.call_args.kwargs
        assert boto_client.call_args.args == ("s3",)
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["config"].retries["max_attempts"] == 1


@pytest.mark.unit
class TestCreateAssetStore:
    """Backend selection from settings."""

    def test_local_backend(self, mock_settings: Settings) -> None:
        assert isinstance(create_asset_store(mock_settings), LocalAssetStore)

    def test_s3_backend(self, mock_settings: Settings) -> None:
        settings = mock_settings.model_copy(
            update={"storage_backend": "s3", "s3_bucket": "tubely-assets"}
        )
        with patch("tubely.core.storage.boto3.client"):
            store = create_asset_store(settings)

        assert isinstance(store, S3AssetStore)
        assert store.bucket == "tubely-assets"

    def test_s3_backend_requires_bucket(self, mock_settings: Settings) -> None:
        settings = mock_settings.model_copy(update={"storage_backend": "s3", "s3_bucket": None})
        with pytest.raises(ValueError, match="s3_bucket"):
            create_asset_store(settings)
