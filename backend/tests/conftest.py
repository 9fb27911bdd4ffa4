"""
Pytest Configuration and Test Fixtures for the Tubely Backend

This module provides the shared fixtures:
- Settings pointing the local asset store at a temporary directory
- Signed bearer tokens for an owner and a second user
- An in-memory video record store standing in for MongoDB
- A scripted media tool standing in for ffprobe/ffmpeg
- A FastAPI TestClient wired to the fakes through dependency overrides
"""

from collections.abc import Generator
from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tubely.api.dependencies import get_asset_store, get_media_tool, get_video_store
from tubely.config import Settings, get_settings
from tubely.core.auth import create_access_token
from tubely.core.storage import AssetStore, LocalAssetStore
from tubely.main import create_app
from tubely.models.video import VideoRecord
from tubely.services.media_service import MediaTool, ProbeFailedError, StreamInfo
from tubely.services.video_store import VideoNotFoundError


# ==============================================================================
# Pytest Configuration
# ==============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register the custom markers used across the suite."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ==============================================================================
# Fakes
# ==============================================================================


class FakeVideoStore:
    """In-memory replacement for VideoStore keyed by record id."""

    def __init__(self) -> None:
        self.videos: dict[UUID, VideoRecord] = {}
        self.update_calls = 0

    def add(self, record: VideoRecord) -> VideoRecord:
        self.videos[record.id] = record.model_copy(deep=True)
        return record

    async def create(self, user_id: UUID, title: str, description: str = "") -> VideoRecord:
        return self.add(VideoRecord(user_id=user_id, title=title, description=description))

    async def get(self, video_id: UUID) -> VideoRecord:
        try:
            return self.videos[video_id].model_copy(deep=True)
        except KeyError:
            raise VideoNotFoundError(video_id) from None

    async def list_for_user(self, user_id: UUID) -> list[VideoRecord]:
        owned = [v for v in self.videos.values() if v.user_id == user_id]
        return sorted(owned, key=lambda v: v.created_at, reverse=True)

    async def update(self, record: VideoRecord) -> VideoRecord:
        self.update_calls += 1
        if record.id not in self.videos:
            raise VideoNotFoundError(record.id)
        self.videos[record.id] = record.model_copy(deep=True)
        return record


class FakeMediaTool(MediaTool):
    """
    MediaTool returning scripted streams and writing a scripted remux output.

    Attributes:
        streams: Streams reported by ``probe``; None makes ``probe`` fail
        remux_output: Bytes written to ``<path>.processing``
        probed_paths / remuxed_paths: Inputs seen, for post-request checks
    """

    def __init__(self, width: int = 1920, height: int = 1080) -> None:
        self.streams: list[StreamInfo] | None = [
            StreamInfo(index=0, codec_type="video", codec_name="h264", width=width, height=height)
        ]
        self.remux_output = b"processed-mp4"
        self.probed_paths: list[str] = []
        self.remuxed_paths: list[str] = []
        self.outputs: list[str] = []

    def probe(self, path: str) -> list[StreamInfo]:
        self.probed_paths.append(path)
        if self.streams is None:
            raise ProbeFailedError("ffprobe exited with status 1")
        return self.streams

    def remux_faststart(self, path: str) -> str:
        self.remuxed_paths.append(path)
        output = path + ".processing"
        with open(output, "wb") as f:
            f.write(self.remux_output)
        self.outputs.append(output)
        return output


# ==============================================================================
# Settings and Identity Fixtures
# ==============================================================================


@pytest.fixture
def mock_settings(tmp_path) -> Settings:
    """Settings isolated to a temporary assets root."""
    return Settings(
        app_env="testing",
        jwt_secret="test-secret-key-for-jwt-signing",
        jwt_issuer="tubely-access",
        storage_backend="local",
        assets_root=str(tmp_path / "assets"),
        local_base_url="http://localhost:8091",
        assets_url_path="assets",
        max_thumbnail_upload_bytes=1024,
        max_video_upload_bytes=4096,
    )


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def test_jwt_token(mock_settings: Settings, owner_id: UUID) -> str:
    """Valid bearer token for the video owner."""
    return create_access_token(owner_id, mock_settings)


@pytest.fixture
def test_expired_jwt_token(mock_settings: Settings, owner_id: UUID) -> str:
    """Token for the owner that expired an hour ago."""
    return create_access_token(owner_id, mock_settings, expires_in=timedelta(hours=-1))


@pytest.fixture
def auth_headers(test_jwt_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {test_jwt_token}"}


@pytest.fixture
def other_auth_headers(mock_settings: Settings, other_user_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(other_user_id, mock_settings)}"}


# ==============================================================================
# Collaborator Fixtures
# ==============================================================================


@pytest.fixture
def video_store() -> FakeVideoStore:
    return FakeVideoStore()


@pytest.fixture
def test_video(video_store: FakeVideoStore, owner_id: UUID) -> VideoRecord:
    """A draft record owned by ``owner_id``."""
    return video_store.add(VideoRecord(user_id=owner_id, title="Boots demo"))


@pytest.fixture
def media_tool() -> FakeMediaTool:
    return FakeMediaTool()


@pytest.fixture
def asset_store(mock_settings: Settings) -> AssetStore:
    return LocalAssetStore(
        assets_root=mock_settings.assets_root,
        base_url=mock_settings.local_base_url,
        url_path=mock_settings.assets_url_path,
    )


# ==============================================================================
# Application Fixtures
# ==============================================================================


@pytest.fixture
def app(
    mock_settings: Settings,
    video_store: FakeVideoStore,
    asset_store: AssetStore,
    media_tool: FakeMediaTool,
) -> Generator[FastAPI, None, None]:
    """Application with every external collaborator overridden."""
    application = create_app(mock_settings)
    application.dependency_overrides[get_settings] = lambda: mock_settings
    application.dependency_overrides[get_video_store] = lambda: video_store
    application.dependency_overrides[get_asset_store] = lambda: asset_store
    application.dependency_overrides[get_media_tool] = lambda: media_tool
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def test_client(app: FastAPI) -> TestClient:
    """
    TestClient without lifespan startup, so no MongoDB connection is made.
    """
    return TestClient(app)
