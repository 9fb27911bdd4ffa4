"""
Upload Ingestion Test Suite

Tests multipart part extraction and its size bounds, content-type helpers,
and temporary-file cleanup on success and on failure.
"""

import io
import os

import pytest
from fastapi import FastAPI, Request, UploadFile
from fastapi.testclient import TestClient

from tubely.services.upload_service import (
    TEMP_FILE_PREFIX,
    BadUploadError,
    extension_for_content_type,
    parse_media_type,
    read_form_file,
    removing,
    require_video_mp4,
    spooled_temp_file,
)
from tubely.utils.responses import APIError, register_exception_handlers


MAX_BYTES = 16


@pytest.fixture
def form_client() -> TestClient:
    """Minimal app exposing read_form_file for the ``file`` field."""
    app = FastAPI()
    register_exception_handlers(app)

    @app.post("/upload")
    async def upload(request: Request) -> dict:
        try:
            part = await read_form_file(request, "file", MAX_BYTES)
        except BadUploadError as e:
            raise APIError(400, str(e), e) from e
        data = await part.read()
        return {"filename": part.filename, "content_type": part.content_type, "size": len(data)}

    return TestClient(app)


# =============================================================================
# Form Parsing
# =============================================================================


class TestReadFormFile:
    """Tests for read_form_file."""

    def test_returns_named_part(self, form_client: TestClient) -> None:
        response = form_client.post(
            "/upload", files={"file": ("thumb.png", b"0123456789", "image/png")}
        )

        assert response.status_code == 200
        assert response.json() == {"filename": "thumb.png", "content_type": "image/png", "size": 10}

    def test_part_at_bound_is_accepted(self, form_client: TestClient) -> None:
        response = form_client.post(
            "/upload", files={"file": ("thumb.png", b"x" * MAX_BYTES, "image/png")}
        )
        assert response.status_code == 200

    def test_part_over_bound_is_rejected(self, form_client: TestClient) -> None:
        response = form_client.post(
            "/upload", files={"file": ("thumb.png", b"x" * (MAX_BYTES + 1), "image/png")}
        )

        assert response.status_code == 400
        assert "exceeds" in response.json()["error"]

    def test_declared_length_far_over_bound_is_rejected(self, form_client: TestClient) -> None:
        response = form_client.post(
            "/upload",
            content=b"x" * 10,
            headers={"Content-Type": "multipart/form-data; boundary=abc", "Content-Length": str(1 << 30)},
        )
        assert response.status_code == 400

    def test_missing_field_is_rejected(self, form_client: TestClient) -> None:
        response = form_client.post(
            "/upload", files={"other": ("thumb.png", b"data", "image/png")}
        )

        assert response.status_code == 400
        assert "missing form field" in response.json()["error"]

    def test_plain_field_is_rejected(self, form_client: TestClient) -> None:
        response = form_client.post(
            "/upload",
            data={"file": "just text"},
            files={"attachment": ("notes.txt", b"data", "text/plain")},
        )

        assert response.status_code == 400
        assert "not a file" in response.json()["error"]

    def test_non_multipart_body_is_rejected(self, form_client: TestClient) -> None:
        response = form_client.post("/upload", json={"file": "data"})

        assert response.status_code == 400
        assert "multipart/form-data" in response.json()["error"]


# =============================================================================
# Content Types
# =============================================================================


@pytest.mark.unit
class TestContentTypes:
    """Tests for media-type parsing and validation helpers."""

    def test_parse_media_type_strips_parameters(self) -> None:
        assert parse_media_type("Image/PNG; charset=binary") == "image/png"
        assert parse_media_type(None) == ""

    @pytest.mark.parametrize(
        ("content_type", "extension"),
        [("image/jpeg", "jpg"), ("image/png", "png"), ("image/gif", "gif"), ("image/webp", "webp")],
    )
    def test_thumbnail_extensions(self, content_type: str, extension: str) -> None:
        assert extension_for_content_type(content_type) == extension

    @pytest.mark.parametrize("content_type", ["image/svg+xml", "text/plain", "", None])
    def test_unsupported_thumbnail_types(self, content_type: str | None) -> None:
        with pytest.raises(BadUploadError):
            extension_for_content_type(content_type)

    def test_require_video_mp4(self) -> None:
        assert require_video_mp4("video/mp4") == "video/mp4"
        with pytest.raises(BadUploadError):
            require_video_mp4("video/quicktime")


# =============================================================================
# Temporary Files
# =============================================================================


class TestSpooledTempFile:
    """Temporary files are removed on every exit path."""

    @pytest.mark.asyncio
    async def test_copies_upload_and_removes_file(self) -> None:
        upload = UploadFile(file=io.BytesIO(b"mp4-bytes"), filename="clip.mp4")

        async with spooled_temp_file(upload, 1024) as path:
            assert os.path.basename(path).startswith(TEMP_FILE_PREFIX)
            assert path.endswith(".mp4")
            with open(path, "rb") as f:
                assert f.read() == b"mp4-bytes"

        assert not os.path.exists(path)

    @pytest.mark.asyncio
    async def test_removes_file_when_block_raises(self) -> None:
        upload = UploadFile(file=io.BytesIO(b"mp4-bytes"), filename="clip.mp4")

        with pytest.raises(RuntimeError):
            async with spooled_temp_file(upload, 1024) as path:
                raise RuntimeError("probe crashed")

        assert not os.path.exists(path)

    @pytest.mark.asyncio
    async def test_oversized_upload_is_rejected_and_removed(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
        upload = UploadFile(file=io.BytesIO(b"x" * 100), filename="clip.mp4")

        with pytest.raises(BadUploadError):
            async with spooled_temp_file(upload, 10):
                pytest.fail("block must not run for an oversized upload")

        assert not any(p.name.startswith(TEMP_FILE_PREFIX) for p in tmp_path.iterdir())


@pytest.mark.unit
class TestRemoving:
    """Tests for the removing() context manager."""

    def test_removes_file(self, tmp_path) -> None:
        target = tmp_path / "clip.mp4.processing"
        target.write_bytes(b"x")

        with removing(str(target)):
            assert target.exists()

        assert not target.exists()

    def test_tolerates_missing_file(self, tmp_path) -> None:
        with removing(str(tmp_path / "never-written")):
            pass
