"""
Tubely Backend Application Package

This package contains the Tubely FastAPI application, the video-hosting
backend that accepts thumbnail and video uploads for existing video records.

- Bearer-token authentication and ownership checks
- Thumbnail persistence on local disk or S3-compatible object storage
- Video aspect-ratio probing (ffprobe) and fast-start remuxing (ffmpeg)

Package Structure:
- api/: REST API endpoints
- core/: Core infrastructure (auth, database, storage)
- models/: Pydantic data models
- services/: Upload ingestion, media processing and the video record store
- utils/: Logging and response helpers
"""

__version__ = "1.0.0"
__app_name__ = "Tubely"
