"""
Models Package for Tubely.

Pydantic models for the video record store and its API surface.
"""

from tubely.models.video import IMMUTABLE_FIELDS, VideoCreate, VideoRecord


__all__ = [
    "IMMUTABLE_FIELDS",
    "VideoCreate",
    "VideoRecord",
]
