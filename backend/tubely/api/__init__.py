"""
Tubely API Router Aggregator.

Combines the endpoint routers under a single APIRouter, mounted at /api by
the application factory:
    - /thumbnails/{video_id}: thumbnail upload
    - /videos, /videos/{video_id}: video records and video upload
"""

from fastapi import APIRouter

from tubely.api.thumbnails import router as thumbnails_router
from tubely.api.videos import router as videos_router


api_router = APIRouter()
api_router.include_router(thumbnails_router, tags=["thumbnails"])
api_router.include_router(videos_router, tags=["videos"])


__all__ = ["api_router"]
