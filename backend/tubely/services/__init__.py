"""
Services module for the Tubely backend.

- upload_service: Multipart form ingestion, size limits and temporary files
- media_service: ffprobe stream probing, aspect-ratio classification and
  ffmpeg fast-start remuxing
- video_store: Video record lookups and updates backed by MongoDB
"""
