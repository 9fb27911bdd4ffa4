#!/usr/bin/env python3
"""
Seed Script for the Tubely Video Store.

Creates the ``videos`` collection indexes, inserts a draft video record for a
user, and prints a bearer token for that user so the upload endpoints can be
exercised by hand:

    python scripts/seed_video.py --title "Boots demo"
    curl -H "Authorization: Bearer $TOKEN" \\
         -F "video=@boots.mp4;type=video/mp4" \\
         http://localhost:8091/api/videos/$VIDEO_ID

Usage:
    python seed_video.py [options]

Options:
    --user-id       Owner of the record (default: a new random user id)
    --title         Title of the draft record
    --description   Description of the draft record
    --verbose       Display detailed operation logs

Environment Variables (read from .env as well):
    MONGODB_URI         MongoDB connection URI (default: mongodb://localhost:27017)
    MONGODB_DB_NAME     Database name (default: tubely)
    JWT_SECRET          Secret used to sign the printed token
"""

import argparse
import sys
from datetime import datetime, timezone
from uuid import UUID, uuid4

from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from tubely.config import Settings
from tubely.core.auth import create_access_token
from tubely.core.database import VIDEOS_COLLECTION
from tubely.models.video import VideoRecord


CONNECTION_TIMEOUT_MS = 5000


class VideoSeeder:
    """Seeds one draft video record into MongoDB."""

    def __init__(self, settings: Settings, verbose: bool = False):
        self.settings = settings
        self.verbose = verbose
        self.client: MongoClient | None = None

    def log(self, message: str, level: str = "INFO") -> None:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        if level == "DEBUG" and not self.verbose:
            return
        print(f"[{timestamp}] [{level}] {message}")

    def connect(self) -> None:
        self.log(f"Connecting to MongoDB at {self._mask_uri(self.settings.mongodb_uri)}...")
        self.client = MongoClient(
            self.settings.mongodb_uri,
            serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
            connectTimeoutMS=CONNECTION_TIMEOUT_MS,
            tz_aware=True,
        )
        self.client.admin.command("ping")
        self.log(f"Using database: {self.settings.mongodb_db_name}", "DEBUG")

    def _mask_uri(self, uri: str) -> str:
        """Hide credentials in a MongoDB URI before printing it."""
        if "@" in uri:
            protocol_end = uri.find("://") + 3
            at_pos = uri.find("@")
            return f"{uri[:protocol_end]}***:***{uri[at_pos:]}"
        return uri

    def seed(self, user_id: UUID, title: str, description: str) -> VideoRecord:
        """Create indexes and insert a draft record owned by ``user_id``."""
        videos = self.client[self.settings.mongodb_db_name][VIDEOS_COLLECTION]

        videos.create_index([("user_id", ASCENDING)])
        videos.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        self.log(f"Ensured indexes on {VIDEOS_COLLECTION}", "DEBUG")

        record = VideoRecord(user_id=user_id, title=title, description=description)
        videos.insert_one(record.to_document())
        self.log(f"Inserted video {record.id} for user {user_id}")
        return record

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.log("MongoDB connection closed", "DEBUG")


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Insert a draft Tubely video record and print a bearer token for its owner",
    )
    parser.add_argument("--user-id", type=UUID, default=None, help="Owner of the record")
    parser.add_argument("--title", default="Untitled video", help="Title of the draft record")
    parser.add_argument("--description", default="", help="Description of the draft record")
    parser.add_argument("--verbose", "-v", action="store_true", help="Display detailed operation logs")
    return parser.parse_args()


def main() -> int:
    args = parse_arguments()

    load_dotenv()
    settings = Settings()

    seeder = VideoSeeder(settings, verbose=args.verbose)
    user_id = args.user_id or uuid4()

    try:
        seeder.connect()
        record = seeder.seed(user_id, args.title, args.description)
    except PyMongoError as e:
        print(f"\nMongoDB error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nSeeding interrupted by user.")
        return 130
    finally:
        seeder.close()

    token = create_access_token(user_id, settings)

    print()
    print(f"USER_ID={user_id}")
    print(f"VIDEO_ID={record.id}")
    print(f"TOKEN={token}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
