#!/usr/bin/env python3
"""
Copy the JSON video registry into MongoDB.

The API does this on its own once MongoDB becomes reachable; this script
is for seeding a new database or checking what would be written.

Usage:
    python scripts/sync_registry.py [--dry-run] [--file public/videos.json]

Requires:
    - .env file with MONGODB_URI (unless --dry-run)
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.config.settings import get_settings
from src.core.videos.registry import VideoRegistry
from src.infrastructure.mongo.client import MongoConfig, MongoHandle
from src.infrastructure.mongo.repository import MongoRecordStore
from src.infrastructure.storage.json_store import JsonRecordStore


async def sync(file_path: str, dry_run: bool = False) -> bool:
    """Push every JSON record to MongoDB. Returns True on success."""
    settings = get_settings()
    json_store = JsonRecordStore(file_path)

    records = await json_store.read_all()
    print(f"Found {len(records)} records in {file_path}")

    if dry_run:
        for number, record in records.items():
            print(f"  {number}: {record.drive_id} ({record.name})")
        print("Dry run, nothing written")
        return True

    if not settings.mongodb_uri:
        print("ERROR: MONGODB_URI is not set")
        return False

    handle = MongoHandle(MongoConfig(
        uri=settings.mongodb_uri,
        database=settings.mongodb_database,
        collection=settings.mongodb_collection,
        timeout_ms=settings.mongodb_timeout_ms,
    ))

    try:
        await handle.connect()
    except Exception as e:
        print(f"ERROR connecting to MongoDB: {e}")
        return False

    try:
        registry = VideoRegistry(json_store, MongoRecordStore(handle))
        count = await registry.sync_primary_to_secondary()
        print(f"Synced {count} records to {settings.mongodb_database}.{settings.mongodb_collection}")
        return count == len(records)
    finally:
        await handle.close()


def main():
    import argparse

    settings = get_settings()

    parser = argparse.ArgumentParser(description='Copy the JSON video registry into MongoDB')
    parser.add_argument('--dry-run', action='store_true', help='List records only, don\'t write')
    parser.add_argument('--file', default=settings.videos_file_path, help='Registry file path')
    args = parser.parse_args()

    if not Path(args.file).exists():
        print(f"ERROR: Cannot find {args.file}")
        sys.exit(1)

    success = asyncio.run(sync(args.file, dry_run=args.dry_run))

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
