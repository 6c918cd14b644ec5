#!/usr/bin/env python3
"""
Index profiles into the embedding store.

Reads profiles from a JSON file (a list of objects with a "userId"/"user_id"
field, or an object keyed by user id), embeds each through the configured
embedding service and writes the records to the configured store.

Usage:
    python scripts/index_profiles.py --json /path/to/profiles.json
    python scripts/index_profiles.py --sample  # Use sample data
    python scripts/index_profiles.py --cleanup  # Purge corrupt records only

Environment Variables:
    EMBED_API_BASE_URL, EMBED_MODEL: Embedding service
    EMBEDDING_STORE_BACKEND: memory | qdrant
    QDRANT_URL, QDRANT_COLLECTION: Qdrant connection
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from profile_search.api.dependencies import build_container
from profile_search.core.config import get_settings
from profile_search.core.logging import setup_structured_logging

# =============================================================================
# Sample Data
# =============================================================================

SAMPLE_PROFILES: dict[str, dict[str, Any]] = {
    "sample-react": {
        "jobRole": "Frontend Developer",
        "companyName": "Acme Corp",
        "skills": ["React", "TypeScript", "GraphQL"],
        "interests": ["design systems", "accessibility"],
        "yearsOfExperience": 5,
    },
    "sample-python": {
        "jobRole": "Backend Engineer",
        "companyName": "Globex",
        "skills": ["Python", "FastAPI", "PostgreSQL"],
        "interests": ["distributed systems"],
        "yearsOfExperience": 8,
    },
    "sample-mobile": {
        "jobRole": "Mobile Developer",
        "companyName": "Initech",
        "skills": ["React Native", "Swift", "Kotlin"],
        "interests": ["offline-first apps"],
        "yearsOfExperience": 3,
    },
}


def load_profiles(json_path: Path) -> list[tuple[str, dict[str, Any]]]:
    """Load (user_id, profile) pairs from a JSON file."""
    with open(json_path, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        return [(str(user_id), profile) for user_id, profile in data.items()]

    jobs = []
    for profile in data:
        user_id = profile.get("userId") or profile.get("user_id")
        if not user_id:
            print(f"  Skipping profile without user id: {str(profile)[:60]}")
            continue
        jobs.append((str(user_id), profile))
    return jobs


async def run(jobs: list[tuple[str, dict[str, Any]]], cleanup_only: bool, delay_s: float) -> int:
    settings = get_settings()
    services = build_container(settings)
    store = services.embedding_store
    manager = services.embedding_manager

    if hasattr(store, "connect"):
        await store.connect()
        await store.ensure_collection(vector_size=settings.embedding_dimension)

    try:
        if not cleanup_only:
            result = await manager.batch_index(jobs, delay_s=delay_s)
            print(f"Indexed:  {len(result.successful)}")
            print(f"Failed:   {len(result.failed)}")
            for user_id, error in result.failed:
                print(f"  {user_id}: {error}")

        cleanup = await manager.cleanup()
        print(f"Cleaned:  {len(cleanup.cleaned)}")
        for error in cleanup.errors:
            print(f"  {error}")

        init = await manager.initialize_lexical_index()
        print(f"Lexical index documents: {init.document_count}")
        return 0 if init.success else 1
    finally:
        if hasattr(store, "close"):
            await store.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Index profiles for profile search")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--json", type=Path, help="JSON file with profiles")
    source.add_argument("--sample", action="store_true", help="Index sample profiles")
    source.add_argument("--cleanup", action="store_true", help="Only purge corrupt records")
    parser.add_argument("--delay", type=float, default=0.2, help="Seconds between profiles")
    args = parser.parse_args()

    setup_structured_logging()

    if args.json:
        if not args.json.exists():
            print(f"✗ File not found: {args.json}")
            return 1
        jobs = load_profiles(args.json)
    elif args.sample:
        jobs = list(SAMPLE_PROFILES.items())
    else:
        jobs = []

    return asyncio.run(run(jobs, cleanup_only=args.cleanup, delay_s=args.delay))


if __name__ == "__main__":
    sys.exit(main())
