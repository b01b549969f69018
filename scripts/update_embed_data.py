#!/usr/bin/env python3
"""
Backfill embed metadata for stored resources

Recomputes ``embedData`` for every resource. For plain web resources without
a thumbnail the page is fetched and its ``og:image`` / ``twitter:image`` meta
tag is used as the thumbnail.

Usage:
    python scripts/update_embed_data.py [--dry-run]
"""

import argparse
import asyncio
import re
import sys
from pathlib import Path
from typing import Optional

import httpx

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from common.database import get_database, close_database_connections
from common.logger import get_logger
from services.embed import extract_embed_data
from services.resources import ResourceService

logger = get_logger(__name__)

META_IMAGE_PATTERN = re.compile(
    r'<meta[^>]+(?:property|name)=["\'](?:og:image|twitter:image)["\'][^>]*content=["\']([^"\']+)["\']',
    re.IGNORECASE
)
META_IMAGE_REVERSED_PATTERN = re.compile(
    r'<meta[^>]+content=["\']([^"\']+)["\'][^>]*(?:property|name)=["\'](?:og:image|twitter:image)["\']',
    re.IGNORECASE
)


def find_preview_image(html: str) -> Optional[str]:
    """First og:image / twitter:image URL declared in a page"""
    for pattern in (META_IMAGE_PATTERN, META_IMAGE_REVERSED_PATTERN):
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


async def fetch_preview_image(http: httpx.AsyncClient, url: str) -> Optional[str]:
    try:
        response = await http.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Could not fetch {url}: {e}")
        return None
    return find_preview_image(response.text)


async def update_embed_data(dry_run: bool = False, http: Optional[httpx.AsyncClient] = None) -> int:
    """Refresh embed metadata for all resources. Returns the number updated."""
    db = await get_database()
    service = ResourceService(db)
    owns_http = http is None
    http = http or httpx.AsyncClient(timeout=10.0, follow_redirects=True)

    updated = 0
    try:
        async for resource in db.resources.find({}):
            thumbnail = None
            embed = extract_embed_data(resource.get("url"), resource.get("thumbnailUrl"))
            if embed["platform"] == "web" and not resource.get("thumbnailUrl") and resource.get("url"):
                thumbnail = await fetch_preview_image(http, resource["url"])

            if dry_run:
                print(f"  would update {resource['_id']}: {embed['platform']} thumbnail={thumbnail}")
            else:
                await service.refresh_embed_data(resource, thumbnail)
            updated += 1
    finally:
        if owns_http:
            await http.aclose()
    return updated


async def main(dry_run: bool = False):
    print("🔄 Updating resource embed data")
    print("=" * 50)
    try:
        count = await update_embed_data(dry_run=dry_run)
        print(f"\n✅ Processed {count} resources")
    finally:
        await close_database_connections()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Backfill resource embed metadata")
    parser.add_argument("--dry-run", action="store_true", help="report changes without writing them")
    args = parser.parse_args()
    asyncio.run(main(dry_run=args.dry_run))
