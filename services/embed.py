"""
Embed metadata extraction for resources

Maps a resource URL onto the player the frontend should use: a YouTube or
Spotify embed when the URL points at one, otherwise a plain web card.
"""

import re
from typing import Optional, Dict

YOUTUBE_PATTERN = re.compile(
    r'(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^"&?/\s]{11})'
)
SPOTIFY_PATTERN = re.compile(r'spotify\.com/(episode|show|track)/([a-zA-Z0-9]+)')


def extract_embed_data(url: Optional[str], thumbnail_url: Optional[str] = None) -> Dict[str, str]:
    """
    Derive ``embedData`` for a resource URL.

    >>> extract_embed_data("https://youtu.be/dQw4w9WgXcQ")
    {'platform': 'youtube', 'embedId': 'dQw4w9WgXcQ'}
    """
    url = url or ""

    match = YOUTUBE_PATTERN.search(url)
    if match:
        return {"platform": "youtube", "embedId": match.group(1)}

    match = SPOTIFY_PATTERN.search(url)
    if match:
        return {"platform": "spotify", "embedId": match.group(2)}

    embed = {"platform": "web"}
    if thumbnail_url:
        embed["thumbnailUrl"] = thumbnail_url
    return embed


def embed_for_update(existing: Dict, changes: Dict) -> Optional[Dict[str, str]]:
    """
    Return new embed metadata when an update changes the URL, else None.

    Updates that leave ``url`` alone keep whatever embed data is stored.
    """
    if "url" not in changes or changes["url"] == existing.get("url"):
        return None
    thumbnail = changes.get("thumbnailUrl", existing.get("thumbnailUrl"))
    return extract_embed_data(changes["url"], thumbnail)
