"""Jellyfin media server status and active streams."""

from typing import List, Optional

import httpx
from pydantic import Field

from ..core.config import Settings
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model

NAME = "Jellyfin"

# /System/Info needs an admin token on current releases; older or restricted
# setups only answer the public variant.
SYSTEM_INFO_PATHS = ("/System/Info", "/System/Info/Public")


class SystemInfo(UpstreamModel):
    version: Optional[str] = Field(None, alias="Version")
    server_name: Optional[str] = Field(None, alias="ServerName")


class ItemCounts(UpstreamModel):
    movie_count: int = Field(0, alias="MovieCount")
    series_count: int = Field(0, alias="SeriesCount")
    episode_count: int = Field(0, alias="EpisodeCount")


class NowPlayingItem(UpstreamModel):
    name: Optional[str] = Field(None, alias="Name")
    type: Optional[str] = Field(None, alias="Type")
    series_name: Optional[str] = Field(None, alias="SeriesName")
    season: Optional[int] = Field(None, alias="ParentIndexNumber")
    episode: Optional[int] = Field(None, alias="IndexNumber")


class Session(UpstreamModel):
    user_name: Optional[str] = Field(None, alias="UserName")
    client: Optional[str] = Field(None, alias="Client")
    device_name: Optional[str] = Field(None, alias="DeviceName")
    now_playing: Optional[NowPlayingItem] = Field(None, alias="NowPlayingItem")


def auth_header(api_key: str) -> str:
    return (
        'MediaBrowser Client="homedash", Device="Web", DeviceId="homedash-web", '
        f'Version="1.0.0", Token="{api_key}"'
    )


def describe_viewer(session: Session) -> dict:
    item = session.now_playing
    if item.series_name:
        content = f"{item.series_name} - S{item.season}E{item.episode}"
    else:
        content = item.name
    return {
        "user": session.user_name or "Unknown User",
        "content": content,
        "type": item.type,
        "client": session.client or "Unknown",
        "deviceName": session.device_name or "Unknown Device",
    }


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.JELLYFIN_API_KEY:
        raise config_missing("Jellyfin API key not configured")

    async with UpstreamClient(
        NAME,
        settings.JELLYFIN_URL,
        headers={
            "X-Emby-Authorization": auth_header(settings.JELLYFIN_API_KEY),
            "Accept": "application/json",
        },
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        response = await client.get_with_fallback(SYSTEM_INFO_PATHS)
        client.raise_for_status(response)
        info = decode_model(SystemInfo, client.decode(response), NAME)
        counts = decode_model(
            ItemCounts, await client.try_json("/Items/Counts", {}), NAME, lenient=True
        )
        raw_sessions = await client.try_json("/Sessions", [])

    sessions: List[Session] = [
        decode_model(Session, s, NAME, lenient=True)
        for s in raw_sessions or []
        if isinstance(s, dict)
    ]
    active = [s for s in sessions if s.now_playing is not None]

    return {
        "online": True,
        "version": info.version or "Unknown",
        "serverName": info.server_name or "Jellyfin",
        "movieCount": counts.movie_count,
        "seriesCount": counts.series_count,
        "episodeCount": counts.episode_count,
        "activeStreams": len(active),
        "viewers": [describe_viewer(s) for s in active],
    }
