"""Immich photo library status.

Immich renamed its server endpoints between releases, so every call probes the
``/api/server-info/*`` path first and falls back to ``/api/server/*`` on a 404.
"""

from typing import Optional

import httpx
from pydantic import Field

from ..core.config import Settings
from ..utils.formatting import format_bytes
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model

NAME = "Immich"

PING_PATHS = ("/api/server-info/ping", "/api/server/ping")
STATISTICS_PATHS = ("/api/server-info/statistics", "/api/server/statistics")
STORAGE_PATHS = ("/api/server-info/storage", "/api/server/storage")


class ImmichStatistics(UpstreamModel):
    photos: int = 0
    videos: int = 0
    usage: Optional[int] = None
    disk_usage: Optional[int] = Field(None, alias="diskUsage")


class ImmichStorage(UpstreamModel):
    disk_use: Optional[str] = Field(None, alias="diskUse")
    disk_size: Optional[str] = Field(None, alias="diskSize")
    disk_usage_percentage: Optional[float] = Field(None, alias="diskUsagePercentage")


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.IMMICH_API_KEY:
        raise config_missing("Immich API key not configured")

    async with UpstreamClient(
        NAME,
        settings.IMMICH_URL,
        headers={"x-api-key": settings.IMMICH_API_KEY, "Accept": "application/json"},
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        ping = await client.get_with_fallback(PING_PATHS)
        client.raise_for_status(
            ping, "Immich server not responding ({status}). Check URL and API key."
        )
        stats = decode_model(
            ImmichStatistics,
            await client.try_json_with_fallback(STATISTICS_PATHS, {}),
            NAME,
            lenient=True,
        )
        storage = decode_model(
            ImmichStorage,
            await client.try_json_with_fallback(STORAGE_PATHS, {}),
            NAME,
            lenient=True,
        )

    result = {
        "online": True,
        "photos": stats.photos,
        "videos": stats.videos,
        # diskUse matches what the Immich UI shows
        "usage": storage.disk_use or format_bytes(stats.usage or stats.disk_usage or 0),
        "totalObjects": stats.photos + stats.videos,
    }
    if storage.disk_size:
        result["diskSize"] = storage.disk_size
    if storage.disk_usage_percentage is not None:
        result["diskUsage"] = f"{storage.disk_usage_percentage:g}%"
    return result
