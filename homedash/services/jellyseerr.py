"""Jellyseerr media request manager status."""

from typing import Optional

import httpx

from ..core.config import Settings
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model

NAME = "Jellyseerr"


class JellyseerrStatus(UpstreamModel):
    version: Optional[str] = None


class RequestCount(UpstreamModel):
    pending: int = 0
    approved: int = 0
    total: int = 0


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.JELLYSEERR_API_KEY:
        raise config_missing("Jellyseerr API key not configured")

    async with UpstreamClient(
        NAME,
        settings.JELLYSEERR_URL,
        headers={"X-Api-Key": settings.JELLYSEERR_API_KEY},
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        status = decode_model(
            JellyseerrStatus, await client.get_json("/api/v1/status"), NAME
        )
        counts = decode_model(
            RequestCount,
            await client.try_json("/api/v1/request/count", {}),
            NAME,
            lenient=True,
        )

    return {
        "online": True,
        "version": status.version or "Unknown",
        "pendingRequests": counts.pending,
        "approvedRequests": counts.approved,
        "totalRequests": counts.total,
    }
