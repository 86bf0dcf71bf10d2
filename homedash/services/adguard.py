"""AdGuard Home DNS filter status."""

from typing import Optional

import httpx

from ..core.config import Settings
from ..utils.formatting import format_percent
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model

NAME = "AdGuard"


class AdGuardStatus(UpstreamModel):
    protection_enabled: bool = False
    dhcp_available: bool = False
    running: bool = False
    version: Optional[str] = None


class AdGuardStats(UpstreamModel):
    num_dns_queries: int = 0
    num_blocked_filtering: int = 0
    num_replaced_safebrowsing: int = 0
    num_replaced_parental: int = 0
    num_replaced_safesearch: int = 0
    avg_processing_time: float = 0.0


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.ADGUARD_USERNAME or not settings.ADGUARD_PASSWORD:
        raise config_missing("AdGuard credentials not configured")

    async with UpstreamClient(
        NAME,
        settings.ADGUARD_URL,
        headers={"Accept": "application/json"},
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        auth = httpx.BasicAuth(settings.ADGUARD_USERNAME, settings.ADGUARD_PASSWORD)
        status = decode_model(
            AdGuardStatus,
            await client.get_json(
                "/control/status",
                error="AdGuard API error ({status}). Check credentials and URL.",
                auth=auth,
            ),
            NAME,
        )
        stats = decode_model(
            AdGuardStats,
            await client.try_json("/control/stats", {}, auth=auth),
            NAME,
            lenient=True,
        )

    avg_time = (
        f"{stats.avg_processing_time * 1000:.2f} ms"
        if stats.avg_processing_time
        else "0 ms"
    )
    return {
        "online": True,
        "protection": "Enabled" if status.protection_enabled else "Disabled",
        "dnsQueries": stats.num_dns_queries,
        "blockedQueries": stats.num_blocked_filtering,
        "blockRate": format_percent(stats.num_blocked_filtering, stats.num_dns_queries),
        "safeBrowsingBlocked": stats.num_replaced_safebrowsing,
        "parentalBlocked": stats.num_replaced_parental,
        "safeSearchEnforced": stats.num_replaced_safesearch,
        "avgProcessingTime": avg_time,
        "dhcpEnabled": "Yes" if status.dhcp_available else "No",
        "runningStatus": "Running" if status.running else "Stopped",
        "version": status.version or "Unknown",
    }
