"""Radarr and Sonarr status.

Both share the *arr v3 API: a system status call, the download queue and the
library listing. Only the library endpoint and its output key differ.
"""

from typing import Any, Optional

import httpx

from ..core.config import Settings
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model


class ArrStatus(UpstreamModel):
    version: Optional[str] = None
    status: Optional[str] = None


def count_records(data: Any) -> int:
    """Counts entries in a plain list or a paged ``{totalRecords, records}`` body."""
    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict):
        total = data.get("totalRecords")
        if isinstance(total, int):
            return total
        records = data.get("records")
        if isinstance(records, list):
            return len(records)
    return 0


async def fetch_arr_status(
    name: str,
    base_url: str,
    api_key: Optional[str],
    library_path: str,
    library_key: str,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """Collects version, queue size and library size from an *arr service.

    Args:
        name: Display name of the service.
        base_url: Service base URL.
        api_key: The service API key.
        library_path: Library endpoint, e.g. ``/api/v3/movie``.
        library_key: Output key for the library size.
        timeout: Per-call timeout in seconds.
        transport: Optional httpx transport override.

    Returns:
        The service summary.
    """
    if not api_key:
        raise config_missing(f"{name} API key not configured")

    async with UpstreamClient(
        name,
        base_url,
        headers={"X-Api-Key": api_key},
        timeout=timeout,
        transport=transport,
    ) as client:
        status = decode_model(
            ArrStatus, await client.get_json("/api/v3/system/status"), name
        )
        queue = await client.try_json("/api/v3/queue", [])
        library = await client.try_json(library_path, [])

    return {
        "online": True,
        "version": status.version,
        "queueCount": count_records(queue),
        library_key: count_records(library),
        "status": status.status,
    }


async def fetch_radarr_status(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
):
    return await fetch_arr_status(
        "Radarr",
        settings.RADARR_URL,
        settings.RADARR_API_KEY,
        "/api/v3/movie",
        "movieCount",
        settings.UPSTREAM_TIMEOUT,
        transport,
    )


async def fetch_sonarr_status(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
):
    return await fetch_arr_status(
        "Sonarr",
        settings.SONARR_URL,
        settings.SONARR_API_KEY,
        "/api/v3/series",
        "seriesCount",
        settings.UPSTREAM_TIMEOUT,
        transport,
    )
