"""Home Assistant hub status and entity counts."""

from typing import Any, List, Optional

import httpx

from ..core.config import Settings
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model

NAME = "Home Assistant"

# Output key -> entity_id domain prefix
ENTITY_DOMAINS = {
    "lights": "light.",
    "switches": "switch.",
    "sensors": "sensor.",
    "automations": "automation.",
}


class ApiStatus(UpstreamModel):
    version: Optional[str] = None


def entity_ids(states: Any) -> List[str]:
    if not isinstance(states, list):
        return []
    return [
        s["entity_id"]
        for s in states
        if isinstance(s, dict) and isinstance(s.get("entity_id"), str)
    ]


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.HOMEASSISTANT_TOKEN:
        raise config_missing("Home Assistant token not configured")

    async with UpstreamClient(
        NAME,
        settings.HOMEASSISTANT_URL,
        headers={"Authorization": f"Bearer {settings.HOMEASSISTANT_TOKEN}"},
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        status = decode_model(ApiStatus, await client.get_json("/api/"), NAME)
        states = await client.try_json("/api/states", [])

    ids = entity_ids(states)
    result = {
        "online": True,
        "version": status.version or "Unknown",
        "totalEntities": len(states) if isinstance(states, list) else 0,
    }
    for key, prefix in ENTITY_DOMAINS.items():
        result[key] = sum(1 for entity_id in ids if entity_id.startswith(prefix))
    return result
