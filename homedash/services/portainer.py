"""Portainer container manager status, aggregated across Docker environments."""

from typing import List, Optional

import httpx
from pydantic import Field

from ..core.config import Settings
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model
from ..utils.logging import log_structured

NAME = "Portainer"

ENDPOINT_UP = 1
CONTAINERS_TIMEOUT = 5.0


class Endpoint(UpstreamModel):
    id: Optional[int] = Field(None, alias="Id")
    status: Optional[int] = Field(None, alias="Status")


class Container(UpstreamModel):
    state: str = Field("", alias="State")


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.PORTAINER_API_KEY:
        raise config_missing("Portainer API key not configured")

    totals = {"running": 0, "paused": 0, "stopped": 0}

    async with UpstreamClient(
        NAME,
        settings.PORTAINER_URL,
        headers={"X-API-Key": settings.PORTAINER_API_KEY, "Accept": "application/json"},
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        raw = await client.get_json(
            "/api/endpoints",
            error="Portainer API error ({status}). Check API key and URL.",
        )
        endpoints: List[Endpoint] = [
            decode_model(Endpoint, ep, NAME) for ep in raw or [] if isinstance(ep, dict)
        ]
        active = [ep for ep in endpoints if ep.status == ENDPOINT_UP]

        for endpoint in active:
            containers = await client.try_json(
                f"/api/endpoints/{endpoint.id}/docker/containers/json",
                None,
                params={"all": "true"},
                timeout=CONTAINERS_TIMEOUT,
            )
            if not isinstance(containers, list):
                log_structured(
                    "WARN",
                    f"Failed to fetch containers for Portainer endpoint {endpoint.id}",
                    "SERVICES",
                )
                continue
            for raw_container in containers:
                state = decode_model(
                    Container, raw_container, NAME, lenient=True
                ).state.lower()
                if state in ("running", "paused"):
                    totals[state] += 1
                else:
                    # exited, created, dead, removing, ...
                    totals["stopped"] += 1

    return {
        "online": True,
        "endpoints": len(endpoints),
        "activeEndpoints": len(active),
        "totalContainers": sum(totals.values()),
        "runningContainers": totals["running"],
        "stoppedContainers": totals["stopped"],
        "pausedContainers": totals["paused"],
    }
