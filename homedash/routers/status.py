"""Service status router for the homedash API.

One GET endpoint per integration. Every endpoint answers 200: failures are
reported in the body as ``{"online": false, "error": ...}`` so the dashboard
can render a degraded widget instead of an error page.
"""

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request

from ..core.config import Settings
from ..core.security import get_settings
from ..services import (
    adguard,
    arr,
    homeassistant,
    immich,
    jellyfin,
    jellyseerr,
    portainer,
    proxmox,
    qbittorrent,
    truenas,
)
from ..services.base import collect_status

router = APIRouter(tags=["status"])


def get_transport(request: Request) -> Optional[httpx.AsyncBaseTransport]:
    """Dependency returning the upstream transport override, if any."""
    return request.app.state.transport


@router.get("/adguard")
async def get_adguard(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns AdGuard Home protection and query statistics."""
    return await collect_status(adguard.NAME, adguard.fetch_status, settings, transport)


@router.get("/immich")
async def get_immich(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns Immich library counts and storage usage."""
    return await collect_status(immich.NAME, immich.fetch_status, settings, transport)


@router.get("/jellyfin")
async def get_jellyfin(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns Jellyfin library counts and active viewers."""
    return await collect_status(jellyfin.NAME, jellyfin.fetch_status, settings, transport)


@router.get("/jellyseerr")
async def get_jellyseerr(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    return await collect_status(
        jellyseerr.NAME, jellyseerr.fetch_status, settings, transport
    )


@router.get("/portainer")
async def get_portainer(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns container counts across all active Portainer environments."""
    return await collect_status(
        portainer.NAME, portainer.fetch_status, settings, transport
    )


@router.get("/proxmox")
async def get_proxmox(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns Proxmox cluster totals and running guests."""
    return await collect_status(proxmox.NAME, proxmox.fetch_status, settings, transport)


@router.get("/qbittorrent")
async def get_qbittorrent(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    return await collect_status(
        qbittorrent.NAME, qbittorrent.fetch_status, settings, transport
    )


@router.get("/radarr")
async def get_radarr(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    return await collect_status("Radarr", arr.fetch_radarr_status, settings, transport)


@router.get("/sonarr")
async def get_sonarr(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    return await collect_status("Sonarr", arr.fetch_sonarr_status, settings, transport)


@router.get("/truenas")
async def get_truenas(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns TrueNAS memory breakdown and pool usage."""
    return await collect_status(truenas.NAME, truenas.fetch_status, settings, transport)


@router.get("/homeassistant")
async def get_homeassistant(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    return await collect_status(
        homeassistant.NAME, homeassistant.fetch_status, settings, transport
    )
