"""Proxmox VE cluster status.

Aggregates node CPU and memory across the cluster and summarizes every guest
(QEMU VMs and LXC containers). Proxmox ships with a self-signed certificate,
so TLS verification is disabled for this upstream.
"""

from typing import List, Optional

import httpx

from ..core.config import Settings
from ..utils.formatting import format_bytes, format_percent, format_ratio
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model

NAME = "Proxmox"

GUEST_TYPES = ("qemu", "lxc")


class ClusterResource(UpstreamModel):
    type: str = ""
    status: Optional[str] = None
    name: Optional[str] = None
    vmid: Optional[int] = None
    cpu: Optional[float] = None
    mem: Optional[float] = None
    maxmem: Optional[float] = None


def guest_summary(guest: ClusterResource) -> dict:
    mem_used = guest.mem or 0
    mem_max = guest.maxmem or 0
    return {
        "name": guest.name or f"{guest.type}-{guest.vmid}",
        "type": "VM" if guest.type == "qemu" else "LXC",
        "vmid": guest.vmid,
        "status": guest.status,
        "cpu": format_ratio(guest.cpu),
        "memory": format_percent(mem_used, mem_max),
        "memoryUsed": format_bytes(mem_used, 1),
        "memoryMax": format_bytes(mem_max, 1),
    }


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.PROXMOX_TOKEN_ID or not settings.PROXMOX_TOKEN_SECRET:
        raise config_missing("Proxmox credentials not configured")

    token = f"PVEAPIToken={settings.PROXMOX_TOKEN_ID}={settings.PROXMOX_TOKEN_SECRET}"
    async with UpstreamClient(
        NAME,
        settings.PROXMOX_URL,
        headers={"Authorization": token, "Accept": "application/json"},
        timeout=settings.UPSTREAM_TIMEOUT,
        verify=False,
        transport=transport,
    ) as client:
        data = await client.get_json("/api2/json/cluster/resources")

    raw = data.get("data") if isinstance(data, dict) else None
    resources: List[ClusterResource] = [
        decode_model(ClusterResource, r, NAME) for r in raw or [] if isinstance(r, dict)
    ]
    nodes = [r for r in resources if r.type == "node"]
    guests = [r for r in resources if r.type in GUEST_TYPES]
    running = [g for g in guests if g.status == "running"]

    total_cpu = sum(n.cpu or 0 for n in nodes)
    total_mem = sum(n.mem or 0 for n in nodes)
    total_max_mem = sum(n.maxmem or 0 for n in nodes)

    return {
        "online": True,
        "totalGuests": len(guests),
        "runningGuests": len(running),
        "stoppedGuests": len(guests) - len(running),
        "cpuUsage": format_ratio(total_cpu / len(nodes)) if nodes else "0%",
        "memoryUsage": format_percent(total_mem, total_max_mem),
        "memoryUsed": format_bytes(total_mem, 1),
        "memoryTotal": format_bytes(total_max_mem, 1),
        "guests": sorted(
            (guest_summary(g) for g in running), key=lambda g: g["name"].lower()
        ),
    }
