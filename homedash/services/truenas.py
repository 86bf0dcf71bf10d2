"""TrueNAS storage and memory status.

CPU, memory and ZFS ARC figures come from the reporting API averaged over the
last five minutes; pool capacity is summed from each pool's data vdevs.
"""

import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import Field

from ..core.config import Settings
from ..utils.formatting import format_bytes, format_percent
from ..utils.http import UpstreamClient, UpstreamModel, config_missing, decode_model
from ..utils.logging import log_structured

NAME = "TrueNAS"

REPORTING_WINDOW = 300
UNAVAILABLE = "N/A"


class SystemInfo(UpstreamModel):
    physmem: int = 0


class VdevStats(UpstreamModel):
    size: int = 0
    allocated: int = 0


class Vdev(UpstreamModel):
    stats: VdevStats = Field(default_factory=VdevStats)


class Topology(UpstreamModel):
    data: List[Vdev] = []


class Pool(UpstreamModel):
    name: Optional[str] = None
    status: Optional[str] = None
    healthy: bool = False
    topology: Topology = Field(default_factory=Topology)


def reporting_query(now: int) -> Dict[str, Any]:
    return {
        "graphs": [{"name": "cpu"}, {"name": "memory"}, {"name": "arcsize"}],
        "query": {"start": now - REPORTING_WINDOW, "end": now, "aggregate": True},
    }


def graph_means(reporting: Any) -> Dict[str, Dict[str, Any]]:
    """Maps graph name to its aggregated mean values."""
    means = {}
    for graph in reporting if isinstance(reporting, list) else []:
        if not isinstance(graph, dict):
            continue
        aggregations = graph.get("aggregations")
        mean = aggregations.get("mean") if isinstance(aggregations, dict) else None
        means[graph.get("name")] = mean if isinstance(mean, dict) else {}
    return means


def first_number(values: Dict[str, Any], *keys: str) -> float:
    for key in keys:
        value = values.get(key)
        if isinstance(value, (int, float)) and value:
            return value
    return 0


def memory_stats(reporting: Any, physmem: int) -> Dict[str, str]:
    """Derives CPU and memory breakdown strings from reporting data."""
    stats = {
        "cpuUsage": UNAVAILABLE,
        "memoryUsage": UNAVAILABLE,
        "memoryFree": UNAVAILABLE,
        "memoryZfsCache": UNAVAILABLE,
        "memoryServices": UNAVAILABLE,
    }
    means = graph_means(reporting)

    cpu = means.get("cpu", {}).get("cpu")
    if isinstance(cpu, (int, float)):
        stats["cpuUsage"] = f"{cpu:.1f}%"

    memory = means.get("memory", {})
    available = first_number(memory, "available", "free")
    if available > 0:
        stats["memoryFree"] = format_bytes(available, 1)
        if physmem > 0:
            stats["memoryUsage"] = format_percent(physmem - available, physmem)

    arc_means = means.get("arcsize", {})
    arc = first_number(arc_means, "arcsize", "arc_size", "size")
    if not arc and arc_means:
        fallback = next(iter(arc_means.values()))
        arc = fallback if isinstance(fallback, (int, float)) else 0
    if arc > 0:
        stats["memoryZfsCache"] = format_bytes(arc, 1)

    if physmem > 0 and available > 0:
        services = physmem - available - arc
        if services > 0:
            stats["memoryServices"] = format_bytes(services, 1)
    return stats


def pool_usage(pool: Pool) -> Tuple[int, int]:
    """Returns (capacity, allocated) bytes summed over the pool's data vdevs."""
    capacity = sum(vdev.stats.size for vdev in pool.topology.data)
    used = sum(vdev.stats.allocated for vdev in pool.topology.data)
    return capacity, used


def pool_summary(pool: Pool, capacity: int, used: int) -> Dict[str, Any]:
    used_pct = used / capacity * 100 if capacity > 0 else 0.0
    return {
        "name": pool.name or "Unknown",
        "status": pool.status or ("ONLINE" if pool.healthy else "DEGRADED"),
        "capacity": format_bytes(capacity, 1),
        "used": format_bytes(used, 1),
        "usedPercentage": f"{used_pct:.1f}%",
        "usedPctNum": round(used_pct, 1),
    }


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.TRUENAS_API_KEY:
        raise config_missing("TrueNAS API key not configured")

    async with UpstreamClient(
        NAME,
        settings.TRUENAS_URL,
        headers={
            "Authorization": f"Bearer {settings.TRUENAS_API_KEY}",
            "Content-Type": "application/json",
        },
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        info = decode_model(
            SystemInfo, await client.get_json("/api/v2.0/system/info"), NAME
        )
        raw_pools = await client.try_json("/api/v2.0/pool", [])
        reporting = await client.try_json(
            "/api/v2.0/reporting/get_data",
            None,
            method="POST",
            json=reporting_query(int(time.time())),
        )
    if reporting is None:
        log_structured("WARN", "TrueNAS reporting data unavailable", "SERVICES")

    pools = [
        decode_model(Pool, p, NAME, lenient=True)
        for p in raw_pools or []
        if isinstance(p, dict)
    ]
    usage = [pool_usage(p) for p in pools]
    total_capacity = sum(capacity for capacity, _ in usage)
    total_used = sum(used for _, used in usage)

    return {
        "online": True,
        **memory_stats(reporting, info.physmem),
        "memoryTotal": format_bytes(info.physmem, 1),
        "storageUsage": format_percent(total_used, total_capacity),
        "poolCount": len(pools),
        "totalCapacity": format_bytes(total_capacity, 1),
        "totalUsed": format_bytes(total_used, 1),
        "pools": [
            pool_summary(pool, capacity, used)
            for pool, (capacity, used) in zip(pools, usage)
        ],
    }
