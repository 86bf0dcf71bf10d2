import base64

import httpx
import pytest

from homedash.services import (
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
from homedash.services.base import collect_status

from conftest import mock_transport, run

GiB = 1024 ** 3
TiB = 1024 ** 4

FETCHERS = [
    ("AdGuard", adguard.fetch_status, "AdGuard credentials not configured"),
    ("Immich", immich.fetch_status, "Immich API key not configured"),
    ("Jellyfin", jellyfin.fetch_status, "Jellyfin API key not configured"),
    ("Jellyseerr", jellyseerr.fetch_status, "Jellyseerr API key not configured"),
    ("Portainer", portainer.fetch_status, "Portainer API key not configured"),
    ("Proxmox", proxmox.fetch_status, "Proxmox credentials not configured"),
    ("qBittorrent", qbittorrent.fetch_status, "qBittorrent credentials not configured"),
    ("Radarr", arr.fetch_radarr_status, "Radarr API key not configured"),
    ("Sonarr", arr.fetch_sonarr_status, "Sonarr API key not configured"),
    ("TrueNAS", truenas.fetch_status, "TrueNAS API key not configured"),
    ("Home Assistant", homeassistant.fetch_status, "Home Assistant token not configured"),
]


def collect(name, fetcher, settings, routes):
    return run(collect_status(name, fetcher, settings, mock_transport(routes)))


@pytest.mark.parametrize("name,fetcher,message", FETCHERS)
def test_missing_credentials_soft_fail_without_network(make_settings, name, fetcher, message):
    calls = []

    def record(request):
        calls.append(request.url)
        return httpx.Response(200, json={})

    transport = httpx.MockTransport(record)
    result = run(collect_status(name, fetcher, make_settings(), transport))
    assert result == {"online": False, "error": message}
    assert calls == []


def test_unexpected_exception_becomes_soft_failure(make_settings):
    async def broken(settings, transport=None):
        raise RuntimeError("kaboom")

    result = run(collect_status("Broken", broken, make_settings()))
    assert result == {"online": False, "error": "kaboom"}


def test_adguard_normalization(make_settings):
    seen_auth = []

    def status(request):
        seen_auth.append(request.headers["authorization"])
        return httpx.Response(
            200,
            json={
                "protection_enabled": True,
                "running": True,
                "dhcp_available": False,
                "version": "v0.107.52",
            },
        )

    routes = {
        "/control/status": status,
        "/control/stats": {
            "num_dns_queries": 200,
            "num_blocked_filtering": 50,
            "num_replaced_safebrowsing": 3,
            "num_replaced_parental": 1,
            "num_replaced_safesearch": 2,
            "avg_processing_time": 0.0123,
        },
    }
    settings = make_settings(
        ADGUARD_URL="http://adguard.test",
        ADGUARD_USERNAME="dns",
        ADGUARD_PASSWORD="pw",
    )
    result = collect("AdGuard", adguard.fetch_status, settings, routes)

    assert result == {
        "online": True,
        "protection": "Enabled",
        "dnsQueries": 200,
        "blockedQueries": 50,
        "blockRate": "25.0%",
        "safeBrowsingBlocked": 3,
        "parentalBlocked": 1,
        "safeSearchEnforced": 2,
        "avgProcessingTime": "12.30 ms",
        "dhcpEnabled": "No",
        "runningStatus": "Running",
        "version": "v0.107.52",
    }
    assert seen_auth == ["Basic " + base64.b64encode(b"dns:pw").decode()]


def test_adguard_bad_credentials(make_settings):
    settings = make_settings(
        ADGUARD_URL="http://adguard.test",
        ADGUARD_USERNAME="dns",
        ADGUARD_PASSWORD="wrong",
    )
    result = collect("AdGuard", adguard.fetch_status, settings, {"/control/status": (401, {})})
    assert result == {
        "online": False,
        "error": "AdGuard API error (401). Check credentials and URL.",
    }


def test_adguard_timeout_names_the_url(make_settings):
    def hang(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    settings = make_settings(
        ADGUARD_URL="http://adguard.test/",
        ADGUARD_USERNAME="dns",
        ADGUARD_PASSWORD="pw",
    )
    result = collect("AdGuard", adguard.fetch_status, settings, {"/control/status": hang})
    assert result == {
        "online": False,
        "error": "Timeout connecting to http://adguard.test. Check if AdGuard is running.",
    }


def test_immich_falls_back_to_new_endpoints(make_settings):
    routes = {
        "/api/server/ping": {"res": "pong"},
        "/api/server/statistics": {"photos": 120, "videos": 8, "usage": 1048576},
        "/api/server/storage": {
            "diskUse": "1.2 GiB",
            "diskSize": "100 GiB",
            "diskUsagePercentage": 12.5,
        },
    }
    settings = make_settings(IMMICH_URL="http://immich.test", IMMICH_API_KEY="k")
    result = collect("Immich", immich.fetch_status, settings, routes)

    assert result == {
        "online": True,
        "photos": 120,
        "videos": 8,
        "usage": "1.2 GiB",
        "totalObjects": 128,
        "diskSize": "100 GiB",
        "diskUsage": "12.5%",
    }


def test_immich_usage_from_statistics_when_storage_missing(make_settings):
    routes = {
        "/api/server-info/ping": {"res": "pong"},
        "/api/server-info/statistics": {"photos": 1, "videos": 0, "usage": 2 * GiB},
    }
    settings = make_settings(IMMICH_URL="http://immich.test", IMMICH_API_KEY="k")
    result = collect("Immich", immich.fetch_status, settings, routes)
    assert result["usage"] == "2.00 GiB"
    assert "diskSize" not in result
    assert "diskUsage" not in result


def test_immich_ping_failure(make_settings):
    settings = make_settings(IMMICH_URL="http://immich.test", IMMICH_API_KEY="k")
    result = collect("Immich", immich.fetch_status, settings, {})
    assert result == {
        "online": False,
        "error": "Immich server not responding (404). Check URL and API key.",
    }


def test_jellyfin_public_info_fallback_and_viewers(make_settings):
    routes = {
        "/System/Info": (404, {}),
        "/System/Info/Public": {"Version": "10.9.11", "ServerName": "media"},
        "/Items/Counts": {"MovieCount": 10, "SeriesCount": 4, "EpisodeCount": 80},
        "/Sessions": [
            {"UserName": "alice", "Client": "Web", "DeviceName": "Firefox"},
            {
                "UserName": "bob",
                "Client": "Android",
                "DeviceName": "Pixel",
                "NowPlayingItem": {
                    "Name": "Pilot",
                    "Type": "Episode",
                    "SeriesName": "Show",
                    "ParentIndexNumber": 1,
                    "IndexNumber": 2,
                },
            },
            {"NowPlayingItem": {"Name": "Film", "Type": "Movie"}},
        ],
    }
    settings = make_settings(JELLYFIN_URL="http://jellyfin.test", JELLYFIN_API_KEY="k")
    result = collect("Jellyfin", jellyfin.fetch_status, settings, routes)

    assert result["online"] is True
    assert result["version"] == "10.9.11"
    assert result["serverName"] == "media"
    assert result["movieCount"] == 10
    assert result["episodeCount"] == 80
    assert result["activeStreams"] == 2
    assert result["viewers"] == [
        {
            "user": "bob",
            "content": "Show - S1E2",
            "type": "Episode",
            "client": "Android",
            "deviceName": "Pixel",
        },
        {
            "user": "Unknown User",
            "content": "Film",
            "type": "Movie",
            "client": "Unknown",
            "deviceName": "Unknown Device",
        },
    ]


def test_jellyseerr_counts(make_settings):
    routes = {
        "/api/v1/status": {"version": "1.9.2"},
        "/api/v1/request/count": {"pending": 2, "approved": 3, "total": 10},
    }
    settings = make_settings(JELLYSEERR_URL="http://seerr.test", JELLYSEERR_API_KEY="k")
    result = collect("Jellyseerr", jellyseerr.fetch_status, settings, routes)
    assert result == {
        "online": True,
        "version": "1.9.2",
        "pendingRequests": 2,
        "approvedRequests": 3,
        "totalRequests": 10,
    }


def test_portainer_counts_active_endpoints_only(make_settings):
    def containers(request):
        assert request.url.params["all"] == "true"
        return httpx.Response(
            200,
            json=[
                {"State": "running"},
                {"State": "running"},
                {"State": "exited"},
                {"State": "paused"},
                {"State": "created"},
            ],
        )

    routes = {
        "/api/endpoints": [{"Id": 1, "Status": 1}, {"Id": 2, "Status": 2}],
        "/api/endpoints/1/docker/containers/json": containers,
    }
    settings = make_settings(PORTAINER_URL="http://portainer.test", PORTAINER_API_KEY="k")
    result = collect("Portainer", portainer.fetch_status, settings, routes)
    assert result == {
        "online": True,
        "endpoints": 2,
        "activeEndpoints": 1,
        "totalContainers": 5,
        "runningContainers": 2,
        "stoppedContainers": 2,
        "pausedContainers": 1,
    }


def test_portainer_skips_failing_endpoint(make_settings):
    routes = {
        "/api/endpoints": [{"Id": 1, "Status": 1}, {"Id": 3, "Status": 1}],
        "/api/endpoints/1/docker/containers/json": (500, {}),
        "/api/endpoints/3/docker/containers/json": [{"State": "running"}],
    }
    settings = make_settings(PORTAINER_URL="http://portainer.test", PORTAINER_API_KEY="k")
    result = collect("Portainer", portainer.fetch_status, settings, routes)
    assert result["online"] is True
    assert result["totalContainers"] == 1


def test_proxmox_cluster_totals_and_guests(make_settings):
    seen = []

    def resources(request):
        seen.append(request.headers["authorization"])
        return httpx.Response(
            200,
            json={
                "data": [
                    {"type": "node", "cpu": 0.1, "mem": 4 * GiB, "maxmem": 16 * GiB},
                    {"type": "node", "cpu": 0.3, "mem": 4 * GiB, "maxmem": 16 * GiB},
                    {
                        "type": "qemu",
                        "status": "running",
                        "name": "zeta",
                        "vmid": 100,
                        "cpu": 0.05,
                        "mem": GiB,
                        "maxmem": 4 * GiB,
                    },
                    {"type": "lxc", "status": "running", "vmid": 101},
                    {"type": "qemu", "status": "stopped", "name": "old", "vmid": 102},
                    {"type": "storage", "status": "available"},
                ]
            },
        )

    settings = make_settings(
        PROXMOX_URL="https://pve.test:8006",
        PROXMOX_TOKEN_ID="root@pam!dash",
        PROXMOX_TOKEN_SECRET="uuid",
    )
    result = collect(
        "Proxmox", proxmox.fetch_status, settings, {"/api2/json/cluster/resources": resources}
    )

    assert seen == ["PVEAPIToken=root@pam!dash=uuid"]
    assert result["totalGuests"] == 3
    assert result["runningGuests"] == 2
    assert result["stoppedGuests"] == 1
    assert result["cpuUsage"] == "20.0%"
    assert result["memoryUsage"] == "25.0%"
    assert result["memoryUsed"] == "8.0 GiB"
    assert result["memoryTotal"] == "32.0 GiB"
    assert [g["name"] for g in result["guests"]] == ["lxc-101", "zeta"]
    zeta = result["guests"][1]
    assert zeta == {
        "name": "zeta",
        "type": "VM",
        "vmid": 100,
        "status": "running",
        "cpu": "5.0%",
        "memory": "25.0%",
        "memoryUsed": "1.0 GiB",
        "memoryMax": "4.0 GiB",
    }


def test_qbittorrent_login_and_torrents(make_settings):
    def do_login(request):
        assert b"username=qb" in request.content
        return httpx.Response(
            200, text="Ok.", headers={"set-cookie": "SID=abc123; HttpOnly; path=/"}
        )

    def torrents(request):
        assert "SID=abc123" in request.headers["cookie"]
        items = [
            {"name": f"t{i}", "state": "downloading", "progress": 0.5} for i in range(7)
        ]
        items.append({"name": "done", "state": "pausedUP", "progress": 1})
        return httpx.Response(200, json=items)

    routes = {
        "POST /api/v2/auth/login": do_login,
        "/api/v2/torrents/info": torrents,
        "/api/v2/transfer/info": {"dl_info_speed": 2048, "up_info_speed": 512},
    }
    settings = make_settings(
        QBITTORRENT_URL="http://qbit.test",
        QBITTORRENT_USERNAME="qb",
        QBITTORRENT_PASSWORD="pw",
    )
    result = collect("qBittorrent", qbittorrent.fetch_status, settings, routes)

    assert result["online"] is True
    assert result["torrentCount"] == 8
    assert result["downloadSpeed"] == 2048
    assert result["uploadSpeed"] == 512
    assert result["status"] == "Connected"
    assert len(result["activeTorrents"]) == 5
    assert result["activeTorrents"][0]["progress"] == "50.0%"


def test_qbittorrent_rejected_login(make_settings):
    routes = {"POST /api/v2/auth/login": (200, "Fails.")}
    settings = make_settings(
        QBITTORRENT_URL="http://qbit.test",
        QBITTORRENT_USERNAME="qb",
        QBITTORRENT_PASSWORD="bad",
    )
    result = collect("qBittorrent", qbittorrent.fetch_status, settings, routes)
    assert result == {"online": False, "error": "Login failed. Invalid credentials."}


def test_radarr_counts_paged_queue(make_settings):
    routes = {
        "/api/v3/system/status": {"version": "5.8.3", "status": "ok"},
        "/api/v3/queue": {"totalRecords": 3, "records": [{}]},
        "/api/v3/movie": [{"id": 1}, {"id": 2}, {"id": 3}, {"id": 4}],
    }
    settings = make_settings(RADARR_URL="http://radarr.test", RADARR_API_KEY="k")
    result = collect("Radarr", arr.fetch_radarr_status, settings, routes)
    assert result == {
        "online": True,
        "version": "5.8.3",
        "queueCount": 3,
        "movieCount": 4,
        "status": "ok",
    }


def test_sonarr_bad_status(make_settings):
    settings = make_settings(SONARR_URL="http://sonarr.test", SONARR_API_KEY="k")
    result = collect(
        "Sonarr", arr.fetch_sonarr_status, settings, {"/api/v3/system/status": (500, {})}
    )
    assert result == {"online": False, "error": "Sonarr API returned 500"}


def test_count_records_shapes():
    assert arr.count_records([1, 2]) == 2
    assert arr.count_records({"totalRecords": 7}) == 7
    assert arr.count_records({"records": [1]}) == 1
    assert arr.count_records("nonsense") == 0


def test_truenas_memory_and_pools(make_settings):
    reporting = [
        {"name": "cpu", "aggregations": {"mean": {"cpu": 12.34}}},
        {"name": "memory", "aggregations": {"mean": {"available": 4 * GiB}}},
        {"name": "arcsize", "aggregations": {"mean": {"arcsize": 8 * GiB}}},
    ]
    pool = {
        "name": "tank",
        "status": "ONLINE",
        "healthy": True,
        "topology": {
            "data": [
                {"stats": {"size": TiB, "allocated": 256 * GiB}},
                {"stats": {"size": TiB, "allocated": 256 * GiB}},
            ]
        },
    }
    routes = {
        "/api/v2.0/system/info": {"physmem": 16 * GiB},
        "/api/v2.0/pool": [pool],
        "POST /api/v2.0/reporting/get_data": reporting,
    }
    settings = make_settings(TRUENAS_URL="http://nas.test", TRUENAS_API_KEY="k")
    result = collect("TrueNAS", truenas.fetch_status, settings, routes)

    assert result["online"] is True
    assert result["cpuUsage"] == "12.3%"
    assert result["memoryUsage"] == "75.0%"
    assert result["memoryFree"] == "4.0 GiB"
    assert result["memoryZfsCache"] == "8.0 GiB"
    assert result["memoryServices"] == "4.0 GiB"
    assert result["memoryTotal"] == "16.0 GiB"
    assert result["storageUsage"] == "25.0%"
    assert result["poolCount"] == 1
    assert result["totalCapacity"] == "2.0 TiB"
    assert result["totalUsed"] == "512.0 GiB"
    assert result["pools"] == [
        {
            "name": "tank",
            "status": "ONLINE",
            "capacity": "2.0 TiB",
            "used": "512.0 GiB",
            "usedPercentage": "25.0%",
            "usedPctNum": 25.0,
        }
    ]


def test_truenas_without_reporting(make_settings):
    routes = {"/api/v2.0/system/info": {"physmem": 8 * GiB}, "/api/v2.0/pool": []}
    settings = make_settings(TRUENAS_URL="http://nas.test", TRUENAS_API_KEY="k")
    result = collect("TrueNAS", truenas.fetch_status, settings, routes)
    assert result["online"] is True
    assert result["cpuUsage"] == "N/A"
    assert result["memoryUsage"] == "N/A"
    assert result["storageUsage"] == "0%"
    assert result["pools"] == []


def test_homeassistant_entity_counts(make_settings):
    routes = {
        "/api/": {"message": "API running.", "version": "2024.10.1"},
        "/api/states": [
            {"entity_id": "light.kitchen"},
            {"entity_id": "light.hall"},
            {"entity_id": "switch.fan"},
            {"entity_id": "sensor.temp"},
            {"entity_id": "automation.night"},
            {"entity_id": "sun.sun"},
        ],
    }
    settings = make_settings(HOMEASSISTANT_URL="http://ha.test", HOMEASSISTANT_TOKEN="t")
    result = collect("Home Assistant", homeassistant.fetch_status, settings, routes)
    assert result == {
        "online": True,
        "version": "2024.10.1",
        "totalEntities": 6,
        "lights": 2,
        "switches": 1,
        "sensors": 1,
        "automations": 1,
    }


def test_jellyfin_malformed_counts_do_not_take_widget_offline(make_settings):
    routes = {
        "/System/Info": {"Version": "10.9.11", "ServerName": "media"},
        "/Items/Counts": {"MovieCount": "unknown", "SeriesCount": 4},
        "/Sessions": [{"UserName": "alice", "NowPlayingItem": "garbled"}],
    }
    settings = make_settings(JELLYFIN_URL="http://jellyfin.test", JELLYFIN_API_KEY="k")
    result = collect("Jellyfin", jellyfin.fetch_status, settings, routes)

    assert result["online"] is True
    assert result["movieCount"] == 0
    assert result["seriesCount"] == 4
    assert result["activeStreams"] == 0


def test_adguard_malformed_stats_fall_back_to_defaults(make_settings):
    routes = {
        "/control/status": {"protection_enabled": True, "running": True},
        "/control/stats": {"num_dns_queries": [1, 2, 3], "num_blocked_filtering": 7},
    }
    settings = make_settings(
        ADGUARD_URL="http://adguard.test",
        ADGUARD_USERNAME="dns",
        ADGUARD_PASSWORD="pw",
    )
    result = collect("AdGuard", adguard.fetch_status, settings, routes)

    assert result["online"] is True
    assert result["dnsQueries"] == 0
    assert result["blockedQueries"] == 7
    assert result["blockRate"] == "0%"
