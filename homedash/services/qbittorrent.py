"""qBittorrent download client status."""

from typing import Optional

import httpx

from ..core.config import Settings
from ..utils.formatting import format_ratio
from ..utils.http import (
    ErrorKind,
    UpstreamClient,
    UpstreamError,
    UpstreamModel,
    config_missing,
    decode_model,
)

NAME = "qBittorrent"

ACTIVE_STATES = ("downloading", "uploading", "stalledDL", "stalledUP")
MAX_ACTIVE_TORRENTS = 5


class Torrent(UpstreamModel):
    name: Optional[str] = None
    progress: float = 0.0
    dlspeed: int = 0
    upspeed: int = 0
    state: Optional[str] = None
    size: int = 0
    downloaded: int = 0


class TransferInfo(UpstreamModel):
    dl_info_speed: int = 0
    up_info_speed: int = 0


async def login(client: UpstreamClient, username: str, password: str) -> str:
    """Authenticates against the Web API and returns the SID cookie value."""
    response = await client.request(
        "POST",
        "/api/v2/auth/login",
        data={"username": username, "password": password},
    )
    client.raise_for_status(
        response, "Login failed with status {status}. Check username/password."
    )
    if response.text.strip() != "Ok.":
        raise UpstreamError(ErrorKind.BAD_STATUS, "Login failed. Invalid credentials.")
    sid = response.cookies.get("SID")
    if not sid:
        raise UpstreamError(ErrorKind.PARSE_ERROR, "Failed to get session ID")
    return sid


def torrent_summary(torrent: Torrent) -> dict:
    return {
        "name": torrent.name,
        "progress": format_ratio(torrent.progress),
        "dlspeed": torrent.dlspeed,
        "upspeed": torrent.upspeed,
        "state": torrent.state,
        "size": torrent.size,
        "downloaded": torrent.downloaded,
    }


async def fetch_status(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.QBITTORRENT_USERNAME or not settings.QBITTORRENT_PASSWORD:
        raise config_missing("qBittorrent credentials not configured")

    async with UpstreamClient(
        NAME,
        settings.QBITTORRENT_URL,
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    ) as client:
        sid = await login(
            client, settings.QBITTORRENT_USERNAME, settings.QBITTORRENT_PASSWORD
        )
        headers = {"Cookie": f"SID={sid}"}
        raw = await client.get_json(
            "/api/v2/torrents/info",
            error="Failed to get torrents: {status}",
            headers=headers,
        )
        transfer = decode_model(
            TransferInfo,
            await client.try_json("/api/v2/transfer/info", {}, headers=headers),
            NAME,
            lenient=True,
        )

    torrents = [decode_model(Torrent, t, NAME) for t in raw or [] if isinstance(t, dict)]
    active = [t for t in torrents if t.state in ACTIVE_STATES][:MAX_ACTIVE_TORRENTS]

    return {
        "online": True,
        "torrentCount": len(torrents),
        "downloadSpeed": transfer.dl_info_speed,
        "uploadSpeed": transfer.up_info_speed,
        "activeTorrents": [torrent_summary(t) for t in active],
        "status": "Connected",
    }
