"""Handler boundary shared by every service status integration.

Each integration module exposes ``fetch_status(settings, transport=None)``
returning the online summary for its widget. ``collect_status`` runs one of
those coroutines and converts any failure into the uniform offline shape, so
a broken upstream only ever degrades its own widget.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..core.config import Settings
from ..utils.http import ErrorKind, UpstreamError
from ..utils.logging import log_structured

StatusFetcher = Callable[
    [Settings, Optional[httpx.AsyncBaseTransport]], Awaitable[Dict[str, Any]]
]


def offline(error: str) -> Dict[str, Any]:
    """Builds the failure payload; no service fields accompany the error."""
    return {"online": False, "error": error or "Connection failed"}


async def collect_status(
    name: str,
    fetcher: StatusFetcher,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Runs a status fetcher, converting every failure to a soft failure.

    Args:
        name: Service display name for log lines.
        fetcher: The integration's ``fetch_status`` coroutine function.
        settings: Application settings.
        transport: Optional httpx transport override.

    Returns:
        The service summary, or ``{"online": False, "error": ...}``.
    """
    try:
        return await fetcher(settings, transport)
    except UpstreamError as err:
        level = "INFO" if err.kind is ErrorKind.CONFIG_MISSING else "WARN"
        log_structured(level, f"{name} unavailable: {err}", "SERVICES")
        return offline(err.message)
    except Exception as err:
        log_structured("ERROR", f"{name} status handler failed: {err!r}", "SERVICES")
        return offline(str(err))
