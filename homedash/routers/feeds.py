"""Feed aggregation router for the homedash API.

Each endpoint returns ``{"items": [...]}`` and adds an ``error`` key only when
nothing is configured or every configured source failed.
"""

from fastapi import APIRouter, Depends

from ..core.config import Settings
from ..core.security import get_settings
from ..services import feeds
from .status import get_transport

router = APIRouter(prefix="/feeds", tags=["feeds"])


@router.get("/rss")
async def get_rss(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns the newest items across the configured RSS/Atom feeds."""
    return await feeds.fetch_rss(settings, transport)


@router.get("/youtube")
async def get_youtube(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns the newest uploads across the configured YouTube channels."""
    return await feeds.fetch_youtube(settings, transport)


@router.get("/reddit")
async def get_reddit(
    settings: Settings = Depends(get_settings),
    transport=Depends(get_transport),
):
    """Returns the top hot posts across the configured subreddits."""
    return await feeds.fetch_reddit(settings, transport)
