"""Feed aggregation for the dashboard news widgets.

Three source types are supported: generic RSS/Atom feeds, YouTube channel
feeds and Reddit subreddit listings. Each configured source is fetched
independently; a failing source is skipped and only reported when nothing at
all could be collected.
"""

import asyncio
import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup

from ..core.config import Settings
from ..utils.http import ErrorKind, UpstreamClient, UpstreamError
from ..utils.logging import log_structured

MAX_ITEMS = 20
DESCRIPTION_LIMIT = 200
FEED_TIMEOUT = 10.0

RSS_ACCEPT = "application/rss+xml, application/xml, text/xml"
YOUTUBE_FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
YOUTUBE_THUMBNAIL_URL = "https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"
REDDIT_HOT_URL = "https://old.reddit.com/r/{subreddit}/hot.json?limit=10&raw_json=1"
REDDIT_USER_AGENT = "Mozilla/5.0 (compatible; homedash/1.0)"

UNDATED = float("-inf")


@dataclass
class FeedEntry:
    """An output item plus the value it is ordered by."""

    sort_key: float
    item: Dict[str, Any]


SourceFetcher = Callable[[UpstreamClient, str], Awaitable[List[FeedEntry]]]


def strip_html(raw_value: str) -> str:
    """Return text content extracted from HTML fragments."""
    if not raw_value:
        return ""
    soup = BeautifulSoup(raw_value, "html.parser")
    text = soup.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+([.,;:!?])", r"\1", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()


def timestamp(entry: Any) -> float:
    """Epoch seconds of the first parsed publish/update date, if any."""
    for attr in ("published_parsed", "updated_parsed"):
        value = entry.get(attr)
        if value:
            return float(calendar.timegm(value))
    return UNDATED


def parse_document(content: bytes) -> Any:
    parsed = feedparser.parse(content)
    if parsed.bozo and not parsed.entries:
        raise UpstreamError(ErrorKind.PARSE_ERROR, "invalid feed document")
    return parsed


def parse_rss(content: bytes, url: str) -> List[FeedEntry]:
    """Extracts items from an RSS or Atom document.

    Args:
        content: Raw feed body.
        url: Feed URL, used for the source name when the feed has no title.

    Returns:
        Entries for every item that has a title.
    """
    parsed = parse_document(content)
    source = parsed.feed.get("title") or urlparse(url).hostname or url
    entries = []
    for entry in parsed.entries:
        title = entry.get("title")
        if not title:
            continue
        description = strip_html(entry.get("summary") or entry.get("description") or "")
        entries.append(
            FeedEntry(
                timestamp(entry),
                {
                    "title": title,
                    "link": entry.get("link", ""),
                    "pubDate": entry.get("published") or entry.get("updated") or "",
                    "source": source,
                    "description": description[:DESCRIPTION_LIMIT],
                },
            )
        )
    return entries


def video_id_of(entry: Any) -> str:
    video_id = entry.get("yt_videoid")
    if video_id:
        return video_id
    entry_id = entry.get("id", "")
    if entry_id.startswith("yt:video:"):
        return entry_id[len("yt:video:"):]
    return ""


def parse_youtube(content: bytes, channel_id: str) -> List[FeedEntry]:
    """Extracts videos from a YouTube channel feed."""
    parsed = parse_document(content)
    feed = parsed.feed
    author = feed.get("author_detail") or {}
    channel_name = (
        author.get("name") or feed.get("author") or feed.get("title") or channel_id
    )
    entries = []
    for entry in parsed.entries:
        title = entry.get("title")
        video_id = video_id_of(entry)
        if not title or not video_id:
            continue
        item = {
            "title": title,
            "link": YOUTUBE_WATCH_URL.format(video_id=video_id),
            "pubDate": entry.get("published", ""),
            "source": channel_name,
            "channelName": channel_name,
            "videoId": video_id,
            "thumbnail": YOUTUBE_THUMBNAIL_URL.format(video_id=video_id),
        }
        description = entry.get("summary") or entry.get("media_description")
        if description:
            item["description"] = description[:DESCRIPTION_LIMIT]
        entries.append(FeedEntry(timestamp(entry), item))
    return entries


def iso_timestamp(epoch: float) -> str:
    moment = datetime.fromtimestamp(epoch, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_reddit(data: Any, subreddit: str) -> List[FeedEntry]:
    """Extracts non-stickied posts from a subreddit listing."""
    listing = data.get("data") if isinstance(data, dict) else None
    children = listing.get("children") if isinstance(listing, dict) else None
    entries = []
    for child in children or []:
        post = child.get("data") if isinstance(child, dict) else None
        if not isinstance(post, dict) or post.get("stickied"):
            continue
        thumbnail = post.get("thumbnail") or ""
        score = post.get("score") or 0
        name = post.get("subreddit_name_prefixed") or f"r/{subreddit}"
        item = {
            "title": post.get("title", ""),
            "link": f"https://www.reddit.com{post.get('permalink', '')}",
            "pubDate": iso_timestamp(post.get("created_utc") or 0),
            "source": name,
            "subreddit": name,
            "author": post.get("author"),
            "score": score,
            "numComments": post.get("num_comments") or 0,
            "thumbnail": thumbnail if thumbnail.startswith("http") else None,
        }
        if post.get("selftext"):
            item["selfText"] = post["selftext"][:DESCRIPTION_LIMIT]
        entries.append(FeedEntry(float(score), item))
    return entries


async def fetch_rss_source(client: UpstreamClient, url: str) -> List[FeedEntry]:
    response = await client.request("GET", url, headers={"Accept": RSS_ACCEPT})
    client.raise_for_status(response, "HTTP {status}")
    return parse_rss(response.content, url)


async def fetch_youtube_source(client: UpstreamClient, channel_id: str) -> List[FeedEntry]:
    response = await client.request(
        "GET",
        YOUTUBE_FEED_URL.format(channel_id=channel_id),
        headers={"Accept": "application/xml"},
    )
    client.raise_for_status(response, "HTTP {status}")
    return parse_youtube(response.content, channel_id)


async def fetch_reddit_source(client: UpstreamClient, subreddit: str) -> List[FeedEntry]:
    response = await client.request(
        "GET",
        REDDIT_HOT_URL.format(subreddit=subreddit),
        headers={"User-Agent": REDDIT_USER_AGENT, "Accept": "application/json"},
    )
    client.raise_for_status(response, "HTTP {status}")
    try:
        data = client.decode(response)
    except UpstreamError as err:
        raise UpstreamError(ErrorKind.PARSE_ERROR, "invalid JSON response") from err
    return parse_reddit(data, subreddit)


async def fetch_source(
    client: UpstreamClient, source: str, label: str, fetcher: SourceFetcher
) -> Tuple[List[FeedEntry], Optional[str]]:
    """Fetches one source, returning its entries or an error description."""
    try:
        return await fetcher(client, source), None
    except UpstreamError as err:
        log_structured("WARN", f"{client.name} source {label} failed: {err}", "FEEDS")
        return [], f"{label}: {err}"
    except Exception as err:
        log_structured("ERROR", f"{client.name} source {label} failed: {err!r}", "FEEDS")
        return [], f"{label}: {str(err) or 'unknown error'}"


async def aggregate(
    name: str,
    sources: Sequence[str],
    fetcher: SourceFetcher,
    label: Callable[[str], str] = str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Fetches all sources concurrently and merges their items.

    Args:
        name: Feed kind, used in log lines.
        sources: Configured source identifiers.
        fetcher: Coroutine fetching and parsing a single source.
        label: Renders a source identifier for error messages.
        transport: Optional httpx transport override.

    Returns:
        ``{"items": [...]}`` capped at MAX_ITEMS, with an ``error`` key only
        when every source failed and nothing was collected.
    """
    async with UpstreamClient(name, "", timeout=FEED_TIMEOUT, transport=transport) as client:
        results = await asyncio.gather(
            *(fetch_source(client, s, label(s), fetcher) for s in sources)
        )

    entries: List[FeedEntry] = []
    errors: List[str] = []
    for source_entries, error in results:
        entries.extend(source_entries)
        if error:
            errors.append(error)

    # Stable sort keeps source order among equal keys
    entries.sort(key=lambda e: e.sort_key, reverse=True)
    payload: Dict[str, Any] = {"items": [e.item for e in entries[:MAX_ITEMS]]}
    if not entries and errors and len(errors) == len(sources):
        payload["error"] = "; ".join(errors)
    return payload


def not_configured(message: str) -> Dict[str, Any]:
    return {"items": [], "error": message}


async def fetch_rss(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.RSS_FEED_URLS:
        return not_configured("No RSS feed URLs configured")
    return await aggregate("RSS", settings.RSS_FEED_URLS, fetch_rss_source, transport=transport)


async def fetch_youtube(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.YOUTUBE_CHANNEL_IDS:
        return not_configured("No YouTube channel IDs configured")
    return await aggregate(
        "YouTube", settings.YOUTUBE_CHANNEL_IDS, fetch_youtube_source, transport=transport
    )


async def fetch_reddit(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
    if not settings.REDDIT_SUBREDDITS:
        return not_configured("No Reddit subreddits configured")
    return await aggregate(
        "Reddit",
        settings.REDDIT_SUBREDDITS,
        fetch_reddit_source,
        label=lambda sub: f"r/{sub}",
        transport=transport,
    )
