"""Xtream service: builds a live channel list from a Xtream Codes server."""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from iptvcatalog.errors import ApiError, NetworkError
from iptvcatalog.models.channel import DEFAULT_GROUP, Channel
from iptvcatalog.services.category_service import build_category_map
from iptvcatalog.services.proxy_rewriter import Rewriter

if TYPE_CHECKING:
    from iptvcatalog.services.http_client import HttpClientService

logger = logging.getLogger(__name__)

CATEGORIES_ACTION = "get_live_categories"
STREAMS_ACTION = "get_live_streams"
DEFAULT_EXTENSION = "ts"


def build_stream_url(host: str, username: str, password: Optional[str], stream_id, extension: Optional[str]) -> str:
    """Live stream URL on the *original* host (never a proxied one)."""
    return f"{host}/live/{username}/{password or ''}/{stream_id}.{extension or DEFAULT_EXTENSION}"


def _text(value: Any) -> Optional[str]:
    """Coerce a panel field to str; None and "" become None."""
    if value is None or value == "":
        return None
    return str(value)


def stream_to_channel(
    stream: dict,
    cat_map: dict,
    host: str,
    username: str,
    password: Optional[str],
    rewrite: Rewriter,
) -> Optional[Channel]:
    stream_id = stream.get("stream_id")
    if stream_id is None or stream_id == "":
        return None
    url = build_stream_url(host, username, password, stream_id, stream.get("container_extension"))
    return Channel.create(
        channel_id=str(stream_id),
        name=_text(stream.get("name")) or f"Stream {stream_id}",
        url=rewrite(url) or url,
        logo=rewrite(_text(stream.get("stream_icon"))),
        group=_text(cat_map.get(str(stream.get("category_id", "")))) or DEFAULT_GROUP,
        epg_id=_text(stream.get("epg_channel_id")),
    )


class XtreamService:
    """Xtream Codes API client for the live catalog."""

    def __init__(self, http_client: "HttpClientService", fetch_rewrite: Callable[[str], str] = lambda url: url):
        self.http_client = http_client
        self.fetch_rewrite = fetch_rewrite

    async def fetch_action(self, host: str, username: str, password: Optional[str], action: str, call: str) -> list:
        """Call ``player_api.php`` for *action*; *call* names it in errors."""
        url = self.fetch_rewrite(f"{host}/player_api.php")
        params = {"username": username, "password": password or "", "action": action}
        client = await self.http_client.get_client()
        start_time = time.time()
        try:
            response = await client.get(url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Error fetching {action}: {e}")
            raise NetworkError(f"Could not reach Xtream server for {call}: {e}") from e
        elapsed = time.time() - start_time

        if not response.is_success:
            logger.warning(f"Fetch {action} failed with status {response.status_code} in {elapsed:.1f}s")
            raise ApiError(call, status_code=response.status_code)
        try:
            data: Any = response.json()
        except ValueError as e:
            raise ApiError(call, f"Upstream {call} response is not valid JSON") from e
        if not isinstance(data, list):
            raise ApiError(call, f"Upstream {call} response is not a list")
        logger.debug(f"Fetched {action}: {len(data)} items in {elapsed:.1f}s")
        return data

    async def fetch_live_channels(
        self,
        host: str,
        username: str,
        password: Optional[str] = None,
        rewrite: Rewriter = lambda url: url or None,
    ) -> list[Channel]:
        """Fetch categories then streams; either failing aborts the whole load."""
        host = host.rstrip("/")
        categories = await self.fetch_action(host, username, password, CATEGORIES_ACTION, "categories")
        streams = await self.fetch_action(host, username, password, STREAMS_ACTION, "streams")

        cat_map = build_category_map(categories)
        channels: list[Channel] = []
        skipped = 0
        for stream in streams:
            channel = stream_to_channel(stream, cat_map, host, username, password, rewrite) if isinstance(stream, dict) else None
            if channel is None:
                skipped += 1
                continue
            channels.append(channel)
        if skipped:
            logger.warning(f"Skipped {skipped} Xtream stream records without a stream_id")
        logger.info(f"Loaded {len(channels)} live channels from {host} ({len(categories)} categories)")
        return channels
