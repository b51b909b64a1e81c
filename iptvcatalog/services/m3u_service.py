"""M3U ingestion service: parses Extended-M3U text into a flat channel list."""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Callable, Optional

import httpx

from iptvcatalog.errors import ApiError, FormatError, NetworkError
from iptvcatalog.models.channel import DEFAULT_GROUP, Channel
from iptvcatalog.services.proxy_rewriter import Rewriter

if TYPE_CHECKING:
    from iptvcatalog.services.http_client import HttpClientService

logger = logging.getLogger(__name__)

M3U_HEADER = "#EXTM3U"
EXTINF = "#EXTINF:"

# EXTINF attribute -> channel field
_ATTRIBUTES = {
    "tvg-id": "epg_id",
    "tvg-name": "name",
    "tvg-logo": "logo",
    "group-title": "group",
}
_ATTRIBUTE_PATTERNS = {
    field: re.compile(rf'{re.escape(attr)}="([^"]*)"') for attr, field in _ATTRIBUTES.items()
}


def _no_rewrite(url: Optional[str]) -> Optional[str]:
    return url or None


def parse_extinf(line: str) -> dict:
    """Extract channel metadata from one ``#EXTINF`` directive.

    Attribute order does not matter. Empty attribute values count as absent.
    Without ``tvg-name`` the text after the last comma is the display name.
    """
    space = line.find(" ")
    info = line[space + 1:] if space != -1 else line[len(EXTINF):]

    entry: dict = {}
    for field, pattern in _ATTRIBUTE_PATTERNS.items():
        m = pattern.search(info)
        if m and m.group(1):
            entry[field] = m.group(1)

    if not entry.get("name"):
        comma = info.rfind(",")
        if comma != -1:
            display_name = info[comma + 1:].strip()
            if display_name:
                entry["name"] = display_name
    return entry


def parse_m3u(content: str, rewrite: Rewriter = _no_rewrite) -> list[Channel]:
    """Parse an Extended-M3U document into channels in document order.

    Raises :class:`FormatError` when the header is missing. Directives that
    are not followed by a URL line are dropped silently.
    """
    if not content.startswith(M3U_HEADER):
        raise FormatError("Invalid M3U playlist: missing #EXTM3U header")

    channels: list[Channel] = []
    pending: dict = {}
    dropped = 0

    for raw_line in content.split("\n")[1:]:
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith(EXTINF):
            if pending:
                dropped += 1
            pending = parse_extinf(line)
            continue
        if line.startswith("#"):
            continue

        if pending.get("name"):
            channels.append(
                Channel.create(
                    name=pending["name"],
                    url=rewrite(line) or line,
                    group=pending.get("group"),
                    logo=rewrite(pending.get("logo")),
                    epg_id=pending.get("epg_id"),
                    channel_id=Channel.make_id(pending.get("group") or DEFAULT_GROUP, pending["name"], line),
                )
            )
        elif pending:
            dropped += 1
        pending = {}

    if pending:
        dropped += 1
    if dropped:
        logger.debug(f"Dropped {dropped} incomplete #EXTINF entries")
    return channels


class PlaylistFetcher:
    """Fetches a playlist document over HTTP and parses it."""

    def __init__(self, http_client: "HttpClientService", fetch_rewrite: Callable[[str], str] = lambda url: url):
        self.http_client = http_client
        self.fetch_rewrite = fetch_rewrite

    async def fetch_text(self, url: str) -> str:
        target = self.fetch_rewrite(url)
        client = await self.http_client.get_client()
        try:
            response = await client.get(target)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Could not fetch playlist {url}: {e}")
            raise NetworkError(f"Could not fetch playlist: {e}") from e
        if not response.is_success:
            logger.warning(f"Playlist fetch {url} failed with status {response.status_code}")
            raise ApiError("playlist", status_code=response.status_code)
        return response.text

    async def fetch_and_parse(self, url: str, rewrite: Rewriter = _no_rewrite) -> list[Channel]:
        content = await self.fetch_text(url)
        channels = parse_m3u(content, rewrite)
        logger.info(f"Parsed {len(channels)} channels from {url}")
        return channels
