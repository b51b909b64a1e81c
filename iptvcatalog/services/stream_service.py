"""Stream service: same-origin passthrough proxy for plain-HTTP resources."""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlsplit

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from iptvcatalog.errors import ProxyUpstreamError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024

# IPTV servers commonly block browser user agents
PROXY_USER_AGENT = "VLC/3.0.20 LibVLC/3.0.20"

# httpx decodes the body, so upstream framing headers no longer apply
DROPPED_HEADERS = frozenset(("content-encoding", "transfer-encoding", "content-length", "connection"))


def validate_target(target_url: Optional[str]) -> Optional[str]:
    """Return an error message if *target_url* is not an absolute http(s) URL."""
    if not target_url:
        return 'The "url" parameter is required.'
    parts = urlsplit(target_url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return "An invalid URL was provided."
    return None


def bad_gateway(error: ProxyUpstreamError) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={"error": "Bad gateway", "message": str(error)},
    )


async def proxy_request(target_url: str, request: Request, transport: Optional[httpx.AsyncBaseTransport] = None) -> Response:
    """Re-issue *request* against *target_url* and stream the answer back.

    The method is preserved, ``Accept`` and ``Range`` are forwarded, redirects
    are followed and the upstream status is mirrored.
    """
    upstream_headers = {
        "User-Agent": PROXY_USER_AGENT,
        "Accept": request.headers.get("accept", "*/*"),
    }
    if "range" in request.headers:
        upstream_headers["Range"] = request.headers["range"]

    body = await request.body() if request.method not in ("GET", "HEAD") else None

    client = httpx.AsyncClient(
        timeout=httpx.Timeout(connect=10.0, read=None, write=10.0, pool=10.0),
        follow_redirects=True,
        transport=transport,
    )
    try:
        req = client.build_request(request.method, target_url, headers=upstream_headers, content=body)
        upstream_response = await client.send(req, stream=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        await client.aclose()
        logger.error(f"Proxy error for {target_url}: {e}")
        return bad_gateway(ProxyUpstreamError("The proxy server could not fetch the requested resource."))

    response_headers = {
        name: value
        for name, value in upstream_response.headers.items()
        if name.lower() not in DROPPED_HEADERS
    }

    async def passthrough():
        try:
            async for chunk in upstream_response.aiter_bytes(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk
        except httpx.ReadError:
            logger.debug(f"Upstream read interrupted for {target_url}")
        finally:
            await upstream_response.aclose()
            await client.aclose()

    return StreamingResponse(
        passthrough(),
        status_code=upstream_response.status_code,
        headers=response_headers,
    )
