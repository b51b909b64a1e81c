"""URL proxy rewriter: bridges plain-HTTP resources through the same-origin proxy.

Two policies are exposed:

* :func:`rewrite` is context aware and is used for everything handed to a
  player (channel URLs and logos). On a plain-HTTP deployment it is a no-op.
* :func:`force_rewrite` ignores the context and is used for playlist and
  Xtream API fetches made from the background host when the
  ``fetch_via_proxy`` option is enabled.

Both are idempotent: a proxied path, an ``https://`` URL or any other
non-``http://`` URL comes back unchanged.
"""
from __future__ import annotations

from typing import Callable, Optional
from urllib.parse import quote, urljoin

PROXY_ROUTE = "/api/proxy"
PROXY_PARAM = "url"

_PLAIN_SCHEME = "http://"

Rewriter = Callable[[Optional[str]], Optional[str]]


def encode_target(url: str) -> str:
    """Percent-encode *url* the way ``encodeURIComponent`` does."""
    return quote(url, safe="-_.!~*'()")


def proxy_path(url: str) -> str:
    return f"{PROXY_ROUTE}?{PROXY_PARAM}={encode_target(url)}"


def is_proxied(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(f"{PROXY_ROUTE}?")


def rewrite(url: Optional[str], is_secure_context: bool) -> Optional[str]:
    """Return the proxy path for *url* when a secure page would block it."""
    if not url:
        return None
    if is_secure_context and url.startswith(_PLAIN_SCHEME):
        return proxy_path(url)
    return url


def force_rewrite(url: Optional[str]) -> Optional[str]:
    """Rewrite a plain-HTTP *url* regardless of the calling context."""
    return rewrite(url, True)


def absolute_proxy_url(url: str, origin: str) -> str:
    """Resolve a proxy path against *origin* so it can be fetched server-side."""
    if not origin or not is_proxied(url):
        return url
    return urljoin(origin.rstrip("/") + "/", url.lstrip("/"))


def media_rewriter(is_secure_context: bool) -> Rewriter:
    """Rewriter for playable media URLs and logos."""
    return lambda url: rewrite(url, is_secure_context)


def fetch_rewriter(via_proxy: bool, origin: str = "") -> Callable[[str], str]:
    """Rewriter for URLs the background host fetches itself."""
    if not via_proxy:
        return lambda url: url
    return lambda url: absolute_proxy_url(force_rewrite(url) or url, origin)
