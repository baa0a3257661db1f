"""
URL helpers for the MCP SSE transport.
"""

import re
import time
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

CACHE_BUST_PARAM = "_t"


def _is_absolute_http(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def cache_bust_url(url: str, now: Optional[float] = None) -> str:
    """Set a timestamp query parameter so a reconnect is never served from cache.

    URLs that cannot be parsed as absolute http(s) URLs get the parameter
    appended as plain text.
    """
    stamp = str(int((time.time() if now is None else now) * 1000))

    if not _is_absolute_http(url):
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{CACHE_BUST_PARAM}={stamp}"

    parts = urlsplit(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key != CACHE_BUST_PARAM
    ]
    query.append((CACHE_BUST_PARAM, stamp))
    return urlunsplit(parts._replace(query=urlencode(query)))


def resolve_session_url(base_url: str, endpoint: Optional[str]) -> str:
    """Resolve the session endpoint announced by the server.

    Returns an empty string for an empty announcement; callers treat that
    as a failed handshake.
    """
    endpoint = (endpoint or "").strip()
    if not endpoint:
        return ""

    if endpoint.startswith(("http://", "https://")):
        return endpoint

    if _is_absolute_http(base_url):
        return urljoin(base_url, endpoint)

    root = re.sub(r"/sse.*", "", base_url, flags=re.IGNORECASE | re.DOTALL)
    if endpoint.startswith("/"):
        return f"{root}{endpoint}"
    return f"{root}/{endpoint}"
