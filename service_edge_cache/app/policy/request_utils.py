"""
Helpers for reading request URLs the way policy decisions need them.
"""

from typing import List, Optional, Tuple
from urllib.parse import quote, unquote

import httpx


# Characters left alone by JavaScript's encodeURIComponent.
URI_COMPONENT_SAFE = "-_.!~*'()"


def ascii_host(url: httpx.URL) -> str:
    """Host in its ASCII (IDNA) form."""
    return url.raw_host.decode("ascii")


def encoded_path(url: httpx.URL) -> str:
    """Request path as sent, still percent-encoded."""
    path = url.raw_path.decode("ascii").split("?", 1)[0]
    return path or "/"


def raw_query(url: httpx.URL) -> str:
    """Query string as sent, without the leading ``?``."""
    return url.query.decode("ascii")


def query_items(url: httpx.URL) -> List[Tuple[str, str]]:
    """Decoded query parameters in request order, repeats included."""
    return url.params.multi_items()


def path_segments(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


def last_segment(path: str) -> str:
    segments = path_segments(path)
    return segments[-1] if segments else ""


def file_extension(path: str) -> Optional[str]:
    """Lowercase suffix after the last dot of the last path segment."""
    segment = last_segment(path)
    if "." not in segment:
        return None
    extension = segment.rsplit(".", 1)[1].lower()
    return extension or None


def encode_component(value: str) -> str:
    return quote(value, safe=URI_COMPONENT_SAFE)


def decode_component(value: str) -> str:
    return unquote(value)


def parse_cookies(cookie_header: str) -> dict:
    """Name to value map of a Cookie header; later duplicates win."""
    cookies = {}
    for part in cookie_header.split(";"):
        name, sep, value = part.partition("=")
        if not sep:
            continue
        cookies[name.strip()] = value.strip()
    return cookies
