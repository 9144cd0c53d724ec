"""
Streaming media strategies: video, audio, manifests and direct downloads.
"""

import httpx

from ..config.models import CategoryMatch
from ..policy.content_types import DASH_MANIFEST, HLS_MANIFEST, OCTET_STREAM
from ..policy.request_utils import (
    decode_component,
    encode_component,
    encoded_path,
    file_extension,
    last_segment,
)
from .base import CachingStrategy, base_content_type


VIDEO_TYPES = (
    "video/mp4",
    "video/webm",
    "video/ogg",
    "video/x-matroska",
    "video/x-msvideo",
    "video/quicktime",
    "video/x-ms-wmv",
    "video/mpeg",
    "video/3gpp",
)

MANIFEST_TYPES = (
    HLS_MANIFEST,
    "application/x-mpegurl",
    DASH_MANIFEST,
    "application/vnd.ms-sstr+xml",
)


def attachment_disposition(filename: str) -> str:
    """Attachment header value; non-ASCII names also get an RFC 6266 ``filename*``."""
    fallback = "".join(
        char if ord(char) < 0x7f else "_"
        for char in filename
        if ord(char) >= 0x20 and ord(char) != 0x7f
    )
    quoted = fallback.replace("\\", "\\\\").replace('"', '\\"') or "file"

    value = f'attachment; filename="{quoted}"'
    if filename and fallback != filename:
        value += f"; filename*=UTF-8''{encode_component(filename)}"
    return value


class VideoCachingStrategy(CachingStrategy):
    """Video segments and files; advertises byte-range support."""

    name = "video"

    def can_handle(self, content_type: str) -> bool:
        return base_content_type(content_type) in VIDEO_TYPES

    def shape_headers(self, headers: httpx.Headers, request: httpx.Request, match: CategoryMatch) -> None:
        headers["Accept-Ranges"] = "bytes"


class AudioCachingStrategy(CachingStrategy):
    """Audio files, played inline with byte-range support."""

    name = "audio"
    vary = "Accept-Encoding"

    def can_handle(self, content_type: str) -> bool:
        return base_content_type(content_type).startswith("audio/")

    def shape_headers(self, headers: httpx.Headers, request: httpx.Request, match: CategoryMatch) -> None:
        headers["Accept-Ranges"] = "bytes"
        if "content-disposition" not in headers:
            headers["Content-Disposition"] = "inline"


class DirectDownloadCachingStrategy(CachingStrategy):
    """Downloads served as attachments named after the last path segment."""

    name = "direct-download"

    def can_handle(self, content_type: str) -> bool:
        return base_content_type(content_type) == OCTET_STREAM

    def shape_headers(self, headers: httpx.Headers, request: httpx.Request, match: CategoryMatch) -> None:
        if "content-disposition" in headers:
            return
        filename = decode_component(last_segment(encoded_path(request.url)))
        headers["Content-Disposition"] = attachment_disposition(filename)


class ManifestCachingStrategy(CachingStrategy):
    """HLS and DASH manifests: short TTLs, corrected content type, open CORS."""

    name = "manifest"
    vary = "Accept-Encoding"

    def can_handle(self, content_type: str) -> bool:
        return base_content_type(content_type) in MANIFEST_TYPES

    def shape_headers(self, headers: httpx.Headers, request: httpx.Request, match: CategoryMatch) -> None:
        extension = file_extension(encoded_path(request.url))
        if extension == "m3u8":
            headers["Content-Type"] = HLS_MANIFEST
        elif extension == "mpd":
            headers["Content-Type"] = DASH_MANIFEST

        headers["Access-Control-Allow-Origin"] = "*"
        headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
        headers["Access-Control-Allow-Headers"] = "Content-Type, Range"
