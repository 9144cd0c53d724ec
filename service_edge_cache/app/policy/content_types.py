"""
Canonical content type of a request, used to pick a caching strategy.
"""

import mimetypes

import httpx

from ..config.defaults import FALLBACK_CATEGORY_NAME
from .request_utils import encoded_path, file_extension


HLS_MANIFEST = "application/vnd.apple.mpegurl"
DASH_MANIFEST = "application/dash+xml"
OCTET_STREAM = "application/octet-stream"
JSON = "application/json"

MANIFEST_TYPES = {
    "m3u8": HLS_MANIFEST,
    "mpd": DASH_MANIFEST,
}

IMAGE_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "avif": "image/avif",
}

FRONTEND_TYPES = {
    "js": "application/javascript",
    "mjs": "application/javascript",
    "css": "text/css",
    "html": "text/html",
    "htm": "text/html",
    "json": JSON,
    "woff2": "font/woff2",
    "woff": "font/woff",
    "ttf": "font/ttf",
}

AUDIO_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "aac": "audio/aac",
}


def resolve_content_type(request: httpx.Request, category_name: str) -> str:
    """Content type from category, file extension and Accept negotiation."""
    extension = file_extension(encoded_path(request.url)) or ""
    accept = request.headers.get("accept", "")

    if category_name == "video":
        if extension in MANIFEST_TYPES:
            return MANIFEST_TYPES[extension]
        if "video/webm" in accept:
            return "video/webm"
        return "video/mp4"

    if category_name == "image":
        if extension in IMAGE_TYPES:
            return IMAGE_TYPES[extension]
        if "image/webp" in accept:
            return "image/webp"
        if "image/avif" in accept:
            return "image/avif"
        return "image/jpeg"

    if category_name == "frontend":
        return FRONTEND_TYPES.get(extension, "text/css")

    if category_name == "audio":
        return AUDIO_TYPES.get(extension, "audio/mpeg")

    if category_name == "manifest":
        return MANIFEST_TYPES.get(extension, HLS_MANIFEST)

    if category_name == "download":
        return OCTET_STREAM

    if category_name == "api":
        return JSON

    if category_name == FALLBACK_CATEGORY_NAME:
        return ""

    if extension:
        guessed, _ = mimetypes.guess_type(f"file.{extension}", strict=False)
        return guessed or ""
    return ""
