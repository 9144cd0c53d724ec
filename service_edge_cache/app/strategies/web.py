"""
Web asset strategies: images, front-end bundles and API responses.
"""

from typing import Any, Dict

import httpx

from ..config.models import CategoryConfig, CategoryMatch
from .base import CachingStrategy, MinifySettings, base_content_type


IMAGE_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/avif",
    "image/svg+xml",
    "image/bmp",
    "image/tiff",
    "image/x-icon",
)

FRONTEND_TYPES = (
    "text/css",
    "text/javascript",
    "application/javascript",
    "application/x-javascript",
)

API_TYPES = (
    "application/json",
    "application/xml",
    "text/xml",
    "application/javascript",
    "application/ld+json",
)


class ImageCachingStrategy(CachingStrategy):
    """Images vary by Accept and may be optimized at the edge."""

    name = "image"
    vary = "Accept"

    def can_handle(self, content_type: str) -> bool:
        return base_content_type(content_type) in IMAGE_TYPES

    def outbound_options(self, config: CategoryConfig) -> Dict[str, Any]:
        return {
            "polish": "lossy" if config.image_optimization else "off",
            "mirage": config.image_optimization,
        }


class FrontendCachingStrategy(CachingStrategy):
    """Stylesheets and scripts."""

    name = "frontend"
    vary = "Accept-Encoding"

    def can_handle(self, content_type: str) -> bool:
        return base_content_type(content_type) in FRONTEND_TYPES

    def outbound_options(self, config: CategoryConfig) -> Dict[str, Any]:
        return {"minify": MinifySettings(javascript=True, css=config.minify_css)}


class ApiCachingStrategy(CachingStrategy):
    """API responses; origin Cache-Control stays authoritative at the edge."""

    name = "api"
    vary = "Accept, Accept-Encoding, Origin"

    def can_handle(self, content_type: str) -> bool:
        return base_content_type(content_type) in API_TYPES

    def outbound_options(self, config: CategoryConfig) -> Dict[str, Any]:
        return {"cache_everything": False}

    def shape_headers(self, headers: httpx.Headers, request: httpx.Request, match: CategoryMatch) -> None:
        if "x-content-type-options" not in headers:
            headers["X-Content-Type-Options"] = "nosniff"
