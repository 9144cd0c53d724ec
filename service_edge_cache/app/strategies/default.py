"""
Fallback strategy; accepts every content type.
"""

from typing import Any, Dict

from ..config.models import CategoryConfig
from .base import CachingStrategy, MinifySettings


class DefaultCachingStrategy(CachingStrategy):
    """Common directives and tags only."""

    name = "default"

    def can_handle(self, content_type: str) -> bool:
        return True

    def outbound_options(self, config: CategoryConfig) -> Dict[str, Any]:
        return {"minify": MinifySettings(css=config.minify_css)}
