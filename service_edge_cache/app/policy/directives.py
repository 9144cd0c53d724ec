"""
Cache-Control directive composition.
"""

from typing import Optional

import httpx

from shared.logging import get_logger
from ..config.models import CacheDirectivesConfig, CategoryConfig, TtlConfig


class DirectiveComposer:
    """Turns a response status and category TTLs into a Cache-Control value."""

    def __init__(self):
        self.logger = get_logger("edge_cache.directives")

    @staticmethod
    def resolve_ttl(status: int, ttl: TtlConfig) -> int:
        """Explicit per-status override, else the status-class bucket."""
        overrides = ttl.status_overrides
        if status in overrides:
            return overrides[status]

        if 100 <= status < 200:
            return ttl.info or 0
        if 200 <= status < 300:
            return ttl.ok
        if 300 <= status < 400:
            return ttl.redirects
        if 400 <= status < 500:
            return ttl.client_error
        if 500 <= status < 600:
            return ttl.server_error
        return 0

    def compose_directive(self, status: int, category: CategoryConfig) -> str:
        """Directive string; empty when the resolved TTL is zero."""
        ttl = self.resolve_ttl(status, category.ttl)
        if ttl <= 0:
            return ""

        flags = category.cache_directives or CacheDirectivesConfig()
        parts = ["private" if flags.private else "public", f"max-age={ttl}"]
        if flags.stale_while_revalidate is not None:
            parts.append(f"stale-while-revalidate={flags.stale_while_revalidate}")
        if flags.stale_if_error is not None:
            parts.append(f"stale-if-error={flags.stale_if_error}")
        if flags.must_revalidate:
            parts.append("must-revalidate")
        if flags.no_cache:
            parts.append("no-cache")
        if flags.no_store:
            parts.append("no-store")
        if flags.immutable:
            parts.append("immutable")
        return ", ".join(parts)

    def apply(self, headers: httpx.Headers, status: int, category: CategoryConfig) -> Optional[str]:
        """Set Cache-Control on ``headers`` in place; returns the value now present."""
        upstream = headers.get("cache-control")
        if category.prevent_cache_control_override and upstream:
            self.logger.debug("Keeping upstream Cache-Control", cache_control=upstream)
            return upstream

        directive = self.compose_directive(status, category)
        if directive:
            headers["Cache-Control"] = directive
            return directive
        return upstream
