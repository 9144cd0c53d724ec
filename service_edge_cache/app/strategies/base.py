"""
Base caching strategy and the outbound fetch directive bundle.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

import httpx

from shared.errors import KeyGenerationError, TagGenerationError
from shared.logging import get_logger
from ..config.models import CategoryConfig, CategoryMatch, TtlConfig
from ..policy.directives import DirectiveComposer
from ..policy.keys import KeyDeriver
from ..policy.tags import TagGenerator, TagSettings

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class MinifySettings:
    javascript: bool = False
    css: bool = False
    html: bool = False


@dataclass(frozen=True)
class FetchDirectives:
    """Caching hints attached to the origin fetch.

    The toggles are data only; whatever performs the fetch decides whether
    and how to honor them.
    """

    cache_key: str
    cache_ttl_by_status: Dict[str, int]
    cache_tags: Optional[Tuple[str, ...]] = None
    cache_everything: bool = True
    polish: str = "off"
    mirage: bool = False
    minify: MinifySettings = field(default_factory=MinifySettings)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["cache_tags"] = list(self.cache_tags) if self.cache_tags else None
        return data


def ttl_by_status(ttl: TtlConfig) -> Dict[str, int]:
    """Status-range TTL map, followed by explicit per-status overrides."""
    ranges: Dict[str, int] = {}
    if ttl.info is not None:
        ranges["100-199"] = ttl.info
    ranges["200-299"] = ttl.ok
    ranges["300-399"] = ttl.redirects
    ranges["400-499"] = ttl.client_error
    ranges["500-599"] = ttl.server_error
    for status, value in sorted(ttl.status_overrides.items()):
        ranges[str(status)] = value
    return ranges


def base_content_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


class CachingStrategy(ABC):
    """Content-category caching behavior.

    Subclasses declare the content types they accept, a default ``Vary``
    value, outbound optimization toggles and extra response headers.
    """

    name = "base"
    vary: Optional[str] = None

    def __init__(
        self,
        keys: KeyDeriver,
        tags: TagGenerator,
        directives: DirectiveComposer,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.keys = keys
        self.tags = tags
        self.directives = directives
        self.metrics = metrics
        self.logger = get_logger(f"edge_cache.strategy.{self.name}")

    @abstractmethod
    def can_handle(self, content_type: str) -> bool:
        """Whether this strategy accepts the canonical content type."""

    def apply_outbound(
        self,
        request: httpx.Request,
        match: CategoryMatch,
        tag_settings: TagSettings,
    ) -> FetchDirectives:
        """Fetch directives: cache key, TTL by status, tags, optimization toggles."""
        cache_tags = self._generate_tags(request, match, tag_settings)
        return FetchDirectives(
            cache_key=self.cache_key(request, match),
            cache_ttl_by_status=ttl_by_status(match.config.ttl),
            cache_tags=tuple(cache_tags) if cache_tags else None,
            **self.outbound_options(match.config),
        )

    def apply_inbound(
        self,
        response: httpx.Response,
        request: httpx.Request,
        match: CategoryMatch,
        tag_settings: TagSettings,
    ) -> httpx.Response:
        """Shaped copy of the origin response; the body stream is passed through."""
        headers = httpx.Headers(response.headers)

        self.directives.apply(headers, response.status_code, match.config)

        cache_tags = self._generate_tags(request, match, tag_settings)
        if cache_tags is None:
            if "cache-tag" in headers:
                del headers["cache-tag"]
        else:
            header_value = self.tags.format_for_header(cache_tags)
            if header_value:
                headers["Cache-Tag"] = header_value

        if self.vary and "vary" not in headers:
            headers["Vary"] = self.vary

        # Category headers are applied all or nothing.
        shaped = httpx.Headers(headers)
        try:
            self.shape_headers(shaped, request, match)
            headers = shaped
        except Exception as e:
            self.logger.warning(
                "Failed to apply category headers",
                url=str(request.url),
                category=match.name,
                error=str(e),
            )
            self._record_degradation("category_headers")

        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            stream=response.stream,
        )

    def cache_key(self, request: httpx.Request, match: CategoryMatch) -> str:
        try:
            return self.keys.derive_key(request, match.config)
        except KeyGenerationError as e:
            self.logger.error(
                "Failed to generate cache key, using request URL",
                url=str(request.url),
                error=e.message,
                details=e.details,
            )
            self._record_degradation("key_generation")
            return str(request.url)

    def outbound_options(self, config: CategoryConfig) -> Dict[str, Any]:
        """Optimization toggles for the fetch directives."""
        return {}

    def shape_headers(self, headers: httpx.Headers, request: httpx.Request, match: CategoryMatch) -> None:
        """Category-specific response headers, applied in place."""

    def _generate_tags(
        self,
        request: httpx.Request,
        match: CategoryMatch,
        tag_settings: TagSettings,
    ) -> Optional[list]:
        """Tags, or None when generation failed."""
        try:
            return self.tags.generate_tags(request, match.name, tag_settings, match.config)
        except TagGenerationError as e:
            self.logger.warning(
                "Failed to generate cache tags",
                url=str(request.url),
                category=match.name,
                error=e.message,
            )
            self._record_degradation("tag_generation")
            return None

    def _record_degradation(self, kind: str) -> None:
        if self.metrics:
            self.metrics.record_degradation(kind)
