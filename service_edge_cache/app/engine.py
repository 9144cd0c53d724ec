"""
Policy engine: one object owning every policy component.

A request is prepared once (snapshot, category, content type, strategy,
fetch directives) and the same preparation later shapes the origin response.
"""

import json
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import httpx

from shared.config import BaseConfig
from shared.logging import get_logger, set_category, set_log_level
from .config.durable import DurableConfigStore, InMemoryConfigStore, RedisConfigStore
from .config.models import CategoryMatch, ConfigSnapshot, EnvironmentConfig
from .config.store import ConfigStore
from .policy.classifier import Classifier
from .policy.content_types import resolve_content_type
from .policy.directives import DirectiveComposer
from .policy.keys import KeyDeriver
from .policy.tags import DEFAULT_MEMO_CAPACITY, TagGenerator, TagSettings
from .strategies.base import CachingStrategy, FetchDirectives
from .strategies.registry import StrategyRegistry

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEBUG_HEADER = "x-cache-debug"


@dataclass(frozen=True)
class PreparedRequest:
    """Everything decided about a request before the origin fetch."""

    request: httpx.Request
    snapshot: ConfigSnapshot
    match: CategoryMatch
    content_type: str
    strategy: CachingStrategy
    tag_settings: TagSettings
    fetch: FetchDirectives
    debug: bool = False


class PolicyEngine:
    """Owns the config store and the policy components; passed explicitly."""

    def __init__(
        self,
        config_store: ConfigStore,
        *,
        classifier: Optional[Classifier] = None,
        keys: Optional[KeyDeriver] = None,
        tags: Optional[TagGenerator] = None,
        directives: Optional[DirectiveComposer] = None,
        registry: Optional[StrategyRegistry] = None,
        metrics: Optional["MetricsCollector"] = None,
        build_version: Optional[str] = None,
        debug_mode: bool = False,
        tag_memo_capacity: int = DEFAULT_MEMO_CAPACITY,
    ):
        self.config_store = config_store
        self.metrics = metrics
        self.build_version = build_version
        self.debug_mode = debug_mode
        self.logger = get_logger("edge_cache.engine")

        self.classifier = classifier or Classifier()
        self.keys = keys or KeyDeriver()
        self.tags = tags or TagGenerator(memo_capacity=tag_memo_capacity)
        self.directives = directives or DirectiveComposer()
        self.registry = registry or StrategyRegistry.with_defaults(
            self.keys, self.tags, self.directives, metrics
        )

        self._log_level: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: BaseConfig,
        durable: Optional[DurableConfigStore] = None,
        metrics: Optional["MetricsCollector"] = None,
    ) -> "PolicyEngine":
        """Engine wired from process settings; Redis when a URL is configured."""
        if durable is None:
            durable = RedisConfigStore(settings.redis_url) if settings.redis_url else InMemoryConfigStore()

        config_store = ConfigStore(
            durable,
            environment_ttl=settings.environment_cache_ttl_seconds,
            categories_ttl=settings.categories_cache_ttl_seconds,
            metrics=metrics,
        )
        return cls(
            config_store,
            metrics=metrics,
            build_version=settings.build_version,
            debug_mode=settings.debug_mode,
            tag_memo_capacity=settings.tag_memo_capacity,
        )

    async def prepare(self, request: httpx.Request, force_refresh: bool = False) -> PreparedRequest:
        """Classify the request and compute its fetch directives."""
        snapshot = await self.config_store.get_snapshot(force_refresh=force_refresh)
        self._apply_log_level(snapshot.environment)

        match = self.classifier.classify(request, snapshot)
        set_category(match.name)

        content_type = resolve_content_type(request, match.name)
        strategy = self.registry.select_strategy(content_type)
        tag_settings = TagSettings.from_environment(snapshot.environment, self.build_version)
        fetch = strategy.apply_outbound(request, match, tag_settings)

        self.logger.debug(
            "Request prepared",
            url=str(request.url),
            content_type=content_type,
            strategy=strategy.name,
            cache_key=fetch.cache_key,
            config_version=snapshot.version,
        )
        if self.metrics:
            self.metrics.record_policy_decision(match.name, strategy.name)

        return PreparedRequest(
            request=request,
            snapshot=snapshot,
            match=match,
            content_type=content_type,
            strategy=strategy,
            tag_settings=tag_settings,
            fetch=fetch,
            debug=self.debug_enabled(request, snapshot.environment),
        )

    def shape_response(self, prepared: PreparedRequest, response: httpx.Response) -> httpx.Response:
        """Apply the strategy's inbound effects and the optional debug header."""
        shaped = prepared.strategy.apply_inbound(
            response, prepared.request, prepared.match, prepared.tag_settings
        )

        if prepared.debug:
            shaped.headers[DEBUG_HEADER] = self.debug_header(prepared, shaped)

        self.logger.debug(
            "Applied cache headers",
            url=str(prepared.request.url),
            status_code=shaped.status_code,
            category=prepared.match.name,
            cache_control=shaped.headers.get("cache-control"),
        )
        return shaped

    def debug_enabled(self, request: httpx.Request, environment: EnvironmentConfig) -> bool:
        if request.headers.get("debug", "").lower() == "true":
            return True
        return self.debug_mode or environment.debug_mode

    def debug_header(self, prepared: PreparedRequest, response: httpx.Response) -> str:
        environment = prepared.snapshot.environment
        cache_tags = response.headers.get("cache-tag")
        return json.dumps(
            {
                "category": prepared.match.name,
                "cacheKey": prepared.fetch.cache_key,
                "ttl": self.directives.resolve_ttl(response.status_code, prepared.match.config.ttl),
                "cacheTags": cache_tags.split(",") if cache_tags else [],
                "environment": environment.environment,
                "version": self.build_version or environment.version,
            },
            separators=(",", ":"),
        )

    async def close(self) -> None:
        await self.config_store.durable.close()

    def _apply_log_level(self, environment: EnvironmentConfig) -> None:
        if environment.log_level != self._log_level:
            set_log_level(environment.log_level)
            self._log_level = environment.log_level
