"""
Strategy registry: ordered dispatch by canonical content type.
"""

from typing import List, Optional, TYPE_CHECKING

from shared.errors import StrategyNotFoundError
from shared.logging import get_logger
from ..policy.directives import DirectiveComposer
from ..policy.keys import KeyDeriver
from ..policy.tags import TagGenerator
from .base import CachingStrategy
from .default import DefaultCachingStrategy
from .media import (
    AudioCachingStrategy,
    DirectDownloadCachingStrategy,
    ManifestCachingStrategy,
    VideoCachingStrategy,
)
from .web import ApiCachingStrategy, FrontendCachingStrategy, ImageCachingStrategy

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


STRATEGY_ORDER = (
    VideoCachingStrategy,
    ImageCachingStrategy,
    FrontendCachingStrategy,
    AudioCachingStrategy,
    DirectDownloadCachingStrategy,
    ManifestCachingStrategy,
    ApiCachingStrategy,
)


class StrategyRegistry:
    """First accepting strategy wins; the default strategy is always last."""

    def __init__(
        self,
        strategies: Optional[List[CachingStrategy]] = None,
        default: Optional[CachingStrategy] = None,
    ):
        self.logger = get_logger("edge_cache.strategies")
        self._strategies: List[CachingStrategy] = list(strategies or [])
        self._default = default

    @classmethod
    def with_defaults(
        cls,
        keys: KeyDeriver,
        tags: TagGenerator,
        directives: DirectiveComposer,
        metrics: Optional["MetricsCollector"] = None,
    ) -> "StrategyRegistry":
        """Registry holding every built-in strategy in dispatch order."""
        return cls(
            strategies=[strategy(keys, tags, directives, metrics) for strategy in STRATEGY_ORDER],
            default=DefaultCachingStrategy(keys, tags, directives, metrics),
        )

    @property
    def strategies(self) -> List[CachingStrategy]:
        """All strategies in dispatch order, default last."""
        ordered = list(self._strategies)
        if self._default is not None:
            ordered.append(self._default)
        return ordered

    def register(self, strategy: CachingStrategy) -> None:
        """Add a strategy after the existing ones and before the default."""
        self._strategies.append(strategy)
        self.logger.info("Caching strategy registered", strategy=strategy.name)

    def select_strategy(self, content_type: str) -> CachingStrategy:
        for strategy in self._strategies:
            if strategy.can_handle(content_type):
                return strategy

        if self._default is None:
            raise StrategyNotFoundError(
                "No caching strategy accepts content type",
                {"content_type": content_type},
            )
        return self._default
