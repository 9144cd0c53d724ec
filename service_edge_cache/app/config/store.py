"""
Layered configuration store.

Each document (environment, categories) has a short-lived in-process layer in
front of the durable store. Reads that cannot reach or trust the durable
store serve the last good value, even if expired, and otherwise the
compiled-in defaults. Writes validate, persist, then update the fast layer so
the writer reads its own write.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Optional, TYPE_CHECKING, TypeVar

from shared.errors import ConfigValidationError, DurableStoreError
from shared.logging import get_logger
from .defaults import default_category_configs, default_environment_config
from .durable import CATEGORY_CONFIGS_KEY, ENVIRONMENT_CONFIG_KEY, DurableConfigStore
from .models import (
    CategoryConfig,
    ConfigSnapshot,
    EnvironmentConfig,
    serialize_categories,
    validate_category_config,
    validate_category_document,
    validate_category_name,
    validate_environment_config,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


T = TypeVar("T")

DEFAULT_ENVIRONMENT_TTL = 10.0
DEFAULT_CATEGORIES_TTL = 30.0
DEFAULTS_VERSION = "defaults"
SCHEMA_VERSION = "1"


class FastLayer(Generic[T]):
    """Single cached value with a load time; expired values stay readable."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float]):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.value: Optional[T] = None
        self.version: str = DEFAULTS_VERSION
        self._loaded_at: Optional[float] = None

    def is_fresh(self) -> bool:
        if self.value is None or self._loaded_at is None:
            return False
        return self._clock() - self._loaded_at < self.ttl_seconds

    def set(self, value: T, version: str) -> None:
        self.value = value
        self.version = version
        self._loaded_at = self._clock()

    def expire(self) -> None:
        self._loaded_at = None


@dataclass(frozen=True)
class _DocumentSpec:
    key: str
    kind: str
    validate: Callable[[Any], Any]
    default: Callable[[], Any]


class ConfigStore:
    """Environment and category configuration with stale-on-error reads."""

    def __init__(
        self,
        durable: DurableConfigStore,
        *,
        environment_ttl: float = DEFAULT_ENVIRONMENT_TTL,
        categories_ttl: float = DEFAULT_CATEGORIES_TTL,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.durable = durable
        self.metrics = metrics
        self.logger = get_logger("edge_cache.config_store")

        self._environment: FastLayer[EnvironmentConfig] = FastLayer(environment_ttl, clock)
        self._categories: FastLayer[Dict[str, CategoryConfig]] = FastLayer(categories_ttl, clock)

        self._environment_spec = _DocumentSpec(
            ENVIRONMENT_CONFIG_KEY, "environment", validate_environment_config, default_environment_config
        )
        self._categories_spec = _DocumentSpec(
            CATEGORY_CONFIGS_KEY, "categories", validate_category_document, default_category_configs
        )

        # Serializes read-modify-write of stored documents.
        self._write_lock = asyncio.Lock()

        self._snapshot: Optional[ConfigSnapshot] = None
        self._snapshot_sources: Optional[tuple] = None

    async def get_environment_config(self, force_refresh: bool = False) -> EnvironmentConfig:
        """Get environment settings."""
        return await self._read(self._environment, self._environment_spec, force_refresh)

    async def get_category_configs(self, force_refresh: bool = False) -> Dict[str, CategoryConfig]:
        """Get all categories in matching order."""
        categories = await self._read(self._categories, self._categories_spec, force_refresh)
        return dict(categories)

    async def get_category_config(self, name: str, force_refresh: bool = False) -> Optional[CategoryConfig]:
        """Get one category, or None when it is not defined."""
        categories = await self._read(self._categories, self._categories_spec, force_refresh)
        return categories.get(name)

    async def get_snapshot(self, force_refresh: bool = False) -> ConfigSnapshot:
        """Get the current snapshot, rebuilding it only when a layer value changed."""
        environment = await self._read(self._environment, self._environment_spec, force_refresh)
        categories = await self._read(self._categories, self._categories_spec, force_refresh)

        sources = (environment, categories)
        if self._snapshot is None or self._snapshot_sources is None or any(
            current is not previous for current, previous in zip(sources, self._snapshot_sources)
        ):
            snapshot = ConfigSnapshot(
                environment=environment,
                categories=tuple(categories.items()),
                version=f"{self._environment.version}/{self._categories.version}",
            )
            self._snapshot_sources = sources
            self._snapshot = snapshot
            self.logger.info(
                "Config snapshot rebuilt",
                version=snapshot.version,
                categories=snapshot.category_names,
            )
        return self._snapshot

    async def save_environment_config(self, config: Any) -> bool:
        """Validate and persist environment settings."""
        validated = validate_environment_config(config)
        metadata = self._metadata("save_environment", schema_version=validated.schema_version)

        async with self._write_lock:
            await self.durable.put(ENVIRONMENT_CONFIG_KEY, validated.to_document(), metadata)
            self._environment.set(validated, metadata["version"])

        self.logger.info(
            "Environment config saved",
            environment=validated.environment,
            version=metadata["version"],
        )
        return True

    async def save_category_config(self, name: str, config: Any) -> bool:
        """Validate and persist one category; new names are appended.

        Writes in this process are serialized; concurrent writers in other
        processes are last-writer-wins on the whole categories document.
        """
        validate_category_name(name)
        validated = validate_category_config(config)

        async with self._write_lock:
            current = await self._categories_for_write()
            existed = name in current
            current[name] = validated

            metadata = self._metadata("update" if existed else "create", category=name)
            await self.durable.put(CATEGORY_CONFIGS_KEY, serialize_categories(current), metadata)
            self._categories.set(current, metadata["version"])

        self.logger.info(
            "Category config saved",
            category=name,
            operation=metadata["operation"],
            version=metadata["version"],
        )
        return True

    async def delete_category_config(self, name: str) -> bool:
        """Remove one category; False when it is not defined."""
        async with self._write_lock:
            current = await self._categories_for_write()
            if name not in current:
                self.logger.warning("Category not found for deletion", category=name)
                return False

            del current[name]
            metadata = self._metadata("delete", category=name)
            await self.durable.put(CATEGORY_CONFIGS_KEY, serialize_categories(current), metadata)
            self._categories.set(current, metadata["version"])

        self.logger.info("Category config deleted", category=name, version=metadata["version"])
        return True

    def invalidate(self) -> None:
        """Expire both fast layers; the next read goes to the durable store."""
        self._environment.expire()
        self._categories.expire()

    async def _read(self, layer: FastLayer, spec: _DocumentSpec, force_refresh: bool) -> Any:
        if not force_refresh and layer.is_fresh():
            return layer.value

        try:
            stored = await self.durable.get_with_metadata(spec.key)
        except DurableStoreError as e:
            return self._fallback(layer, spec, "durable_read_failed", e)

        if stored is None:
            if layer.value is not None and layer.version == DEFAULTS_VERSION:
                layer.set(layer.value, DEFAULTS_VERSION)
            else:
                self.logger.info("No stored config, using defaults", kind=spec.kind)
                layer.set(spec.default(), DEFAULTS_VERSION)
            return layer.value

        value, metadata = stored
        try:
            validated = spec.validate(value)
        except ConfigValidationError as e:
            return self._fallback(layer, spec, "stored_config_invalid", e)

        version = str(metadata.get("version") or metadata.get("updatedAt") or DEFAULTS_VERSION)
        if layer.value is not None and version != DEFAULTS_VERSION and layer.version == version:
            # Same document as before; keep the existing object so snapshots are reused.
            layer.set(layer.value, version)
        else:
            layer.set(validated, version)
            self.logger.debug("Config loaded", kind=spec.kind, version=version)
        return layer.value

    def _fallback(self, layer: FastLayer, spec: _DocumentSpec, reason: str, error: Exception) -> Any:
        if layer.value is not None:
            self.logger.warning(
                "Serving stale config",
                kind=spec.kind,
                reason=reason,
                version=layer.version,
                error=str(error),
            )
            self._record_degradation("config_stale")
            return layer.value

        self.logger.warning(
            "Serving default config",
            kind=spec.kind,
            reason=reason,
            error=str(error),
        )
        self._record_degradation("config_default")
        layer.set(spec.default(), DEFAULTS_VERSION)
        return layer.value

    async def _categories_for_write(self) -> Dict[str, CategoryConfig]:
        """Current stored categories; durable read errors propagate to the writer."""
        stored = await self.durable.get_with_metadata(CATEGORY_CONFIGS_KEY)
        if stored is None:
            return default_category_configs()
        try:
            return validate_category_document(stored[0])
        except ConfigValidationError as e:
            self.logger.warning("Stored categories invalid, writing over defaults", error=str(e))
            return dict(self._categories.value or default_category_configs())

    def _metadata(self, operation: str, **details: Any) -> Dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        metadata: Dict[str, Any] = {
            "version": now,
            "updatedAt": now,
            "schemaVersion": details.pop("schema_version", SCHEMA_VERSION),
            "operation": operation,
        }
        metadata.update(details)
        return metadata

    def _record_degradation(self, kind: str) -> None:
        if self.metrics:
            self.metrics.record_degradation(kind)
