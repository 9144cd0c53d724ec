"""
Durable configuration stores.

The ConfigStore reads and writes whole JSON documents through this contract.
Redis backs deployed services; the in-memory store backs local runs and tests.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis

from shared.errors import DurableStoreError
from shared.logging import get_logger


ENVIRONMENT_CONFIG_KEY = "environment-config"
CATEGORY_CONFIGS_KEY = "category-configs"

StoredDocument = Tuple[Any, Dict[str, Any]]


class DurableConfigStore(ABC):
    """Key-value contract for configuration documents."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None."""

    @abstractmethod
    async def get_with_metadata(self, key: str) -> Optional[StoredDocument]:
        """Return (value, metadata) or None."""

    @abstractmethod
    async def put(self, key: str, value: Any, metadata: Dict[str, Any]) -> None:
        """Store a value with its metadata, replacing any previous one."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a value; absent keys are ignored."""

    async def close(self) -> None:
        """Release connections."""


class InMemoryConfigStore(DurableConfigStore):
    """Process-local store; values are copied through JSON like a real backend."""

    def __init__(self, initial: Optional[Dict[str, StoredDocument]] = None):
        self._documents: Dict[str, str] = {}
        for key, (value, metadata) in (initial or {}).items():
            self._documents[key] = json.dumps({"value": value, "metadata": metadata})

    async def get(self, key: str) -> Optional[Any]:
        stored = await self.get_with_metadata(key)
        return stored[0] if stored else None

    async def get_with_metadata(self, key: str) -> Optional[StoredDocument]:
        raw = self._documents.get(key)
        if raw is None:
            return None
        document = json.loads(raw)
        return document["value"], document["metadata"]

    async def put(self, key: str, value: Any, metadata: Dict[str, Any]) -> None:
        self._documents[key] = json.dumps({"value": value, "metadata": metadata})

    async def delete(self, key: str) -> None:
        self._documents.pop(key, None)


class RedisConfigStore(DurableConfigStore):
    """Redis-backed store: one hash per key with ``value`` and ``metadata`` fields."""

    def __init__(self, redis_url: str, prefix: str = "edge-cache"):
        self.redis_url = redis_url
        self.prefix = prefix
        self.logger = get_logger("edge_cache.durable_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        stored = await self.get_with_metadata(key)
        return stored[0] if stored else None

    async def get_with_metadata(self, key: str) -> Optional[StoredDocument]:
        try:
            redis_client = await self._get_redis()
            fields = await redis_client.hgetall(self._make_key(key))
        except Exception as e:
            self.logger.error("Durable store read error", key=key, error=str(e))
            raise DurableStoreError(f"Failed to read {key}", {"key": key, "error": str(e)}) from e

        if not fields or "value" not in fields:
            return None

        try:
            value = json.loads(fields["value"])
            metadata = json.loads(fields.get("metadata") or "{}")
        except ValueError as e:
            raise DurableStoreError(f"Stored document {key} is not valid JSON", {"key": key}) from e
        return value, metadata

    async def put(self, key: str, value: Any, metadata: Dict[str, Any]) -> None:
        try:
            redis_client = await self._get_redis()
            await redis_client.hset(
                self._make_key(key),
                mapping={"value": json.dumps(value), "metadata": json.dumps(metadata)},
            )
            self.logger.debug("Stored config document", key=key, version=metadata.get("version"))
        except Exception as e:
            self.logger.error("Durable store write error", key=key, error=str(e))
            raise DurableStoreError(f"Failed to write {key}", {"key": key, "error": str(e)}) from e

    async def delete(self, key: str) -> None:
        try:
            redis_client = await self._get_redis()
            await redis_client.delete(self._make_key(key))
        except Exception as e:
            self.logger.error("Durable store delete error", key=key, error=str(e))
            raise DurableStoreError(f"Failed to delete {key}", {"key": key, "error": str(e)}) from e

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
