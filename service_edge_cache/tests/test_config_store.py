"""
Unit tests for the layered ConfigStore.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import ConfigValidationError, DurableStoreError
from service_edge_cache.app.config.defaults import DEFAULT_CATEGORY_DOCUMENT
from service_edge_cache.app.config.durable import (
    CATEGORY_CONFIGS_KEY,
    ENVIRONMENT_CONFIG_KEY,
    InMemoryConfigStore,
    RedisConfigStore,
)
from service_edge_cache.app.config.store import ConfigStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


API_CATEGORY = DEFAULT_CATEGORY_DOCUMENT["api"]
VIDEO_CATEGORY = DEFAULT_CATEGORY_DOCUMENT["video"]


class YieldingStore(InMemoryConfigStore):
    """In-memory store that yields to the event loop on every call."""

    async def get_with_metadata(self, key):
        await asyncio.sleep(0)
        return await super().get_with_metadata(key)

    async def put(self, key, value, metadata):
        await asyncio.sleep(0)
        await super().put(key, value, metadata)


class TestConfigStoreReads:
    """Test cases for ConfigStore reads."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def durable(self):
        return InMemoryConfigStore({
            ENVIRONMENT_CONFIG_KEY: ({"environment": "staging", "maxCacheTags": 5}, {"version": "env-1"}),
            CATEGORY_CONFIGS_KEY: ({"api": API_CATEGORY}, {"version": "cat-1"}),
        })

    @pytest.fixture
    def store(self, durable, clock):
        return ConfigStore(durable, clock=clock)

    @pytest.mark.asyncio
    async def test_reads_stored_documents(self, store):
        """Stored documents are validated and returned."""
        environment = await store.get_environment_config()
        categories = await store.get_category_configs()

        assert environment.environment == "staging"
        assert environment.max_cache_tags == 5
        assert list(categories) == ["api"]

    @pytest.mark.asyncio
    async def test_missing_documents_use_defaults(self, clock):
        """Absent documents fall back to compiled-in defaults."""
        store = ConfigStore(InMemoryConfigStore(), clock=clock)

        environment = await store.get_environment_config()
        categories = await store.get_category_configs()

        assert environment.environment == "development"
        assert "video" in categories
        assert await store.get_category_config("nope") is None

    @pytest.mark.asyncio
    async def test_forced_refresh_sees_update_within_window(self, store, durable, clock):
        """A forced refresh observes a durable update a cached read does not."""
        await store.get_environment_config()
        await durable.put(ENVIRONMENT_CONFIG_KEY, {"environment": "production"}, {"version": "env-2"})
        clock.advance(5)

        cached = await store.get_environment_config()
        refreshed = await store.get_environment_config(force_refresh=True)

        assert cached.environment == "staging"
        assert refreshed.environment == "production"

    @pytest.mark.asyncio
    async def test_layers_expire_independently(self, store, durable, clock):
        """Environment expires after 10s, categories after 30s."""
        await store.get_environment_config()
        await store.get_category_configs()
        await durable.put(ENVIRONMENT_CONFIG_KEY, {"environment": "production"}, {"version": "env-2"})
        await durable.put(CATEGORY_CONFIGS_KEY, {"video": VIDEO_CATEGORY}, {"version": "cat-2"})
        clock.advance(11)

        environment = await store.get_environment_config()
        categories = await store.get_category_configs()

        assert environment.environment == "production"
        assert list(categories) == ["api"]

        clock.advance(20)
        assert list(await store.get_category_configs()) == ["video"]

    @pytest.mark.asyncio
    async def test_stale_on_durable_failure(self, store, durable, clock):
        """A durable failure returns the last good value unchanged."""
        first = await store.get_category_configs()
        durable.get_with_metadata = AsyncMock(side_effect=DurableStoreError("redis down"))
        clock.advance(60)

        stale = await store.get_category_configs()
        forced = await store.get_category_configs(force_refresh=True)

        assert stale == first
        assert forced == first

    @pytest.mark.asyncio
    async def test_defaults_on_failure_without_stale_value(self, clock):
        """With nothing cached, a durable failure yields defaults."""
        durable = InMemoryConfigStore()
        durable.get_with_metadata = AsyncMock(side_effect=DurableStoreError("redis down"))
        metrics = MagicMock()
        store = ConfigStore(durable, clock=clock, metrics=metrics)

        environment = await store.get_environment_config()

        assert environment.environment == "development"
        metrics.record_degradation.assert_called_with("config_default")

    @pytest.mark.asyncio
    async def test_invalid_stored_document_keeps_last_good(self, store, durable, clock):
        """Stored documents that fail validation are ignored."""
        await store.get_environment_config()
        await durable.put(ENVIRONMENT_CONFIG_KEY, {"configRefreshInterval": 0}, {"version": "env-bad"})
        clock.advance(11)

        environment = await store.get_environment_config()

        assert environment.environment == "staging"

    @pytest.mark.asyncio
    async def test_invalid_stored_document_without_last_good(self, clock):
        """An invalid first read falls back to defaults."""
        durable = InMemoryConfigStore({
            CATEGORY_CONFIGS_KEY: ({"broken": {"regexPattern": "("}}, {"version": "bad"}),
        })
        store = ConfigStore(durable, clock=clock)

        categories = await store.get_category_configs()

        assert "video" in categories
        assert "broken" not in categories


class TestConfigStoreSnapshots:
    """Test cases for ConfigStore snapshots."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        durable = InMemoryConfigStore({
            CATEGORY_CONFIGS_KEY: ({"api": API_CATEGORY, "video": VIDEO_CATEGORY}, {"version": "cat-1"}),
        })
        return ConfigStore(durable, clock=clock)

    @pytest.mark.asyncio
    async def test_snapshot_reused_until_change(self, store, clock):
        """Snapshots are rebuilt only when a layer value changes."""
        first = await store.get_snapshot()
        clock.advance(60)
        second = await store.get_snapshot()

        assert second is first
        assert first.category_names == ["api", "video"]
        assert first.version == "defaults/cat-1"

    @pytest.mark.asyncio
    async def test_snapshot_replaced_after_write(self, store):
        """Writes produce a new snapshot; the old one is untouched."""
        first = await store.get_snapshot()
        await store.save_category_config("audio", DEFAULT_CATEGORY_DOCUMENT["audio"])
        second = await store.get_snapshot()

        assert second is not first
        assert first.category_names == ["api", "video"]
        assert second.category_names == ["api", "video", "audio"]


class TestConfigStoreWrites:
    """Test cases for ConfigStore writes."""

    @pytest.fixture
    def durable(self):
        return InMemoryConfigStore({
            CATEGORY_CONFIGS_KEY: ({"api": API_CATEGORY, "video": VIDEO_CATEGORY}, {"version": "cat-1"}),
        })

    @pytest.fixture
    def store(self, durable):
        return ConfigStore(durable, clock=FakeClock())

    @pytest.mark.asyncio
    async def test_save_environment_read_your_writes(self, store, durable):
        """Saved environment is visible immediately and persisted with metadata."""
        assert await store.save_environment_config({"environment": "production", "debugMode": True}) is True

        environment = await store.get_environment_config()
        value, metadata = await durable.get_with_metadata(ENVIRONMENT_CONFIG_KEY)

        assert environment.environment == "production"
        assert value["debugMode"] is True
        assert metadata["operation"] == "save_environment"
        assert metadata["schemaVersion"] == "1"
        assert metadata["version"] == metadata["updatedAt"]

    @pytest.mark.asyncio
    async def test_save_category_update_keeps_position(self, store):
        """Updating a category keeps its matching priority."""
        updated = dict(API_CATEGORY, ttl={"ok": 5, "redirects": 0, "clientError": 0, "serverError": 0})
        await store.save_category_config("api", updated)

        categories = await store.get_category_configs()

        assert list(categories) == ["api", "video"]
        assert categories["api"].ttl.ok == 5

    @pytest.mark.asyncio
    async def test_save_category_appends_new(self, store, durable):
        """New categories are appended after existing ones."""
        await store.save_category_config("audio", DEFAULT_CATEGORY_DOCUMENT["audio"])

        stored, metadata = await durable.get_with_metadata(CATEGORY_CONFIGS_KEY)

        assert list(stored) == ["api", "video", "audio"]
        assert metadata["operation"] == "create"
        assert metadata["category"] == "audio"

    @pytest.mark.asyncio
    async def test_invalid_write_leaves_state_unchanged(self, store, durable):
        """Rejected writes change neither layer."""
        before = await store.get_category_configs()

        with pytest.raises(ConfigValidationError):
            await store.save_category_config("api", {"regexPattern": "(", "ttl": {}})

        stored, metadata = await durable.get_with_metadata(CATEGORY_CONFIGS_KEY)
        assert metadata["version"] == "cat-1"
        assert await store.get_category_configs() == before

    @pytest.mark.asyncio
    async def test_invalid_category_name_rejected(self, store):
        """Names must be tag-safe."""
        with pytest.raises(ConfigValidationError):
            await store.save_category_config("has space", API_CATEGORY)

    @pytest.mark.asyncio
    async def test_durable_write_failure_raises(self, store, durable):
        """A failed durable write raises and leaves the fast layer alone."""
        before = await store.get_environment_config()
        durable.put = AsyncMock(side_effect=DurableStoreError("redis down"))

        with pytest.raises(DurableStoreError):
            await store.save_environment_config({"environment": "production"})

        assert await store.get_environment_config() == before

    @pytest.mark.asyncio
    async def test_delete_category(self, store):
        """Deleting removes the category; unknown names return False."""
        assert await store.delete_category_config("api") is True
        assert await store.delete_category_config("api") is False
        assert list(await store.get_category_configs()) == ["video"]

    @pytest.mark.asyncio
    async def test_concurrent_category_writes_all_persist(self):
        """Interleaved category writes never lose an update."""
        durable = YieldingStore({
            CATEGORY_CONFIGS_KEY: ({"api": API_CATEGORY}, {"version": "cat-1"}),
        })
        store = ConfigStore(durable, clock=FakeClock())

        await asyncio.gather(
            store.save_category_config("video", VIDEO_CATEGORY),
            store.save_category_config("audio", DEFAULT_CATEGORY_DOCUMENT["audio"]),
            store.delete_category_config("api"),
        )

        stored, _ = await durable.get_with_metadata(CATEGORY_CONFIGS_KEY)
        assert list(stored) == ["video", "audio"]
        assert list(await store.get_category_configs()) == ["video", "audio"]

    @pytest.mark.asyncio
    async def test_invalidate_forces_durable_read(self, store, durable):
        """invalidate() expires both fast layers."""
        await store.get_category_configs()
        await durable.put(CATEGORY_CONFIGS_KEY, {"video": VIDEO_CATEGORY}, {"version": "cat-2"})

        store.invalidate()

        assert list(await store.get_category_configs()) == ["video"]


class TestRedisConfigStore:
    """Test cases for RedisConfigStore."""

    @pytest.fixture
    def redis_client(self):
        client = MagicMock()
        client.hgetall = AsyncMock(return_value={})
        client.hset = AsyncMock()
        client.delete = AsyncMock()
        return client

    @pytest.fixture
    def store(self, redis_client):
        store = RedisConfigStore("redis://localhost:6379/0")
        store._redis = redis_client
        return store

    @pytest.mark.asyncio
    async def test_missing_key(self, store):
        """Absent hashes read as None."""
        assert await store.get_with_metadata(ENVIRONMENT_CONFIG_KEY) is None

    @pytest.mark.asyncio
    async def test_put_and_read_fields(self, store, redis_client):
        """Values and metadata are stored as JSON hash fields."""
        await store.put(ENVIRONMENT_CONFIG_KEY, {"environment": "production"}, {"version": "v1"})

        redis_client.hset.assert_awaited_once()
        key = redis_client.hset.call_args.args[0]
        mapping = redis_client.hset.call_args.kwargs["mapping"]
        assert key == "edge-cache:environment-config"

        redis_client.hgetall.return_value = mapping
        value, metadata = await store.get_with_metadata(ENVIRONMENT_CONFIG_KEY)
        assert value == {"environment": "production"}
        assert metadata == {"version": "v1"}

    @pytest.mark.asyncio
    async def test_errors_wrapped(self, store, redis_client):
        """Redis errors surface as DurableStoreError."""
        redis_client.hgetall.side_effect = ConnectionError("refused")

        with pytest.raises(DurableStoreError):
            await store.get(ENVIRONMENT_CONFIG_KEY)
