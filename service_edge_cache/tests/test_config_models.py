"""
Unit tests for cache policy configuration models.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import ConfigValidationError
from service_edge_cache.app.config.defaults import (
    DEFAULT_CATEGORY_DOCUMENT,
    FALLBACK_CATEGORY,
    SENSITIVE_QUERY_PARAMS,
    default_category_configs,
)
from service_edge_cache.app.config.models import (
    CategoryConfig,
    EnvironmentConfig,
    TtlConfig,
    serialize_categories,
    validate_category_config,
    validate_category_document,
    validate_environment_config,
)


class TestTtlConfig:
    """Test cases for TtlConfig."""

    def test_camel_case_document(self):
        """Stored documents use camelCase keys."""
        ttl = TtlConfig.model_validate({"ok": 60, "redirects": 30, "clientError": 10, "serverError": 0})
        assert ttl.client_error == 10
        assert ttl.server_error == 0
        assert ttl.info is None

    def test_status_overrides(self):
        """Three-digit extra keys are per-status overrides."""
        ttl = TtlConfig.model_validate(
            {"ok": 60, "redirects": 30, "clientError": 10, "serverError": 0, "404": 5, "503": 1}
        )
        assert ttl.status_overrides == {404: 5, 503: 1}

    def test_rejects_unknown_extra_key(self):
        """Non-status extra keys are rejected."""
        with pytest.raises(ValueError):
            TtlConfig.model_validate(
                {"ok": 60, "redirects": 30, "clientError": 10, "serverError": 0, "notFound": 5}
            )

    @pytest.mark.parametrize("value", [-1, 1.5, "60", True])
    def test_rejects_non_integer_or_negative(self, value):
        """TTL values are strict non-negative integers."""
        with pytest.raises(ValueError):
            TtlConfig.model_validate({"ok": value, "redirects": 0, "clientError": 0, "serverError": 0})

    def test_rejects_negative_override(self):
        """Overrides follow the same rules as bucket TTLs."""
        with pytest.raises(ValueError):
            TtlConfig.model_validate(
                {"ok": 60, "redirects": 30, "clientError": 10, "serverError": 0, "404": -5}
            )


class TestCategoryConfig:
    """Test cases for CategoryConfig."""

    def test_pattern_matches_path(self):
        """Pattern is searched case-sensitively over the path."""
        config = CategoryConfig.model_validate(DEFAULT_CATEGORY_DOCUMENT["video"])
        assert config.matches("/videos/a.mp4")
        assert not config.matches("/videos/a.MP4")
        assert config.matches("/library/Video")

    def test_invalid_pattern_rejected(self):
        """Invalid patterns fail validation."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_category_config(
                {
                    "regexPattern": "([unclosed",
                    "useQueryInCacheKey": False,
                    "ttl": {"ok": 1, "redirects": 1, "clientError": 1, "serverError": 0},
                }
            )
        assert exc_info.value.status_code == 400
        assert exc_info.value.details["errors"]

    def test_legacy_key_mode(self):
        """No query or variant policy means legacy key mode."""
        legacy = CategoryConfig.model_validate(DEFAULT_CATEGORY_DOCUMENT["audio"])
        assert legacy.is_legacy_key_mode
        api = CategoryConfig.model_validate(DEFAULT_CATEGORY_DOCUMENT["api"])
        assert not api.is_legacy_key_mode

    def test_use_client_ip_alias(self):
        """useClientIP keeps its stored spelling."""
        config = validate_category_config(
            {
                "regexPattern": ".*",
                "useQueryInCacheKey": False,
                "variants": {"useClientIP": True},
                "ttl": {"ok": 1, "redirects": 1, "clientError": 1, "serverError": 0},
            }
        )
        assert config.variants.use_client_ip
        assert config.to_document()["variants"]["useClientIP"] is True

    def test_document_round_trip_keeps_overrides(self):
        """Serialized documents validate back to the same config."""
        document = {
            "regexPattern": r"^/api/",
            "useQueryInCacheKey": True,
            "ttl": {"ok": 60, "redirects": 30, "clientError": 10, "serverError": 0, "404": 5},
            "cacheDirectives": {"staleWhileRevalidate": 30, "immutable": True},
        }
        config = validate_category_config(document)
        stored = config.to_document()
        assert stored["ttl"]["404"] == 5
        assert stored["cacheDirectives"]["staleWhileRevalidate"] == 30
        assert validate_category_config(stored) == config


class TestEnvironmentConfig:
    """Test cases for EnvironmentConfig."""

    def test_defaults(self):
        """Unset fields use documented defaults."""
        environment = EnvironmentConfig()
        assert environment.environment == "development"
        assert environment.log_level == "INFO"
        assert environment.max_cache_tags == 10
        assert environment.cache_tag_namespace == "cf"
        assert environment.config_refresh_interval == 300
        assert environment.include_version_tag is True
        assert environment.include_query_tags is False

    @pytest.mark.parametrize("field,value", [
        ("configRefreshInterval", 0),
        ("maxCacheTags", 0),
        ("logLevel", "TRACE"),
        ("cacheTagNamespace", "has space"),
    ])
    def test_invalid_values_rejected(self, field, value):
        """Invalid environment values raise ConfigValidationError."""
        with pytest.raises(ConfigValidationError):
            validate_environment_config({field: value})

    def test_frozen(self):
        """Validated configs cannot be mutated."""
        environment = EnvironmentConfig()
        with pytest.raises(ValueError):
            environment.max_cache_tags = 5


class TestCategoryDocument:
    """Test cases for the categories document."""

    def test_defaults_validate_in_order(self):
        """Default categories keep declaration order."""
        categories = default_category_configs()
        assert list(categories) == ["video", "image", "frontend", "audio", "download", "manifest", "api"]

    def test_document_order_preserved(self):
        """Validation preserves document order."""
        document = {
            "zeta": DEFAULT_CATEGORY_DOCUMENT["api"],
            "alpha": DEFAULT_CATEGORY_DOCUMENT["video"],
        }
        assert list(validate_category_document(document)) == ["zeta", "alpha"]
        assert list(serialize_categories(validate_category_document(document))) == ["zeta", "alpha"]

    def test_reserved_name_rejected(self):
        """The fallback category name cannot be configured."""
        with pytest.raises(ConfigValidationError):
            validate_category_document({"default": DEFAULT_CATEGORY_DOCUMENT["api"]})

    def test_non_object_rejected(self):
        """The categories document must be an object."""
        with pytest.raises(ConfigValidationError):
            validate_category_document(["video"])

    def test_fallback_category(self):
        """The fallback category caches nothing and hides sensitive params."""
        assert FALLBACK_CATEGORY.ttl.ok == 0
        assert FALLBACK_CATEGORY.ttl.server_error == 0
        assert FALLBACK_CATEGORY.query_params.sort_params
        assert set(SENSITIVE_QUERY_PARAMS) <= set(FALLBACK_CATEGORY.query_params.exclude_params)
