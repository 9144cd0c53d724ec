"""
Unit tests for Cache-Control directive composition.
"""

import pytest
import httpx

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_edge_cache.app.config.models import TtlConfig, validate_category_config
from service_edge_cache.app.policy.directives import DirectiveComposer


TTL = {"ok": 3600, "redirects": 30, "clientError": 10, "serverError": 0}


def category(**fields):
    document = {"regexPattern": ".*", "useQueryInCacheKey": False, "ttl": TTL}
    document.update(fields)
    return validate_category_config(document)


class TestResolveTtl:
    """Test cases for DirectiveComposer.resolve_ttl."""

    @pytest.mark.parametrize("status,expected", [
        (100, 0),
        (200, 3600),
        (206, 3600),
        (301, 30),
        (404, 10),
        (500, 0),
        (599, 0),
        (600, 0),
    ])
    def test_buckets(self, status, expected):
        """Statuses map to their class bucket."""
        assert DirectiveComposer.resolve_ttl(status, TtlConfig.model_validate(TTL)) == expected

    def test_info_bucket(self):
        """1xx uses info when set."""
        ttl = TtlConfig.model_validate(dict(TTL, info=5))
        assert DirectiveComposer.resolve_ttl(101, ttl) == 5

    def test_override_wins(self):
        """Explicit per-status overrides beat the bucket value."""
        ttl = TtlConfig.model_validate(dict(TTL, **{"404": 120, "200": 0}))
        assert DirectiveComposer.resolve_ttl(404, ttl) == 120
        assert DirectiveComposer.resolve_ttl(410, ttl) == 10
        assert DirectiveComposer.resolve_ttl(200, ttl) == 0


class TestComposeDirective:
    """Test cases for DirectiveComposer.compose_directive."""

    @pytest.fixture
    def composer(self):
        return DirectiveComposer()

    def test_public_max_age(self, composer):
        """Positive TTLs give public, max-age."""
        assert composer.compose_directive(200, category()) == "public, max-age=3600"

    def test_zero_ttl_empty(self, composer):
        """Zero TTL yields an empty directive."""
        assert composer.compose_directive(503, category()) == ""

    def test_flags_in_order(self, composer):
        """Directive flags are appended in a fixed order."""
        config = category(cacheDirectives={
            "private": True,
            "staleWhileRevalidate": 60,
            "staleIfError": 300,
            "mustRevalidate": True,
            "noCache": True,
            "noStore": True,
            "immutable": True,
        })
        assert composer.compose_directive(200, config) == (
            "private, max-age=3600, stale-while-revalidate=60, stale-if-error=300, "
            "must-revalidate, no-cache, no-store, immutable"
        )

    def test_stale_while_revalidate_zero(self, composer):
        """A zero stale window is still emitted."""
        config = category(cacheDirectives={"staleWhileRevalidate": 0})
        assert composer.compose_directive(200, config) == "public, max-age=3600, stale-while-revalidate=0"


class TestApplyDirective:
    """Test cases for DirectiveComposer.apply."""

    @pytest.fixture
    def composer(self):
        return DirectiveComposer()

    def test_sets_header(self, composer):
        """Composed directive replaces the upstream value."""
        headers = httpx.Headers({"Cache-Control": "no-cache"})
        assert composer.apply(headers, 200, category()) == "public, max-age=3600"
        assert headers["cache-control"] == "public, max-age=3600"

    def test_zero_ttl_emits_nothing(self, composer):
        """Zero TTL emits no Cache-Control header."""
        headers = httpx.Headers()
        assert composer.apply(headers, 500, category()) is None
        assert "cache-control" not in headers

    def test_prevent_override_keeps_upstream(self, composer):
        """Upstream Cache-Control survives untouched when override is prevented."""
        headers = httpx.Headers({"Cache-Control": "private, max-age=5"})
        config = category(preventCacheControlOverride=True)
        assert composer.apply(headers, 200, config) == "private, max-age=5"
        assert headers["cache-control"] == "private, max-age=5"

    def test_prevent_override_without_upstream(self, composer):
        """Without an upstream value the directive is applied."""
        headers = httpx.Headers()
        config = category(preventCacheControlOverride=True)
        composer.apply(headers, 200, config)
        assert headers["cache-control"] == "public, max-age=3600"
