"""
Cache key derivation.

A key is ``host + path``, then an optional canonical query suffix, then an
optional ``|``-prefixed variant descriptor.
"""

import re
from typing import List, Tuple

import httpx

from shared.errors import KeyGenerationError
from shared.logging import get_logger
from ..config.models import CategoryConfig, QueryParamConfig, VariantConfig
from .request_utils import (
    ascii_host,
    encode_component,
    encoded_path,
    parse_cookies,
    query_items,
    raw_query,
)


MOBILE_USER_AGENT = re.compile(r"mobile|android|iphone|ipad|ipod", re.IGNORECASE)


class KeyDeriver:
    """Deterministic cache keys from a request and its category policy."""

    def __init__(self):
        self.logger = get_logger("edge_cache.keys")

    def derive_key(self, request: httpx.Request, config: CategoryConfig) -> str:
        try:
            key = self._derive(request, config)
        except KeyGenerationError:
            raise
        except Exception as e:
            raise KeyGenerationError(
                "Failed to derive cache key",
                {"url": str(request.url), "error": str(e)},
            ) from e

        self.logger.debug("Cache key generated", cache_key=key)
        return key

    def _derive(self, request: httpx.Request, config: CategoryConfig) -> str:
        url = request.url
        key = f"{ascii_host(url)}{encoded_path(url)}"

        if config.is_legacy_key_mode:
            query = raw_query(url)
            if config.use_query_in_cache_key and query:
                key += f"?{query}"
            return key

        if config.query_params and config.query_params.include and raw_query(url):
            key += self.canonical_query(query_items(url), config.query_params)

        if config.variants:
            descriptor = self.variant_descriptor(request, config.variants)
            if descriptor:
                key += f"|{descriptor}"

        return key

    def canonical_query(self, items: List[Tuple[str, str]], policy: QueryParamConfig) -> str:
        """Filtered, optionally normalized and sorted ``?k=v&...`` suffix."""
        params = []
        for name, value in items:
            if policy.include_params and name not in policy.include_params:
                continue
            if name in policy.exclude_params:
                continue
            params.append((name, value.lower() if policy.normalize_values else value))

        if policy.sort_params:
            params.sort(key=lambda item: item[0])

        if not params:
            return ""
        return "?" + "&".join(
            f"{encode_component(name)}={encode_component(value)}" for name, value in params
        )

    def variant_descriptor(self, request: httpx.Request, variants: VariantConfig) -> str:
        headers = request.headers
        parts = []

        for name in variants.headers:
            value = headers.get(name)
            if value:
                parts.append(f"h:{name}={value}")

        if variants.use_accept_header:
            accept = headers.get("accept")
            media_range = accept.split(",")[0].strip() if accept else ""
            if media_range:
                parts.append(f"accept={media_range}")

        if variants.use_user_agent:
            user_agent = headers.get("user-agent")
            if user_agent:
                parts.append("ua=mobile" if MOBILE_USER_AGENT.search(user_agent) else "ua=desktop")

        for hint in variants.client_hints:
            value = headers.get(f"Sec-CH-{hint}")
            if value:
                parts.append(f"ch:{hint}={value}")

        if variants.cookies:
            cookie_header = headers.get("cookie")
            cookies = parse_cookies(cookie_header) if cookie_header else {}
            for name in variants.cookies:
                if cookies.get(name):
                    parts.append(f"c:{name}={cookies[name]}")

        if variants.use_client_ip:
            forwarded = headers.get("x-forwarded-for", "")
            client_ip = headers.get("cf-connecting-ip") or forwarded.split(",")[0].strip()
            if client_ip:
                parts.append(f"ip={client_ip}")

        return "&".join(parts)
