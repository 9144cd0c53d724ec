"""
Compiled-in configuration defaults.

Used when the durable store has no document yet, or when it cannot be read
and no previously loaded value exists.
"""

from typing import Any, Dict

from .models import (
    RESERVED_CATEGORY,
    CategoryConfig,
    EnvironmentConfig,
    QueryParamConfig,
    TtlConfig,
)


ONE_YEAR = 31556952

SENSITIVE_QUERY_PARAMS = (
    "token",
    "auth",
    "key",
    "signature",
    "timestamp",
    "t",
    "user",
    "session",
    "login",
    "password",
    "secret",
)

# Declaration order is the matching priority.
DEFAULT_CATEGORY_DOCUMENT: Dict[str, Any] = {
    "video": {
        "regexPattern": r"(.*/Video)|(.*\.(m4s|mp4|ts|avi|mpeg|mpg|mkv|bin|webm|vob|flv|m2ts|mts|3gp|m4v|wmv|qt))$",
        "useQueryInCacheKey": False,
        "queryParams": {"include": False},
        "ttl": {"ok": ONE_YEAR, "redirects": 30, "clientError": 10, "serverError": 0},
    },
    "image": {
        "regexPattern": r"(.*/Images)|(.*\.(jpg|jpeg|png|bmp|pict|tif|tiff|webp|avif|gif|svg|heif|exif|bpg|ppm|pgn|pbm|pnm))$",
        "useQueryInCacheKey": True,
        "queryParams": {
            "include": True,
            "includeParams": ["width", "height", "format", "quality", "fit"],
            "excludeParams": ["t", "timestamp", "user", "session"],
            "sortParams": True,
            "normalizeValues": True,
        },
        "variants": {
            "useAcceptHeader": True,
            "clientHints": ["DPR", "Width"],
            "useUserAgent": True,
        },
        "ttl": {"ok": 3600, "redirects": 30, "clientError": 10, "serverError": 0},
        "imageOptimization": True,
    },
    "frontend": {
        "regexPattern": r"^.*\.(css|js)$",
        "useQueryInCacheKey": True,
        "queryParams": {
            "include": True,
            "includeParams": ["v", "version", "build"],
            "excludeParams": ["_", "cb", "t"],
            "sortParams": True,
        },
        "ttl": {"ok": 3600, "redirects": 30, "clientError": 10, "serverError": 0},
        "minifyCss": True,
    },
    "audio": {
        "regexPattern": r"(.*/Audio)|(.*\.(flac|aac|mp3|alac|aiff|wav|ogg|opus|ape|wma|3gp))$",
        "useQueryInCacheKey": False,
        "ttl": {"ok": ONE_YEAR, "redirects": 30, "clientError": 10, "serverError": 0},
    },
    "download": {
        "regexPattern": r".*(/Download)",
        "useQueryInCacheKey": False,
        "ttl": {"ok": ONE_YEAR, "redirects": 30, "clientError": 10, "serverError": 0},
    },
    "manifest": {
        "regexPattern": r"^.*\.(m3u8|mpd)$",
        "useQueryInCacheKey": True,
        "queryParams": {
            "include": True,
            "includeParams": ["quality", "format"],
            "sortParams": True,
        },
        "ttl": {"ok": 3, "redirects": 2, "clientError": 1, "serverError": 0},
    },
    "api": {
        "regexPattern": r"^.*/api/.*",
        "useQueryInCacheKey": True,
        "queryParams": {
            "include": True,
            "excludeParams": ["token", "auth", "key", "signature", "timestamp", "t"],
            "sortParams": True,
            "normalizeValues": True,
        },
        "variants": {
            "useAcceptHeader": True,
            "headers": ["Accept-Language"],
            "cookies": ["preferredLanguage"],
        },
        "ttl": {"ok": 60, "redirects": 30, "clientError": 10, "serverError": 0},
    },
}


def default_environment_config() -> EnvironmentConfig:
    """Environment settings used when none are stored."""
    return EnvironmentConfig()


def default_category_configs() -> Dict[str, CategoryConfig]:
    """Category definitions used when none are stored."""
    return {
        name: CategoryConfig.model_validate(document)
        for name, document in DEFAULT_CATEGORY_DOCUMENT.items()
    }


# Returned by the classifier when no configured category matches.
FALLBACK_CATEGORY_NAME = RESERVED_CATEGORY
FALLBACK_CATEGORY = CategoryConfig(
    regex_pattern=".*",
    use_query_in_cache_key=True,
    query_params=QueryParamConfig(
        include=True,
        exclude_params=SENSITIVE_QUERY_PARAMS,
        sort_params=True,
    ),
    ttl=TtlConfig(ok=0, redirects=0, client_error=0, server_error=0, info=0),
)
