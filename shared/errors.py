"""
Shared error handling for the edge cache policy service.

Failures inside caching-metadata computation (keys, tags) are degraded by
their callers; only origin fetch failures surface to the client.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class CachePolicyException(Exception):
    """Base exception for the edge cache policy service."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigValidationError(CachePolicyException):
    """Configuration failed schema validation."""

    status_code = 400

    def __init__(self, message: str = "Configuration validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIG_VALIDATION_ERROR", message, details)


class DurableStoreError(CachePolicyException):
    """Reading or writing the durable configuration store failed."""

    status_code = 503

    def __init__(self, message: str = "Durable store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("DURABLE_STORE_ERROR", message, details)


class TagGenerationError(CachePolicyException):
    """Building purge tags failed."""

    def __init__(self, message: str = "Tag generation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("TAG_GENERATION_ERROR", message, details)


class KeyGenerationError(CachePolicyException):
    """Deriving a cache key failed."""

    def __init__(self, message: str = "Cache key generation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("KEY_GENERATION_ERROR", message, details)


class OriginFetchError(CachePolicyException):
    """The outbound origin fetch failed."""

    status_code = 502

    def __init__(self, message: str = "Error fetching from origin", details: Optional[Dict[str, Any]] = None):
        super().__init__("ORIGIN_FETCH_ERROR", message, details)


class StrategyNotFoundError(CachePolicyException):
    """No caching strategy accepted a content type and no default exists."""

    def __init__(self, message: str = "No caching strategy available", details: Optional[Dict[str, Any]] = None):
        super().__init__("STRATEGY_NOT_FOUND", message, details)


class AuthenticationError(CachePolicyException):
    """Admin API authentication errors."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)
