"""
Origin client for the edge service.
"""

from typing import Optional

import httpx

from shared.errors import OriginFetchError
from shared.logging import get_logger
from ..engine import PreparedRequest
from ..policy.request_utils import ascii_host


HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


class OriginClient:
    """Fetches prepared requests from the origin, streaming the body."""

    def __init__(
        self,
        origin_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.origin_url = httpx.URL(origin_url)
        self.timeout = timeout
        self.logger = get_logger("edge_cache.origin_client")
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=False)
        return self._client

    def build_request(self, prepared: PreparedRequest, content: Optional[bytes] = None) -> httpx.Request:
        """Origin request: same path and query, origin scheme and authority."""
        incoming = prepared.request
        url = incoming.url.copy_with(
            scheme=self.origin_url.scheme,
            host=self.origin_url.host,
            port=self.origin_url.port,
        )

        headers = httpx.Headers(
            [
                (name, value)
                for name, value in incoming.headers.multi_items()
                if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() not in ("host", "content-length")
            ]
        )
        headers["X-Forwarded-Host"] = ascii_host(incoming.url)

        return self._get_client().build_request(
            incoming.method,
            url,
            headers=headers,
            content=content,
        )

    async def fetch(self, prepared: PreparedRequest, content: Optional[bytes] = None) -> httpx.Response:
        """Send to the origin; the caller must close the returned response."""
        outbound = self.build_request(prepared, content)
        try:
            response = await self._get_client().send(outbound, stream=True)
        except httpx.HTTPError as e:
            self.logger.error(
                "Error fetching from origin",
                url=str(outbound.url),
                error=str(e),
            )
            raise OriginFetchError(
                "Failed to fetch from origin",
                {"url": str(prepared.request.url), "error": str(e)},
            ) from e

        self.logger.debug(
            "Origin responded",
            url=str(outbound.url),
            status_code=response.status_code,
            cache_key=prepared.fetch.cache_key,
        )
        return response

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
