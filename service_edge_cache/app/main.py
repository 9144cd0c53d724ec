"""
Edge cache policy service.

Every request not handled by the health, metrics or admin routes is
classified, fetched from the origin with its fetch directives and streamed
back with the shaped caching headers.
"""

import asyncio
from typing import Dict, Optional

import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.convertors import Convertor, register_url_convertor

from shared.base_service import BaseService
from shared.config import ServiceConfig
from .adapters.origin_client import HOP_BY_HOP_HEADERS, OriginClient
from .admin.routes import create_admin_router
from .config.durable import DurableConfigStore
from .engine import PolicyEngine


PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class AnyPathConvertor(Convertor):
    """Like the ``path`` convertor, but also matches decoded control characters."""

    regex = r"[\s\S]*"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


register_url_convertor("anypath", AnyPathConvertor())


def incoming_url(request: Request) -> str:
    """Request URL with the path exactly as the client sent it."""
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    path = raw_path.split(b"?", 1)[0].decode("latin-1")
    url = f"{request.url.scheme}://{request.url.netloc}{path}"
    query = request.scope.get("query_string", b"")
    if query:
        url += "?" + query.decode("latin-1")
    return url


class EdgeCacheService(BaseService):
    """Edge cache policy service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        durable: Optional[DurableConfigStore] = None,
        origin_client: Optional[OriginClient] = None,
    ):
        super().__init__("edge_cache", 8787, config)
        self.engine = PolicyEngine.from_settings(self.config, durable=durable, metrics=self.metrics)
        self.origin_client = origin_client or OriginClient(
            self.config.origin_url,
            timeout=self.config.origin_timeout_seconds,
        )
        self._refresh_task: Optional[asyncio.Task] = None

        @self.app.on_event("startup")
        async def _startup():
            snapshot = await self.engine.config_store.get_snapshot(force_refresh=True)
            interval = snapshot.environment.config_refresh_interval
            self._refresh_task = asyncio.create_task(self._refresh_loop(interval))
            self.logger.info(
                "Edge cache service started",
                config_version=snapshot.version,
                categories=snapshot.category_names,
                refresh_interval=interval,
            )

        @self.app.on_event("shutdown")
        async def _shutdown():
            if self._refresh_task:
                self._refresh_task.cancel()
            await self.origin_client.close()
            await self.engine.close()

        self.app.include_router(create_admin_router(self.engine.config_store, self.config.admin_api_secret))
        self._setup_proxy_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.edge_cache_service = self

    async def _refresh_loop(self, interval: float):
        """Periodically force a config reload; the interval follows the stored config."""
        while True:
            await asyncio.sleep(interval)
            try:
                snapshot = await self.engine.config_store.get_snapshot(force_refresh=True)
                interval = snapshot.environment.config_refresh_interval
            except Exception as e:
                self.logger.error("Config refresh failed", error=str(e))

    async def _check_dependencies(self) -> Dict[str, str]:
        snapshot = await self.engine.config_store.get_snapshot()
        return {"config": snapshot.version}

    def _setup_proxy_routes(self):
        """Set up the catch-all edge route."""

        @self.app.api_route("/{path:anypath}", methods=PROXY_METHODS, include_in_schema=False)
        async def edge(path: str, request: Request):
            """Apply cache policy to an origin fetch."""
            incoming = httpx.Request(
                request.method,
                incoming_url(request),
                headers=request.headers.raw,
            )
            body = await request.body()

            prepared = await self.engine.prepare(incoming)
            upstream = await self.origin_client.fetch(prepared, content=body or None)
            shaped = self.engine.shape_response(prepared, upstream)

            response = StreamingResponse(
                shaped.aiter_raw(),
                status_code=shaped.status_code,
                background=BackgroundTask(upstream.aclose),
            )
            response.raw_headers = [
                (name, value)
                for name, value in shaped.headers.raw
                if name.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
            ]
            return response


def create_app():
    """Create FastAPI application."""
    service = EdgeCacheService()
    return service.app


if __name__ == "__main__":
    service = EdgeCacheService()
    service.run()
