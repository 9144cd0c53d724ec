"""
Admin configuration API routes.

Bearer-token protected CRUD over environment and category configuration,
reading and writing through the ConfigStore.
"""

import hmac
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.errors import AuthenticationError
from shared.logging import get_logger
from ..config.store import ConfigStore


ADMIN_PREFIX = "/admin/config"

ENDPOINTS = [
    {"path": f"{ADMIN_PREFIX}/environment", "methods": ["GET", "PUT"]},
    {"path": f"{ADMIN_PREFIX}/categories", "methods": ["GET"]},
    {"path": f"{ADMIN_PREFIX}/categories/{{name}}", "methods": ["GET", "PUT", "DELETE"]},
    {"path": f"{ADMIN_PREFIX}/categories/refresh", "methods": ["POST"]},
]


def create_admin_router(config_store: ConfigStore, admin_secret: str) -> APIRouter:
    """Build the admin router bound to a config store and shared secret."""
    logger = get_logger("edge_cache.admin")
    security = HTTPBearer(auto_error=False)

    async def require_admin(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> None:
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthenticationError("Authorization header with Bearer token required")
        if not hmac.compare_digest(credentials.credentials.encode(), admin_secret.encode()):
            logger.warning("Admin authentication failed")
            raise AuthenticationError("Invalid admin token")

    router = APIRouter(prefix=ADMIN_PREFIX, dependencies=[Depends(require_admin)])

    @router.get("")
    @router.get("/")
    async def list_endpoints():
        """List admin endpoints."""
        return {"endpoints": ENDPOINTS}

    @router.get("/environment")
    async def get_environment():
        """Get the current environment config."""
        environment = await config_store.get_environment_config()
        return environment.to_document()

    @router.put("/environment")
    async def put_environment(payload: Dict[str, Any] = Body(...)):
        """Replace the environment config."""
        await config_store.save_environment_config(payload)
        logger.info("Environment config updated via admin API")
        return {"message": "Environment configuration updated"}

    @router.get("/categories")
    async def get_categories():
        """Get all categories in matching order."""
        categories = await config_store.get_category_configs()
        return {name: config.to_document() for name, config in categories.items()}

    @router.post("/categories/refresh")
    async def refresh_categories():
        """Force a reload from the durable store."""
        snapshot = await config_store.get_snapshot(force_refresh=True)
        return {
            "message": "Category configurations refreshed",
            "version": snapshot.version,
            "categories": snapshot.category_names,
        }

    @router.get("/categories/{name}")
    async def get_category(name: str):
        """Get one category."""
        config = await config_store.get_category_config(name)
        if config is None:
            raise HTTPException(status_code=404, detail=f"Category '{name}' not found")
        return config.to_document()

    @router.put("/categories/{name}")
    async def put_category(name: str, payload: Dict[str, Any] = Body(...)):
        """Create or replace one category."""
        await config_store.save_category_config(name, payload)
        logger.info("Category config updated via admin API", category=name)
        return {"message": f"Category configuration for '{name}' updated"}

    @router.delete("/categories/{name}")
    async def delete_category(name: str):
        """Delete one category."""
        deleted = await config_store.delete_category_config(name)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Category '{name}' not found")
        logger.info("Category config deleted via admin API", category=name)
        return {"message": f"Category configuration for '{name}' deleted"}

    return router
