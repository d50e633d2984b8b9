"""API routes package."""

from bundler.routes.auth_routes import router as auth_router
from bundler.routes.group_routes import router as group_router
from bundler.routes.key_routes import router as key_router

__all__ = ["auth_router", "group_router", "key_router"]
