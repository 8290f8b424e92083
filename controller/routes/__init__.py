"""API routes package."""

from controller.routes.backend_routes import router as backend_router
from controller.routes.file_routes import router as file_router

__all__ = ["backend_router", "file_router"]
