"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.imports import router as imports_router
from routes.export import router as export_router

__all__ = [
    "imports_router",
    "export_router",
]
