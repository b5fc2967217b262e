"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.owned_vehicles import router as owned_vehicles_router

__all__ = [
    "owned_vehicles_router",
]
