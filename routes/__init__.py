"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.prices import router as prices_router
from routes.stock import router as stock_router

__all__ = [
    "prices_router",
    "stock_router",
]
