"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.assemblies import router as assemblies_router
from routes.debug import router as debug_router
from routes.pricing import router as pricing_router
from routes.product_attributes import router as product_attributes_router

__all__ = [
    "assemblies_router",
    "debug_router",
    "pricing_router",
    "product_attributes_router",
]
