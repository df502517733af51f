"""
API v1 package initialization.

Routers are mounted under the configured ``api_v1_prefix``.
"""

from garment_orders.api.v1.dashboard import router as dashboard_router
from garment_orders.api.v1.orders import router as orders_router

__all__ = ["dashboard_router", "orders_router"]
