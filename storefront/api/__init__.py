"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from storefront.api.coupons import router as coupons_router
from storefront.api.cron import router as cron_router
from storefront.api.health import router as health_router
from storefront.api.inventory import router as inventory_router
from storefront.api.orders import router as orders_router
from storefront.api.payments import router as payments_router
from storefront.api.shipping import router as shipping_router

__all__ = [
    "coupons_router",
    "cron_router",
    "health_router",
    "inventory_router",
    "orders_router",
    "payments_router",
    "shipping_router",
]
