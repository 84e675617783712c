"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from storefront.application.abandoned_cart_service import (
    AbandonedCartRecovery,
    RecoveryRunResult,
)
from storefront.application.fulfillment_service import (
    OrderFulfillmentOrchestrator,
    PlaceOrderCommand,
    get_fulfillment_orchestrator,
)
from storefront.application.inventory_service import (
    InventoryLedger,
    get_inventory_ledger,
)
from storefront.application.order_service import (
    OrderService,
    get_order_service,
)
from storefront.application.payment_service import (
    PaymentService,
    get_payment_service,
)
from storefront.application.pricing_service import (
    PricingService,
    get_pricing_service,
)

__all__ = [
    "AbandonedCartRecovery",
    "RecoveryRunResult",
    "OrderFulfillmentOrchestrator",
    "PlaceOrderCommand",
    "get_fulfillment_orchestrator",
    "InventoryLedger",
    "get_inventory_ledger",
    "OrderService",
    "get_order_service",
    "PaymentService",
    "get_payment_service",
    "PricingService",
    "get_pricing_service",
]
