"""Pre-checkout pricing queries.

Shipping options for an address and coupon previews, computed with the
same rules the fulfillment orchestrator applies at order time.
"""

from decimal import Decimal
from typing import Any

import structlog

from storefront.domain.base import utcnow
from storefront.domain.coupons import CouponApplication, CouponEngine
from storefront.domain.exceptions import ValidationError
from storefront.domain.shipping import ShippingOptions, ShippingRateResolver
from storefront.domain.store_config import CheckoutConfig
from storefront.domain.value_objects import to_decimal
from storefront.infrastructure.repositories import Repositories, get_repositories

logger = structlog.get_logger()


def _non_negative_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


class PricingService:
    """Read-only pricing helpers for the checkout page."""

    def __init__(
        self,
        repositories: Repositories | None = None,
        coupon_engine: CouponEngine | None = None,
        shipping_resolver: ShippingRateResolver | None = None,
    ) -> None:
        self.repos = repositories or get_repositories()
        self.coupons = coupon_engine or CouponEngine()
        self.shipping = shipping_resolver or ShippingRateResolver()

    async def shipping_options(
        self,
        country: str = "",
        state: str = "",
        zip_code: str = "",
        subtotal: Any = None,
        item_count: Any = None,
    ) -> ShippingOptions:
        """Shipping methods offered for an address, each priced for the cart.

        Args:
            country: Address country code.
            state: Address state code.
            zip_code: Address postal code.
            subtotal: Cart subtotal; invalid or negative means zero.
            item_count: Cart unit count; invalid or negative means zero.

        Returns:
            The options for the matched zone, or a zero-shipping notice.
        """
        checkout = CheckoutConfig.from_settings(await self.repos.settings.get())
        if not checkout.shipping_enabled:
            return ShippingOptions(enabled=False)

        zones = await self.repos.shipping.list_zones()
        methods = await self.repos.shipping.list_methods()
        return self.shipping.options(
            True,
            zones,
            methods,
            country=country or "",
            state=state or "",
            zip_code=zip_code or "",
            subtotal=to_decimal(subtotal),
            item_count=_non_negative_int(item_count),
        )

    async def preview_coupon(self, code: str | None, order_total: Any) -> CouponApplication:
        """Validate a coupon against a cart total without consuming it.

        Raises:
            ValidationError: Coupons disabled or code blank.
            CouponNotFoundError: Unknown or inactive code.
            CouponRejectedError: Date, usage or minimum-amount rule failed.
        """
        checkout = CheckoutConfig.from_settings(await self.repos.settings.get())
        if not checkout.coupon_enabled:
            raise ValidationError("Coupons are not enabled")
        if not code or not code.strip():
            raise ValidationError("Coupon code is required")

        subtotal = max(Decimal("0"), to_decimal(order_total))
        coupon = await self.repos.coupons.get_by_code(code)
        application = self.coupons.validate(coupon, subtotal, utcnow(), code=code)
        logger.info("coupon_previewed", code=application.coupon.code, discount=str(application.discount))
        return application


# Global service instance
_pricing_service: PricingService | None = None


def get_pricing_service() -> PricingService:
    """Get pricing service singleton."""
    global _pricing_service
    if _pricing_service is None:
        _pricing_service = PricingService()
    return _pricing_service


def reset_pricing_service() -> None:
    """Reset pricing service (for testing)."""
    global _pricing_service
    _pricing_service = None
