"""Coupon validation and discount computation.

Pure domain logic: the engine never touches storage. Callers look the
coupon up by canonical code and pass it in (or ``None`` when unknown).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from storefront.domain.entities import Coupon
from storefront.domain.exceptions import (
    CouponBelowMinimumError,
    CouponExpiredError,
    CouponLimitReachedError,
    CouponNotFoundError,
    CouponNotYetActiveError,
)
from storefront.domain.value_objects import DiscountType, round2, to_decimal


@dataclass(frozen=True)
class CouponApplication:
    """A coupon accepted for an order, with the discount it grants."""

    coupon: Coupon
    discount: Decimal


class CouponEngine:
    """Validates coupons and computes discounts."""

    def validate(
        self,
        coupon: Coupon | None,
        subtotal: Decimal,
        now: datetime,
        code: str = "",
    ) -> CouponApplication:
        """Check a coupon against an order subtotal.

        Rules are checked in a fixed order and the first failure wins.

        Args:
            coupon: Coupon found by canonical code, or None.
            subtotal: Order subtotal the coupon would apply to.
            now: Current time.
            code: Code as submitted, for error details.

        Returns:
            The accepted coupon with its discount.

        Raises:
            CouponNotFoundError: Unknown or inactive code.
            CouponNotYetActiveError: Start date in the future.
            CouponExpiredError: End date in the past.
            CouponLimitReachedError: Usage limit exhausted.
            CouponBelowMinimumError: Subtotal under the minimum order amount.
        """
        if coupon is None or not coupon.is_active:
            raise CouponNotFoundError(Coupon.canonical_code(code) or (coupon.code if coupon else ""))

        if coupon.start_date is not None and now < coupon.start_date:
            raise CouponNotYetActiveError(
                "Coupon is not yet active", details={"code": coupon.code}
            )
        if coupon.end_date is not None and now > coupon.end_date:
            raise CouponExpiredError("Coupon has expired", details={"code": coupon.code})
        if coupon.usage_limit > 0 and coupon.used_count >= coupon.usage_limit:
            raise CouponLimitReachedError(
                "Coupon usage limit reached",
                details={"code": coupon.code, "usage_limit": coupon.usage_limit},
            )

        minimum = to_decimal(coupon.min_order_amount)
        if minimum > 0 and to_decimal(subtotal) < minimum:
            raise CouponBelowMinimumError(
                f"Minimum order amount is {round2(minimum)}",
                details={"code": coupon.code, "min_order_amount": str(round2(minimum))},
            )

        return CouponApplication(coupon=coupon, discount=self.compute_discount(coupon, subtotal))

    @staticmethod
    def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
        """Discount for a subtotal, clamped to ``[0, subtotal]``.

        Args:
            coupon: The coupon to apply.
            subtotal: Order subtotal.

        Returns:
            Discount rounded to the cent.
        """
        subtotal = to_decimal(subtotal)
        value = to_decimal(coupon.discount_value)
        if coupon.discount_type == DiscountType.PERCENTAGE:
            discount = subtotal * value / 100
            cap = to_decimal(coupon.max_discount)
            if cap > 0:
                discount = min(discount, cap)
        else:
            discount = value
        discount = max(Decimal("0"), min(discount, subtotal))
        return round2(discount)
