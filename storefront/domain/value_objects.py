"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. Money amounts are ``Decimal`` values in the major
currency unit, rounded to the cent with ROUND_HALF_UP.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from storefront.domain.base import ValueObject

CENT = Decimal("0.01")


# ============================================================================
# Money helpers
# ============================================================================


def to_decimal(value: Any) -> Decimal:
    """Coerce a number or numeric string to Decimal.

    Floats go through ``str`` so 19.99 stays 19.99 rather than its
    binary expansion. ``None``, unparseable and non-finite values
    become zero.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip() or "0")
        except ArithmeticError:
            return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def round2(value: Any) -> Decimal:
    """Round to 2 decimal places, half-up on the cent."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Any) -> int:
    """Convert a major-unit amount to integer minor units (x100, rounded)."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def new_id() -> str:
    """Generate a document identifier."""
    return uuid4().hex


# ============================================================================
# Enumerations
# ============================================================================


class DiscountType(str, Enum):
    """Coupon discount kinds."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class RateType(str, Enum):
    """Shipping method pricing kinds.

    ``flat`` and ``per_order`` are charged once per order;
    ``per_item`` is multiplied by the item count.
    """

    FLAT = "flat"
    PER_ITEM = "per_item"
    PER_ORDER = "per_order"


class TaxType(str, Enum):
    """Per-product tax override kinds."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class StockManagement(str, Enum):
    """Whether a product or variation tracks stock through the ledger."""

    INVENTORY = "inventory"
    NONE = "none"


class InventoryMovementType(str, Enum):
    """Ledger entry kinds."""

    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class PaymentMethod(str, Enum):
    """Checkout payment methods."""

    COD = "cod"
    RAZORPAY = "razorpay"
    CASHFREE = "cashfree"


class PaymentStatus(str, Enum):
    """Order payment states."""

    COD = "cod"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class NotificationType(str, Enum):
    """Notification templates."""

    SIGNUP = "signup"
    ORDER_PLACED = "order_placed"
    ORDER_STATUS = "order_status"
    ABANDONED_CART = "abandoned_cart"


class NotificationChannel(str, Enum):
    """Delivery channels."""

    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"


# ============================================================================
# Address Value Objects
# ============================================================================


@dataclass(frozen=True)
class CustomField(ValueObject):
    """Free-form checkout field captured with the shipping address."""

    key: str
    label: str
    value: str

    @classmethod
    def normalize_all(cls, raw: Any) -> tuple["CustomField", ...]:
        """Keep entries that have a key or label and a value; trim all parts.

        Args:
            raw: Client-supplied list of mappings.

        Returns:
            Normalized custom fields.
        """
        if not isinstance(raw, list):
            return ()
        fields = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            key = str(item.get("key") or "").strip()
            label = str(item.get("label") or "").strip()
            value = str(item.get("value") or "").strip()
            if not (key or label) or not value:
                continue
            fields.append(cls(key=key, label=label or key, value=value))
        return tuple(fields)


@dataclass(frozen=True)
class ShippingAddress(ValueObject):
    """Shipping address snapshot stored on an order.

    Attributes:
        name: Recipient name.
        address: Street address.
        city: City.
        state: State / province (optional).
        zip: ZIP / postal code.
        phone: Contact phone.
        country: ISO country code (optional).
        custom_fields: Extra checkout fields.
    """

    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: str = ""
    country: str = ""
    custom_fields: tuple[CustomField, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ShippingAddress":
        """Build a trimmed address from client input."""
        data = data or {}

        def text(key: str) -> str:
            value = data.get(key)
            return str(value).strip() if value is not None else ""

        return cls(
            name=text("name"),
            address=text("address"),
            city=text("city"),
            state=text("state"),
            zip=text("zip"),
            phone=text("phone"),
            country=text("country"),
            custom_fields=CustomField.normalize_all(
                data.get("customFields", data.get("custom_fields"))
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for persistence and responses."""
        data: dict[str, Any] = {
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "phone": self.phone,
            "customFields": [
                {"key": f.key, "label": f.label, "value": f.value}
                for f in self.custom_fields
            ],
        }
        if self.country:
            data["country"] = self.country
        return data
