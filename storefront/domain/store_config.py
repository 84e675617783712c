"""Store settings document and the per-request snapshots derived from it.

``StoreSettings`` mirrors the shared settings document edited from the
admin console (outside this service). Components never read it
directly: each request takes immutable ``CheckoutConfig``,
``PaymentConfig`` and ``NotificationConfig`` snapshots and passes them
down explicitly.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from storefront.domain.value_objects import PaymentMethod, ShippingAddress, to_decimal

DEFAULT_SITE_NAME = "ShopNow"
DEFAULT_CURRENCY = "INR"


@dataclass
class StoreSettings:
    """Shared store settings document.

    Nested sections (``checkout``, ``payment``, ``notifications``) keep
    the document's raw shape; missing keys fall back to defaults when a
    snapshot is taken.
    """

    site_name: str = DEFAULT_SITE_NAME
    site_url: str = ""
    checkout: dict[str, Any] = field(default_factory=dict)
    payment: dict[str, Any] = field(default_factory=dict)
    notifications: dict[str, Any] = field(default_factory=dict)
    coupon_enabled: bool = False
    shipping_enabled: bool = False
    tax_enabled: bool = False
    default_tax_percentage: Decimal = Decimal("0")
    abandoned_cart_enabled: bool = False


def _text(section: dict[str, Any], key: str) -> str:
    value = section.get(key)
    return str(value).strip() if value is not None else ""


# ============================================================================
# Checkout
# ============================================================================


@dataclass(frozen=True)
class FieldRule:
    """Whether a checkout field is shown and whether it must be filled."""

    enabled: bool = True
    required: bool = False

    @classmethod
    def from_raw(cls, raw: Any, default_required: bool) -> "FieldRule":
        raw = raw if isinstance(raw, dict) else {}
        required = raw.get("required")
        return cls(
            enabled=raw.get("enabled") is not False,
            required=default_required if required is None else bool(required),
        )

    @property
    def mandatory(self) -> bool:
        return self.enabled and self.required


# Address fields in the order they are checked; value is the default "required".
ADDRESS_FIELDS: dict[str, bool] = {
    "name": True,
    "address": True,
    "city": True,
    "state": False,
    "zip": True,
    "phone": True,
}


@dataclass(frozen=True)
class CheckoutConfig:
    """Checkout rules in force for one request."""

    fields: dict[str, FieldRule]
    coupon_enabled: bool = False
    shipping_enabled: bool = False
    tax_enabled: bool = False
    default_tax_percentage: Decimal = Decimal("0")

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "CheckoutConfig":
        raw = settings.checkout or {}
        pct = to_decimal(settings.default_tax_percentage)
        return cls(
            fields={
                name: FieldRule.from_raw(raw.get(name), default_required)
                for name, default_required in ADDRESS_FIELDS.items()
            },
            coupon_enabled=bool(settings.coupon_enabled),
            shipping_enabled=bool(settings.shipping_enabled),
            tax_enabled=bool(settings.tax_enabled),
            default_tax_percentage=max(Decimal("0"), min(Decimal("100"), pct)),
        )

    def missing_fields(self, address: ShippingAddress) -> list[str]:
        """Every enabled and required field that is blank, in check order."""
        return [
            name
            for name, rule in self.fields.items()
            if rule.mandatory and not getattr(address, name)
        ]


# ============================================================================
# Payment
# ============================================================================


@dataclass(frozen=True)
class RazorpayCredentials:
    enabled: bool = False
    key_id: str = ""
    key_secret: str = ""

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.key_id) and bool(self.key_secret)


@dataclass(frozen=True)
class CashfreeCredentials:
    enabled: bool = False
    app_id: str = ""
    secret_key: str = ""
    env: str = "sandbox"

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.app_id) and bool(self.secret_key)


@dataclass(frozen=True)
class PaymentConfig:
    """Payment toggles and provider credentials for one request."""

    currency: str = DEFAULT_CURRENCY
    cod_enabled: bool = True
    razorpay: RazorpayCredentials = field(default_factory=RazorpayCredentials)
    cashfree: CashfreeCredentials = field(default_factory=CashfreeCredentials)

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "PaymentConfig":
        raw = settings.payment or {}
        cod = raw.get("cod") or {}
        razorpay = raw.get("razorpay") or {}
        cashfree = raw.get("cashfree") or {}
        return cls(
            currency=_text(raw, "currency") or DEFAULT_CURRENCY,
            cod_enabled=cod.get("enabled") is not False,
            razorpay=RazorpayCredentials(
                enabled=bool(razorpay.get("enabled")),
                key_id=_text(razorpay, "keyId"),
                key_secret=_text(razorpay, "keySecret"),
            ),
            cashfree=CashfreeCredentials(
                enabled=bool(cashfree.get("enabled")),
                app_id=_text(cashfree, "appId"),
                secret_key=_text(cashfree, "secretKey"),
                env="production" if cashfree.get("env") == "production" else "sandbox",
            ),
        )

    def enabled_methods(self) -> list[PaymentMethod]:
        methods = []
        if self.cod_enabled:
            methods.append(PaymentMethod.COD)
        if self.razorpay.enabled:
            methods.append(PaymentMethod.RAZORPAY)
        if self.cashfree.enabled:
            methods.append(PaymentMethod.CASHFREE)
        return methods


# ============================================================================
# Notifications
# ============================================================================


@dataclass(frozen=True)
class EmailChannelConfig:
    enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: str = ""
    smtp_pass: str = ""
    from_email: str = ""
    from_name: str = ""

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.smtp_host) and bool(self.from_email)

    @property
    def sender(self) -> str:
        if self.from_name:
            return f'"{self.from_name}" <{self.from_email}>'
        return self.from_email


@dataclass(frozen=True)
class MessagingChannelConfig:
    """Twilio-style credentials: ``api_key`` is the account SID."""

    enabled: bool = False
    api_key: str = ""
    api_secret: str = ""
    from_number: str = ""
    phone_number_id: str = ""


@dataclass(frozen=True)
class NotificationConfig:
    """Channel settings for one dispatch."""

    site_name: str = DEFAULT_SITE_NAME
    email: EmailChannelConfig = field(default_factory=EmailChannelConfig)
    sms: MessagingChannelConfig = field(default_factory=MessagingChannelConfig)
    whatsapp: MessagingChannelConfig = field(default_factory=MessagingChannelConfig)

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "NotificationConfig":
        raw = settings.notifications or {}
        email = raw.get("email") or {}
        try:
            port = int(email.get("smtpPort") or 587)
        except (TypeError, ValueError):
            port = 587
        return cls(
            site_name=(settings.site_name or "").strip() or DEFAULT_SITE_NAME,
            email=EmailChannelConfig(
                enabled=bool(email.get("enabled")),
                smtp_host=_text(email, "smtpHost"),
                smtp_port=port,
                smtp_secure=bool(email.get("smtpSecure")),
                smtp_user=_text(email, "smtpUser"),
                smtp_pass=_text(email, "smtpPass"),
                from_email=_text(email, "fromEmail"),
                from_name=_text(email, "fromName"),
            ),
            sms=_messaging(raw.get("sms")),
            whatsapp=_messaging(raw.get("whatsapp")),
        )


def _messaging(raw: Any) -> MessagingChannelConfig:
    raw = raw if isinstance(raw, dict) else {}
    return MessagingChannelConfig(
        enabled=bool(raw.get("enabled")),
        api_key=_text(raw, "apiKey"),
        api_secret=_text(raw, "apiSecret"),
        from_number=_text(raw, "fromNumber"),
        phone_number_id=_text(raw, "phoneNumberId"),
    )
