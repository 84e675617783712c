"""Shipping zone matching and rate computation.

Pure domain logic. Zones are evaluated in ascending ``sort_order`` and
the first eligible zone wins; there is no best-match scoring. An
address that matches no zone ships free.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from storefront.domain.entities import ShippingMethod, ShippingZone
from storefront.domain.value_objects import RateType, round2, to_decimal

NO_ZONES_MESSAGE = "No shipping zones configured. Shipping will be free."
NO_MATCH_MESSAGE = "No shipping zone matches this address. Shipping will be free."
NO_METHODS_MESSAGE = "No shipping methods in this zone. Shipping will be free."


@dataclass(frozen=True)
class ShippingQuote:
    """A method offered for an address, priced for the current cart."""

    method: ShippingMethod
    amount: Decimal


@dataclass
class ShippingOptions:
    """Result of an options lookup for an address."""

    enabled: bool
    zone: ShippingZone | None = None
    quotes: list[ShippingQuote] = field(default_factory=list)
    use_zero_shipping: bool = False
    message: str | None = None

    @property
    def zone_matched(self) -> bool:
        return self.zone is not None


class ShippingRateResolver:
    """Matches addresses to zones and prices shipping methods."""

    @staticmethod
    def _sorted(zones: list[ShippingZone]) -> list[ShippingZone]:
        return sorted((z for z in zones if z.is_active), key=lambda z: z.sort_order)

    @staticmethod
    def zone_matches(zone: ShippingZone, country: str, state: str, zip_code: str) -> bool:
        """Check a single zone's country, state and zip filters."""
        country = (country or "").strip().upper()
        state = (state or "").strip().lower()
        zip_code = (zip_code or "").strip()

        codes = [(c or "").strip().upper() for c in zone.country_codes]
        if codes and "*" not in codes and country not in codes:
            return False

        if zone.state_codes:
            if not any((s or "").strip().lower() == state for s in zone.state_codes):
                return False

        if zone.zip_prefixes and zip_code:
            if not any(zip_code.startswith((p or "").strip()) for p in zone.zip_prefixes):
                return False

        return True

    def resolve_zone(
        self,
        zones: list[ShippingZone],
        country: str,
        state: str = "",
        zip_code: str = "",
    ) -> ShippingZone | None:
        """Find the first active zone, by ascending sort order, that matches.

        Args:
            zones: Candidate zones in any order.
            country: ISO country code of the address.
            state: State or province.
            zip_code: ZIP or postal code.

        Returns:
            The matching zone, or None when the address ships free.
        """
        for zone in self._sorted(zones):
            if self.zone_matches(zone, country, state, zip_code):
                return zone
        return None

    @staticmethod
    def quote(method: ShippingMethod, subtotal: Decimal, item_count: int) -> Decimal:
        """Price a method for a cart.

        Args:
            method: Shipping method.
            subtotal: Cart subtotal.
            item_count: Total units in the cart.

        Returns:
            Shipping amount; zero once the free-shipping threshold is met.
        """
        threshold = to_decimal(method.min_order_for_free)
        if threshold > 0 and to_decimal(subtotal) >= threshold:
            return Decimal("0.00")
        rate = to_decimal(method.rate_value)
        if method.rate_type == RateType.PER_ITEM:
            return round2(rate * int(item_count))
        return round2(rate)

    def options(
        self,
        enabled: bool,
        zones: list[ShippingZone],
        methods: list[ShippingMethod],
        country: str,
        state: str,
        zip_code: str,
        subtotal: Decimal,
        item_count: int,
    ) -> ShippingOptions:
        """Build the shipping choices offered for an address.

        Args:
            enabled: Whether shipping is enabled for the store.
            zones: All configured zones.
            methods: Configured methods; filtered to the matched zone.
            country: Address country.
            state: Address state.
            zip_code: Address zip.
            subtotal: Cart subtotal (negative treated as zero).
            item_count: Cart unit count (negative treated as zero).

        Returns:
            The options payload.
        """
        if not enabled:
            return ShippingOptions(enabled=False)

        subtotal = max(Decimal("0"), to_decimal(subtotal))
        item_count = max(0, int(item_count or 0))

        active_zones = self._sorted(zones)
        zone = self.resolve_zone(active_zones, country, state, zip_code)
        if zone is None:
            return ShippingOptions(
                enabled=True,
                use_zero_shipping=True,
                message=NO_ZONES_MESSAGE if not active_zones else NO_MATCH_MESSAGE,
            )

        zone_methods = sorted(
            (m for m in methods if m.zone_id == zone.id and m.is_active),
            key=lambda m: m.sort_order,
        )
        if not zone_methods:
            return ShippingOptions(
                enabled=True,
                zone=zone,
                use_zero_shipping=True,
                message=NO_METHODS_MESSAGE,
            )

        return ShippingOptions(
            enabled=True,
            zone=zone,
            quotes=[
                ShippingQuote(method=m, amount=self.quote(m, subtotal, item_count))
                for m in zone_methods
            ],
        )
