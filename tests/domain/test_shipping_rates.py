"""Tests for shipping zone matching and rate computation."""

from decimal import Decimal

import pytest

from storefront.domain.entities import ShippingMethod, ShippingZone
from storefront.domain.shipping import (
    NO_MATCH_MESSAGE,
    NO_METHODS_MESSAGE,
    NO_ZONES_MESSAGE,
    ShippingRateResolver,
)
from storefront.domain.value_objects import RateType


@pytest.fixture
def resolver() -> ShippingRateResolver:
    return ShippingRateResolver()


def zone(zone_id: str, **kwargs) -> ShippingZone:
    kwargs.setdefault("name", zone_id)
    return ShippingZone(id=zone_id, **kwargs)


def method(method_id: str, zone_id: str, **kwargs) -> ShippingMethod:
    kwargs.setdefault("name", method_id)
    return ShippingMethod(id=method_id, zone_id=zone_id, **kwargs)


class TestZoneMatching:
    """Zone filters and ordering."""

    def test_empty_country_list_matches_everything(self, resolver: ShippingRateResolver) -> None:
        assert resolver.zone_matches(zone("z"), "US", "", "")

    def test_wildcard_country(self, resolver: ShippingRateResolver) -> None:
        assert resolver.zone_matches(zone("z", country_codes=["*"]), "FR", "", "")

    def test_country_compared_case_insensitively(self, resolver: ShippingRateResolver) -> None:
        assert resolver.zone_matches(zone("z", country_codes=["in"]), " IN ", "", "")
        assert not resolver.zone_matches(zone("z", country_codes=["IN"]), "US", "", "")

    def test_state_filter(self, resolver: ShippingRateResolver) -> None:
        maharashtra = zone("z", country_codes=["IN"], state_codes=["MH"])
        assert resolver.zone_matches(maharashtra, "IN", "mh", "")
        assert not resolver.zone_matches(maharashtra, "IN", "KA", "")

    def test_zip_prefix_filter(self, resolver: ShippingRateResolver) -> None:
        mumbai = zone("z", zip_prefixes=["40"])
        assert resolver.zone_matches(mumbai, "IN", "", "400001")
        assert not resolver.zone_matches(mumbai, "IN", "", "560001")

    def test_zip_prefix_ignored_without_zip(self, resolver: ShippingRateResolver) -> None:
        assert resolver.zone_matches(zone("z", zip_prefixes=["40"]), "IN", "", "")

    def test_first_zone_by_sort_order_wins(self, resolver: ShippingRateResolver) -> None:
        """Both zones match; the lower sort order is chosen whatever the list order."""
        broad = zone("broad", country_codes=["IN"], sort_order=5)
        narrow = zone("narrow", country_codes=["IN"], zip_prefixes=["40"], sort_order=1)
        assert resolver.resolve_zone([broad, narrow], "IN", "", "400001") is narrow
        assert resolver.resolve_zone([broad, narrow], "IN", "", "110001") is broad

    def test_inactive_zones_skipped(self, resolver: ShippingRateResolver) -> None:
        off = zone("off", country_codes=["IN"], sort_order=0, is_active=False)
        on = zone("on", country_codes=["IN"], sort_order=1)
        assert resolver.resolve_zone([off, on], "IN") is on

    def test_no_match(self, resolver: ShippingRateResolver) -> None:
        assert resolver.resolve_zone([zone("z", country_codes=["IN"])], "US") is None


class TestQuote:
    """Method pricing."""

    def test_per_item_below_free_threshold(self, resolver: ShippingRateResolver) -> None:
        """Per-item 20 for 3 units on a 100 order (free from 500) costs 60."""
        m = method("m", "z", rate_type=RateType.PER_ITEM, rate_value=Decimal("20"), min_order_for_free=Decimal("500"))
        assert resolver.quote(m, Decimal("100"), 3) == Decimal("60.00")

    def test_free_at_threshold(self, resolver: ShippingRateResolver) -> None:
        m = method("m", "z", rate_type=RateType.PER_ITEM, rate_value=Decimal("20"), min_order_for_free=Decimal("500"))
        assert resolver.quote(m, Decimal("600"), 3) == Decimal("0.00")
        assert resolver.quote(m, Decimal("500"), 3) == Decimal("0.00")

    def test_zero_threshold_never_free(self, resolver: ShippingRateResolver) -> None:
        m = method("m", "z", rate_value=Decimal("49"))
        assert resolver.quote(m, Decimal("100000"), 1) == Decimal("49.00")

    @pytest.mark.parametrize("rate_type", [RateType.FLAT, RateType.PER_ORDER])
    def test_flat_rates_ignore_item_count(self, resolver: ShippingRateResolver, rate_type: RateType) -> None:
        m = method("m", "z", rate_type=rate_type, rate_value=Decimal("75"))
        assert resolver.quote(m, Decimal("10"), 1) == resolver.quote(m, Decimal("10"), 9) == Decimal("75.00")

    def test_per_item_is_linear_in_item_count(self, resolver: ShippingRateResolver) -> None:
        m = method("m", "z", rate_type=RateType.PER_ITEM, rate_value=Decimal("12.50"))
        for count in range(0, 6):
            assert resolver.quote(m, Decimal("1"), count) == Decimal("12.50") * count


class TestOptions:
    """Options payload for an address."""

    def test_disabled(self, resolver: ShippingRateResolver) -> None:
        options = resolver.options(False, [], [], "IN", "", "", Decimal("0"), 0)
        assert options.enabled is False
        assert options.quotes == []

    def test_no_zones_configured(self, resolver: ShippingRateResolver) -> None:
        options = resolver.options(True, [], [], "IN", "", "", Decimal("0"), 0)
        assert options.use_zero_shipping is True
        assert options.zone_matched is False
        assert options.message == NO_ZONES_MESSAGE

    def test_no_zone_matches(self, resolver: ShippingRateResolver) -> None:
        options = resolver.options(True, [zone("z", country_codes=["IN"])], [], "US", "", "", Decimal("0"), 0)
        assert options.message == NO_MATCH_MESSAGE
        assert options.use_zero_shipping is True

    def test_zone_without_methods(self, resolver: ShippingRateResolver) -> None:
        z = zone("z", country_codes=["IN"])
        options = resolver.options(True, [z], [method("m", "other")], "IN", "", "", Decimal("0"), 0)
        assert options.zone is z
        assert options.message == NO_METHODS_MESSAGE

    def test_methods_for_matched_zone_sorted_and_priced(self, resolver: ShippingRateResolver) -> None:
        z = zone("z", zip_prefixes=["40"])
        methods = [
            method("express", "z", rate_type=RateType.PER_ITEM, rate_value=Decimal("20"), sort_order=2),
            method("standard", "z", rate_value=Decimal("50"), min_order_for_free=Decimal("500"), sort_order=1),
            method("retired", "z", rate_value=Decimal("1"), is_active=False),
            method("elsewhere", "other", rate_value=Decimal("5")),
        ]
        options = resolver.options(True, [z], methods, "IN", "MH", "400001", Decimal("100"), 3)

        assert options.zone_matched is True
        assert options.use_zero_shipping is False
        assert [q.method.id for q in options.quotes] == ["standard", "express"]
        assert [q.amount for q in options.quotes] == [Decimal("50.00"), Decimal("60.00")]

    def test_negative_inputs_treated_as_zero(self, resolver: ShippingRateResolver) -> None:
        z = zone("z")
        m = method("m", "z", rate_type=RateType.PER_ITEM, rate_value=Decimal("10"))
        options = resolver.options(True, [z], [m], "IN", "", "", Decimal("-5"), -2)
        assert options.quotes[0].amount == Decimal("0.00")
