"""Tests for the order status state machine."""

from decimal import Decimal

import pytest

from storefront.domain.entities import Order, OrderItem
from storefront.domain.exceptions import InvalidStateTransitionError
from storefront.domain.state_machines import OrderStatus
from storefront.domain.value_objects import PaymentMethod, PaymentStatus, ShippingAddress


def make_order(status: OrderStatus = OrderStatus.PENDING) -> Order:
    item = OrderItem(product_id="p1", name="Mug", price=Decimal("100"), quantity=2)
    return Order(
        id="order-1",
        user_id="user-1",
        items=[item],
        subtotal=Decimal("200"),
        total=Decimal("200"),
        shipping_address=ShippingAddress(name="Asha"),
        payment_method=PaymentMethod.COD,
        payment_status=PaymentStatus.COD,
        status=status,
    )


class TestOrderStatus:
    """Transition table."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.CONFIRMED, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        ],
    )
    def test_valid_transitions(self, current: OrderStatus, target: OrderStatus) -> None:
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.PENDING, OrderStatus.DELIVERED),
            (OrderStatus.SHIPPED, OrderStatus.CONFIRMED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.PENDING),
        ],
    )
    def test_invalid_transitions(self, current: OrderStatus, target: OrderStatus) -> None:
        assert not current.can_transition_to(target)

    def test_allowed_transitions_in_declaration_order(self) -> None:
        assert OrderStatus.PENDING.allowed_transitions() == [
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
        ]


class TestOrderTransition:
    """Order.transition_to."""

    def test_transition_updates_status_and_timestamp(self) -> None:
        order = make_order()
        before = order.updated_at
        order.transition_to(OrderStatus.CONFIRMED)
        assert order.status == OrderStatus.CONFIRMED
        assert order.updated_at >= before

    def test_invalid_transition_raises_with_details(self) -> None:
        order = make_order(OrderStatus.DELIVERED)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            order.transition_to(OrderStatus.CANCELLED)
        details = exc_info.value.details
        assert details["current_state"] == "delivered"
        assert details["target_state"] == "cancelled"
        assert details["allowed_transitions"] == []
        assert order.status == OrderStatus.DELIVERED

    def test_item_count_sums_quantities(self) -> None:
        assert make_order().item_count == 2
