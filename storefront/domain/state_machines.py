"""State machines for domain entities.

Deterministic state machine that defines valid order status
transitions. Orders are created ``pending`` and moved forward only
by admin actions.
"""

from enum import Enum


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        PENDING ─────────────────────────────────────► CANCELLED
          │                                              ▲
          │ confirm                                      │
          ▼                                              │
        CONFIRMED ────────────────────────────────────►──┤
          │                                              │
          │ ship                                         │
          ▼                                              │
        SHIPPED ──────────────────────────────────────►──┘
          │
          │ deliver
          ▼
        DELIVERED
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states, in declaration order.

        Returns:
            List of states that can be transitioned to.
        """
        targets = _ORDER_TRANSITIONS.get(self, set())
        return [status for status in OrderStatus if status in targets]


# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal state
    OrderStatus.CANCELLED: set(),  # Terminal state
}
