"""Order application service.

Customer order history and admin status transitions. Orders are
created only by the fulfillment orchestrator; afterwards only
``status`` changes, through the order state machine.
"""

import structlog

from storefront.domain.entities import Order
from storefront.domain.exceptions import OrderNotFoundError, ValidationError
from storefront.domain.state_machines import OrderStatus
from storefront.domain.store_config import NotificationConfig
from storefront.domain.value_objects import NotificationType
from storefront.infrastructure.notifications import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from storefront.infrastructure.repositories import Repositories, get_repositories

logger = structlog.get_logger()


class OrderService:
    """Application service for reading orders and moving their status."""

    def __init__(
        self,
        repositories: Repositories | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        """Initialize service.

        Args:
            repositories: Repository bundle (uses global if not provided).
            dispatcher: Notification dispatcher (uses global if not provided).
        """
        self.repos = repositories or get_repositories()
        self.dispatcher = dispatcher or get_notification_dispatcher()

    async def list_for_user(self, user_id: str) -> list[Order]:
        """A user's orders, newest first."""
        return await self.repos.orders.list_by_user(user_id)

    async def get_for_user(self, order_id: str, user_id: str) -> Order:
        """Get one of the user's orders.

        Raises:
            OrderNotFoundError: Unknown id or owned by someone else.
        """
        order = await self.repos.orders.get(order_id)
        if order is None or order.user_id != user_id:
            raise OrderNotFoundError(order_id)
        return order

    async def update_status(self, order_id: str, status: str) -> Order:
        """Move an order to a new status and notify its owner.

        Same-status updates are no-ops and send nothing.

        Args:
            order_id: Order to update.
            status: Target status name.

        Returns:
            The updated order.

        Raises:
            ValidationError: Unknown status name.
            OrderNotFoundError: Unknown order.
            InvalidStateTransitionError: Transition not allowed.
        """
        try:
            target = OrderStatus((status or "").strip().lower())
        except ValueError as e:
            raise ValidationError(
                "Invalid status",
                details={"status": status, "allowed": [s.value for s in OrderStatus]},
            ) from e

        order = await self.repos.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status == target:
            return order

        previous = order.status
        order.transition_to(target)
        await self.repos.orders.save(order)

        logger.info(
            "order_status_updated",
            order_id=order.id,
            from_status=previous.value,
            to_status=target.value,
        )

        owner = await self.repos.customers.get(order.user_id)
        store = await self.repos.settings.get()
        self.dispatcher.dispatch(
            NotificationType.ORDER_STATUS,
            NotificationConfig.from_settings(store),
            email=owner.email if owner and owner.email else None,
            phone=order.shipping_address.phone or (owner.phone if owner else None) or None,
            data={"orderId": order.id, "newStatus": target.value},
        )
        return order


# Global service instance
_order_service: OrderService | None = None


def get_order_service() -> OrderService:
    """Get order service singleton."""
    global _order_service
    if _order_service is None:
        _order_service = OrderService()
    return _order_service


def reset_order_service() -> None:
    """Reset order service (for testing)."""
    global _order_service
    _order_service = None
