"""Abandoned cart recovery.

Periodic job (triggered over HTTP by an external cron) that reminds
users about carts left idle for a day. Each cart is reminded at most
once; the marker is cleared only when the cart is rebuilt elsewhere.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from storefront.domain.base import utcnow
from storefront.domain.store_config import NotificationConfig
from storefront.domain.value_objects import NotificationType
from storefront.infrastructure.notifications import (
    NotificationDispatcher,
    cart_url_for,
    get_notification_dispatcher,
)
from storefront.infrastructure.repositories import Repositories, get_repositories

logger = structlog.get_logger()

ABANDONED_AFTER = timedelta(hours=24)


@dataclass
class RecoveryRunResult:
    """Outcome of one recovery run."""

    sent: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


class AbandonedCartRecovery:
    """Finds idle carts and sends ``abandoned_cart`` notifications."""

    def __init__(
        self,
        repositories: Repositories | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.repos = repositories or get_repositories()
        self.dispatcher = dispatcher or get_notification_dispatcher()

    async def run(self, now: datetime | None = None) -> RecoveryRunResult:
        """Run one recovery pass.

        Args:
            now: Current time (defaults to the clock).

        Returns:
            Counts of reminded and skipped carts, plus per-cart errors.
        """
        result = RecoveryRunResult()
        store = await self.repos.settings.get()
        if not store.abandoned_cart_enabled:
            return result

        now = now or utcnow()
        config = NotificationConfig.from_settings(store)
        base_url = (store.site_url or "").strip().rstrip("/")
        cart_url = cart_url_for(base_url)

        carts = await self.repos.carts.list_abandoned(now - ABANDONED_AFTER)
        for cart in carts:
            customer = await self.repos.customers.get(cart.user_id)
            email = (customer.email or "").strip() if customer else ""
            if not email:
                result.skipped += 1
                continue
            try:
                self.dispatcher.dispatch(
                    NotificationType.ABANDONED_CART,
                    config,
                    email=email,
                    phone=customer.phone or None,
                    data={
                        "userName": customer.name or "Customer",
                        "cartUrl": cart_url,
                        "siteUrl": base_url,
                    },
                )
                await self.repos.carts.mark_recovery_sent(cart.id, now)
                result.sent += 1
            except Exception as e:
                logger.error("abandoned_cart_reminder_failed", cart_id=cart.id, error=str(e))
                result.errors.append(f"Cart {cart.id}: {e}")

        logger.info(
            "abandoned_cart_run_completed",
            sent=result.sent,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result
