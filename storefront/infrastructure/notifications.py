"""Multi-channel customer notifications.

Best-effort delivery over email (SMTP), SMS and WhatsApp (Twilio-style
messages API). ``NotificationDispatcher.dispatch`` never blocks the
caller: it spawns one background task per notification, keeps a
reference until the task finishes and drains the outcome into the log.
There are no retries.
"""

import asyncio
import html
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any

import aiosmtplib
import httpx
import structlog

from storefront.domain.store_config import (
    EmailChannelConfig,
    MessagingChannelConfig,
    NotificationConfig,
)
from storefront.domain.value_objects import NotificationChannel, NotificationType
from storefront.infrastructure.config import settings

logger = structlog.get_logger()


class ChannelError(Exception):
    """A channel failed to deliver a message."""

    def __init__(self, channel: NotificationChannel, message: str) -> None:
        self.channel = channel
        self.message = message
        super().__init__(f"[{channel.value}] {message}")


# ============================================================================
# Templates
# ============================================================================


def render_subject(notification_type: NotificationType, site_name: str) -> str:
    """Subject line for a notification type."""
    subjects = {
        NotificationType.SIGNUP: f"Welcome to {site_name}",
        NotificationType.ORDER_PLACED: f"Order Confirmation - {site_name}",
        NotificationType.ORDER_STATUS: f"Order Update - {site_name}",
        NotificationType.ABANDONED_CART: f"You left items in your cart - {site_name}",
    }
    return subjects.get(notification_type, f"{site_name} - Notification")


def render_body(notification_type: NotificationType, site_name: str, data: dict[str, Any]) -> str:
    """Plain-text body for a notification type.

    Args:
        notification_type: Template to use.
        site_name: Store name.
        data: Template values (``userName``, ``orderId``, ``total``,
            ``currency``, ``newStatus``, ``cartUrl``, ``siteUrl``).

    Returns:
        Message body.
    """
    if notification_type == NotificationType.SIGNUP:
        name = data.get("userName") or "User"
        return f"Hi {name}, welcome to {site_name}! Thank you for signing up."
    if notification_type == NotificationType.ORDER_PLACED:
        order_id = data.get("orderId") or "N/A"
        total = data.get("total") if data.get("total") is not None else ""
        currency = data.get("currency") or "INR"
        return (
            f"Your order #{order_id} has been placed successfully. "
            f"Total: {currency} {total}. Thank you for shopping with {site_name}!"
        )
    if notification_type == NotificationType.ORDER_STATUS:
        order_id = data.get("orderId") or "N/A"
        return f"Your order #{order_id} status has been updated to: {data.get('newStatus') or ''}."
    if notification_type == NotificationType.ABANDONED_CART:
        name = data.get("userName") or "Customer"
        cart_url = data.get("cartUrl") or cart_url_for(data.get("siteUrl") or "")
        return (
            f"Hi {name}, you left some items in your cart at {site_name}. "
            f"Complete your purchase: {cart_url}"
        )
    return "You have a new notification."


def cart_url_for(site_url: str) -> str:
    """Storefront cart link; relative when the site URL is unknown."""
    site_url = (site_url or "").rstrip("/")
    return f"{site_url}/cart" if site_url else "/cart"


# ============================================================================
# Channels
# ============================================================================


class EmailChannel:
    """SMTP email delivery."""

    channel = NotificationChannel.EMAIL

    def __init__(self, config: EmailChannelConfig, timeout: float | None = None) -> None:
        self.config = config
        self.timeout = settings.http_timeout_seconds if timeout is None else timeout

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    async def send(self, recipient: str, subject: str, body: str) -> None:
        """Send one email.

        Raises:
            ChannelError: On SMTP failure.
        """
        message = EmailMessage()
        message["From"] = self.config.sender
        message["To"] = recipient
        message["Subject"] = subject or "Notification"
        message.set_content(body)
        message.add_alternative(f"<p>{html.escape(body).replace(chr(10), '<br>')}</p>", subtype="html")

        auth = {}
        if self.config.smtp_user and self.config.smtp_pass:
            auth = {"username": self.config.smtp_user, "password": self.config.smtp_pass}
        try:
            await aiosmtplib.send(
                message,
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                use_tls=self.config.smtp_secure,
                timeout=self.timeout,
                **auth,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise ChannelError(self.channel, str(e)) from e


class TwilioChannel:
    """Twilio-style messages API (SMS and WhatsApp share the endpoint)."""

    channel = NotificationChannel.SMS

    def __init__(
        self,
        config: MessagingChannelConfig,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.config.enabled and bool(self.config.api_key) and bool(self.sender())

    def sender(self) -> str:
        return self.config.from_number

    def address(self, phone: str) -> str:
        return phone

    async def send(self, recipient: str, subject: str, body: str) -> None:
        """Send one message.

        Raises:
            ChannelError: On transport failure or non-2xx response.
        """
        url = f"{settings.twilio_api_url}/Accounts/{self.config.api_key}/Messages.json"
        form = {"To": self.address(recipient), "From": self.sender(), "Body": body or ""}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url, data=form, auth=(self.config.api_key, self.config.api_secret)
                )
        except httpx.HTTPError as e:
            raise ChannelError(self.channel, str(e)) from e
        if response.status_code >= 400:
            raise ChannelError(self.channel, f"{response.status_code} {response.text[:200]}")


class SmsChannel(TwilioChannel):
    """SMS delivery."""

    channel = NotificationChannel.SMS


class WhatsAppChannel(TwilioChannel):
    """WhatsApp delivery; addresses carry the ``whatsapp:`` prefix."""

    channel = NotificationChannel.WHATSAPP

    def sender(self) -> str:
        number = self.config.phone_number_id or self.config.from_number
        return f"whatsapp:{number}" if number else ""

    def address(self, phone: str) -> str:
        if phone.startswith("whatsapp:"):
            return phone
        return f"whatsapp:{phone.lstrip('+')}"


# ============================================================================
# Dispatcher
# ============================================================================


@dataclass
class DeliverySummary:
    """Per-channel outcome of one notification."""

    notification_type: NotificationType
    sent: list[NotificationChannel] = field(default_factory=list)
    skipped: list[NotificationChannel] = field(default_factory=list)
    failed: list[NotificationChannel] = field(default_factory=list)


class NotificationDispatcher:
    """Spawns and tracks fire-and-forget notification deliveries."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            transport: Custom HTTP transport for messaging channels (for testing).
            timeout: Per-channel timeout in seconds.
        """
        self._transport = transport
        self._timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(
        self,
        notification_type: NotificationType,
        config: NotificationConfig,
        email: str | None = None,
        phone: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> asyncio.Task | None:
        """Schedule a notification and return immediately.

        Nothing is scheduled when neither recipient is present.

        Args:
            notification_type: Template to send.
            config: Channel settings snapshot.
            email: Recipient email.
            phone: Recipient phone (E.164).
            data: Template values.

        Returns:
            The spawned task, or None.
        """
        if not email and not phone:
            return None
        task = asyncio.create_task(
            self.deliver(notification_type, config, email=email, phone=phone, data=data or {})
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("notification_cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error("notification_task_failed", error=str(error), error_type=type(error).__name__)
            return
        summary: DeliverySummary = task.result()
        logger.info(
            "notification_delivered",
            type=summary.notification_type.value,
            sent=[c.value for c in summary.sent],
            skipped=[c.value for c in summary.skipped],
            failed=[c.value for c in summary.failed],
        )

    def _channels(self, config: NotificationConfig) -> list[EmailChannel | TwilioChannel]:
        return [
            EmailChannel(config.email, timeout=self._timeout),
            SmsChannel(config.sms, timeout=self._timeout, transport=self._transport),
            WhatsAppChannel(config.whatsapp, timeout=self._timeout, transport=self._transport),
        ]

    async def deliver(
        self,
        notification_type: NotificationType,
        config: NotificationConfig,
        email: str | None = None,
        phone: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> DeliverySummary:
        """Render and send on every usable channel concurrently.

        Disabled or unconfigured channels, and channels whose recipient
        is absent, are skipped. One channel's failure never affects
        another.

        Returns:
            Delivery summary.
        """
        data = data or {}
        site_name = config.site_name
        subject = render_subject(notification_type, site_name)
        body = render_body(notification_type, site_name, data)
        summary = DeliverySummary(notification_type=notification_type)

        sends = []
        for channel in self._channels(config):
            recipient = email if channel.channel == NotificationChannel.EMAIL else phone
            if not recipient or not channel.is_configured:
                summary.skipped.append(channel.channel)
                continue
            sends.append((channel, channel.send(recipient, subject, body)))

        results = await asyncio.gather(*(coro for _, coro in sends), return_exceptions=True)
        for (channel, _), result in zip(sends, results):
            if isinstance(result, Exception):
                summary.failed.append(channel.channel)
                logger.warning(
                    "notification_channel_failed",
                    channel=channel.channel.value,
                    type=notification_type.value,
                    error=str(result),
                )
            else:
                summary.sent.append(channel.channel)
        return summary

    async def wait_idle(self) -> None:
        """Wait for every outstanding delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Global dispatcher instance
_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get notification dispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


def reset_notification_dispatcher() -> None:
    """Reset notification dispatcher (for testing)."""
    global _dispatcher
    _dispatcher = None
