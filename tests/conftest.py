"""Shared fixtures for storefront tests."""

from unittest.mock import MagicMock

import pytest

from storefront.application.fulfillment_service import OrderFulfillmentOrchestrator
from storefront.application.inventory_service import InventoryLedger
from storefront.infrastructure.cache import ProductCache
from storefront.infrastructure.notifications import NotificationDispatcher
from storefront.infrastructure.repositories import Repositories, create_memory_repositories


@pytest.fixture
def repos() -> Repositories:
    """Fresh in-memory repositories."""
    return create_memory_repositories()


@pytest.fixture
def dispatcher() -> MagicMock:
    """Notification dispatcher that records dispatches instead of sending."""
    return MagicMock(spec=NotificationDispatcher)


@pytest.fixture
def cache() -> ProductCache:
    """Disabled product cache."""
    return ProductCache(redis_url="")


@pytest.fixture
def ledger(repos: Repositories, cache: ProductCache) -> InventoryLedger:
    return InventoryLedger(repositories=repos, cache=cache)


@pytest.fixture
def orchestrator(
    repos: Repositories,
    ledger: InventoryLedger,
    dispatcher: MagicMock,
) -> OrderFulfillmentOrchestrator:
    """Orchestrator wired to in-memory collaborators."""
    return OrderFulfillmentOrchestrator(
        repositories=repos,
        ledger=ledger,
        dispatcher=dispatcher,
    )


@pytest.fixture
def shipping_address() -> dict[str, str]:
    """A complete Mumbai shipping address."""
    return {
        "name": "Asha Rao",
        "address": "12 MG Road",
        "city": "Mumbai",
        "state": "MH",
        "zip": "400001",
        "phone": "+919800000001",
        "country": "IN",
    }
