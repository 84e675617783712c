"""Shared fixtures for API tests."""

import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from storefront.application.fulfillment_service import reset_fulfillment_orchestrator
from storefront.application.inventory_service import reset_inventory_ledger
from storefront.application.order_service import reset_order_service
from storefront.application.payment_service import reset_payment_service
from storefront.application.pricing_service import reset_pricing_service
from storefront.infrastructure import notifications
from storefront.infrastructure.cache import reset_product_cache
from storefront.infrastructure.notifications import NotificationDispatcher
from storefront.infrastructure.repositories import (
    Repositories,
    get_repositories,
    reset_repositories,
)
from storefront.infrastructure.seed import seed_demo_store
from storefront.main import app


def reset_singletons() -> None:
    reset_fulfillment_orchestrator()
    reset_order_service()
    reset_inventory_ledger()
    reset_payment_service()
    reset_pricing_service()
    reset_product_cache()
    reset_repositories()


@pytest.fixture(autouse=True)
def fresh_store(monkeypatch: pytest.MonkeyPatch):
    """Empty in-memory store and a recording dispatcher for every test."""
    reset_singletons()
    monkeypatch.setattr(notifications, "_dispatcher", MagicMock(spec=NotificationDispatcher))
    yield
    app.dependency_overrides.clear()
    reset_singletons()


@pytest.fixture
def dispatcher() -> MagicMock:
    """The dispatcher the services pick up."""
    return notifications.get_notification_dispatcher()


@pytest.fixture
def store() -> Repositories:
    """Global repositories seeded with the demo store."""
    repos = get_repositories()
    asyncio.run(seed_demo_store(repos))
    return repos


@pytest.fixture
def client() -> TestClient:
    """Create test client without caller headers."""
    return TestClient(app)


@pytest.fixture
def user_headers() -> dict[str, str]:
    """Headers of a signed-in shopper."""
    return {"X-User-Id": "user-1", "X-User-Email": "asha@example.com"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Headers of a store admin."""
    return {"X-User-Id": "admin-1", "X-User-Email": "ops@example.com", "X-User-Role": "admin"}
