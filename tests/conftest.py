"""
Inventory Sync Tests - Test Configuration.

Provides pytest fixtures shared across the test modules: sample API payloads,
an in-memory credential store, a recording notifier and a mocked API client.
"""

from typing import Any, Callable, Dict
from unittest.mock import MagicMock

import pytest

from inventory_sync.api_client import InventoryApiClient
from inventory_sync.credential_store import CredentialStore, MemoryKeyValueStore
from inventory_sync.models import Principal, Product
from inventory_sync.notifier import RecordingNotifier
from inventory_sync.session import AuthenticatedSession, SessionManager
from inventory_sync.store import ProductStore


@pytest.fixture
def mock_user_data() -> Dict[str, Any]:
    """
    Sample user record as returned by the auth endpoints.

    Returns:
        Dictionary with wire field names
    """
    return {
        "_id": "u1",
        "name": "Ada Admin",
        "email": "ada@example.com",
        "role": "admin",
    }


@pytest.fixture
def principal(mock_user_data: Dict[str, Any]) -> Principal:
    return Principal.model_validate(mock_user_data)


@pytest.fixture
def make_product() -> Callable[..., Product]:
    """
    Factory for products with sensible defaults.

    Returns:
        Callable accepting field overrides
    """

    def factory(**overrides: Any) -> Product:
        fields: Dict[str, Any] = {
            "id": "p0",
            "name": "Hammer",
            "description": "Claw hammer",
            "category": "Tools",
            "price": "12.50",
            "quantity": 8,
        }
        fields.update(overrides)
        return Product.model_validate(fields)

    return factory


@pytest.fixture
def mock_listing_body() -> Dict[str, Any]:
    """
    Sample ``GET /api/products`` body with server-reported aggregates.

    Returns:
        Dictionary matching the listing wire format
    """
    return {
        "success": True,
        "count": 2,
        "totalValue": 70,
        "lowStockCount": 1,
        "data": [
            {"_id": "a", "name": "A", "description": "", "category": "Tools", "price": 10, "quantity": 2},
            {"_id": "b", "name": "B", "description": "", "category": "Parts", "price": 5, "quantity": 10},
        ],
    }


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def key_value_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def credentials(key_value_store: MemoryKeyValueStore) -> CredentialStore:
    return CredentialStore(key_value_store, key="token")


@pytest.fixture
def fake_api() -> MagicMock:
    """
    Mocked API client.

    Coroutine methods of ``InventoryApiClient`` become ``AsyncMock`` through
    the spec, so tests configure ``return_value`` or ``side_effect`` on them.

    Returns:
        MagicMock shaped like InventoryApiClient
    """
    return MagicMock(spec=InventoryApiClient)


@pytest.fixture
def session_manager(
    fake_api: MagicMock, credentials: CredentialStore, notifier: RecordingNotifier
) -> SessionManager:
    return SessionManager(fake_api, credentials, notifier)


@pytest.fixture
def store(fake_api: MagicMock, notifier: RecordingNotifier) -> ProductStore:
    return ProductStore(fake_api, notifier, low_stock_threshold=5)


@pytest.fixture
def authenticated_session(
    fake_api: MagicMock,
    session_manager: SessionManager,
    credentials: CredentialStore,
    principal: Principal,
) -> Callable[[], Any]:
    """
    Coroutine factory that brings ``session_manager`` to AUTHENTICATED.

    Returns:
        Async callable returning an active AuthenticatedSession handle
    """

    async def authenticate() -> AuthenticatedSession:
        credentials.save("stored-token")
        fake_api.validate_session.return_value = principal
        await session_manager.initialize()
        fake_api.reset_mock()
        return session_manager.authenticated()

    return authenticate


def pytest_configure(config: Any) -> None:
    """
    Configure pytest with custom markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
