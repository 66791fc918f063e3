"""
Inventory Sync Tests - Facade Tests.

End-to-end tests for InventoryClient over an ``httpx.MockTransport`` that
plays the inventory API, covering session restore, automatic product loading,
logout and expiry handling.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from inventory_sync.api_client import InventoryApiClient
from inventory_sync.client import InventoryClient
from inventory_sync.credential_store import CredentialStore, MemoryKeyValueStore
from inventory_sync.models import FilterSpec, ProductDraft, SessionStatus
from inventory_sync.notifier import RecordingNotifier, Severity


class FakeInventoryServer:
    """Minimal in-memory stand-in for the inventory API."""

    def __init__(self, user: Dict[str, Any], valid_token: str = "good-token") -> None:
        self.user = user
        self.valid_token = valid_token
        self.products: List[Dict[str, Any]] = [
            {"_id": "a", "name": "Anvil", "description": "Heavy", "category": "Tools", "price": 10, "quantity": 2},
            {"_id": "b", "name": "Bolt", "description": "M8 bolt", "category": "Parts", "price": 5, "quantity": 10},
        ]
        self.next_id = 1
        self.requests: List[httpx.Request] = []

    def _authorized(self, request: httpx.Request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {self.valid_token}"

    def _listing(self, request: httpx.Request) -> Dict[str, Any]:
        items = self.products
        search = request.url.params.get("search")
        if search:
            items = [item for item in items if search.lower() in item["name"].lower()]
        return {
            "success": True,
            "count": len(items),
            "totalValue": sum(item["price"] * item["quantity"] for item in items),
            "lowStockCount": sum(1 for item in items if item["quantity"] <= 5),
            "data": items,
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/auth/login":
            body = json.loads(request.content)
            if body.get("password") != "secret":
                return httpx.Response(401, json={"success": False, "message": "Invalid credentials"})
            return httpx.Response(200, json={"token": self.valid_token, "user": self.user})

        if not self._authorized(request):
            return httpx.Response(401, json={"success": False, "message": "Not authorized"})

        if path == "/api/auth/me":
            return httpx.Response(200, json={"success": True, "data": self.user})

        if path == "/api/products" and request.method == "GET":
            return httpx.Response(200, json=self._listing(request))

        if path == "/api/products" and request.method == "POST":
            body = json.loads(request.content)
            product = {"_id": f"new{self.next_id}", **body}
            self.next_id += 1
            self.products.insert(0, product)
            return httpx.Response(201, json={"success": True, "data": product})

        return httpx.Response(404, json={"success": False, "message": "Route not found"})


def build_client(
    server: FakeInventoryServer, token: Optional[str] = None
) -> InventoryClient:
    initial = {"token": token} if token else {}
    return InventoryClient(
        api=InventoryApiClient(
            base_url="http://inventory.test", transport=httpx.MockTransport(server)
        ),
        credentials=CredentialStore(MemoryKeyValueStore(initial), key="token"),
        notifier=RecordingNotifier(),
    )


@pytest.fixture
def server(mock_user_data: Dict[str, Any]) -> FakeInventoryServer:
    return FakeInventoryServer(mock_user_data)


@pytest.mark.asyncio
async def test_open_restores_session_and_loads_products(server: FakeInventoryServer) -> None:
    """
    Test that a persisted valid credential leads straight to a loaded store.
    """
    async with build_client(server, token="good-token") as inventory:
        assert inventory.session.status is SessionStatus.AUTHENTICATED
        assert [product.id for product in inventory.products.products] == ["a", "b"]
        assert inventory.products.stats.total_value == 70
        assert inventory.products.stats.low_stock_count == 1


@pytest.mark.asyncio
async def test_open_with_stale_credential(server: FakeInventoryServer) -> None:
    """
    Test that a rejected persisted credential is dropped and nothing is loaded.
    """
    inventory = build_client(server, token="expired")

    snapshot = await inventory.open()

    assert snapshot.status is SessionStatus.UNAUTHENTICATED
    assert inventory.session.principal is None
    assert inventory.products.products == ()
    assert len(server.requests) == 1
    await inventory.close()


@pytest.mark.asyncio
async def test_login_then_create(server: FakeInventoryServer) -> None:
    """
    Test login, automatic listing and creating a product.
    """
    inventory = build_client(server)
    await inventory.open()

    assert await inventory.login("ada@example.com", "secret") is True
    assert len(inventory.products.products) == 2

    handle = inventory.session.authenticated()
    created = await inventory.products.create(
        handle, ProductDraft(name="Widget", category="Tools", price="9.99", quantity=3)
    )

    assert created.id == "new1"
    assert inventory.products.products[0].id == "new1"
    assert len(inventory.products.products) == 3
    await inventory.close()


@pytest.mark.asyncio
async def test_failed_login_loads_nothing(server: FakeInventoryServer) -> None:
    inventory = build_client(server)
    await inventory.open()

    assert await inventory.login("ada@example.com", "wrong") is False

    assert inventory.session.status is SessionStatus.UNAUTHENTICATED
    assert inventory.products.products == ()
    assert isinstance(inventory.notifier, RecordingNotifier)
    assert inventory.notifier.last == (Severity.ERROR, "Invalid credentials")
    await inventory.close()


@pytest.mark.asyncio
async def test_logout_clears_store(server: FakeInventoryServer) -> None:
    inventory = build_client(server, token="good-token")
    await inventory.open()

    inventory.logout()

    assert inventory.session.status is SessionStatus.UNAUTHENTICATED
    assert inventory.products.products == ()
    assert inventory.api.credential is None
    await inventory.close()


@pytest.mark.asyncio
async def test_server_rejection_expires_session(server: FakeInventoryServer) -> None:
    """
    Test that a 401 on a product request marks the session invalid.
    """
    inventory = build_client(server, token="good-token")
    await inventory.open()
    before = inventory.products.products
    server.valid_token = "rotated"

    applied = await inventory.products.fetch_all(inventory.session.authenticated())

    assert applied is False
    assert inventory.session.status is SessionStatus.INVALID
    assert inventory.products.products == before
    await inventory.close()


@pytest.mark.asyncio
async def test_server_side_filtering_and_local_preview(server: FakeInventoryServer) -> None:
    """
    Test that the server filters listings and visible_products previews locally.
    """
    inventory = build_client(server, token="good-token")
    await inventory.open()
    filters = FilterSpec(search_term="bol")

    preview = inventory.visible_products(filters)
    await inventory.products.fetch_all(inventory.session.authenticated(), filters)

    assert [product.id for product in preview] == ["b"]
    assert [product.id for product in inventory.products.products] == ["b"]
    assert server.requests[-1].url.params["search"] == "bol"
    await inventory.close()
