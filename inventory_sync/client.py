"""
High-level entry point wiring the API client, session manager and product store.

Typical use::

    async with InventoryClient() as inventory:
        if not inventory.session.is_authenticated:
            await inventory.login("admin@example.com", "secret")
        handle = inventory.session.authenticated()
        await inventory.products.create(handle, ProductDraft(...))
"""

from typing import Any, List, Mapping, Optional

from .api_client import InventoryApiClient
from .credential_store import CredentialStore
from .logging_config import get_logger
from .models import FilterSpec, Product
from .notifier import LoggingNotifier, Notifier
from .queries import filter_products
from .session import SessionManager, SessionSnapshot
from .store import ProductStore

logger = get_logger(__name__)


class InventoryClient:
    """
    Session and product store sharing one API client.

    The product list is loaded automatically whenever a session becomes
    authenticated through ``open``, ``login`` or ``register``, and cleared
    on ``logout``.

    Attributes:
        api: Shared API client
        session: Session manager
        products: Product store
    """

    def __init__(
        self,
        api: Optional[InventoryApiClient] = None,
        credentials: Optional[CredentialStore] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.api = api or InventoryApiClient()
        self.notifier = notifier or LoggingNotifier()
        self.session = SessionManager(
            self.api,
            credentials or CredentialStore.from_settings(),
            self.notifier,
        )
        self.products = ProductStore(
            self.api,
            self.notifier,
            on_auth_failure=self.session.expire,
        )

    async def __aenter__(self) -> "InventoryClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def open(self) -> SessionSnapshot:
        """Resolve the persisted session and, if authenticated, load products."""
        snapshot = await self.session.initialize()
        if snapshot.is_authenticated:
            await self.products.fetch_all(self.session.authenticated())
        return snapshot

    async def login(self, identifier: str, secret: str) -> bool:
        if not await self.session.login(identifier, secret):
            return False
        await self._load_after_authentication()
        return True

    async def register(self, profile: Mapping[str, Any]) -> bool:
        if not await self.session.register(profile):
            return False
        await self._load_after_authentication()
        return True

    async def _load_after_authentication(self) -> None:
        # A fresh principal must not see the previous principal's products
        self.products.reset()
        await self.products.fetch_all(self.session.authenticated())

    def logout(self) -> None:
        self.session.logout()
        self.products.reset()

    def visible_products(self, filters: Optional[FilterSpec] = None) -> List[Product]:
        """
        Cached products narrowed by ``filters`` without a server round-trip.

        Meant for immediate feedback while a filtered ``fetch_all`` is in
        flight; the server listing stays authoritative once it arrives.
        """
        return filter_products(self.products.products, filters)

    async def close(self) -> None:
        await self.api.close()
        logger.debug("Inventory client closed")
