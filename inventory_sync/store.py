"""
Local product collection kept in sync with the inventory API.

``ProductStore`` holds the product list, the server-reported statistics and a
separate detail slot for the product being edited. Mutations are
confirm-then-apply: local state changes only after the server acknowledged
the request, and a failed request leaves every piece of state untouched.

State is published by swapping immutable values (tuples of frozen products,
frozen stats) in a single step after each awaited response, so a reader never
observes a half-applied update.
"""

from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from .api_client import InventoryApiClient, encode_draft
from .config import settings
from .exceptions import (
    AuthenticationFailure,
    InventoryClientError,
    ValidationFailure,
    user_message,
)
from .logging_config import get_logger, traced_operation
from .models import FilterSpec, InventoryStats, Product, ProductDraft
from .notifier import LoggingNotifier, Notifier, Severity, safe_notify
from .queries import build_query
from .session import AuthenticatedSession

logger = get_logger(__name__)

MISSING_FIELDS_MESSAGE = "Please fill in all required fields"
NEGATIVE_FIELDS_MESSAGE = "Price and quantity must not be negative"


class ProductStore:
    """
    Authoritative in-memory product collection for one client.

    Every operation takes an ``AuthenticatedSession`` handle and refuses
    inactive ones before any request is sent. List and detail fetches carry
    a generation number; a response that arrives after a newer request of
    the same kind was issued is discarded. A write the server confirms after
    the session ended or the store was reset is not applied locally.

    Attributes:
        low_stock_threshold: Quantity at or below which a product is low on stock
    """

    def __init__(
        self,
        api: InventoryApiClient,
        notifier: Optional[Notifier] = None,
        on_auth_failure: Optional[Callable[[str], None]] = None,
        low_stock_threshold: Optional[int] = None,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            api: Shared API client
            notifier: Receives outcome notifications
            on_auth_failure: Called with the server message when a request is
                rejected as unauthenticated, typically ``SessionManager.expire``
            low_stock_threshold: Defaults to ``LOW_STOCK_THRESHOLD``
        """
        self._api = api
        self._notifier = notifier or LoggingNotifier()
        self._on_auth_failure = on_auth_failure
        if low_stock_threshold is None:
            low_stock_threshold = settings.LOW_STOCK_THRESHOLD
        self.low_stock_threshold = low_stock_threshold

        self._products: Tuple[Product, ...] = ()
        self._stats = InventoryStats()
        self._stats_stale = False
        self._detail: Optional[Product] = None
        self._last_error: Optional[str] = None
        self._in_flight = 0
        self._list_generation = 0
        self._detail_generation = 0
        self._reset_generation = 0

    @property
    def products(self) -> Tuple[Product, ...]:
        return self._products

    @property
    def stats(self) -> InventoryStats:
        return self._stats

    @property
    def stats_stale(self) -> bool:
        """True once a local mutation happened after the last applied listing."""
        return self._stats_stale

    @property
    def detail(self) -> Optional[Product]:
        return self._detail

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def categories(self) -> List[str]:
        """Distinct categories in collection order."""
        seen: List[str] = []
        for product in self._products:
            if product.category not in seen:
                seen.append(product.category)
        return seen

    def get(self, product_id: str) -> Optional[Product]:
        for product in self._products:
            if product.id == product_id:
                return product
        return None

    def low_stock(self) -> List[Product]:
        return [
            product
            for product in self._products
            if product.is_low_stock(self.low_stock_threshold)
        ]

    def clear_detail(self) -> None:
        self._detail_generation += 1
        self._detail = None

    def reset(self) -> None:
        """Drop all local state; responses still in flight are discarded."""
        self._reset_generation += 1
        self._list_generation += 1
        self._detail_generation += 1
        self._products = ()
        self._stats = InventoryStats()
        self._stats_stale = False
        self._detail = None
        self._last_error = None

    @contextmanager
    def _tracking(self) -> Iterator[None]:
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    @staticmethod
    def _require(session: AuthenticatedSession) -> None:
        if not session.is_active:
            raise AuthenticationFailure(
                "Session is no longer active",
                details={"epoch": session.epoch},
            )

    def _outlived(
        self, session: AuthenticatedSession, reset_generation: int, product_id: str
    ) -> bool:
        """True if the session ended or the store was reset while a write was pending."""
        if session.is_active and reset_generation == self._reset_generation:
            return False
        logger.info(
            "Server confirmed write after session change; local state left as is",
            extra={"extra_fields": {"product_id": product_id}},
        )
        return True

    def _fail(self, error: InventoryClientError, fallback: str) -> None:
        message = user_message(error, fallback)
        self._last_error = message
        logger.warning(
            fallback,
            extra={
                "extra_fields": {
                    "error_type": type(error).__name__,
                    "error_message": error.message,
                    "status_code": getattr(error, "status_code", None),
                }
            },
        )
        safe_notify(self._notifier, Severity.ERROR, message)
        if isinstance(error, AuthenticationFailure) and error.status_code is not None:
            if self._on_auth_failure is not None:
                self._on_auth_failure(error.message)

    def _validate(self, draft: ProductDraft) -> None:
        missing = draft.missing_fields()
        if missing:
            error = ValidationFailure(MISSING_FIELDS_MESSAGE, fields=missing)
        else:
            negative = draft.negative_fields()
            if not negative:
                return
            error = ValidationFailure(NEGATIVE_FIELDS_MESSAGE, fields=negative)

        self._last_error = error.message
        logger.info(
            "Rejected incomplete product draft",
            extra={"extra_fields": {"fields": list(error.fields)}},
        )
        safe_notify(self._notifier, Severity.ERROR, error.message)
        raise error

    async def fetch_all(
        self, session: AuthenticatedSession, filters: Optional[FilterSpec] = None
    ) -> bool:
        """
        Replace the collection and statistics with a fresh server listing.

        Statistics are taken as reported by the server. On failure the
        previous collection and statistics are kept and nothing is retried.

        Args:
            session: Active session handle
            filters: Optional search, category and sort criteria

        Returns:
            True if the listing was applied; False on failure or when a newer
            listing request superseded this one
        """
        self._require(session)
        self._list_generation += 1
        generation = self._list_generation
        query = build_query(filters)

        with traced_operation("products.fetch_all"), self._tracking():
            try:
                listing = await self._api.list_entities(query)
            except InventoryClientError as error:
                if generation != self._list_generation:
                    logger.debug("Ignoring failure of superseded product listing")
                    return False
                self._fail(error, "Failed to fetch products")
                return False

            if generation != self._list_generation:
                logger.debug(
                    "Discarding stale product listing",
                    extra={
                        "extra_fields": {
                            "generation": generation,
                            "current_generation": self._list_generation,
                        }
                    },
                )
                return False

            self._products = listing.items
            self._stats = listing.stats
            self._stats_stale = False
            self._last_error = None

            logger.info(
                "Applied product listing",
                extra={
                    "extra_fields": {
                        "query": query,
                        "items": len(listing.items),
                        "count": listing.stats.count,
                        "low_stock_count": listing.stats.low_stock_count,
                    }
                },
            )
            return True

    async def fetch_one(
        self, session: AuthenticatedSession, product_id: str
    ) -> Optional[Product]:
        """
        Load one product into the detail slot.

        The collection is not touched. On failure the detail slot keeps its
        previous value.

        Returns:
            The loaded product, or None on failure or when superseded
        """
        self._require(session)
        self._detail_generation += 1
        generation = self._detail_generation

        with traced_operation("products.fetch_one"), self._tracking():
            try:
                product = await self._api.get_entity(product_id)
            except InventoryClientError as error:
                if generation != self._detail_generation:
                    return None
                self._fail(error, "Failed to fetch product details")
                return None

            if generation != self._detail_generation:
                logger.debug(
                    "Discarding stale product detail",
                    extra={"extra_fields": {"product_id": product_id}},
                )
                return None

            self._detail = product
            return product

    async def create(self, session: AuthenticatedSession, draft: ProductDraft) -> Product:
        """
        Create a product and prepend the server's copy to the collection.

        Args:
            session: Active session handle
            draft: Product fields; name, category and price are required

        Returns:
            The created product with its server-assigned id

        Raises:
            ValidationFailure: If the draft is incomplete; no request is sent
            InventoryClientError: If the server request failed
        """
        self._require(session)
        with traced_operation("products.create"):
            self._validate(draft)
            payload = encode_draft(draft)
            reset_generation = self._reset_generation

            with self._tracking():
                try:
                    product = await self._api.create_entity(payload)
                except InventoryClientError as error:
                    self._fail(error, "Failed to add product")
                    raise

            if self._outlived(session, reset_generation, product.id):
                return product

            self._products = (product,) + tuple(
                existing for existing in self._products if existing.id != product.id
            )
            self._stats_stale = True
            self._last_error = None

            logger.info(
                "Product created",
                extra={
                    "extra_fields": {
                        "product_id": product.id,
                        "multipart": draft.is_multipart,
                    }
                },
            )
            safe_notify(self._notifier, Severity.SUCCESS, "Product added successfully")
            return product

    async def update(
        self, session: AuthenticatedSession, product_id: str, draft: ProductDraft
    ) -> Product:
        """
        Replace a product's fields with the full draft.

        The server's copy replaces the local product in place. A product id
        that is not held locally is skipped without error.

        Raises:
            ValidationFailure: If the draft is incomplete; no request is sent
            InventoryClientError: If the server request failed
        """
        self._require(session)
        with traced_operation("products.update"):
            self._validate(draft)
            payload = encode_draft(draft)
            reset_generation = self._reset_generation

            with self._tracking():
                try:
                    product = await self._api.update_entity(product_id, payload)
                except InventoryClientError as error:
                    self._fail(error, "Failed to update product")
                    raise

            if self._outlived(session, reset_generation, product_id):
                return product

            if any(existing.id == product_id for existing in self._products):
                # Any other entry already holding the returned id is dropped
                self._products = tuple(
                    product if existing.id == product_id else existing
                    for existing in self._products
                    if existing.id == product_id or existing.id != product.id
                )
                self._stats_stale = True
            else:
                logger.debug(
                    "Updated product is not held locally",
                    extra={"extra_fields": {"product_id": product_id}},
                )

            if self._detail is not None and self._detail.id == product_id:
                self._detail = product
            self._last_error = None

            safe_notify(self._notifier, Severity.SUCCESS, "Product updated successfully")
            return product

    async def delete(self, session: AuthenticatedSession, product_id: str) -> None:
        """
        Delete a product, removing it locally once the server confirmed.

        Raises:
            InventoryClientError: If the server request failed; the product stays
        """
        self._require(session)
        reset_generation = self._reset_generation
        with traced_operation("products.delete"), self._tracking():
            try:
                await self._api.delete_entity(product_id)
            except InventoryClientError as error:
                self._fail(error, "Failed to delete product")
                raise

            if self._outlived(session, reset_generation, product_id):
                return

            remaining = tuple(
                product for product in self._products if product.id != product_id
            )
            if len(remaining) != len(self._products):
                self._products = remaining
                self._stats_stale = True
            if self._detail is not None and self._detail.id == product_id:
                self._detail = None
            self._last_error = None

            logger.info(
                "Product deleted",
                extra={"extra_fields": {"product_id": product_id}},
            )
            safe_notify(self._notifier, Severity.SUCCESS, "Product deleted successfully")
