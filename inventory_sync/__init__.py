"""
Inventory Sync Package.

Client-side data layer for an inventory REST API: an authenticated session
persisted across restarts and a product cache kept consistent with the server.
"""

__version__ = "1.0.0"
__description__ = "Session and product cache synchronized with an inventory REST API"

from .api_client import InventoryApiClient
from .client import InventoryClient
from .config import settings
from .exceptions import (
    AuthenticationFailure,
    InventoryClientError,
    NetworkFailure,
    NotFound,
    ServerFailure,
    ValidationFailure,
)
from .models import (
    FilterSpec,
    ImageAttachment,
    InventoryStats,
    Principal,
    Product,
    ProductDraft,
    SessionStatus,
)
from .notifier import Severity
from .session import AuthenticatedSession, SessionManager, SessionSnapshot
from .store import ProductStore

__all__ = [
    "AuthenticatedSession",
    "AuthenticationFailure",
    "FilterSpec",
    "ImageAttachment",
    "InventoryApiClient",
    "InventoryClient",
    "InventoryClientError",
    "InventoryStats",
    "NetworkFailure",
    "NotFound",
    "Principal",
    "Product",
    "ProductDraft",
    "ProductStore",
    "ServerFailure",
    "SessionManager",
    "SessionSnapshot",
    "SessionStatus",
    "Severity",
    "ValidationFailure",
    "settings",
    "__version__",
]
