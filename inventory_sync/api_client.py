"""
HTTP client for the inventory REST API.

Provides an async client covering authentication, session validation and
product CRUD. One instance is shared by the session manager and the product
store; the session manager keeps its bearer credential current. Every call
is logged with timing, and transport or HTTP errors are translated into the
exceptions of ``inventory_sync.exceptions``.
"""

import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import settings
from .exceptions import (
    AuthenticationFailure,
    HTTPFailure,
    NetworkFailure,
    NotFound,
    ServerFailure,
    ValidationFailure,
)
from .logging_config import get_logger, get_request_id
from .models import AuthResult, Principal, Product, ProductDraft, ProductListing

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

AUTH_PATH = "/api/auth"
PRODUCTS_PATH = "/api/products"


class AuthKind(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


def encode_draft(draft: ProductDraft) -> Dict[str, Any]:
    """
    Encode a product draft as httpx request keyword arguments.

    Drafts carrying an image are sent as multipart form data, all others as
    a JSON body.

    Args:
        draft: Validated product draft

    Returns:
        Either ``{"json": ...}`` or ``{"data": ..., "files": ...}``
    """
    if draft.image is not None:
        return {
            "data": draft.to_form_fields(),
            "files": {"image": draft.image.as_upload()},
        }
    return {"json": draft.to_fields()}


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


class InventoryApiClient:
    """
    Client for the inventory REST API.

    Uses a persistent ``httpx.AsyncClient`` with connection pooling, created
    lazily on first use. Requests that need authentication carry the current
    credential as an ``Authorization: Bearer`` header.

    Attributes:
        base_url: Base URL of the inventory API
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            base_url: Base URL of the API (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            transport: Optional custom transport, e.g. ``httpx.MockTransport``
        """
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self._transport = transport
        self._credential: Optional[str] = None
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized InventoryApiClient: base_url={self.base_url}, "
            f"timeout={self.timeout}s"
        )

    @property
    def credential(self) -> Optional[str]:
        return self._credential

    def set_credential(self, token: str) -> None:
        """Attach ``token`` to every subsequent authenticated request."""
        self._credential = token
        logger.debug("Bearer credential set on API client")

    def clear_credential(self) -> None:
        self._credential = None
        logger.debug("Bearer credential cleared from API client")

    async def _get_client(self) -> httpx.AsyncClient:
        """
        Get or create the persistent HTTP client with connection pooling.

        Returns:
            Configured httpx.AsyncClient instance
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                    keepalive_expiry=30.0,
                ),
                http2=settings.ENABLE_HTTP2 and self._transport is None,
                transport=self._transport,
            )
            logger.debug("Created new HTTP client with connection pooling")
        return self._client

    async def close(self) -> None:
        """
        Close the HTTP client and release connections.

        Should be called when the embedding application shuts down.
        """
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed HTTP client")

    def _get_request_headers(
        self, authenticated: bool = True, token: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Build request headers, including request ID and bearer credential.

        Args:
            authenticated: Attach the bearer credential if one is known
            token: Explicit credential overriding the shared one

        Returns:
            Dictionary of HTTP headers
        """
        headers = {
            "User-Agent": "inventory-sync/1.0",
            "Accept": "application/json",
        }

        if settings.ENABLE_REQUEST_TRACING:
            request_id = get_request_id()
            if request_id:
                headers["X-Request-ID"] = request_id

        credential = token or (self._credential if authenticated else None)
        if credential:
            headers["Authorization"] = f"Bearer {credential}"

        return headers

    def _raise_for_response(self, response: httpx.Response, resource: str) -> None:
        """
        Translate a non-2xx response into a client exception.

        Args:
            response: Response received from the API
            resource: Short description of what was requested, for messages

        Raises:
            AuthenticationFailure: On 401 and 403
            NotFound: On 404
            ValidationFailure: On 400 and 422
            ServerFailure: On any other non-2xx status
        """
        if response.is_success:
            return

        status_code = response.status_code
        server_message = _error_message(response)
        details = {
            "resource": resource,
            "body": response.text[:200],
            "server_message": server_message,
        }

        error: HTTPFailure
        if status_code in (401, 403):
            error = AuthenticationFailure(
                server_message or "Not authorized", status_code, details
            )
        elif status_code == 404:
            error = NotFound(server_message or f"{resource} not found", status_code, details)
        elif status_code in (400, 422):
            error = ValidationFailure(
                server_message or f"Invalid request for {resource}",
                status_code=status_code,
                details=details,
            )
        else:
            error = ServerFailure(
                server_message or f"Inventory API returned error: {status_code}",
                status_code,
                details,
            )
        raise error

    async def _request(
        self,
        method: str,
        path: str,
        resource: str,
        authenticated: bool = True,
        token: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
        **payload: Any,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to ``base_url``
            resource: Description used in log lines and error messages
            authenticated: Attach the shared bearer credential
            token: Explicit credential for this request only
            params: Query parameters
            **payload: ``json``, ``data`` or ``files`` passed through to httpx

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            NetworkFailure: On timeouts and transport errors
            HTTPFailure: Subclass matching the response status
        """
        start_time = time.perf_counter()
        url = f"{self.base_url}{path}"

        logger.debug(
            "Sending request to inventory API",
            extra={
                "extra_fields": {
                    "method": method,
                    "url": url,
                    "params": dict(params or {}),
                    "multipart": "files" in payload,
                }
            },
        )

        try:
            client = await self._get_client()
            response = await client.request(
                method,
                path,
                params=params,
                headers=self._get_request_headers(authenticated, token),
                **payload,
            )
        except (httpx.TimeoutException, TimeoutError) as error:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Inventory API request timed out",
                extra={
                    "extra_fields": {
                        "method": method,
                        "url": url,
                        "timeout": self.timeout,
                        "duration_ms": duration_ms,
                        "error_type": type(error).__name__,
                    }
                },
            )
            raise NetworkFailure(
                f"Request to inventory API timed out after {self.timeout}s",
                url=url,
                details={"error_type": "timeout"},
            ) from error
        except httpx.ConnectError as error:
            logger.error(
                "Connection error to inventory API",
                extra={
                    "extra_fields": {
                        "method": method,
                        "url": url,
                        "error_message": str(error),
                    }
                },
            )
            raise NetworkFailure(
                "Cannot connect to inventory API. The server may be offline or unreachable.",
                url=url,
                details={"error_type": "connection_error"},
            ) from error
        except httpx.RequestError as error:
            logger.error(
                "Request error while calling inventory API",
                extra={
                    "extra_fields": {
                        "method": method,
                        "url": url,
                        "error_type": type(error).__name__,
                        "error_message": str(error),
                    }
                },
                exc_info=True,
            )
            raise NetworkFailure(
                "Network error occurred while communicating with inventory API.",
                url=url,
                details={"error_type": "request_error"},
            ) from error

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Received response from inventory API",
            extra={
                "extra_fields": {
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                }
            },
        )

        self._raise_for_response(response, resource)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as error:
            raise ServerFailure(
                f"Inventory API returned a malformed body for {resource}",
                response.status_code,
                {"body": response.text[:200]},
            ) from error

    @staticmethod
    def _unwrap(body: Any, resource: str) -> Dict[str, Any]:
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        raise ServerFailure(f"Inventory API response for {resource} has no data")

    @staticmethod
    def _parse(model: Type[ModelT], data: Any, resource: str) -> ModelT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as error:
            logger.error(
                "Inventory API returned an unexpected payload",
                extra={
                    "extra_fields": {
                        "resource": resource,
                        "error_count": error.error_count(),
                    }
                },
            )
            raise ServerFailure(
                f"Inventory API returned an invalid {resource}",
                details={"errors": error.errors(include_url=False)},
            ) from error

    async def authenticate(
        self, kind: AuthKind, credentials: Mapping[str, Any]
    ) -> AuthResult:
        """
        Exchange credentials for a bearer token.

        Args:
            kind: Login or registration endpoint
            credentials: Login credentials or registration profile

        Returns:
            Token and principal issued by the server

        Raises:
            AuthenticationFailure: If the server rejects the credentials
        """
        kind = AuthKind(kind)
        body = await self._request(
            "POST",
            f"{AUTH_PATH}/{kind.value}",
            resource=kind.value,
            authenticated=False,
            json=dict(credentials),
        )
        if not isinstance(body, dict) or not body.get("token") or not body.get("user"):
            raise ServerFailure(f"Inventory API {kind.value} response is incomplete")
        principal = self._parse(Principal, body["user"], "principal")
        return AuthResult(token=body["token"], principal=principal)

    async def validate_session(self, token: str) -> Principal:
        """
        Resolve the principal a token belongs to.

        Args:
            token: Bearer credential to validate

        Returns:
            Principal owning the token

        Raises:
            AuthenticationFailure: If the token is expired or invalid
        """
        body = await self._request(
            "GET", f"{AUTH_PATH}/me", resource="session", token=token
        )
        return self._parse(Principal, self._unwrap(body, "session"), "principal")

    async def list_entities(self, query: Optional[Mapping[str, str]] = None) -> ProductListing:
        body = await self._request(
            "GET", PRODUCTS_PATH, resource="products", params=query or None
        )
        if not isinstance(body, dict):
            raise ServerFailure("Inventory API product listing is malformed")
        try:
            return ProductListing.from_response(body)
        except PydanticValidationError as error:
            raise ServerFailure(
                "Inventory API returned an invalid product listing",
                details={"errors": error.errors(include_url=False)},
            ) from error

    async def get_entity(self, product_id: str) -> Product:
        body = await self._request(
            "GET",
            f"{PRODUCTS_PATH}/{quote(product_id, safe='')}",
            resource=f"Product '{product_id}'",
        )
        return self._parse(Product, self._unwrap(body, "product"), "product")

    async def create_entity(self, payload: Mapping[str, Any]) -> Product:
        """
        Create a product.

        Args:
            payload: Output of ``encode_draft``

        Returns:
            Created product with its server-assigned id
        """
        body = await self._request("POST", PRODUCTS_PATH, resource="product", **payload)
        return self._parse(Product, self._unwrap(body, "product"), "product")

    async def update_entity(self, product_id: str, payload: Mapping[str, Any]) -> Product:
        body = await self._request(
            "PUT",
            f"{PRODUCTS_PATH}/{quote(product_id, safe='')}",
            resource=f"Product '{product_id}'",
            **payload,
        )
        return self._parse(Product, self._unwrap(body, "product"), "product")

    async def delete_entity(self, product_id: str) -> None:
        await self._request(
            "DELETE",
            f"{PRODUCTS_PATH}/{quote(product_id, safe='')}",
            resource=f"Product '{product_id}'",
        )
