"""
Exception classes for the inventory sync client.

Every failure the client surfaces is one of the classes below, so callers
can branch on the kind of failure while always having a human-readable
``message`` to show.
"""

from typing import Any, Dict, Iterable, Optional


class InventoryClientError(Exception):
    """
    Base exception for all inventory sync errors.

    Attributes:
        message: Human-readable error message
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class HTTPFailure(InventoryClientError):
    """
    Failure derived from an HTTP response.

    Attributes:
        status_code: HTTP status code returned by the API
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, details)


class AuthenticationFailure(HTTPFailure):
    """Bad credentials, or an expired or invalid token."""


class NotFound(HTTPFailure):
    """The requested product does not exist server-side."""


class ServerFailure(HTTPFailure):
    """Non-2xx response that is not covered by a more specific failure."""


class ValidationFailure(HTTPFailure):
    """
    A product draft or request payload was rejected.

    Raised locally, before any network call, when required draft fields are
    missing, and also mapped from 400/422 API responses.

    Attributes:
        fields: Names of the offending fields, when known
    """

    def __init__(
        self,
        message: str,
        fields: Optional[Iterable[str]] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.fields = tuple(fields or ())
        super().__init__(message, status_code, details)


class NetworkFailure(InventoryClientError):
    """
    Transport-level failure: the API could not be reached or timed out.

    Attributes:
        url: The URL that was being requested
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.url = url
        super().__init__(message, details)


def user_message(error: InventoryClientError, fallback: str) -> str:
    """
    Message to show a user for ``error``.

    Prefers the message supplied by the server, then messages raised locally
    before any request was sent, then ``fallback``.

    Args:
        error: Failure raised by the client
        fallback: Generic message for the failed operation

    Returns:
        Human-readable message
    """
    server_message = error.details.get("server_message")
    if server_message:
        return str(server_message)
    if isinstance(error, HTTPFailure) and error.status_code is None:
        return error.message
    return fallback
