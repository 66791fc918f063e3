"""
Session lifecycle: credential acquisition, persistence, validation and teardown.

``SessionManager`` is an explicit object shared by reference with the product
store; it owns the credential, keeps the API client's bearer header in sync
with it and publishes its state as immutable ``SessionSnapshot`` values.

State machine::

    INITIALIZING    -> AUTHENTICATED | UNAUTHENTICATED      (initialize)
    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED       (login/register)
                                      -> UNAUTHENTICATED     (failure)
    AUTHENTICATED   -> UNAUTHENTICATED                       (logout)
    AUTHENTICATED   -> INVALID                               (expire)
    INVALID         -> AUTHENTICATING -> ...                 (login/register)

Product operations need an ``AuthenticatedSession`` handle, which can only be
obtained while the manager is AUTHENTICATED.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional

from .api_client import AuthKind, InventoryApiClient
from .credential_store import CredentialStore
from .exceptions import AuthenticationFailure, InventoryClientError, user_message
from .logging_config import get_logger, traced_operation
from .models import Principal, SessionStatus
from .notifier import LoggingNotifier, Notifier, Severity, safe_notify

logger = get_logger(__name__)

SessionListener = Callable[["SessionSnapshot"], None]


@dataclass(frozen=True)
class SessionSnapshot:
    """
    Status and principal of a session at one point in time.

    A principal is present if and only if the status is AUTHENTICATED.
    """

    status: SessionStatus
    principal: Optional[Principal] = None

    def __post_init__(self) -> None:
        has_principal = self.principal is not None
        if has_principal != (self.status is SessionStatus.AUTHENTICATED):
            raise ValueError(
                f"Session status {self.status.value} is inconsistent with "
                f"principal={'present' if has_principal else 'absent'}"
            )

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED


@dataclass(frozen=True)
class AuthenticatedSession:
    """
    Proof of an authenticated session, required by product operations.

    A handle stays active until the session it was issued for ends through
    logout, expiry or a new login.
    """

    principal: Principal
    credential: str = field(repr=False)
    epoch: int
    manager: "SessionManager" = field(repr=False, compare=False)

    @property
    def is_active(self) -> bool:
        return self.manager.is_authenticated and self.manager.epoch == self.epoch


class SessionManager:
    """
    Owns the authentication lifecycle of one client.

    Attributes:
        last_error: Message of the most recent failed login, register or validation
    """

    def __init__(
        self,
        api: InventoryApiClient,
        credentials: CredentialStore,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._api = api
        self._credentials = credentials
        self._notifier = notifier or LoggingNotifier()
        self._snapshot = SessionSnapshot(SessionStatus.INITIALIZING)
        self._credential: Optional[str] = None
        self._epoch = 0
        self._initialize_started = False
        # Serializes initialize, login and register
        self._lock = asyncio.Lock()
        self._listeners: List[SessionListener] = []
        self.last_error: Optional[str] = None

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def status(self) -> SessionStatus:
        return self._snapshot.status

    @property
    def principal(self) -> Optional[Principal]:
        return self._snapshot.principal

    @property
    def is_authenticated(self) -> bool:
        return self._snapshot.is_authenticated

    @property
    def epoch(self) -> int:
        return self._epoch

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a callback invoked with every new snapshot.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def authenticated(self) -> AuthenticatedSession:
        """
        Issue a handle for the current authenticated session.

        Raises:
            AuthenticationFailure: If the session is not authenticated
        """
        principal = self._snapshot.principal
        if principal is None or self._credential is None:
            raise AuthenticationFailure(
                "Not authenticated", details={"status": self.status.value}
            )
        return AuthenticatedSession(
            principal=principal,
            credential=self._credential,
            epoch=self._epoch,
            manager=self,
        )

    def _publish(self, snapshot: SessionSnapshot) -> None:
        previous = self._snapshot
        self._snapshot = snapshot
        logger.info(
            "Session status changed",
            extra={
                "extra_fields": {
                    "from_status": previous.status.value,
                    "to_status": snapshot.status.value,
                    "principal_id": snapshot.principal.id if snapshot.principal else None,
                }
            },
        )
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener raised")

    def _begin(self, principal: Principal, token: str) -> None:
        self._credential = token
        self._api.set_credential(token)
        self._epoch += 1
        self._publish(SessionSnapshot(SessionStatus.AUTHENTICATED, principal))

    def _end(self, status: SessionStatus) -> None:
        self._credentials.clear()
        self._credential = None
        self._api.clear_credential()
        self._epoch += 1
        self._publish(SessionSnapshot(status))

    async def initialize(self) -> SessionSnapshot:
        """
        Resolve the session from the persisted credential.

        With no persisted credential the session becomes UNAUTHENTICATED
        directly. Otherwise the credential is validated against the server;
        any validation failure clears it so the client is never left in a
        broken authenticated-looking state.

        Returns:
            The resolved snapshot

        Raises:
            RuntimeError: If called more than once
        """
        if self._initialize_started:
            raise RuntimeError("SessionManager.initialize() may only run once")
        self._initialize_started = True

        async with self._lock:
            with traced_operation("session.initialize"):
                token = self._credentials.load()
                if token is None:
                    logger.info("No persisted credential found")
                    self._publish(SessionSnapshot(SessionStatus.UNAUTHENTICATED))
                    return self._snapshot

                try:
                    principal = await self._api.validate_session(token)
                except InventoryClientError as error:
                    logger.warning(
                        "Persisted credential failed validation",
                        extra={
                            "extra_fields": {
                                "error_type": type(error).__name__,
                                "error_message": error.message,
                            }
                        },
                    )
                    self.last_error = error.message
                    self._end(SessionStatus.UNAUTHENTICATED)
                except BaseException:
                    # Cancelled before the server answered: the credential was
                    # never rejected, so it stays persisted for the next start.
                    self._publish(SessionSnapshot(SessionStatus.UNAUTHENTICATED))
                    raise
                else:
                    self._begin(principal, token)

                return self._snapshot

    async def login(self, identifier: str, secret: str) -> bool:
        """
        Log in with an email address and password.

        Args:
            identifier: Email address of the user
            secret: Password

        Returns:
            True on success, False if the server rejected the attempt
        """
        return await self._authenticate(
            AuthKind.LOGIN,
            {"email": identifier, "password": secret},
            success_message="Login successful!",
            failure_message="Login failed",
        )

    async def register(self, profile: Mapping[str, Any]) -> bool:
        """
        Register a new user; a successful registration also logs in.

        Args:
            profile: Registration fields, e.g. name, email and password

        Returns:
            True on success, False if the server rejected the attempt
        """
        return await self._authenticate(
            AuthKind.REGISTER,
            profile,
            success_message="Registration successful!",
            failure_message="Registration failed",
        )

    async def _authenticate(
        self,
        kind: AuthKind,
        credentials: Mapping[str, Any],
        success_message: str,
        failure_message: str,
    ) -> bool:
        async with self._lock:
            if self.status is SessionStatus.INITIALIZING:
                raise RuntimeError(
                    f"Cannot {kind.value} before SessionManager.initialize() completes"
                )

            with traced_operation(f"session.{kind.value}"):
                previous = self._snapshot
                epoch = self._epoch
                self._publish(SessionSnapshot(SessionStatus.AUTHENTICATING))

                try:
                    result = await self._api.authenticate(kind, credentials)
                except InventoryClientError as error:
                    message = user_message(error, failure_message)
                    logger.warning(
                        f"Session {kind.value} failed",
                        extra={
                            "extra_fields": {
                                "error_type": type(error).__name__,
                                "error_message": message,
                            }
                        },
                    )
                    self.last_error = message
                    if self._epoch == epoch:
                        self._publish(previous)
                    safe_notify(self._notifier, Severity.ERROR, message)
                    return False
                except BaseException:
                    if self._epoch == epoch:
                        self._publish(previous)
                    raise

                # Logged out while the request was in flight
                if self._epoch != epoch:
                    logger.info(
                        f"Discarding {kind.value} result after logout",
                        extra={"extra_fields": {"principal_id": result.principal.id}},
                    )
                    return False

                try:
                    self._credentials.save(result.token)
                except BaseException:
                    self._publish(previous)
                    raise

                self.last_error = None
                self._begin(result.principal, result.token)
                safe_notify(self._notifier, Severity.SUCCESS, success_message)
                return True

    async def revalidate(self) -> bool:
        """
        Check the current credential against the server again.

        A rejected credential ends the session as UNAUTHENTICATED. Transport
        and server errors leave the session as it is.

        Returns:
            True if the session is still valid
        """
        async with self._lock:
            token = self._credential
            if not self.is_authenticated or token is None:
                return False

            with traced_operation("session.revalidate"):
                epoch = self._epoch
                try:
                    principal = await self._api.validate_session(token)
                except AuthenticationFailure as error:
                    self.last_error = error.message
                    if self._epoch == epoch:
                        self._end(SessionStatus.UNAUTHENTICATED)
                    return False
                except InventoryClientError as error:
                    logger.warning(
                        "Could not revalidate session",
                        extra={"extra_fields": {"error_type": type(error).__name__}},
                    )
                    self.last_error = error.message
                    return False

                if self._epoch != epoch:
                    return False
                if principal != self.principal:
                    self._publish(SessionSnapshot(SessionStatus.AUTHENTICATED, principal))
                return True

    def logout(self) -> None:
        """
        Forget the credential locally; no server round-trip is made.

        A login or registration still in flight is abandoned.
        """
        with traced_operation("session.logout"):
            self._end(SessionStatus.UNAUTHENTICATED)
            safe_notify(self._notifier, Severity.INFO, "Logged out successfully")

    def expire(self, reason: Optional[str] = None) -> None:
        """
        Mark the session invalid after the server rejected its credential.

        Does nothing unless the session is currently authenticated.

        Args:
            reason: Message returned by the server, if any
        """
        if not self.is_authenticated:
            return
        logger.warning(
            "Session credential rejected by server",
            extra={"extra_fields": {"reason": reason}},
        )
        self.last_error = reason
        self._end(SessionStatus.INVALID)
        safe_notify(
            self._notifier,
            Severity.ERROR,
            "Your session has expired. Please log in again.",
        )
