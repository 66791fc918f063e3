"""
Outcome notifications.

Session and store operations report their outcome as ``(severity, message)``
to a notifier supplied by the embedding application, typically a toast or
status-bar adapter. Delivery is fire-and-forget: a failing notifier is logged
and never affects the operation that triggered it.
"""

from enum import Enum
from typing import List, Optional, Protocol, Tuple

from .logging_config import get_logger

logger = get_logger(__name__)


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Notifier(Protocol):
    def notify(self, severity: Severity, message: str) -> None:
        ...


class LoggingNotifier:
    """Default notifier that writes outcomes to the log."""

    def notify(self, severity: Severity, message: str) -> None:
        if severity is Severity.ERROR:
            logger.warning(message, extra={"extra_fields": {"severity": severity.value}})
        else:
            logger.info(message, extra={"extra_fields": {"severity": severity.value}})


class RecordingNotifier:
    """Keeps every notification in memory, in order."""

    def __init__(self) -> None:
        self.events: List[Tuple[Severity, str]] = []

    def notify(self, severity: Severity, message: str) -> None:
        self.events.append((severity, message))

    @property
    def last(self) -> Optional[Tuple[Severity, str]]:
        return self.events[-1] if self.events else None

    def clear(self) -> None:
        self.events.clear()


def safe_notify(notifier: Notifier, severity: Severity, message: str) -> None:
    """Deliver a notification, logging instead of raising if the notifier fails."""
    try:
        notifier.notify(severity, message)
    except Exception as error:
        logger.error(
            "Notifier raised while delivering outcome",
            extra={
                "extra_fields": {
                    "severity": severity.value,
                    "notification": message,
                    "error_type": type(error).__name__,
                }
            },
            exc_info=True,
        )
