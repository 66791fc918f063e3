"""
Durable storage for the session credential.

The client persists exactly one record, the bearer token, under a single
well-known key of a key-value facility. Absence of the key means there is
no prior session.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """Minimal string key-value persistence facility."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local key-value store; nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """
    Key-value store backed by a small JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write never leaves a truncated file behind.
    An unreadable or corrupt file is treated as empty.

    Attributes:
        path: Location of the JSON file
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as error:
            logger.warning(
                "Could not read credential file",
                extra={"extra_fields": {"path": str(self.path), "error": str(error)}},
            )
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(
                "Ignoring corrupt credential file",
                extra={"extra_fields": {"path": str(self.path)}},
            )
            return {}

        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class CredentialStore:
    """
    Reads and writes the persisted bearer token.

    Attributes:
        backend: Underlying key-value store
        key: Well-known key the token lives under
    """

    def __init__(self, backend: KeyValueStore, key: Optional[str] = None) -> None:
        self.backend = backend
        self.key = key or settings.CREDENTIAL_KEY

    @classmethod
    def from_settings(cls) -> "CredentialStore":
        """File-backed store at ``CREDENTIAL_STORE_PATH``."""
        return cls(JsonFileKeyValueStore(settings.CREDENTIAL_STORE_PATH))

    def load(self) -> Optional[str]:
        token = self.backend.get(self.key)
        return token or None

    def save(self, token: str) -> None:
        self.backend.set(self.key, token)
        logger.debug("Persisted session credential")

    def clear(self) -> None:
        self.backend.delete(self.key)
        logger.debug("Cleared persisted session credential")
