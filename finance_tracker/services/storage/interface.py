"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the on-disk store for encrypted on-device storage later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally a plain async key-value store:
string keys, JSON-serialized string values. The store is the single
source of truth across restarts; services keep in-memory caches of it.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from finance_tracker.models.audit import AuditEvent


class StoreError(Exception):
    """Base exception for storage operations."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class StoreReadError(StoreError):
    """A value could not be read from the store."""
    pass


class StoreWriteError(StoreError):
    """A value could not be written to (or removed from) the store."""
    pass


class CorruptValueError(StoreError):
    """A stored value is not valid JSON."""
    pass


class KeyValueStore(ABC):
    """
    Abstract interface for the persistent key-value store.

    Every access is a suspension point. Implementations raise
    StoreReadError / StoreWriteError instead of backend-specific errors.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the raw value stored under a key.

        Returns:
            The stored string, or None if the key is absent

        Raises:
            StoreReadError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store a raw string value under a key, replacing any previous value.

        Raises:
            StoreWriteError: If the backend cannot be written
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is not an error.

        Raises:
            StoreWriteError: If the backend cannot be written
        """
        pass

    async def get_json(self, key: str, default: Any = None) -> Any:
        """
        Read and decode a JSON value.

        Returns:
            The decoded value, or `default` if the key is absent

        Raises:
            StoreReadError: If the backend cannot be read
            CorruptValueError: If the stored value is not valid JSON
        """
        raw = await self.get(key)
        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptValueError(f"Stored value for '{key}' is not valid JSON: {e}", key=key)

    async def set_json(self, key: str, value: Any) -> None:
        """
        Encode a value as JSON and store it.

        Values must already be JSON-compatible (use model_dump(mode="json")).
        """
        await self.set(key, json.dumps(value))


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass
