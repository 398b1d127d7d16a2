"""
In-Memory Store

Process-local implementation of the key-value store. Used in tests and
as the fallback when no store directory is configured. Nothing survives
a restart.
"""

from typing import Optional

from finance_tracker.services.storage.interface import KeyValueStore


class InMemoryStore(KeyValueStore):
    """Dict-backed key-value store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
