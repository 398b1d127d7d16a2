"""
JSON File Store

DESIGN DECISION: One file per key inside a single directory.

TRADEOFFS:
- Not suitable for large data (fine for one user's accounts and categories)
- No cross-key transactions (services order their writes carefully)
- Writes go to a temporary file first and are renamed into place,
  so a crash never leaves a half-written value behind

Concurrent writers to the same key are last-write-wins.
"""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote
from uuid import uuid4

import aiofiles
import aiofiles.os

from finance_tracker.config import get_settings
from finance_tracker.services.storage.interface import (
    KeyValueStore,
    StoreReadError,
    StoreWriteError,
)


class JsonFileStore(KeyValueStore):
    """Directory-backed key-value store."""

    def __init__(self, directory: Optional[str] = None):
        self._directory = Path(directory or get_settings().store.directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        """Map a key to a file name that is safe on every filesystem."""
        return self._directory / f"{quote(key, safe='')}.json"

    async def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreReadError(f"Failed to read '{key}': {e}", key=key)

    async def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(value)
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreWriteError(f"Failed to write '{key}': {e}", key=key)

    async def remove(self, key: str) -> None:
        try:
            await aiofiles.os.remove(self._path_for(key))
        except FileNotFoundError:
            return
        except OSError as e:
            raise StoreWriteError(f"Failed to remove '{key}': {e}", key=key)
