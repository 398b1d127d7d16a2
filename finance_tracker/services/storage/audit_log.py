"""
Store-backed Audit Storage

Keeps the most recent audit events as one JSON list under a single key.
Older events are dropped once the cap is reached.
"""

import asyncio
from typing import Optional

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEvent
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStore,
)
from finance_tracker.services.storage.keys import AUDIT_LOG_KEY


class StoreAuditStorage(AuditStorageInterface):
    """Audit log persisted in the key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        max_events: Optional[int] = None,
    ):
        self._store = store
        self._max_events = max_events or get_settings().app.audit_log_max_events
        # Appends are read-modify-write of one list
        self._lock = asyncio.Lock()

    async def append_event(self, event: AuditEvent) -> bool:
        async with self._lock:
            events = await self._store.get_json(AUDIT_LOG_KEY, default=[])
            events.append(event.model_dump(mode="json"))
            await self._store.set_json(AUDIT_LOG_KEY, events[-self._max_events:])
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = await self._store.get_json(AUDIT_LOG_KEY, default=[])
        recent = events[-limit:] if limit > 0 else []
        return [AuditEvent.model_validate(e) for e in reversed(recent)]
