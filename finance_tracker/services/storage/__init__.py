"""
Storage Services Package

Provides the abstract key-value store interface and concrete implementations.
A directory of JSON files is the default backend, designed to be swappable.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    CorruptValueError,
    KeyValueStore,
    StoreError,
    StoreReadError,
    StoreWriteError,
)
from finance_tracker.services.storage.audit_log import StoreAuditStorage
from finance_tracker.services.storage.json_file import JsonFileStore
from finance_tracker.services.storage.memory import InMemoryStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStore",
    # Exceptions
    "CorruptValueError",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    # Implementations
    "InMemoryStore",
    "JsonFileStore",
    "StoreAuditStorage",
]
