"""Services package."""

from finance_tracker.services.banking import (
    BankingGatewayClient,
    GatewayError,
    GatewayUnavailableError,
)
from finance_tracker.services.storage import (
    AuditStorageInterface,
    CorruptValueError,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    StoreAuditStorage,
    StoreError,
    StoreReadError,
    StoreWriteError,
)

__all__ = [
    # Banking gateway
    "BankingGatewayClient",
    "GatewayError",
    "GatewayUnavailableError",
    # Storage services
    "AuditStorageInterface",
    "CorruptValueError",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "StoreAuditStorage",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
]
