"""Accounts package: aggregation, bank connections and transactions."""

from finance_tracker.accounts.aggregator import (
    AccountAggregator,
    PartialFetchFailure,
    RefreshReport,
    RefreshStatus,
)
from finance_tracker.accounts.connections import ConnectionManager
from finance_tracker.accounts.transactions import (
    ManualTransactionNotFoundError,
    TransactionService,
)

__all__ = [
    "AccountAggregator",
    "ConnectionManager",
    "ManualTransactionNotFoundError",
    "PartialFetchFailure",
    "RefreshReport",
    "RefreshStatus",
    "TransactionService",
]
