"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker system.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.account import (
    PREFERRED_BALANCE_TYPES,
    AccountCategory,
    AccountIdentifier,
    AccountMetadata,
    AuthorizationStart,
    Balance,
    BalanceAmount,
    Bank,
    LinkedSession,
    ManualAccount,
    SessionData,
    SourceType,
    UnifiedAccount,
    UpstreamAccount,
    select_primary_balance,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_tracker.models.category import (
    CATEGORY_COLORS,
    Category,
    CategoryDraft,
)
from finance_tracker.models.debt import (
    DebtDirection,
    DebtEntity,
    DebtItem,
    EntityType,
)
from finance_tracker.models.transaction import (
    Party,
    Transaction,
    TransactionAmount,
    TransactionPage,
)

__all__ = [
    # Account models
    "PREFERRED_BALANCE_TYPES",
    "AccountCategory",
    "AccountIdentifier",
    "AccountMetadata",
    "AuthorizationStart",
    "Balance",
    "BalanceAmount",
    "Bank",
    "LinkedSession",
    "ManualAccount",
    "SessionData",
    "SourceType",
    "UnifiedAccount",
    "UpstreamAccount",
    "select_primary_balance",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Category models
    "CATEGORY_COLORS",
    "Category",
    "CategoryDraft",
    # Debt models
    "DebtDirection",
    "DebtEntity",
    "DebtItem",
    "EntityType",
    # Transaction models
    "Party",
    "Transaction",
    "TransactionAmount",
    "TransactionPage",
]
