"""
Audit Models for Finance Tracker

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of refreshes, mutations and categorization runs
2. Debugging information when a bank or the LLM misbehaves
3. Ability to reconstruct what happened to a balance or category

DESIGN DECISION: Audit logs are append-only. We never modify events.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Account aggregation
    RENDER_CACHE_LOADED = "render_cache_loaded"
    REFRESH_STARTED = "refresh_started"
    REFRESH_COMPLETED = "refresh_completed"
    REFRESH_FAILED = "refresh_failed"
    BALANCE_FETCH_FAILED = "balance_fetch_failed"
    ACCOUNT_PATCHED = "account_patched"
    CASH_BALANCE_SET = "cash_balance_set"
    MANUAL_ACCOUNT_ADDED = "manual_account_added"
    MANUAL_ACCOUNT_DELETED = "manual_account_deleted"
    ACCOUNT_CATEGORY_SET = "account_category_set"

    # Bank connections
    SESSION_LINKED = "session_linked"
    SESSION_REMOVED = "session_removed"

    # Transactions
    TRANSACTIONS_FETCHED = "transactions_fetched"
    MANUAL_TRANSACTION_SAVED = "manual_transaction_saved"
    MANUAL_TRANSACTION_DELETED = "manual_transaction_deleted"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    ASSIGNMENTS_WRITTEN = "assignments_written"

    # Auto-categorization
    AUTO_CATEGORIZE_STARTED = "auto_categorize_started"
    AUTO_CATEGORIZE_BATCH_FAILED = "auto_categorize_batch_failed"
    AUTO_CATEGORIZE_COMPLETED = "auto_categorize_completed"

    # Debts
    DEBT_ENTITY_CHANGED = "debt_entity_changed"
    DEBT_CHANGED = "debt_changed"

    # System events
    STORAGE_ERROR = "storage_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'category', 'session')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one refresh)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.refresh_completed(status, 3, 1, correlation_id)
        event = AuditEventBuilder.category_deleted(category_id, 12)
    """

    @staticmethod
    def render_cache_loaded(account_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RENDER_CACHE_LOADED,
            entity_type="account",
            description=f"Loaded {account_count} accounts from render cache",
            details={"account_count": account_count},
        )

    @staticmethod
    def refresh_started(
        show_indicator: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFRESH_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="account",
            correlation_id=correlation_id,
            description="Account refresh started",
            details={"show_indicator": show_indicator},
            is_user_action=show_indicator,
        )

    @staticmethod
    def refresh_completed(
        status: str,
        connected_count: int,
        manual_count: int,
        failed_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        severity = AuditSeverity.INFO if failed_count == 0 else AuditSeverity.WARNING
        return AuditEvent(
            event_type=AuditEventType.REFRESH_COMPLETED,
            severity=severity,
            entity_type="account",
            correlation_id=correlation_id,
            description=(
                f"Account refresh {status}: {connected_count} connected, "
                f"{manual_count} manual, {failed_count} without balance"
            ),
            details={
                "status": status,
                "connected_count": connected_count,
                "manual_count": manual_count,
                "failed_count": failed_count,
            },
        )

    @staticmethod
    def refresh_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFRESH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            correlation_id=correlation_id,
            description="Account refresh aborted, previous accounts kept",
            error_message=error_message,
        )

    @staticmethod
    def balance_fetch_failed(
        account_id: str,
        reason: str,
        used_stale_balance: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=(
                "Balance fetch failed, previous balance kept"
                if used_stale_balance
                else "Balance fetch failed, no previous balance known"
            ),
            error_message=reason,
            details={"used_stale_balance": used_stale_balance},
        )

    @staticmethod
    def account_patched(account_id: str, balance: str, currency: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_PATCHED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account patched with balance {balance} {currency}",
            details={"balance": balance, "currency": currency},
        )

    @staticmethod
    def cash_balance_set(amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASH_BALANCE_SET,
            entity_type="cash",
            description=f"Cash balance set to {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def manual_account_added(account_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANUAL_ACCOUNT_ADDED,
            entity_type="account",
            entity_id=account_id,
            description=f"Manual account added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def manual_account_deleted(account_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANUAL_ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description="Manual account and its transactions deleted",
            is_user_action=True,
        )

    @staticmethod
    def account_category_set(account_id: str, category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CATEGORY_SET,
            entity_type="account",
            entity_id=account_id,
            description=f"Account category set to {category}",
            details={"category": category},
            is_user_action=True,
        )

    @staticmethod
    def session_linked(
        session_id: str,
        bank_name: str,
        account_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_LINKED,
            entity_type="session",
            entity_id=session_id,
            description=f"Connected {account_count} account(s) from {bank_name}",
            details={"bank_name": bank_name, "account_count": account_count},
            is_user_action=True,
        )

    @staticmethod
    def session_removed(session_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_REMOVED,
            entity_type="session",
            entity_id=session_id,
            description="Bank connection removed",
            is_user_action=True,
        )

    @staticmethod
    def transactions_fetched(
        account_id: str,
        count: int,
        pages: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_FETCHED,
            entity_type="account",
            entity_id=account_id,
            description=f"Fetched {count} transactions in {pages} page(s)",
            details={"count": count, "pages": pages},
        )

    @staticmethod
    def manual_transaction_saved(
        account_id: str,
        transaction_id: str,
        balance_delta: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANUAL_TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Manual transaction saved, balance changed by {balance_delta}",
            details={"account_id": account_id, "balance_delta": balance_delta},
            is_user_action=True,
        )

    @staticmethod
    def manual_transaction_deleted(
        account_id: str,
        transaction_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANUAL_TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Manual transaction deleted",
            details={"account_id": account_id},
            is_user_action=True,
        )

    @staticmethod
    def category_created(category_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category created: {name}",
            details={"name": name},
        )

    @staticmethod
    def category_updated(category_id: str, changes: dict) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=category_id,
            description="Category updated",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(category_id: str, removed_assignments: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            description=(
                f"Category deleted with {removed_assignments} transaction assignment(s)"
            ),
            details={"removed_assignments": removed_assignments},
            is_user_action=True,
        )

    @staticmethod
    def assignments_written(changed: int, total: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSIGNMENTS_WRITTEN,
            entity_type="category",
            description=f"{changed} transaction category assignment(s) changed",
            details={"changed": changed, "total": total},
        )

    @staticmethod
    def auto_categorize_started(
        eligible: int,
        batches: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_CATEGORIZE_STARTED,
            entity_type="categorization",
            correlation_id=correlation_id,
            description=f"Auto-categorizing {eligible} transactions in {batches} batch(es)",
            details={"eligible": eligible, "batches": batches},
            is_user_action=True,
        )

    @staticmethod
    def auto_categorize_batch_failed(
        batch_index: int,
        batch_size: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_CATEGORIZE_BATCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="categorization",
            correlation_id=correlation_id,
            description=f"Batch {batch_index + 1} ({batch_size} transactions) skipped",
            error_message=error_message,
            details={"batch_index": batch_index, "batch_size": batch_size},
        )

    @staticmethod
    def auto_categorize_completed(
        categorized: int,
        eligible: int,
        failed_batches: int,
        created_categories: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_CATEGORIZE_COMPLETED,
            severity=AuditSeverity.INFO if failed_batches == 0 else AuditSeverity.WARNING,
            entity_type="categorization",
            correlation_id=correlation_id,
            description=f"Categorized {categorized} of {eligible} transactions",
            details={
                "categorized": categorized,
                "eligible": eligible,
                "failed_batches": failed_batches,
                "created_categories": created_categories,
            },
        )

    @staticmethod
    def debt_entity_changed(entity_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_ENTITY_CHANGED,
            entity_type="debt_entity",
            entity_id=entity_id,
            description=f"Debt entity {action}",
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def debt_changed(debt_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CHANGED,
            entity_type="debt",
            entity_id=debt_id,
            description=f"Debt {action}",
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
