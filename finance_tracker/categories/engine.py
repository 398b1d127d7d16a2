"""
Transaction Identity & Auto-Categorization Engine

Stable identity
---------------
stable_identity() is the ONLY way to derive the key a transaction is
known by (display, filtering, category assignment). The server id is
used when present; otherwise the key is composed from booking date,
amount and counterparty:

    gen_{booking_date}_{amount}_{creditor or debtor}

Two transactions with the same date, amount and counterparty share one
derived identity and therefore one category. This is a known limitation
and is kept as is.

Auto-categorization
-------------------
1. Keep transactions with no assignment, dated within the lookback window
2. Split them into fixed-size batches
3. Per batch: ask the categorization agent, reconcile its answer against
   the registry (known id, known name, or new category), create new
   categories in one bulk call, then write all assignments in one call
4. A failing batch is recorded and skipped; earlier batches stay applied
"""

import random
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from dateutil.relativedelta import relativedelta

from finance_tracker.agents import CategorizationAgent
from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.categories.registry import CategoryRegistry
from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.category import CATEGORY_COLORS, Category, CategoryDraft
from finance_tracker.models.transaction import Transaction


OVERLOADED_MESSAGE = (
    "The AI service is currently overloaded. Please try again in a moment."
)

_REMITTANCE_PREFIX = re.compile(r"remittanceinformation:(.*)", re.IGNORECASE | re.DOTALL)


def stable_identity(tx: Transaction) -> str:
    """Key used for category assignment and deduplication of a transaction."""
    if tx.transaction_id:
        return tx.transaction_id
    booking_date = tx.booking_date.isoformat() if tx.booking_date else ""
    return f"gen_{booking_date}_{tx.transaction_amount.amount}_{tx.counterparty_name}"


def clean_remittance_info(lines: Optional[Iterable[str]]) -> str:
    """
    Human-readable reference text.

    Lines are joined with spaces; a leading "RemittanceInformation:" tag
    (any case) is stripped.
    """
    text = " ".join(lines or [])
    match = _REMITTANCE_PREFIX.search(text)
    return match.group(1).strip() if match else text


def summarize_transaction(tx: Transaction) -> dict[str, Any]:
    """Compact representation of a transaction sent to the categorization agent."""
    raw_reference = " ".join(tx.remittance_information)
    reference = clean_remittance_info(tx.remittance_information)

    summary = {
        "id": stable_identity(tx),
        "creditor": tx.creditor_name or "Unknown",
        "debtor": tx.debtor_name or "Unknown",
        "amount": str(tx.transaction_amount.amount),
        "reference": reference,
        "date": tx.booking_date.isoformat() if tx.booking_date else None,
    }
    if raw_reference != reference:
        summary["raw_reference"] = raw_reference
    return summary


def user_facing_error(message: str) -> str:
    """Map provider errors to the message shown to the user."""
    if "503" in message or "overloaded" in message.lower():
        return OVERLOADED_MESSAGE
    return message


@dataclass
class BatchFailure:
    """A batch that was skipped."""
    batch_index: int
    batch_size: int
    error: str


@dataclass
class AutoCategorizeResult:
    """Outcome of one auto-categorization run."""
    eligible: int = 0
    categorized: int = 0
    batches: int = 0
    failed_batches: list[BatchFailure] = field(default_factory=list)
    created_categories: list[Category] = field(default_factory=list)

    @property
    def nothing_to_do(self) -> bool:
        return self.eligible == 0

    @property
    def message(self) -> str:
        if self.nothing_to_do:
            return "All transactions are already categorized!"
        if self.failed_batches and len(self.failed_batches) == self.batches:
            return user_facing_error(self.failed_batches[0].error)

        message = f"Categorized {self.categorized} of {self.eligible} transactions."
        if self.failed_batches:
            message += (
                f" {len(self.failed_batches)} of {self.batches} batch(es) failed: "
                f"{user_facing_error(self.failed_batches[0].error)}"
            )
        return message


class AutoCategorizer:
    """
    Batched LLM categorization of uncategorized transactions.

    Not cancellable mid-run; each batch is applied as soon as it is
    reconciled.
    """

    def __init__(
        self,
        registry: CategoryRegistry,
        agent: CategorizationAgent,
        audit_logger: Optional[AuditLogger] = None,
        batch_size: Optional[int] = None,
        lookback_months: Optional[int] = None,
        language: Optional[str] = None,
    ):
        app_settings = get_settings().app
        self._registry = registry
        self._agent = agent
        self._audit = audit_logger or AuditLogger()
        self._batch_size = batch_size or app_settings.categorization_batch_size
        self._lookback_months = lookback_months or app_settings.categorization_lookback_months
        self._language = language or app_settings.language

    def eligible_transactions(
        self,
        transactions: Iterable[Transaction],
        today: Optional[date] = None,
    ) -> list[Transaction]:
        """Unassigned transactions dated within the lookback window, one per identity."""
        cutoff = (today or date.today()) - relativedelta(months=self._lookback_months)
        seen = set()
        eligible = []
        for tx in transactions:
            identity = stable_identity(tx)
            if identity in seen or self._registry.resolve(identity) is not None:
                continue
            tx_date = tx.effective_date
            if tx_date is None or tx_date < cutoff:
                continue
            seen.add(identity)
            eligible.append(tx)
        return eligible

    async def run(
        self,
        transactions: Iterable[Transaction],
        today: Optional[date] = None,
    ) -> AutoCategorizeResult:
        """
        Categorize every eligible transaction.

        Raises:
            StoreError: If creating categories or writing assignments fails
        """
        eligible = self.eligible_transactions(transactions, today=today)
        result = AutoCategorizeResult(eligible=len(eligible))
        if not eligible:
            return result

        summaries = [summarize_transaction(tx) for tx in eligible]
        batches = [
            summaries[i:i + self._batch_size]
            for i in range(0, len(summaries), self._batch_size)
        ]
        result.batches = len(batches)

        correlation_id = create_correlation_id()
        await self._audit.log(AuditEventBuilder.auto_categorize_started(
            eligible=len(eligible),
            batches=len(batches),
            correlation_id=correlation_id,
        ))

        for index, batch in enumerate(batches):
            try:
                answer = await self._agent.categorize(
                    batch,
                    self._registry.categories,
                    self._language,
                )
            except Exception as e:
                result.failed_batches.append(
                    BatchFailure(batch_index=index, batch_size=len(batch), error=str(e))
                )
                await self._audit.log(AuditEventBuilder.auto_categorize_batch_failed(
                    batch_index=index,
                    batch_size=len(batch),
                    error_message=str(e),
                    correlation_id=correlation_id,
                ))
                continue

            batch_ids = {s["id"] for s in batch}
            answer = {k: v for k, v in answer.items() if k in batch_ids}
            categorized, created = await self._apply_batch(answer)
            result.categorized += categorized
            result.created_categories.extend(created)

        await self._audit.log(AuditEventBuilder.auto_categorize_completed(
            categorized=result.categorized,
            eligible=result.eligible,
            failed_batches=len(result.failed_batches),
            created_categories=len(result.created_categories),
            correlation_id=correlation_id,
        ))
        return result

    async def _apply_batch(
        self,
        answer: dict[str, Optional[str]],
    ) -> tuple[int, list[Category]]:
        """Reconcile one batch answer and persist its assignments."""
        assignments: dict[str, str] = {}
        pending_names: dict[str, list[str]] = {}
        new_names: dict[str, str] = {}

        for tx_id, value in answer.items():
            if not value:
                continue
            if self._registry.get(value):
                assignments[tx_id] = value
                continue

            name = value.strip()[:100].rstrip()
            if not name:
                continue
            existing = self._registry.find_by_name(name)
            if existing:
                assignments[tx_id] = existing.id
                continue

            key = name.lower()
            new_names.setdefault(key, name)
            pending_names.setdefault(key, []).append(tx_id)

        created = []
        if new_names:
            created = await self._registry.bulk_create([
                CategoryDraft(name=name, color=random.choice(CATEGORY_COLORS))
                for name in new_names.values()
            ])
            # bulk_create keeps draft order
            for key, category in zip(new_names, created):
                for tx_id in pending_names[key]:
                    assignments[tx_id] = category.id

        if assignments:
            await self._registry.bulk_assign(assignments)
        return len(assignments), created
