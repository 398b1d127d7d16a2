"""
Transaction Service

Connected accounts:
- Transactions are paged from the gateway and cached per account
  (overwrite-on-refresh)
- A fetch also refreshes the account's balance as a side channel and
  patches the unified list when it changed

Manual accounts:
- Transactions are entered by the user and stored per account, newest first
- Every change moves the account's stored balance by the amount delta
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from finance_tracker.accounts.aggregator import AccountAggregator
from finance_tracker.audit import AuditLogger
from finance_tracker.config import get_settings
from finance_tracker.ids import MANUAL_TRANSACTION_PREFIX, generate_local_id
from finance_tracker.models.account import select_primary_balance
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.transaction import Party, Transaction, TransactionAmount
from finance_tracker.services.banking import BankingGatewayClient, GatewayError
from finance_tracker.services.storage import (
    CorruptValueError,
    KeyValueStore,
    StoreError,
)
from finance_tracker.services.storage.keys import (
    connected_transactions_key,
    manual_transactions_key,
)


logger = structlog.get_logger("finance_tracker.transactions")

SELF_PARTY = "Self"


class ManualTransactionNotFoundError(Exception):
    """No manual transaction with that id on the account."""

    def __init__(self, account_id: str, transaction_id: str):
        self.account_id = account_id
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} not found on account {account_id}"
        )


def _newest_first(transactions: Sequence[Transaction]) -> list[Transaction]:
    return sorted(
        transactions,
        key=lambda tx: tx.effective_date or date.min,
        reverse=True,
    )


def _in_range(
    tx: Transaction,
    date_from: Optional[date],
    date_to: Optional[date],
) -> bool:
    tx_date = tx.effective_date
    if tx_date is None:
        return True
    if date_from and tx_date < date_from:
        return False
    if date_to and tx_date > date_to:
        return False
    return True


class TransactionService:
    """Loads, caches and edits transactions."""

    def __init__(
        self,
        store: KeyValueStore,
        gateway: BankingGatewayClient,
        aggregator: AccountAggregator,
        audit_logger: Optional[AuditLogger] = None,
        max_pages: Optional[int] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._aggregator = aggregator
        self._audit = audit_logger or AuditLogger()
        self._max_pages = (
            max_pages if max_pages is not None
            else get_settings().app.max_transaction_pages
        )

    # -------------------------------------------------------------------------
    # Connected accounts
    # -------------------------------------------------------------------------

    async def cached_transactions(
        self,
        account_id: str,
        date_from: Optional[date] = None,
    ) -> list[Transaction]:
        """
        Cached transactions of a connected account.

        Only the start date filters, so pending entries dated in the
        future still show.
        """
        cached = await self._read_list(connected_transactions_key(account_id))
        return [tx for tx in cached if _in_range(tx, date_from, None)]

    async def fetch_transactions(
        self,
        account_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """
        Fetch transactions from the gateway, following continuation keys.

        A failing first page raises GatewayError. A failing later page
        stops paging and keeps what was fetched so far.
        """
        try:
            page = await self._gateway.fetch_transactions(account_id, date_from, date_to)
        except GatewayError as e:
            await self._audit.log_external_service_error("banking_gateway", e)
            raise

        transactions = list(page.transactions)
        pages = 1
        continuation_key = page.continuation_key
        while continuation_key and pages <= self._max_pages:
            try:
                page = await self._gateway.fetch_transactions(
                    account_id, date_from, date_to, continuation_key
                )
            except GatewayError as e:
                logger.warning(
                    "transaction_paging_stopped",
                    account_id=account_id,
                    pages=pages,
                    error=e.message,
                )
                break
            transactions.extend(page.transactions)
            continuation_key = page.continuation_key
            pages += 1

        transactions = _newest_first(transactions)
        await self._audit.log(
            AuditEventBuilder.transactions_fetched(account_id, len(transactions), pages)
        )

        if transactions:
            await self._write_list(
                connected_transactions_key(account_id),
                transactions,
                "cache_transactions",
            )
            await self._sync_balance(account_id)
        return transactions

    async def _sync_balance(self, account_id: str) -> None:
        """Patch the unified entry if the gateway reports a different balance."""
        current = self._aggregator.get_account(account_id)
        if current is None:
            return

        try:
            primary = select_primary_balance(
                await self._gateway.fetch_balances(account_id)
            )
            if primary is None:
                return
            amount = primary.balance_amount.amount
            currency = primary.balance_amount.currency
            if (
                amount == current.balance
                and currency == current.currency
                and current.error is None
            ):
                return

            await self._aggregator.patch_account(current.model_copy(update={
                "balance": amount,
                "currency": currency,
                "loading": False,
                "error": None,
            }))
        except (GatewayError, StoreError) as e:
            logger.warning("balance_sync_failed", account_id=account_id, error=str(e))
            return

        await self._aggregator.refresh_accounts(show_indicator=False)

    # -------------------------------------------------------------------------
    # Manual accounts
    # -------------------------------------------------------------------------

    async def manual_transactions(
        self,
        account_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        stored = await self._read_list(manual_transactions_key(account_id))
        return [tx for tx in stored if _in_range(tx, date_from, date_to)]

    async def add_manual_transaction(
        self,
        account_id: str,
        title: str,
        amount: Union[Decimal, int, str],
        booking_date: Optional[date] = None,
        currency: Optional[str] = None,
    ) -> Transaction:
        """Record a transaction on a manual account and move its balance."""
        amount = Decimal(str(amount))
        account = self._aggregator.get_account(account_id)
        currency = currency or (
            account.currency if account else get_settings().app.default_currency
        )

        tx = _build_manual_transaction(
            transaction_id=generate_local_id(MANUAL_TRANSACTION_PREFIX),
            title=title,
            amount=amount,
            currency=currency,
            booking_date=booking_date or date.today(),
        )

        key = manual_transactions_key(account_id)
        stored = await self._read_list(key)
        await self._write_list(key, [tx] + stored, "add_manual_transaction")

        await self._audit.log(AuditEventBuilder.manual_transaction_saved(
            account_id, tx.transaction_id, str(amount)
        ))
        await self._aggregator.adjust_manual_balance(account_id, amount)
        return tx

    async def update_manual_transaction(
        self,
        account_id: str,
        transaction_id: str,
        title: Optional[str] = None,
        amount: Union[Decimal, int, str, None] = None,
        booking_date: Optional[date] = None,
    ) -> Transaction:
        key = manual_transactions_key(account_id)
        stored = await self._read_list(key)
        existing = next(
            (tx for tx in stored if tx.transaction_id == transaction_id), None
        )
        if existing is None:
            raise ManualTransactionNotFoundError(account_id, transaction_id)

        old_amount = existing.transaction_amount.amount
        new_amount = Decimal(str(amount)) if amount is not None else old_amount
        updated = _build_manual_transaction(
            transaction_id=transaction_id,
            title=title if title is not None else _manual_title(existing),
            amount=new_amount,
            currency=existing.transaction_amount.currency,
            booking_date=booking_date or existing.booking_date or date.today(),
        )

        await self._write_list(
            key,
            [updated if tx.transaction_id == transaction_id else tx for tx in stored],
            "update_manual_transaction",
        )

        delta = new_amount - old_amount
        await self._audit.log(AuditEventBuilder.manual_transaction_saved(
            account_id, transaction_id, str(delta)
        ))
        await self._aggregator.adjust_manual_balance(account_id, delta)
        return updated

    async def delete_manual_transaction(self, account_id: str, transaction_id: str) -> None:
        key = manual_transactions_key(account_id)
        stored = await self._read_list(key)
        existing = next(
            (tx for tx in stored if tx.transaction_id == transaction_id), None
        )
        if existing is None:
            raise ManualTransactionNotFoundError(account_id, transaction_id)

        await self._write_list(
            key,
            [tx for tx in stored if tx.transaction_id != transaction_id],
            "delete_manual_transaction",
        )

        await self._audit.log(
            AuditEventBuilder.manual_transaction_deleted(account_id, transaction_id)
        )
        await self._aggregator.adjust_manual_balance(
            account_id, -existing.transaction_amount.amount
        )

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    async def _read_list(self, key: str) -> list[Transaction]:
        try:
            raw = await self._store.get_json(key, default=[])
            return [Transaction.model_validate(tx) for tx in raw]
        except ValidationError as e:
            error = CorruptValueError(f"Stored transactions are invalid: {e}", key=key)
            await self._audit.log_storage_error("read_transactions", error)
            raise error from e
        except StoreError as e:
            await self._audit.log_storage_error("read_transactions", e)
            raise

    async def _write_list(
        self,
        key: str,
        transactions: Sequence[Transaction],
        operation: str,
    ) -> None:
        try:
            await self._store.set_json(
                key,
                [tx.model_dump(mode="json", exclude_none=True) for tx in transactions],
            )
        except StoreError as e:
            await self._audit.log_storage_error(operation, e)
            raise


def _manual_title(tx: Transaction) -> str:
    if tx.remittance_information:
        return tx.remittance_information[0]
    return tx.counterparty_name


def _build_manual_transaction(
    transaction_id: str,
    title: str,
    amount: Decimal,
    currency: str,
    booking_date: date,
) -> Transaction:
    """Outflows name the title as creditor, inflows as debtor."""
    outflow = amount < 0
    return Transaction(
        transaction_id=transaction_id,
        booking_date=booking_date,
        value_date=booking_date,
        transaction_amount=TransactionAmount(currency=currency, amount=amount),
        creditor=Party(name=title if outflow else SELF_PARTY),
        debtor=Party(name=SELF_PARTY if outflow else title),
        remittance_information=[title],
        credit_debit_indicator="DBIT" if outflow else "CRDT",
    )
