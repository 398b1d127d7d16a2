"""
Account Aggregator

Merges connected accounts (from Linked Sessions, live balances) and
manual accounts into one unified, render-ready list.

REFRESH PROTOCOL:
1. Read sessions, manual accounts and account metadata in parallel
2. Build the manual entries (no network I/O)
3. Build one loading skeleton per connected account
4. Fetch all balances concurrently and wait for every fetch
5. Per failed fetch: keep the previously known balance if there is one,
   otherwise record the error on the entry
6. Persist the merged list as render cache, then swap it in as one value
7. Clear the refreshing indicator

DESIGN DECISION: The aggregator never halts. A storage failure in step 1
aborts the refresh and keeps the previous list; a failing bank degrades
only its own account.

There is no mutual exclusion between concurrent refreshes or between a
refresh and a mutation; the last swap wins.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Sequence, Union
from uuid import UUID

from pydantic import ValidationError

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.models.account import (
    AccountCategory,
    AccountMetadata,
    LinkedSession,
    ManualAccount,
    UnifiedAccount,
    select_primary_balance,
)
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.services.banking import BankingGatewayClient, GatewayError
from finance_tracker.services.storage import (
    CorruptValueError,
    KeyValueStore,
    StoreError,
)
from finance_tracker.services.storage.keys import (
    ACCOUNT_METADATA_KEY,
    CASH_BALANCE_KEY,
    MANUAL_ACCOUNTS_KEY,
    RENDER_CACHE_KEY,
    SESSIONS_KEY,
    manual_transactions_key,
)


class RefreshStatus(str, Enum):
    """Outcome of a refresh cycle."""
    OK = "ok"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class PartialFetchFailure:
    """A connected account whose balance could not be fetched."""
    account_id: str
    reason: str
    used_stale_balance: bool


@dataclass
class RefreshReport:
    """Result of refresh_accounts()."""
    status: RefreshStatus
    accounts: tuple[UnifiedAccount, ...] = ()
    failures: list[PartialFetchFailure] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def message(self) -> str:
        if self.status == RefreshStatus.FAILED:
            return "Could not load your accounts. Showing the last known data."
        if self.status == RefreshStatus.PARTIAL:
            missing = sum(1 for f in self.failures if not f.used_stale_balance)
            return f"{missing} account balance(s) could not be loaded."
        return "Accounts updated."


class AccountAggregator:
    """
    Owns the unified account list and the cash balance.

    Mutations follow read-modify-persist-then-refresh.
    """

    def __init__(
        self,
        store: KeyValueStore,
        gateway: BankingGatewayClient,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._audit = audit_logger or AuditLogger()

        self._accounts: tuple[UnifiedAccount, ...] = ()
        self._cash_balance = Decimal("0")
        self._is_loading = False
        self._is_refreshing = False

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def accounts(self) -> tuple[UnifiedAccount, ...]:
        return self._accounts

    @property
    def cash_balance(self) -> Decimal:
        return self._cash_balance

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    def get_account(self, account_id: str) -> Optional[UnifiedAccount]:
        for account in self._accounts:
            if account.id == account_id:
                return account
        return None

    def total_bank_balance(self) -> Decimal:
        """Sum of all unified balances (no currency conversion)."""
        return sum((a.balance for a in self._accounts), Decimal("0"))

    def net_worth(self) -> Decimal:
        return self.total_bank_balance() + self._cash_balance

    def assets_and_liabilities(self) -> tuple[Decimal, Decimal]:
        """
        Split balances into assets and liabilities.

        Returns:
            (assets, liabilities), liabilities as a positive amount
        """
        balances = [a.balance for a in self._accounts] + [self._cash_balance]
        assets = sum((b for b in balances if b > 0), Decimal("0"))
        liabilities = sum((-b for b in balances if b < 0), Decimal("0"))
        return assets, liabilities

    # -------------------------------------------------------------------------
    # Loading and refresh
    # -------------------------------------------------------------------------

    async def load_initial(self) -> RefreshReport:
        """
        Show the render cache immediately, then refresh without indicator.

        An unreadable cache is skipped; the refresh still runs.
        """
        self._is_loading = True
        try:
            try:
                cached = await self._store.get_json(RENDER_CACHE_KEY, default=[])
                if not isinstance(cached, list):
                    raise CorruptValueError("Render cache is not a list")
                self._accounts = tuple(UnifiedAccount.model_validate(a) for a in cached)
                self._cash_balance = _to_decimal(
                    await self._store.get_json(CASH_BALANCE_KEY, default="0")
                )
                await self._audit.log(
                    AuditEventBuilder.render_cache_loaded(len(self._accounts))
                )
            except (StoreError, ValidationError) as e:
                await self._audit.log_storage_error("load_render_cache", e)

            return await self.refresh_accounts(show_indicator=False)
        finally:
            self._is_loading = False

    async def refresh_accounts(self, show_indicator: bool = True) -> RefreshReport:
        """Run the refresh protocol. Never raises for storage or bank failures."""
        correlation_id = create_correlation_id()
        if show_indicator:
            self._is_refreshing = True

        # Stale-balance fallback only trusts what was visible before this cycle
        previous = {a.id: a for a in self._accounts}

        try:
            await self._audit.log(
                AuditEventBuilder.refresh_started(show_indicator, correlation_id)
            )

            # Step 1: shared setup, any failure aborts
            try:
                sessions, manual_accounts, metadata = await self._read_sources()
            except StoreError as e:
                await self._audit.log_storage_error("refresh_accounts", e, correlation_id)
                await self._audit.log(
                    AuditEventBuilder.refresh_failed(str(e), correlation_id)
                )
                return RefreshReport(
                    status=RefreshStatus.FAILED,
                    accounts=self._accounts,
                    error=str(e),
                )

            # Steps 2-3
            manual_entries = [UnifiedAccount.from_manual(m) for m in manual_accounts]
            skeleton = self._connected_skeleton(sessions, metadata)

            # Steps 4-5: fan-out, fan-in
            outcomes = await asyncio.gather(*(
                self._load_balance(account, previous.get(account.id), correlation_id)
                for account in skeleton
            ))
            connected = [account for account, _ in outcomes]
            failures = [failure for _, failure in outcomes if failure]

            # Step 6
            merged = tuple(connected + manual_entries)
            try:
                await self._write_render_cache(merged)
            except StoreError as e:
                await self._audit.log_storage_error("write_render_cache", e, correlation_id)
                await self._audit.log(
                    AuditEventBuilder.refresh_failed(str(e), correlation_id)
                )
                return RefreshReport(
                    status=RefreshStatus.FAILED,
                    accounts=self._accounts,
                    failures=failures,
                    error=str(e),
                )
            self._accounts = merged

            unrecovered = [f for f in failures if not f.used_stale_balance]
            status = RefreshStatus.PARTIAL if unrecovered else RefreshStatus.OK
            await self._audit.log(AuditEventBuilder.refresh_completed(
                status=status.value,
                connected_count=len(connected),
                manual_count=len(manual_entries),
                failed_count=len(unrecovered),
                correlation_id=correlation_id,
            ))
            return RefreshReport(status=status, accounts=merged, failures=failures)
        finally:
            # Step 7
            if show_indicator:
                self._is_refreshing = False

    async def _read_sources(
        self,
    ) -> tuple[list[LinkedSession], list[ManualAccount], dict[str, AccountMetadata]]:
        raw_sessions, raw_manual, raw_metadata = await asyncio.gather(
            self._store.get_json(SESSIONS_KEY, default=[]),
            self._store.get_json(MANUAL_ACCOUNTS_KEY, default=[]),
            self._store.get_json(ACCOUNT_METADATA_KEY, default={}),
        )
        try:
            sessions = [LinkedSession.model_validate(s) for s in raw_sessions]
            manual = [ManualAccount.model_validate(m) for m in raw_manual]
            metadata = {
                str(k): AccountMetadata.model_validate(v)
                for k, v in raw_metadata.items()
            }
        except (ValidationError, AttributeError, TypeError) as e:
            raise CorruptValueError(f"Stored account data is invalid: {e}") from e
        return sessions, manual, metadata

    @staticmethod
    def _connected_skeleton(
        sessions: Sequence[LinkedSession],
        metadata: dict[str, AccountMetadata],
    ) -> list[UnifiedAccount]:
        """One loading entry per upstream account; duplicates keep the first session's."""
        seen = set()
        skeleton = []
        for session in sessions:
            for upstream in session.accounts:
                if upstream.uid in seen:
                    continue
                seen.add(upstream.uid)
                skeleton.append(UnifiedAccount.connected_skeleton(
                    upstream,
                    bank_name=session.bank_name,
                    metadata=metadata.get(upstream.uid),
                ))
        return skeleton

    async def _load_balance(
        self,
        account: UnifiedAccount,
        previous: Optional[UnifiedAccount],
        correlation_id: UUID,
    ) -> tuple[UnifiedAccount, Optional[PartialFetchFailure]]:
        """Fetch one balance; failures stay local to this account."""
        try:
            balances = await self._gateway.fetch_balances(account.id)
            primary = select_primary_balance(balances)
            if primary is None:
                raise GatewayError("No balances reported")
            return account.model_copy(update={
                "balance": primary.balance_amount.amount,
                "currency": primary.balance_amount.currency,
                "loading": False,
                "error": None,
            }), None
        except Exception as e:
            reason = e.message if isinstance(e, GatewayError) else str(e)

        use_stale = bool(previous and previous.is_connected and previous.has_known_balance)
        await self._audit.log(AuditEventBuilder.balance_fetch_failed(
            account_id=account.id,
            reason=reason,
            used_stale_balance=use_stale,
            correlation_id=correlation_id,
        ))

        failure = PartialFetchFailure(
            account_id=account.id,
            reason=reason,
            used_stale_balance=use_stale,
        )
        if use_stale:
            return account.model_copy(update={
                "balance": previous.balance,
                "currency": previous.currency,
                "loading": False,
                "error": None,
            }), failure
        return account.model_copy(update={
            "balance": Decimal("0"),
            "loading": False,
            "error": reason,
        }), failure

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def set_cash_balance(self, amount: Union[Decimal, int, str]) -> None:
        value = Decimal(str(amount))
        await self._write(CASH_BALANCE_KEY, str(value), "set_cash_balance")
        self._cash_balance = value
        await self._audit.log(AuditEventBuilder.cash_balance_set(str(value)))

    async def add_manual_account(
        self,
        account: Union[ManualAccount, dict],
    ) -> ManualAccount:
        """Store a new manual account and refresh so it shows up immediately."""
        if not isinstance(account, ManualAccount):
            account = ManualAccount.model_validate(account)

        manual = await self._read_manual_accounts()
        manual.append(account)
        await self._write_manual_accounts(manual, "add_manual_account")

        await self._audit.log(
            AuditEventBuilder.manual_account_added(account.id, account.name)
        )
        await self.refresh_accounts(show_indicator=False)
        return account

    async def delete_manual_account(self, account_id: str) -> None:
        """Remove a manual account and its transactions, then refresh."""
        manual = await self._read_manual_accounts()
        remaining = [m for m in manual if m.id != account_id]
        await self._write_manual_accounts(remaining, "delete_manual_account")

        try:
            await self._store.remove(manual_transactions_key(account_id))
        except StoreError as e:
            await self._audit.log_storage_error("delete_manual_transactions", e)
            raise

        await self._audit.log(AuditEventBuilder.manual_account_deleted(account_id))
        await self.refresh_accounts(show_indicator=False)

    async def adjust_manual_balance(self, account_id: str, delta: Decimal) -> None:
        """Add delta to a manual account's stored balance, then refresh."""
        if not delta:
            return
        manual = await self._read_manual_accounts()
        updated = [
            m.model_copy(update={"balance": m.balance + delta}) if m.id == account_id else m
            for m in manual
        ]
        await self._write_manual_accounts(updated, "adjust_manual_balance")
        await self.refresh_accounts(show_indicator=False)

    async def set_account_category(
        self,
        account_id: str,
        category: Union[AccountCategory, str],
    ) -> None:
        """
        Change an account's category.

        Manual accounts store it on the account record, connected
        accounts in the metadata map.
        """
        category = AccountCategory(category)
        manual = await self._read_manual_accounts()

        if any(m.id == account_id for m in manual):
            updated = [
                m.model_copy(update={"category": category}) if m.id == account_id else m
                for m in manual
            ]
            await self._write_manual_accounts(updated, "set_account_category")
        else:
            metadata = await self._store.get_json(ACCOUNT_METADATA_KEY, default={})
            next_metadata = dict(metadata)
            next_metadata[account_id] = {
                **next_metadata.get(account_id, {}),
                "category": category.value,
            }
            await self._write(ACCOUNT_METADATA_KEY, next_metadata, "set_account_category")

        await self._audit.log(
            AuditEventBuilder.account_category_set(account_id, category.value)
        )
        await self.refresh_accounts(show_indicator=False)

    async def patch_account(self, updated: UnifiedAccount) -> bool:
        """
        Overwrite one entry of the unified list without a full refresh.

        Returns False if no entry has that id.
        """
        if self.get_account(updated.id) is None:
            return False

        next_accounts = tuple(
            updated if a.id == updated.id else a for a in self._accounts
        )
        try:
            await self._write_render_cache(next_accounts)
        except StoreError as e:
            await self._audit.log_storage_error("patch_account", e)
            raise
        self._accounts = next_accounts

        await self._audit.log(AuditEventBuilder.account_patched(
            updated.id, str(updated.balance), updated.currency
        ))
        return True

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    async def _read_manual_accounts(self) -> list[ManualAccount]:
        try:
            raw = await self._store.get_json(MANUAL_ACCOUNTS_KEY, default=[])
            return [ManualAccount.model_validate(m) for m in raw]
        except ValidationError as e:
            error = CorruptValueError(
                f"Stored manual accounts are invalid: {e}", key=MANUAL_ACCOUNTS_KEY
            )
            await self._audit.log_storage_error("read_manual_accounts", error)
            raise error from e
        except StoreError as e:
            await self._audit.log_storage_error("read_manual_accounts", e)
            raise

    async def _write_manual_accounts(
        self,
        accounts: Sequence[ManualAccount],
        operation: str,
    ) -> None:
        await self._write(
            MANUAL_ACCOUNTS_KEY,
            [m.model_dump(mode="json") for m in accounts],
            operation,
        )

    async def _write_render_cache(self, accounts: Sequence[UnifiedAccount]) -> None:
        await self._store.set_json(
            RENDER_CACHE_KEY,
            [a.model_dump(mode="json") for a in accounts],
        )

    async def _write(self, key: str, value: Any, operation: str) -> None:
        try:
            await self._store.set_json(key, value)
        except StoreError as e:
            await self._audit.log_storage_error(operation, e)
            raise


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise CorruptValueError(f"Invalid amount: {value!r}") from e
