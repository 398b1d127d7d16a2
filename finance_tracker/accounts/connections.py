"""
Bank Connection Management

Lifecycle of Linked Sessions:
1. start_bank_connection() - user is sent to the bank's login page
2. complete_bank_connection() - the returned code becomes a session,
   its accounts join the unified list on the next refresh
3. remove_session() - the session and its accounts disappear
"""

from typing import Optional

from pydantic import ValidationError

from finance_tracker.accounts.aggregator import AccountAggregator
from finance_tracker.audit import AuditLogger
from finance_tracker.models.account import AuthorizationStart, Bank, LinkedSession
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.services.banking import BankingGatewayClient, GatewayError
from finance_tracker.services.storage import (
    CorruptValueError,
    KeyValueStore,
    StoreError,
)
from finance_tracker.services.storage.keys import SESSIONS_KEY


class ConnectionManager:
    """Creates, lists and removes Linked Sessions."""

    def __init__(
        self,
        store: KeyValueStore,
        gateway: BankingGatewayClient,
        aggregator: AccountAggregator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._aggregator = aggregator
        self._audit = audit_logger or AuditLogger()

    async def search_banks(
        self,
        country: str,
        query: Optional[str] = None,
    ) -> list[Bank]:
        """Banks of a country, optionally filtered by a name substring (any case)."""
        banks = await self._call_gateway(self._gateway.list_banks(country))
        if not query or not query.strip():
            return banks
        needle = query.strip().lower()
        return [b for b in banks if needle in b.name.lower()]

    async def start_bank_connection(
        self,
        bank_name: str,
        bank_country: str,
    ) -> AuthorizationStart:
        return await self._call_gateway(
            self._gateway.start_authorization(bank_name, bank_country)
        )

    async def complete_bank_connection(self, code: str) -> LinkedSession:
        """
        Exchange the authorization code and store the new session.

        Raises:
            GatewayError: If the code exchange fails
            StoreError: If the session cannot be stored
        """
        data = await self._call_gateway(self._gateway.exchange_authorization_code(code))
        session = LinkedSession.from_session_data(data)

        sessions = await self.list_sessions()
        sessions.append(session)
        await self._write_sessions(sessions, "link_session")

        await self._audit.log(AuditEventBuilder.session_linked(
            session_id=session.session_id,
            bank_name=session.bank_name,
            account_count=len(session.accounts),
        ))
        await self._aggregator.refresh_accounts(show_indicator=False)
        return session

    async def list_sessions(self) -> list[LinkedSession]:
        try:
            raw = await self._store.get_json(SESSIONS_KEY, default=[])
            return [LinkedSession.model_validate(s) for s in raw]
        except ValidationError as e:
            error = CorruptValueError(f"Stored sessions are invalid: {e}", key=SESSIONS_KEY)
            await self._audit.log_storage_error("list_sessions", error)
            raise error from e
        except StoreError as e:
            await self._audit.log_storage_error("list_sessions", e)
            raise

    async def remove_session(self, session_id: str) -> None:
        sessions = await self.list_sessions()
        remaining = [s for s in sessions if s.session_id != session_id]
        if len(remaining) == len(sessions):
            return

        await self._write_sessions(remaining, "remove_session")
        await self._audit.log(AuditEventBuilder.session_removed(session_id))
        await self._aggregator.refresh_accounts(show_indicator=False)

    async def _write_sessions(self, sessions: list[LinkedSession], operation: str) -> None:
        try:
            await self._store.set_json(
                SESSIONS_KEY,
                [s.model_dump(mode="json") for s in sessions],
            )
        except StoreError as e:
            await self._audit.log_storage_error(operation, e)
            raise

    async def _call_gateway(self, call):
        try:
            return await call
        except GatewayError as e:
            await self._audit.log_external_service_error("banking_gateway", e)
            raise
