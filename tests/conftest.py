"""
Shared fixtures.

External collaborators are replaced by scripted fakes:
- InMemoryStore for persistence
- FakeGateway for the banking proxy
- ScriptedAgent for the LLM
No network access in tests.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

import pytest

from finance_tracker.accounts import AccountAggregator
from finance_tracker.agents import CategorizationAgent
from finance_tracker.audit import AuditLogger
from finance_tracker.categories import CategoryRegistry
from finance_tracker.models.account import (
    AuthorizationStart,
    Balance,
    BalanceAmount,
    Bank,
    LinkedSession,
    SessionData,
    UpstreamAccount,
)
from finance_tracker.models.category import Category
from finance_tracker.models.transaction import TransactionPage
from finance_tracker.services.banking import GatewayError, GatewayUnavailableError
from finance_tracker.services.storage import InMemoryStore, StoreWriteError
from finance_tracker.services.storage.keys import SESSIONS_KEY


def make_balance(amount: str, currency: str = "EUR", balance_type: str = "CLAV") -> Balance:
    return Balance(
        balance_amount=BalanceAmount(amount=Decimal(amount), currency=currency),
        balance_type=balance_type,
    )


def make_session(session_id: str, *account_ids: str, bank_name: str = "Test Bank") -> LinkedSession:
    return LinkedSession(
        session_id=session_id,
        bank_name=bank_name,
        bank_country="DE",
        accounts=[
            UpstreamAccount(uid=uid, name=f"Account {uid}", currency="EUR")
            for uid in account_ids
        ],
    )


class FakeGateway:
    """Scripted stand-in for BankingGatewayClient."""

    def __init__(self):
        # account id -> list of balances, or an exception to raise
        self.balances: dict[str, Any] = {}
        # account id -> list of pages (TransactionPage or exception), in order
        self.pages: dict[str, list[Any]] = {}
        self.banks: list[Bank] = []
        self.session_data: Optional[SessionData] = None
        self.balance_calls: list[str] = []
        self.transaction_calls: list[tuple] = []
        self.closed = False

    async def fetch_balances(self, account_id: str) -> list[Balance]:
        self.balance_calls.append(account_id)
        result = self.balances.get(
            account_id, GatewayUnavailableError("Network request failed")
        )
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def fetch_transactions(
        self,
        account_id: str,
        date_from=None,
        date_to=None,
        continuation_key: Optional[str] = None,
    ) -> TransactionPage:
        self.transaction_calls.append((account_id, continuation_key))
        pages = self.pages.get(account_id, [])
        index = int(continuation_key) if continuation_key else 0
        if index >= len(pages):
            return TransactionPage()
        result = pages[index]
        if isinstance(result, Exception):
            raise result
        return result

    async def list_banks(self, country_code: str) -> list[Bank]:
        return [b for b in self.banks if b.country == country_code]

    async def start_authorization(self, bank_name: str, bank_country: str) -> AuthorizationStart:
        return AuthorizationStart(
            redirect_url=f"https://bank.example/{bank_name}",
            authorization_id="auth-1",
        )

    async def exchange_authorization_code(self, code: str) -> SessionData:
        if self.session_data is None:
            raise GatewayError("Invalid code", status_code=400, body={"error": "Invalid code"})
        return self.session_data

    async def aclose(self) -> None:
        self.closed = True


class ScriptedAgent(CategorizationAgent):
    """
    Categorization agent returning scripted answers.

    Each entry of `responses` is used for one call: a dict is returned,
    an exception is raised, a callable receives the batch.
    """

    def __init__(self, responses: Sequence[Any] = ()):
        self.responses = list(responses)
        self.calls: list[tuple[list[dict], tuple[Category, ...], str]] = []

    async def categorize(self, transactions, categories, language):
        self.calls.append((list(transactions), tuple(categories), language))
        response = self.responses[len(self.calls) - 1] if len(self.calls) <= len(self.responses) else {}
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(transactions, categories)
        return dict(response)


class CountingStore(InMemoryStore):
    """In-memory store that records writes and can fail them per key."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes: list[str] = []
        self.failing_keys: set[str] = set()

    async def set(self, key: str, value: str) -> None:
        if key in self.failing_keys:
            raise StoreWriteError(f"Failed to write '{key}': disk full", key=key)
        self.writes.append(key)
        await super().set(key, value)


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def aggregator(store, gateway, audit_logger) -> AccountAggregator:
    return AccountAggregator(store, gateway, audit_logger)


@pytest.fixture
def registry(store, audit_logger) -> CategoryRegistry:
    return CategoryRegistry(store, audit_logger)


async def store_sessions(store: InMemoryStore, *sessions: LinkedSession) -> None:
    await store.set_json(SESSIONS_KEY, [s.model_dump(mode="json") for s in sessions])
