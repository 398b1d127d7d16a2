"""
Main Orchestrator for Finance Tracker

This module builds every service once and wires the shared
collaborators (store, gateway, audit logger, categorization agent)
into them.

DESIGN DECISION: No module-level singletons for domain state.
- create_app_components() is the only place services are constructed
- Tests pass fakes for the store, gateway and agent
- Without a Gemini API key the app still runs; only auto-categorization
  is unavailable

Start-up flow:
1. Load categories and debts
2. Show the account render cache
3. Refresh accounts in the background of the user's first view
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from finance_tracker.accounts import (
    AccountAggregator,
    ConnectionManager,
    RefreshReport,
    TransactionService,
)
from finance_tracker.agents import CategorizationAgent, GeminiCategorizationAgent
from finance_tracker.audit import AuditLogger
from finance_tracker.categories import (
    AutoCategorizer,
    AutoCategorizeResult,
    CategoryRegistry,
)
from finance_tracker.config import validate_all_settings
from finance_tracker.debts import DebtLedger
from finance_tracker.models.account import SourceType
from finance_tracker.models.transaction import Transaction
from finance_tracker.services.banking import BankingGatewayClient
from finance_tracker.services.storage import (
    JsonFileStore,
    KeyValueStore,
    StoreAuditStorage,
)


logger = structlog.get_logger("finance_tracker.orchestrator")

MISSING_API_KEY_MESSAGE = "Please set your Gemini API Key in Settings first."


class CategorizationUnavailableError(Exception):
    """Auto-categorization was requested but no LLM is configured."""

    def __init__(self, message: str = MISSING_API_KEY_MESSAGE):
        self.message = message
        super().__init__(message)


@dataclass
class AppComponents:
    """Every service of the app, built once."""
    store: KeyValueStore
    gateway: BankingGatewayClient
    audit_logger: AuditLogger
    aggregator: AccountAggregator
    connections: ConnectionManager
    transactions: TransactionService
    registry: CategoryRegistry
    debts: DebtLedger
    auto_categorizer: Optional[AutoCategorizer] = None


class FinanceApp:
    """
    Entry point used by a client.

    Wraps the components with the flows that span several services.
    """

    def __init__(self, components: AppComponents):
        self.components = components

    @property
    def aggregator(self) -> AccountAggregator:
        return self.components.aggregator

    @property
    def registry(self) -> CategoryRegistry:
        return self.components.registry

    async def start(self) -> RefreshReport:
        """Load categories and debts, then show cached accounts and refresh."""
        await self.components.registry.load()
        await self.components.debts.load()
        return await self.components.aggregator.load_initial()

    async def account_transactions(self, account_id: str) -> list[Transaction]:
        """Stored transactions of an account (manual list or connected cache)."""
        account = self.aggregator.get_account(account_id)
        if account and account.source_type == SourceType.MANUAL:
            return await self.components.transactions.manual_transactions(account_id)
        return await self.components.transactions.cached_transactions(account_id)

    async def auto_categorize_account(self, account_id: str) -> AutoCategorizeResult:
        """
        Auto-categorize the stored transactions of one account.

        Raises:
            CategorizationUnavailableError: If no Gemini API key is configured
        """
        if self.components.auto_categorizer is None:
            raise CategorizationUnavailableError()

        transactions = await self.account_transactions(account_id)
        return await self.components.auto_categorizer.run(transactions)

    async def aclose(self) -> None:
        await self.components.gateway.aclose()


def create_app_components(
    store: Optional[KeyValueStore] = None,
    gateway: Optional[BankingGatewayClient] = None,
    categorization_agent: Optional[CategorizationAgent] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        store: Key-value store; defaults to the JSON file store
        gateway: Banking gateway client; defaults to the configured proxy
        categorization_agent: LLM collaborator; defaults to Gemini when
                              an API key is configured
        audit_logger: Defaults to a logger persisting to the store

    Returns:
        The wired components
    """
    store = store if store is not None else JsonFileStore()
    gateway = gateway if gateway is not None else BankingGatewayClient()
    audit_logger = audit_logger or AuditLogger(StoreAuditStorage(store))

    if categorization_agent is None:
        checks = validate_all_settings()
        if checks["gemini"]:
            categorization_agent = GeminiCategorizationAgent()
        else:
            # API key not configured - continue without auto-categorization
            logger.warning("categorization_unavailable", error=checks["gemini_error"])

    aggregator = AccountAggregator(store, gateway, audit_logger)
    registry = CategoryRegistry(store, audit_logger)

    auto_categorizer = None
    if categorization_agent is not None:
        auto_categorizer = AutoCategorizer(registry, categorization_agent, audit_logger)

    return AppComponents(
        store=store,
        gateway=gateway,
        audit_logger=audit_logger,
        aggregator=aggregator,
        connections=ConnectionManager(store, gateway, aggregator, audit_logger),
        transactions=TransactionService(store, gateway, aggregator, audit_logger),
        registry=registry,
        debts=DebtLedger(store, audit_logger),
        auto_categorizer=auto_categorizer,
    )
