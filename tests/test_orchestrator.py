"""
Integration tests for the wired application (fakes for all externals).
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import FakeGateway, ScriptedAgent, make_balance, make_session, store_sessions
from finance_tracker.accounts import RefreshStatus
from finance_tracker.audit import AuditLogger
from finance_tracker.categories import AutoCategorizer
from finance_tracker.models.transaction import (
    Party,
    Transaction,
    TransactionAmount,
    TransactionPage,
)
from finance_tracker.orchestrator import (
    MISSING_API_KEY_MESSAGE,
    CategorizationUnavailableError,
    FinanceApp,
    create_app_components,
)
from finance_tracker.services.storage import InMemoryStore
from finance_tracker.services.storage.keys import AUDIT_LOG_KEY, CATEGORIES_KEY


class TestFinanceApp:

    async def test_start_loads_everything(self, store, gateway):
        await store_sessions(store, make_session("s1", "A"))
        gateway.balances["A"] = [make_balance("10")]
        await store.set_json(CATEGORIES_KEY, [{"id": "cat_1", "name": "Living", "color": "#000"}])
        app = FinanceApp(create_app_components(
            store=store,
            gateway=gateway,
            categorization_agent=ScriptedAgent(),
            audit_logger=AuditLogger(),
        ))

        report = await app.start()

        assert report.status == RefreshStatus.OK
        assert app.registry.get("cat_1").name == "Living"
        assert app.aggregator.get_account("A").balance == Decimal("10")

    async def test_auto_categorize_manual_account(self):
        store = InMemoryStore()
        agent = ScriptedAgent([lambda batch, cats: {s["id"]: "Freizeit" for s in batch}])
        app = FinanceApp(create_app_components(
            store=store,
            gateway=FakeGateway(),
            categorization_agent=agent,
        ))
        await app.start()
        account = await app.aggregator.add_manual_account({"name": "Wallet"})
        created = await app.components.transactions.add_manual_transaction(
            account.id, "Cinema", "-12", booking_date=date.today() - timedelta(days=3)
        )

        result = await app.auto_categorize_account(account.id)

        assert result.categorized == 1
        assert app.registry.resolve(created.transaction_id).name == "Freizeit"
        # Default audit logger persists to the same store
        assert await store.get_json(AUDIT_LOG_KEY)

    async def test_without_api_key(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        components = create_app_components(store=InMemoryStore(), gateway=FakeGateway())
        app = FinanceApp(components)

        assert components.auto_categorizer is None
        with pytest.raises(CategorizationUnavailableError) as exc_info:
            await app.auto_categorize_account("manual_1")
        assert exc_info.value.message == MISSING_API_KEY_MESSAGE

    async def test_with_api_key_uses_gemini(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")

        components = create_app_components(store=InMemoryStore(), gateway=FakeGateway())

        assert isinstance(components.auto_categorizer, AutoCategorizer)

    async def test_aclose_closes_gateway(self, gateway):
        app = FinanceApp(create_app_components(
            store=InMemoryStore(),
            gateway=gateway,
            categorization_agent=ScriptedAgent(),
        ))
        await app.aclose()
        assert gateway.closed


class TestAccountTransactions:

    async def test_connected_account_reads_cache(self, store, gateway):
        await store_sessions(store, make_session("s1", "A"))
        gateway.balances["A"] = [make_balance("1")]
        app = FinanceApp(create_app_components(
            store=store, gateway=gateway, categorization_agent=ScriptedAgent()
        ))
        await app.start()
        gateway.pages["A"] = [TransactionPage(transactions=[Transaction(
            transaction_id="t1",
            booking_date=date.today(),
            transaction_amount=TransactionAmount(currency="EUR", amount=Decimal("-3")),
            creditor=Party(name="Bakery"),
        )])]
        await app.components.transactions.fetch_transactions("A")

        listed = await app.account_transactions("A")

        assert [t.transaction_id for t in listed] == ["t1"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
