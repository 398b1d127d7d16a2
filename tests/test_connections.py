"""
Tests for bank connection management.
"""

import pytest

from conftest import make_balance
from finance_tracker.accounts import ConnectionManager
from finance_tracker.models.account import Bank, SessionData, UpstreamAccount
from finance_tracker.services.banking import GatewayError


@pytest.fixture
def connections(store, gateway, aggregator, audit_logger) -> ConnectionManager:
    return ConnectionManager(store, gateway, aggregator, audit_logger)


class TestConnectionManager:

    async def test_search_banks_filters_by_substring(self, connections, gateway):
        gateway.banks = [
            Bank(name="Deutsche Bank", country="DE"),
            Bank(name="Sparkasse Köln", country="DE"),
            Bank(name="Nordea", country="FI"),
        ]

        assert [b.name for b in await connections.search_banks("DE", "spark")] == ["Sparkasse Köln"]
        assert len(await connections.search_banks("DE")) == 2

    async def test_start_bank_connection(self, connections):
        result = await connections.start_bank_connection("Sparkasse", "DE")
        assert result.redirect_url.endswith("Sparkasse")

    async def test_complete_connection_links_accounts(self, connections, gateway, aggregator):
        """A completed connection shows its accounts after the automatic refresh."""
        gateway.session_data = SessionData(
            session_id="s1",
            accounts=[UpstreamAccount(uid="A", name="Checking")],
            bank=Bank(name="Sparkasse", country="DE"),
        )
        gateway.balances["A"] = [make_balance("12.34")]

        session = await connections.complete_bank_connection("code-1")

        assert session.bank_name == "Sparkasse"
        assert session.connected_at.tzinfo is not None
        assert [s.session_id for s in await connections.list_sessions()] == ["s1"]
        assert aggregator.get_account("A").bank_name == "Sparkasse"

    async def test_failed_code_exchange_stores_nothing(self, connections):
        with pytest.raises(GatewayError):
            await connections.complete_bank_connection("bad")
        assert await connections.list_sessions() == []

    async def test_remove_session_drops_accounts(self, connections, gateway, aggregator):
        gateway.session_data = SessionData(
            session_id="s1",
            accounts=[UpstreamAccount(uid="A")],
            bank=Bank(name="Sparkasse", country="DE"),
        )
        await connections.complete_bank_connection("code-1")

        await connections.remove_session("s1")

        assert await connections.list_sessions() == []
        assert aggregator.get_account("A") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
