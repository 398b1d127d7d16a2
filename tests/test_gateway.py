"""
Tests for the banking gateway client, using httpx.MockTransport.
"""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from finance_tracker.services.banking import (
    BankingGatewayClient,
    GatewayError,
    GatewayUnavailableError,
)


BASE_URL = "http://gateway.test/api"


def make_client(handler) -> BankingGatewayClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BankingGatewayClient(base_url=BASE_URL, client=http_client)


class TestGatewayRequests:
    """Request shapes and response decoding."""

    async def test_start_authorization(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"url": "https://bank/login", "authorization_id": "a1"})

        async with make_client(handler) as gateway:
            result = await gateway.start_authorization("Sparkasse", "DE")

        assert seen == {
            "method": "POST",
            "url": f"{BASE_URL}/auth",
            "body": {"aspspName": "Sparkasse", "aspspCountry": "DE"},
        }
        assert result.redirect_url == "https://bank/login"
        assert result.authorization_id == "a1"

    async def test_exchange_authorization_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"code": "xyz"}
            return httpx.Response(200, json={
                "session_id": "s1",
                "accounts": [{"uid": "acc-1", "account_id": {"iban": "DE00123"}, "currency": "EUR"}],
                "aspsp": {"name": "Sparkasse", "country": "DE"},
            })

        async with make_client(handler) as gateway:
            session = await gateway.exchange_authorization_code("xyz")

        assert session.session_id == "s1"
        assert session.bank.name == "Sparkasse"
        assert session.accounts[0].iban == "DE00123"

    async def test_fetch_balances(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/accounts/acc-1/balances"
            return httpx.Response(200, json={"balances": [
                {"name": "Booked", "balance_type": "CLBD",
                 "balance_amount": {"amount": "10.00", "currency": "EUR"}},
                {"name": "Available", "balance_type": "CLAV",
                 "balance_amount": {"amount": "120.50", "currency": "EUR"}},
            ]})

        async with make_client(handler) as gateway:
            balances = await gateway.fetch_balances("acc-1")

        assert [b.balance_type for b in balances] == ["CLBD", "CLAV"]
        assert balances[1].balance_amount.amount == Decimal("120.50")

    async def test_fetch_transactions_flattens_booked_and_pending(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "transactions": {
                    "booked": [{"transaction_id": "b1",
                                "transaction_amount": {"amount": "-1", "currency": "EUR"}}],
                    "pending": [{"transaction_id": "p1",
                                 "transaction_amount": {"amount": "-2", "currency": "EUR"}}],
                },
                "continuation_key": "next",
            })

        async with make_client(handler) as gateway:
            page = await gateway.fetch_transactions(
                "acc-1", date_from=date(2024, 1, 1), continuation_key="k0"
            )

        assert seen["params"] == {"date_from": "2024-01-01", "continuation_key": "k0"}
        assert [tx.transaction_id for tx in page.transactions] == ["b1", "p1"]
        assert page.continuation_key == "next"

    async def test_fetch_transactions_flat_list(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"transactions": [
                {"transaction_amount": {"amount": "5", "currency": "EUR"}, "booking_date": "2024-02-01"},
            ]})

        async with make_client(handler) as gateway:
            page = await gateway.fetch_transactions("acc-1")

        assert len(page.transactions) == 1
        assert page.transactions[0].booking_date == date(2024, 2, 1)
        assert page.continuation_key is None

    async def test_list_banks(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["country"] == "FI"
            return httpx.Response(200, json={"aspsps": [{"name": "Nordea", "country": "FI"}]})

        async with make_client(handler) as gateway:
            banks = await gateway.list_banks("FI")

        assert [b.name for b in banks] == ["Nordea"]


class TestGatewayErrors:
    """Failures surface as GatewayError, never retried."""

    async def test_non_2xx_carries_status_and_body(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(422, json={"error": "Unknown ASPSP"})

        async with make_client(handler) as gateway:
            with pytest.raises(GatewayError) as exc_info:
                await gateway.start_authorization("Nope", "DE")

        assert exc_info.value.status_code == 422
        assert exc_info.value.body == {"error": "Unknown ASPSP"}
        assert exc_info.value.message == "Unknown ASPSP"
        assert len(calls) == 1

    async def test_non_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        async with make_client(handler) as gateway:
            with pytest.raises(GatewayError) as exc_info:
                await gateway.fetch_balances("acc-1")

        assert exc_info.value.status_code == 502
        assert exc_info.value.body == "Bad Gateway"
        assert exc_info.value.message == "Failed to fetch balances"

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as gateway:
            with pytest.raises(GatewayUnavailableError) as exc_info:
                await gateway.list_banks("DE")

        assert exc_info.value.status_code is None

    async def test_malformed_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"balances": [{"balance_type": "CLAV"}]})

        async with make_client(handler) as gateway:
            with pytest.raises(GatewayError):
                await gateway.fetch_balances("acc-1")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
