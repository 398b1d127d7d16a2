"""
Banking Gateway Client

Thin async wrapper around the gateway proxy that signs and forwards
requests to the open-banking provider.

DESIGN DECISION: No retries at this layer.
- Every operation is one HTTP call
- Non-2xx responses raise GatewayError with the status and the upstream
  body unchanged
- Retry/backoff is the caller's decision (a failing balance fetch during
  a refresh is handled by the aggregator, not here)

Responses are parsed into Pydantic models at this boundary, so callers
never see the raw JSON shapes (e.g. the booked/pending transaction split).
"""

from datetime import date
from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from finance_tracker.config import get_settings
from finance_tracker.models.account import (
    AuthorizationStart,
    Balance,
    Bank,
    SessionData,
)
from finance_tracker.models.transaction import TransactionPage


logger = structlog.get_logger("finance_tracker.gateway")


class GatewayError(Exception):
    """The gateway answered with a non-2xx status or an unusable payload."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class GatewayUnavailableError(GatewayError):
    """The gateway could not be reached at all."""


class BankingGatewayClient:
    """
    Client for the gateway proxy HTTP API.

    Usage:
        async with BankingGatewayClient() as gateway:
            banks = await gateway.list_banks("DE")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings().gateway
        self._base_url = (base_url or settings.base_url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds or settings.timeout_seconds,
        )

    async def __aenter__(self) -> "BankingGatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        failure_message: str,
    ) -> dict:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(
                method, url, json=json, params=params
            )
        except httpx.HTTPError as e:
            logger.warning("gateway_unreachable", method=method, path=path, error=str(e))
            raise GatewayUnavailableError(f"{failure_message}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = response.text

        if not response.is_success:
            message = failure_message
            if isinstance(body, dict) and body.get("error"):
                message = str(body["error"])
            logger.warning(
                "gateway_error",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise GatewayError(message, status_code=response.status_code, body=body)

        if not isinstance(body, dict):
            raise GatewayError(
                f"{failure_message}: unexpected response body",
                status_code=response.status_code,
                body=body,
            )
        return body

    async def start_authorization(
        self,
        bank_name: str,
        bank_country: str,
    ) -> AuthorizationStart:
        """Begin the bank authorization flow; returns the redirect URL."""
        body = await self._request(
            "POST",
            "/auth",
            json={"aspspName": bank_name, "aspspCountry": bank_country},
            failure_message="Failed to start authorization",
        )
        return self._parse(AuthorizationStart, body)

    async def exchange_authorization_code(self, code: str) -> SessionData:
        """Exchange the code from the bank redirect for a session."""
        body = await self._request(
            "POST",
            "/sessions",
            json={"code": code},
            failure_message="Failed to create session",
        )
        return self._parse(SessionData, body)

    async def fetch_balances(self, account_id: str) -> list[Balance]:
        body = await self._request(
            "GET",
            f"/accounts/{quote(account_id, safe='')}/balances",
            failure_message="Failed to fetch balances",
        )
        return [self._parse(Balance, b) for b in body.get("balances") or []]

    async def fetch_transactions(
        self,
        account_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        continuation_key: Optional[str] = None,
    ) -> TransactionPage:
        """
        Fetch one page of transactions.

        Booked and pending lists are flattened (booked first) by
        TransactionPage.
        """
        params = {}
        if date_from:
            params["date_from"] = date_from.isoformat()
        if date_to:
            params["date_to"] = date_to.isoformat()
        if continuation_key:
            params["continuation_key"] = continuation_key

        body = await self._request(
            "GET",
            f"/accounts/{quote(account_id, safe='')}/transactions",
            params=params or None,
            failure_message="Failed to fetch transactions",
        )
        return self._parse(TransactionPage, body)

    async def list_banks(self, country_code: str) -> list[Bank]:
        body = await self._request(
            "GET",
            "/aspsps",
            params={"country": country_code},
            failure_message="Failed to fetch banks",
        )
        return [self._parse(Bank, b) for b in body.get("aspsps") or []]

    @staticmethod
    def _parse(model, payload: Any):
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise GatewayError(
                f"Unexpected {model.__name__} payload from gateway",
                body=payload,
            ) from e
