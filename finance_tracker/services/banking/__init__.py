"""Banking gateway client."""

from finance_tracker.services.banking.gateway import (
    BankingGatewayClient,
    GatewayError,
    GatewayUnavailableError,
)

__all__ = [
    "BankingGatewayClient",
    "GatewayError",
    "GatewayUnavailableError",
]
