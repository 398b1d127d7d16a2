"""
Transaction Models for Finance Tracker

Transactions come from two places:
1. The banking gateway (connected accounts), possibly without a server id
2. The user (manual accounts), always with a locally generated id

The gateway returns the list either flat or split into booked/pending.
TransactionPage normalizes both shapes to one flat ordered list at the
parsing boundary, booked entries first.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransactionAmount(BaseModel):
    """Amount and currency of a transaction, sign as sent upstream."""

    currency: str
    amount: Decimal


class Party(BaseModel):
    """Creditor or debtor of a transaction."""
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None


class Transaction(BaseModel):
    """A single booked or pending transaction."""
    model_config = ConfigDict(extra="allow")

    transaction_id: Optional[str] = Field(
        default=None,
        description="Server-assigned id; may be missing for some banks"
    )
    booking_date: Optional[date] = None
    value_date: Optional[date] = None
    transaction_amount: TransactionAmount
    creditor: Optional[Party] = None
    debtor: Optional[Party] = None
    remittance_information: list[str] = Field(default_factory=list)
    credit_debit_indicator: Optional[str] = Field(
        default=None,
        description="CRDT or DBIT"
    )

    @property
    def creditor_name(self) -> Optional[str]:
        return self.creditor.name if self.creditor else None

    @property
    def debtor_name(self) -> Optional[str]:
        return self.debtor.name if self.debtor else None

    @property
    def counterparty_name(self) -> str:
        """Creditor name, falling back to the debtor name."""
        return self.creditor_name or self.debtor_name or ""

    @property
    def effective_date(self) -> Optional[date]:
        return self.booking_date or self.value_date

    @property
    def signed_amount(self) -> Decimal:
        """
        Amount with the sign implied by the credit/debit indicator.

        DBIT is always an outflow, CRDT always an inflow; without an
        indicator the upstream sign is kept.
        """
        amount = self.transaction_amount.amount
        if self.credit_debit_indicator == "DBIT" and amount > 0:
            return -amount
        if self.credit_debit_indicator == "CRDT" and amount < 0:
            return -amount
        return amount


class TransactionPage(BaseModel):
    """One page of the gateway's transaction listing."""

    transactions: list[Transaction] = Field(default_factory=list)
    continuation_key: Optional[str] = None

    @field_validator('transactions', mode='before')
    @classmethod
    def flatten_booked_pending(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, dict):
            return list(v.get("booked") or []) + list(v.get("pending") or [])
        return v
